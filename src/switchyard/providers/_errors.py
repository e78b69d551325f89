"""Shared provider-side error helpers.

Vendor SDKs and httpx raise their own exception types. Adapters map them into
:class:`APIError` so callers see a single failure type, while the original
message text is kept for the retry classifier.
"""

from __future__ import annotations

import asyncio

from switchyard.config import api_key_env_var
from switchyard.errors import (
    APIError,
    ConfigurationError,
    RateLimitError,
    _walk_exception_chain,
)


def extract_status_code(exc: BaseException) -> int | None:
    """Return the first HTTP status found on *exc* or anything it wraps.

    SDK errors expose ``status_code`` (openai, anthropic) or ``status``;
    httpx errors carry it on ``response``.
    """
    for e in _walk_exception_chain(exc):
        response = getattr(e, "response", None)
        for value in (
            getattr(e, "status_code", None),
            getattr(e, "status", None),
            getattr(response, "status_code", None),
        ):
            if isinstance(value, int) and 100 <= value <= 599:
                return value
    return None


def _auth_hint(
    provider: str, status_code: int | None, cause_message: str
) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    cause_lower = cause_message.lower()
    if status_code in {401, 403} or "api key" in cause_lower or "api_key" in cause_lower:
        try:
            env_var = api_key_env_var(provider)  # type: ignore[arg-type]
        except ConfigurationError:
            env_var = "the API key"
        return (
            f"Check credentials/permissions (try setting {env_var} or "
            "ProviderConfig(api_key=...))."
        )
    return None


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    message: str | None = None,
    hint: str | None = None,
) -> APIError:
    """Map any transport exception into APIError with stable metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, APIError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        if hint is not None and exc.hint is None:
            exc.hint = hint
        return exc

    status_code = extract_status_code(exc)
    cause = str(exc) or type(exc).__name__
    derived_hint = hint if hint is not None else _auth_hint(provider, status_code, cause)

    msg = message or f"{provider} {phase} failed"
    err_cls: type[APIError] = RateLimitError if status_code == 429 else APIError
    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    return err_cls(
        f"{msg}{status_note}: {cause}",
        hint=derived_hint,
        status_code=status_code,
        provider=provider,
        phase=phase,
    )
