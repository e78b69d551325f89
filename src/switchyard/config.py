"""Environment-backed provider configuration.

Adapters never read the environment for anything but an API key fallback;
everything else comes in through an explicit :class:`ProviderConfig`.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from switchyard.errors import ConfigurationError
from switchyard.types import PROVIDER_KINDS, ProviderConfig, ProviderKind

DEFAULT_LOCAL_URL = "http://localhost:11434/v1"

# Provider-specific API key environment variable names
_API_KEY_ENV_VARS: dict[ProviderKind, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "local": "LOCAL_LLM_API_KEY",
}

_BASE_URL_ENV_VARS: dict[ProviderKind, str] = {
    "openai": "OPENAI_BASE_URL",
    "anthropic": "ANTHROPIC_BASE_URL",
    "local": "LOCAL_LLM_URL",
}


def load_environment(dotenv_path: str | None = None) -> bool:
    """Load a ``.env`` file into ``os.environ`` without overriding set values."""
    return load_dotenv(dotenv_path, override=False)


def api_key_env_var(kind: ProviderKind) -> str:
    """Name of the environment variable holding *kind*'s API key."""
    _check_kind(kind)
    return _API_KEY_ENV_VARS[kind]


def resolve_api_key(kind: ProviderKind, config: ProviderConfig) -> str | None:
    """Return the configured key, falling back to the provider's env var."""
    if config.api_key:
        return config.api_key
    return os.environ.get(api_key_env_var(kind)) or None


def provider_config_from_env(kind: ProviderKind) -> ProviderConfig:
    """Build a :class:`ProviderConfig` for *kind* from environment variables."""
    _check_kind(kind)
    base_url = os.environ.get(_BASE_URL_ENV_VARS[kind]) or None
    if kind == "local" and base_url is None:
        base_url = DEFAULT_LOCAL_URL
    organization = (
        os.environ.get("OPENAI_ORGANIZATION") or None if kind == "openai" else None
    )
    return ProviderConfig(
        api_key=os.environ.get(_API_KEY_ENV_VARS[kind]) or None,
        base_url=base_url,
        organization=organization,
    )


def _check_kind(kind: str) -> None:
    if kind not in PROVIDER_KINDS:
        raise ConfigurationError(
            f"Unknown provider: {kind!r}",
            hint=f"Supported providers: {', '.join(PROVIDER_KINDS)}",
        )
