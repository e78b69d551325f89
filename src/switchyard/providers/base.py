"""Provider contract shared by every backend adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Protocol,
    TypeVar,
    final,
    runtime_checkable,
)

from switchyard.providers._errors import wrap_provider_error
from switchyard.retry import DEFAULT_MAX_ATTEMPTS, with_retry
from switchyard.types import ProviderConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from switchyard.errors import APIError
    from switchyard.types import (
        CompletionOptions,
        CompletionResponse,
        Message,
        ProviderKind,
        StreamChunk,
    )

T = TypeVar("T")


@runtime_checkable
class Provider(Protocol):
    """What the dispatcher needs from an adapter."""

    kind: ProviderKind

    def is_ready(self) -> bool:
        """Whether local configuration is sufficient. Never performs I/O."""
        ...

    async def list_models(self) -> list[str]:
        """Model ids this backend can serve."""
        ...

    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """Run a non-streaming completion."""
        ...

    def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Run a streaming completion as a lazy, single-pass iterator."""
        ...

    async def validate_credentials(self) -> bool:
        """Probe the backend once. Never raises."""
        ...

    def get_default_model(self) -> str:
        """Model used when the request does not name one."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...


class BaseProvider(ABC):
    """Shared plumbing for the concrete adapters.

    Subclasses supply the vendor translation (``format_messages``,
    ``parse_response``) and transport calls. Default-model resolution, error
    wrapping and retry are common and should not be overridden.
    """

    kind: ClassVar[ProviderKind]

    def __init__(self, config: ProviderConfig | None = None) -> None:
        self.config = config if config is not None else ProviderConfig()
        self._client: Any = None
        self.logger = logging.getLogger(f"switchyard.providers.{self.kind}")

    # --- Contract ---

    @abstractmethod
    def is_ready(self) -> bool: ...

    @abstractmethod
    async def list_models(self) -> list[str]: ...

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResponse: ...

    @abstractmethod
    def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamChunk]: ...

    @abstractmethod
    async def validate_credentials(self) -> bool: ...

    @abstractmethod
    def get_provider_default_model(self) -> str:
        """Adapter's built-in default model id."""

    @abstractmethod
    def format_messages(self, messages: Sequence[Message]) -> Any:
        """Translate common messages into the vendor's request shape."""

    @abstractmethod
    def parse_response(self, response: Any, latency_ms: float) -> CompletionResponse:
        """Translate a vendor response into :class:`CompletionResponse`."""

    # --- Shared helpers ---

    @final
    def get_default_model(self) -> str:
        return self.config.default_model or self.get_provider_default_model()

    def _resolve_model(self, options: CompletionOptions | None) -> str:
        if options is not None and options.model:
            return options.model
        return self.get_default_model()

    @final
    def handle_error(self, exc: BaseException, *, phase: str) -> APIError:
        """Log *exc* and return it as an :class:`APIError`.

        ``asyncio.CancelledError`` is re-raised rather than wrapped.
        """
        err = wrap_provider_error(
            exc,
            provider=self.kind,
            phase=phase,
            message=f"{self.kind} {phase} failed",
        )
        self.logger.error(
            "Provider error: %s",
            err,
            extra={"provider": self.kind, "phase": phase, "status": err.status_code},
        )
        return err

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        max_attempts = self.config.max_retries or DEFAULT_MAX_ATTEMPTS
        return await with_retry(operation, max_attempts, logger=self.logger)

    def _timeout_s(self, default_ms: float | None = 60_000) -> float | None:
        """Configured timeout converted to seconds."""
        timeout_ms = self.config.timeout if self.config.timeout is not None else default_ms
        return None if timeout_ms is None else timeout_ms / 1000

    async def aclose(self) -> None:
        """Close the lazily created transport client, if any."""
        client = self._client
        if client is None:
            return
        self._client = None
        close = getattr(client, "aclose", None) or getattr(client, "close", None)
        if close is not None:
            await close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(config={self.config})"
