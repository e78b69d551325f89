"""Dispatcher: owns the initialized providers and routes requests to them."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from switchyard.catalog import ModelCatalog
from switchyard.config import load_environment, provider_config_from_env
from switchyard.errors import ConfigurationError, ProviderUnavailableError
from switchyard.providers import PROVIDER_CLASSES
from switchyard.types import PROVIDER_KINDS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence

    from switchyard.providers.base import Provider
    from switchyard.types import (
        CompletionOptions,
        CompletionResponse,
        Message,
        ProviderConfig,
        ProviderKind,
        StreamChunk,
    )

log = logging.getLogger(__name__)

# Checked in order; anything unmatched goes to the local provider.
_MODEL_PREFIXES: tuple[tuple[str, ProviderKind], ...] = (
    ("gpt-", "openai"),
    ("claude-", "anthropic"),
)
_DEFAULT_PREFERENCE: tuple[ProviderKind, ...] = ("anthropic", "openai", "local")


class Dispatcher:
    """Route completions to one of several initialized providers.

    At most one provider is live per kind. Resolution order for a request:
    explicit ``provider`` argument, then the model id (catalog lookup, then
    prefix heuristic), then the default provider.

    Example:
        dispatcher = Dispatcher()
        dispatcher.initialize_provider("openai", ProviderConfig(api_key="sk-..."))
        dispatcher.set_default_provider("openai")
        response = await dispatcher.complete([Message.user("Hello")])
    """

    def __init__(self, catalog: ModelCatalog | None = None) -> None:
        self.catalog = catalog if catalog is not None else ModelCatalog()
        self._providers: dict[ProviderKind, Provider] = {}
        self._default_kind: ProviderKind = "anthropic"

    # --- Registry ---

    def initialize_provider(
        self, kind: ProviderKind, config: ProviderConfig | None = None
    ) -> Provider:
        """Create the provider for *kind*, replacing any existing one."""
        provider_cls = PROVIDER_CLASSES.get(kind)
        if provider_cls is None:
            raise ConfigurationError(
                f"Unknown provider type: {kind!r}",
                hint=f"Supported providers: {', '.join(PROVIDER_KINDS)}",
            )
        provider = provider_cls(config)
        self._providers[kind] = provider
        log.info("Provider initialized", extra={"provider": kind})
        return provider

    def register_provider(self, kind: ProviderKind, provider: Provider) -> None:
        """Install an already constructed provider for *kind*."""
        if kind not in PROVIDER_KINDS:
            raise ConfigurationError(f"Unknown provider type: {kind!r}")
        self._providers[kind] = provider

    @property
    def providers(self) -> Mapping[ProviderKind, Provider]:
        """Read-only view of the initialized providers."""
        return MappingProxyType(self._providers)

    def get_provider(self, kind: ProviderKind) -> Provider | None:
        return self._providers.get(kind)

    def set_default_provider(self, kind: ProviderKind) -> None:
        if kind not in self._providers:
            raise ConfigurationError(
                f"Provider {kind} not initialized",
                hint="Call initialize_provider() before making it the default.",
            )
        self._default_kind = kind
        log.info("Default provider set", extra={"provider": kind})

    @property
    def default_provider(self) -> Provider | None:
        return self._providers.get(self._default_kind)

    @property
    def default_kind(self) -> ProviderKind:
        return self._default_kind

    def get_ready_providers(self) -> list[ProviderKind]:
        return [kind for kind, p in self._providers.items() if p.is_ready()]

    # --- Resolution ---

    def infer_provider_kind(self, model_id: str) -> ProviderKind:
        """Provider kind for *model_id*: catalog entry first, then prefix."""
        info = self.catalog.get(model_id)
        if info is not None:
            return info.provider
        for prefix, kind in _MODEL_PREFIXES:
            if model_id.startswith(prefix):
                return kind
        return "local"

    def get_provider_for_model(self, model_id: str) -> Provider | None:
        return self._providers.get(self.infer_provider_kind(model_id))

    def resolve(
        self,
        model: str | None = None,
        provider: ProviderKind | None = None,
    ) -> Provider | None:
        """Pick the provider for a request, or ``None`` if none applies."""
        if provider:
            return self._providers.get(provider)
        if model:
            return self.get_provider_for_model(model)
        return self.default_provider

    def _require(
        self,
        options: CompletionOptions | None,
        provider: ProviderKind | None,
        purpose: str,
    ) -> Provider:
        model = options.model if options is not None else None
        resolved = self.resolve(model, provider)
        if resolved is None:
            raise ProviderUnavailableError(
                f"No provider available for {purpose}",
                hint=(
                    f"model={model!r}, provider={provider!r}; initialized: "
                    f"{sorted(self._providers) or 'none'}"
                ),
            )
        return resolved

    # --- Requests ---

    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
        *,
        provider: ProviderKind | None = None,
    ) -> CompletionResponse:
        """Run a completion on the resolved provider. Errors pass through."""
        resolved = self._require(options, provider, "completion")
        return await resolved.complete(messages, options)

    async def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
        *,
        provider: ProviderKind | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from the resolved provider."""
        resolved = self._require(options, provider, "streaming")
        async with aclosing(resolved.stream(messages, options)) as chunks:
            async for chunk in chunks:
                yield chunk

    # --- Aggregates ---

    async def list_all_models(self) -> dict[ProviderKind, list[str]]:
        """List models per provider; a failing provider maps to ``[]``."""
        result: dict[ProviderKind, list[str]] = {}
        for kind, p in list(self._providers.items()):
            try:
                result[kind] = await p.list_models()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.warning(
                    "Failed to list models: %s", exc, extra={"provider": kind}
                )
                result[kind] = []
        return result

    async def validate_all_credentials(self) -> dict[ProviderKind, bool]:
        """Validate every provider; a failing provider maps to ``False``."""
        result: dict[ProviderKind, bool] = {}
        for kind, p in list(self._providers.items()):
            try:
                result[kind] = bool(await p.validate_credentials())
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.warning(
                    "Credential validation failed: %s", exc, extra={"provider": kind}
                )
                result[kind] = False
        return result

    # --- Lifecycle ---

    def initialize_from_environment(self, *, dotenv: bool = True) -> list[ProviderKind]:
        """Initialize providers from environment variables.

        OpenAI and Anthropic are set up when their API key is present; the
        local provider always is. The default becomes the first ready
        provider in the order anthropic, openai, local.
        """
        if dotenv:
            load_environment()

        for kind in ("openai", "anthropic"):
            config = provider_config_from_env(kind)
            if config.api_key:
                self.initialize_provider(kind, config)
        self.initialize_provider("local", provider_config_from_env("local"))

        ready = self.get_ready_providers()
        for kind in _DEFAULT_PREFERENCE:
            if kind in ready:
                self.set_default_provider(kind)
                break

        log.info(
            "Providers initialized from environment",
            extra={
                "providers": sorted(self._providers),
                "ready": ready,
                "default": self._default_kind,
            },
        )
        return ready

    async def aclose(self) -> None:
        """Close every provider's transport client."""
        for kind, p in list(self._providers.items()):
            try:
                await p.aclose()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.warning("Provider cleanup failed: %s", exc, extra={"provider": kind})
