"""Model catalog: static context, capability and pricing metadata.

The catalog is a plain object. Build one and pass it to whatever needs it;
sharing is done by passing the same instance, not through a global.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from switchyard.types import ModelInfo

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from switchyard.types import ProviderKind

DEFAULT_MODELS: tuple[ModelInfo, ...] = (
    # OpenAI
    ModelInfo(
        id="gpt-4-turbo-preview",
        provider="openai",
        context_window=128_000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.01,
        cost_per_1k_output=0.03,
    ),
    ModelInfo(
        id="gpt-4o",
        provider="openai",
        context_window=128_000,
        max_output_tokens=16_384,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.005,
        cost_per_1k_output=0.015,
    ),
    ModelInfo(
        id="gpt-4o-mini",
        provider="openai",
        context_window=128_000,
        max_output_tokens=16_384,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.00015,
        cost_per_1k_output=0.0006,
    ),
    ModelInfo(
        id="gpt-3.5-turbo",
        provider="openai",
        context_window=16_385,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=False,
        default_temperature=0.7,
        cost_per_1k_input=0.0005,
        cost_per_1k_output=0.0015,
    ),
    # Anthropic
    ModelInfo(
        id="claude-3-5-sonnet-20241022",
        provider="anthropic",
        context_window=200_000,
        max_output_tokens=8192,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.003,
        cost_per_1k_output=0.015,
    ),
    ModelInfo(
        id="claude-3-opus-20240229",
        provider="anthropic",
        context_window=200_000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.015,
        cost_per_1k_output=0.075,
    ),
    ModelInfo(
        id="claude-3-sonnet-20240229",
        provider="anthropic",
        context_window=200_000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.003,
        cost_per_1k_output=0.015,
    ),
    ModelInfo(
        id="claude-3-haiku-20240307",
        provider="anthropic",
        context_window=200_000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        default_temperature=0.7,
        cost_per_1k_input=0.00025,
        cost_per_1k_output=0.00125,
    ),
    # Local (approximate; no pricing)
    ModelInfo(
        id="llama3.2",
        provider="local",
        context_window=8192,
        max_output_tokens=2048,
        supports_tools=False,
        supports_vision=False,
        default_temperature=0.8,
    ),
    ModelInfo(
        id="llama3.1:70b",
        provider="local",
        context_window=128_000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=False,
        default_temperature=0.8,
    ),
    ModelInfo(
        id="codellama:34b",
        provider="local",
        context_window=16_384,
        max_output_tokens=2048,
        supports_tools=False,
        supports_vision=False,
        default_temperature=0.2,
    ),
    ModelInfo(
        id="mistral:7b",
        provider="local",
        context_window=8192,
        max_output_tokens=2048,
        supports_tools=False,
        supports_vision=False,
        default_temperature=0.7,
    ),
)


class ModelCatalog:
    """Registry of :class:`ModelInfo` keyed by model id.

    Example:
        catalog = ModelCatalog()
        catalog.estimate_cost("gpt-4o", 1000, 500)  # 0.0125
        catalog.fits_in_context("gpt-4o", 127_999)  # True
    """

    def __init__(
        self,
        models: Iterable[ModelInfo] = (),
        *,
        include_defaults: bool = True,
    ) -> None:
        self._models: dict[str, ModelInfo] = {}
        if include_defaults:
            for info in DEFAULT_MODELS:
                self.register(info)
        for info in models:
            self.register(info)

    def register(self, info: ModelInfo) -> None:
        """Add or replace a model entry. The last registration wins."""
        self._models[info.id] = info

    def get(self, model_id: str) -> ModelInfo | None:
        return self._models.get(model_id)

    def has(self, model_id: str) -> bool:
        return model_id in self._models

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelInfo]:
        return iter(list(self._models.values()))

    def all(self) -> list[ModelInfo]:
        return list(self._models.values())

    def by_provider(self, provider: ProviderKind) -> list[ModelInfo]:
        """Return every model served by *provider*, in registration order."""
        return [m for m in self._models.values() if m.provider == provider]

    def with_capability(self, capability: Literal["tools", "vision"]) -> list[ModelInfo]:
        """Return models that support tool calling or image input."""
        if capability == "tools":
            return [m for m in self._models.values() if m.supports_tools]
        if capability == "vision":
            return [m for m in self._models.values() if m.supports_vision]
        raise ValueError(f"Unknown capability {capability!r}; use 'tools' or 'vision'")

    def estimate_cost(
        self, model_id: str, input_tokens: int, output_tokens: int
    ) -> float | None:
        """Estimate the dollar cost of a request.

        Returns ``None`` (not zero) when the model is unknown or has no price
        for either direction.
        """
        info = self.get(model_id)
        if (
            info is None
            or info.cost_per_1k_input is None
            or info.cost_per_1k_output is None
        ):
            return None
        return (input_tokens / 1000) * info.cost_per_1k_input + (
            output_tokens / 1000
        ) * info.cost_per_1k_output

    def fits_in_context(self, model_id: str, token_count: int) -> bool:
        """Whether *token_count* is strictly below the model's context window."""
        info = self.get(model_id)
        if info is None:
            return False
        return token_count < info.context_window
