"""Provider implementations."""

from .anthropic import AnthropicProvider
from .base import BaseProvider, Provider
from .local import LocalProvider
from .openai import OpenAIProvider

PROVIDER_CLASSES: dict[str, type[BaseProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "local": LocalProvider,
}

__all__ = [
    "PROVIDER_CLASSES",
    "AnthropicProvider",
    "BaseProvider",
    "LocalProvider",
    "OpenAIProvider",
    "Provider",
]
