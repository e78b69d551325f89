"""Switchyard: one async completion contract over several LLM backends.

Public API:
    - Dispatcher: routes complete()/stream() to the right provider
    - OpenAIProvider, AnthropicProvider, LocalProvider: backend adapters
    - ModelCatalog: context window and pricing metadata
    - Message, CompletionOptions, ProviderConfig, ...: the data model
"""

from __future__ import annotations

import logging

from switchyard.catalog import ModelCatalog
from switchyard.dispatcher import Dispatcher
from switchyard.errors import (
    APIError,
    ConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
    ResponseParseError,
    SwitchyardError,
)
from switchyard.providers import (
    AnthropicProvider,
    BaseProvider,
    LocalProvider,
    OpenAIProvider,
    Provider,
)
from switchyard.retry import with_retry
from switchyard.streaming import StreamResult, collect_stream
from switchyard.types import (
    CompletionOptions,
    CompletionResponse,
    FunctionCall,
    FunctionSpec,
    Message,
    ModelInfo,
    ProviderConfig,
    StreamChunk,
    TokenUsage,
    Tool,
    ToolCall,
    ToolCallDelta,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("switchyard-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("switchyard").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "AnthropicProvider",
    "BaseProvider",
    "CompletionOptions",
    "CompletionResponse",
    "ConfigurationError",
    "Dispatcher",
    "FunctionCall",
    "FunctionSpec",
    "LocalProvider",
    "Message",
    "ModelCatalog",
    "ModelInfo",
    "OpenAIProvider",
    "Provider",
    "ProviderConfig",
    "ProviderUnavailableError",
    "RateLimitError",
    "ResponseParseError",
    "StreamChunk",
    "StreamResult",
    "SwitchyardError",
    "TokenUsage",
    "Tool",
    "ToolCall",
    "ToolCallDelta",
    "collect_stream",
    "with_retry",
]
