"""Provider-neutral data model shared by every adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Literal, TypeAlias

from switchyard.errors import ConfigurationError

ProviderKind: TypeAlias = Literal["openai", "anthropic", "local"]
Role: TypeAlias = Literal["system", "user", "assistant", "tool"]
FinishReason: TypeAlias = Literal[
    "stop", "length", "tool_calls", "content_filter", "error"
]
ToolChoice: TypeAlias = Literal["auto", "none", "required"] | dict[str, Any]

PROVIDER_KINDS: tuple[ProviderKind, ...] = ("openai", "anthropic", "local")
_ROLES = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class FunctionCall:
    """Function name plus JSON-encoded arguments."""

    name: str
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    """A complete tool call requested by the model.

    ``function.arguments`` is always a JSON document. Partial argument text
    from a stream lives in :class:`ToolCallDelta` until it is assembled.
    """

    id: str
    function: FunctionCall
    kind: Literal["function"] = "function"

    def __post_init__(self) -> None:
        try:
            json.loads(self.function.arguments)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"ToolCall {self.id!r} arguments are not valid JSON: "
                f"{self.function.arguments!r}"
            ) from e

    @classmethod
    def create(cls, id: str, name: str, arguments: str | dict[str, Any]) -> ToolCall:
        """Build a tool call, encoding dict arguments as JSON."""
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(id=id, function=FunctionCall(name=name, arguments=arguments))


@dataclass(frozen=True)
class ToolCallDelta:
    """A partial tool-call fragment from a stream, keyed by vendor index."""

    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""
    kind: Literal["function"] = "function"


@dataclass(frozen=True)
class FunctionSpec:
    """Declarative description of a callable function."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass(frozen=True)
class Tool:
    """A tool the model may call."""

    function: FunctionSpec
    kind: Literal["function"] = "function"


@dataclass(frozen=True)
class Message:
    """A single conversation turn."""

    role: Role
    content: str = ""
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(
                f"Unknown message role {self.role!r}; "
                f"expected one of {sorted(_ROLES)}"
            )
        if self.tool_calls is not None and not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str, *, name: str | None = None) -> Message:
        return cls(role="user", content=content, name=name)

    @classmethod
    def assistant(
        cls, content: str = "", *, tool_calls: tuple[ToolCall, ...] | None = None
    ) -> Message:
        return cls(role="assistant", content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


def _check_range(name: str, value: float | None, low: float, high: float) -> None:
    if value is not None and not (low <= value <= high):
        raise ValueError(f"{name} must be within [{low}, {high}], got {value}")


@dataclass(frozen=True)
class CompletionOptions:
    """Per-request options. Unset fields are never sent to a provider."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: tuple[str, ...] | None = None
    tools: tuple[Tool, ...] | None = None
    tool_choice: ToolChoice | None = None
    response_format: dict[str, Any] | None = None
    #: Request timeout in milliseconds.
    timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate numeric ranges and normalize sequences to tuples."""
        _check_range("temperature", self.temperature, 0.0, 2.0)
        _check_range("top_p", self.top_p, 0.0, 1.0)
        _check_range("frequency_penalty", self.frequency_penalty, -2.0, 2.0)
        _check_range("presence_penalty", self.presence_penalty, -2.0, 2.0)
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be > 0, got {self.max_tokens}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0 ms, got {self.timeout}")
        if self.stop is not None and not isinstance(self.stop, tuple):
            object.__setattr__(self, "stop", tuple(self.stop))
        if self.tools is not None and not isinstance(self.tools, tuple):
            object.__setattr__(self, "tools", tuple(self.tools))


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting for a single completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> TokenUsage:
        """Build usage from vendor counts, any of which may be missing.

        When both prompt and completion counts are present the total is their
        sum regardless of what the vendor reported.
        """
        prompt = max(0, int(prompt_tokens or 0))
        completion = max(0, int(completion_tokens or 0))
        if prompt_tokens is not None and completion_tokens is not None:
            total = prompt + completion
        elif total_tokens is not None:
            total = max(0, int(total_tokens))
        else:
            total = prompt + completion
        return cls(
            prompt_tokens=prompt, completion_tokens=completion, total_tokens=total
        )


@dataclass(frozen=True)
class CompletionResponse:
    """Normalized result of a non-streaming completion."""

    id: str
    model: str
    content: str
    finish_reason: FinishReason
    usage: TokenUsage
    latency_ms: float
    tool_calls: tuple[ToolCall, ...] | None = None


@dataclass(frozen=True)
class StreamChunk:
    """One incremental piece of a streamed completion."""

    id: str
    content: str = ""
    finish_reason: FinishReason | None = None
    tool_calls: tuple[ToolCallDelta, ...] | None = None


@dataclass(frozen=True)
class ModelInfo:
    """Static capability, context and pricing metadata for one model."""

    id: str
    provider: ProviderKind
    context_window: int
    max_output_tokens: int
    supports_tools: bool
    supports_vision: bool
    default_temperature: float
    cost_per_1k_input: float | None = None
    cost_per_1k_output: float | None = None


@dataclass(frozen=True)
class ProviderConfig:
    """Static settings for one adapter.

    ``timeout`` is in milliseconds. ``max_retries`` is the total number of
    attempts the retry engine may make (defaults to 3 when unset).
    """

    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None
    default_model: str | None = None
    timeout: float | None = None
    max_retries: int | None = None

    def __post_init__(self) -> None:
        if self.max_retries is not None and self.max_retries < 1:
            raise ConfigurationError(
                f"max_retries must be >= 1, got {self.max_retries}",
                hint="max_retries counts total attempts, including the first.",
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be > 0 ms, got {self.timeout}",
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ProviderConfig(api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, organization={self.organization!r}, "
            f"default_model={self.default_model!r}, timeout={self.timeout!r}, "
            f"max_retries={self.max_retries!r})"
        )

    __repr__ = __str__
