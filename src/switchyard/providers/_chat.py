"""Chat-completions request/response shape.

Shared by the OpenAI SDK adapter and the OpenAI-compatible local adapter.
Readers accept both plain dicts (decoded JSON) and SDK response objects.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from switchyard.errors import ResponseParseError
from switchyard.types import (
    CompletionResponse,
    FunctionCall,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolCallDelta,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchyard.types import CompletionOptions, FinishReason, Message, Tool

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool_calls",
    "content_filter": "content_filter",
}


def get_field(obj: Any, key: str) -> Any:
    """Read *key* from a dict or an attribute-style SDK object."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def map_finish_reason(reason: Any) -> FinishReason:
    """Map a vendor finish reason; anything unrecognised is ``stop``."""
    if isinstance(reason, str):
        return _FINISH_REASONS.get(reason, "stop")
    return "stop"


def format_chat_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert messages, adding optional keys only when they are set."""
    formatted: list[dict[str, Any]] = []
    for msg in messages:
        item: dict[str, Any] = {"role": msg.role, "content": msg.content}
        if msg.name:
            item["name"] = msg.name
        if msg.tool_call_id:
            item["tool_call_id"] = msg.tool_call_id
        if msg.tool_calls:
            item["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": tc.kind,
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments,
                    },
                }
                for tc in msg.tool_calls
            ]
        formatted.append(item)
    return formatted


def format_chat_tools(tools: Sequence[Tool]) -> list[dict[str, Any]]:
    return [{"type": t.kind, "function": asdict(t.function)} for t in tools]


def build_chat_payload(
    model: str,
    messages: Sequence[Message],
    options: CompletionOptions | None,
    *,
    stream: bool = False,
) -> dict[str, Any]:
    """Build a chat-completions body. Unset options are omitted entirely."""
    payload: dict[str, Any] = {
        "model": model,
        "messages": format_chat_messages(messages),
    }
    if stream:
        payload["stream"] = True
    if options is None:
        return payload

    if options.temperature is not None:
        payload["temperature"] = options.temperature
    if options.max_tokens is not None:
        payload["max_tokens"] = options.max_tokens
    if options.top_p is not None:
        payload["top_p"] = options.top_p
    if options.frequency_penalty is not None:
        payload["frequency_penalty"] = options.frequency_penalty
    if options.presence_penalty is not None:
        payload["presence_penalty"] = options.presence_penalty
    if options.stop:
        payload["stop"] = list(options.stop)
    if options.tools:
        payload["tools"] = format_chat_tools(options.tools)
    if options.tool_choice is not None:
        payload["tool_choice"] = options.tool_choice
    if options.response_format is not None:
        payload["response_format"] = options.response_format
    return payload


def parse_chat_completion(
    response: Any,
    latency_ms: float,
    *,
    fallback_id: str | None = None,
) -> CompletionResponse:
    """Parse a chat-completions response using its first choice.

    Raises:
        ResponseParseError: If the payload is not a chat-completions object.
    """
    choices = get_field(response, "choices")
    if choices is None or not isinstance(choices, (list, tuple)):
        raise ResponseParseError(
            "Chat completion response has no 'choices' list",
            hint="Check that the server implements /chat/completions.",
        )
    choice = choices[0] if choices else None
    message = get_field(choice, "message")

    tool_calls: tuple[ToolCall, ...] | None = None
    raw_calls = get_field(message, "tool_calls")
    if raw_calls:
        try:
            tool_calls = tuple(
                ToolCall(
                    id=get_field(tc, "id") or "",
                    function=FunctionCall(
                        name=get_field(get_field(tc, "function"), "name") or "",
                        arguments=get_field(get_field(tc, "function"), "arguments")
                        or "{}",
                    ),
                )
                for tc in raw_calls
            )
        except ValueError as e:
            raise ResponseParseError(f"Malformed tool call in response: {e}") from e

    usage_raw = get_field(response, "usage")
    usage = TokenUsage.from_counts(
        get_field(usage_raw, "prompt_tokens"),
        get_field(usage_raw, "completion_tokens"),
        get_field(usage_raw, "total_tokens"),
    )

    response_id = get_field(response, "id") or fallback_id
    if not response_id:
        raise ResponseParseError("Chat completion response has no 'id'")

    return CompletionResponse(
        id=str(response_id),
        model=str(get_field(response, "model") or ""),
        content=get_field(message, "content") or "",
        finish_reason=map_finish_reason(get_field(choice, "finish_reason")),
        usage=usage,
        latency_ms=latency_ms,
        tool_calls=tool_calls,
    )


def parse_chat_chunk(item: Any) -> StreamChunk:
    """Convert one streamed chat-completions item into a chunk.

    Raises:
        ResponseParseError: If ``choices`` is present but not a list.
    """
    choices = get_field(item, "choices")
    if choices is None:
        choices = []
    elif not isinstance(choices, (list, tuple)):
        raise ResponseParseError("Streamed chunk has a non-list 'choices' field")
    choice = choices[0] if choices else None
    delta = get_field(choice, "delta")
    finish = get_field(choice, "finish_reason")

    tool_calls: tuple[ToolCallDelta, ...] | None = None
    raw_calls = get_field(delta, "tool_calls")
    if raw_calls:
        tool_calls = tuple(
            ToolCallDelta(
                index=get_field(tc, "index") or 0,
                id=get_field(tc, "id") or "",
                name=get_field(get_field(tc, "function"), "name") or "",
                arguments=get_field(get_field(tc, "function"), "arguments") or "",
            )
            for tc in raw_calls
        )

    return StreamChunk(
        id=str(get_field(item, "id") or ""),
        content=get_field(delta, "content") or "",
        finish_reason=map_finish_reason(finish) if finish else None,
        tool_calls=tool_calls,
    )
