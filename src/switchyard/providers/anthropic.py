"""Anthropic Messages API provider."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
import json
import time
from typing import TYPE_CHECKING, Any
import uuid

from anthropic import AsyncAnthropic

from switchyard.config import resolve_api_key
from switchyard.errors import ResponseParseError
from switchyard.providers._chat import get_field
from switchyard.providers.base import BaseProvider
from switchyard.streaming import bridge
from switchyard.types import (
    CompletionResponse,
    FunctionCall,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolCallDelta,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.streaming import Channel
    from switchyard.types import CompletionOptions, FinishReason, Message, Tool

_DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
_DEFAULT_MAX_TOKENS = 4096
_PROBE_MAX_TOKENS = 1

_KNOWN_MODELS = (
    "claude-3-5-sonnet-20241022",
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
    "claude-2.1",
    "claude-2.0",
)

_STOP_REASONS: dict[str, FinishReason] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "refusal": "content_filter",
}


@dataclass(frozen=True)
class AnthropicMessages:
    """Messages split the way the Messages API wants them."""

    system: str | None
    messages: list[dict[str, Any]]


class AnthropicProvider(BaseProvider):
    """Anthropic Messages API provider (Claude models)."""

    kind = "anthropic"

    def _get_client(self) -> Any:
        """Lazily initialize and return the async Anthropic client."""
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=resolve_api_key("anthropic", self.config),
                base_url=self.config.base_url,
                timeout=self._timeout_s(),
                max_retries=0,
            )
        return self._client

    def is_ready(self) -> bool:
        return bool(resolve_api_key("anthropic", self.config))

    def get_provider_default_model(self) -> str:
        return _DEFAULT_MODEL

    async def list_models(self) -> list[str]:
        """Return the known Claude model ids. No network call."""
        return list(_KNOWN_MODELS)

    async def validate_credentials(self) -> bool:
        """Send a single one-token request; any failure means invalid."""
        try:
            client = self._get_client()
            await client.messages.create(
                model=self.get_default_model(),
                max_tokens=_PROBE_MAX_TOKENS,
                messages=[{"role": "user", "content": "Hi"}],
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.debug("Credential probe failed: %s", exc)
            return False
        return True

    def format_messages(self, messages: Sequence[Message]) -> AnthropicMessages:
        """Fold system and tool roles into the Messages API shape.

        The API takes the system prompt as a separate field, so the first
        system message is lifted out and any later ones are dropped. Tool
        results travel as ``tool_result`` blocks inside a user message.
        """
        system: str | None = None
        formatted: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                if system is None:
                    system = msg.content
                else:
                    self.logger.debug("Dropping additional system message")
                continue

            if msg.role == "tool":
                formatted.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": msg.tool_call_id,
                                "content": msg.content,
                            }
                        ],
                    }
                )
            elif msg.role == "assistant" and msg.tool_calls:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.function.name,
                            "input": _tool_input(tc),
                        }
                    )
                formatted.append({"role": "assistant", "content": blocks})
            else:
                formatted.append({"role": msg.role, "content": msg.content})

        return AnthropicMessages(system=system, messages=formatted)

    def _build_params(
        self, messages: Sequence[Message], options: CompletionOptions | None
    ) -> dict[str, Any]:
        folded = self.format_messages(messages)
        max_tokens = _DEFAULT_MAX_TOKENS
        if options is not None and options.max_tokens is not None:
            max_tokens = options.max_tokens

        params: dict[str, Any] = {
            "model": self._resolve_model(options),
            "max_tokens": max_tokens,
            "messages": folded.messages,
        }
        if folded.system:
            params["system"] = folded.system
        if options is None:
            return params

        # frequency_penalty, presence_penalty and response_format have no
        # Messages API equivalent and are not sent.
        if options.temperature is not None:
            params["temperature"] = options.temperature
        if options.top_p is not None:
            params["top_p"] = options.top_p
        if options.stop:
            params["stop_sequences"] = list(options.stop)
        if options.tools:
            params["tools"] = _normalize_tools(options.tools)
        mapped = _map_tool_choice(options.tool_choice)
        if mapped is not None:
            params["tool_choice"] = mapped
        if options.timeout is not None:
            params["timeout"] = options.timeout / 1000
        return params

    def parse_response(self, response: Any, latency_ms: float) -> CompletionResponse:
        """Join text blocks in order and lift ``tool_use`` blocks into tool calls."""
        content = get_field(response, "content")
        if not isinstance(content, (list, tuple)):
            raise ResponseParseError("Anthropic response has no content block list")

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in content:
            block_type = get_field(block, "type")
            if block_type == "text":
                text_parts.append(get_field(block, "text") or "")
            elif block_type == "tool_use":
                tool_calls.append(_tool_call_from_block(block))

        usage_raw = get_field(response, "usage")
        return CompletionResponse(
            id=str(get_field(response, "id") or ""),
            model=str(get_field(response, "model") or ""),
            content="".join(text_parts),
            finish_reason=_map_stop_reason(get_field(response, "stop_reason")),
            usage=TokenUsage.from_counts(
                get_field(usage_raw, "input_tokens"),
                get_field(usage_raw, "output_tokens"),
            ),
            latency_ms=latency_ms,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """Create a message through the retry engine."""
        start = time.perf_counter()
        params = self._build_params(messages, options)

        self.logger.debug("Sending completion request", extra={"params": params})
        try:
            client = self._get_client()
            response = await self._with_retry(lambda: client.messages.create(**params))
        except Exception as exc:
            raise self.handle_error(exc, phase="complete") from exc

        latency_ms = (time.perf_counter() - start) * 1000
        return self.parse_response(response, latency_ms)

    async def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a message.

        The SDK stream is drained by a background producer that pushes text
        chunks into an ordered channel; this generator pulls from it. The
        terminal chunk, carrying the finish reason and any tool calls, is
        sent only after the final message arrives, and the channel closes
        after it.
        """
        params = self._build_params(messages, options)
        self.logger.debug("Opening completion stream", extra={"params": params})

        async def produce(channel: Channel[StreamChunk]) -> None:
            client = self._get_client()
            message_id = uuid.uuid4().hex
            async with client.messages.stream(**params) as event_stream:
                async for event in event_stream:
                    event_type = get_field(event, "type")
                    if event_type == "message_start":
                        message_id = get_field(event.message, "id") or message_id
                    elif event_type == "text":
                        channel.send(
                            StreamChunk(id=message_id, content=event.text or "")
                        )
                final = await event_stream.get_final_message()
            channel.send(_terminal_chunk(final, message_id))

        try:
            async with aclosing(bridge(produce)) as chunks:
                async for chunk in chunks:
                    yield chunk
        except Exception as exc:
            raise self.handle_error(exc, phase="stream") from exc


def _normalize_tools(tools: Sequence[Tool]) -> list[dict[str, Any]]:
    """Convert tools to Anthropic format (parameters -> input_schema)."""
    return [
        {
            "name": t.function.name,
            "description": t.function.description,
            "input_schema": t.function.parameters,
        }
        for t in tools
    ]


def _map_tool_choice(tool_choice: Any) -> dict[str, str] | None:
    """Map tool_choice to Anthropic format."""
    if tool_choice is None:
        return None
    if isinstance(tool_choice, str):
        if tool_choice == "required":
            return {"type": "any"}
        if tool_choice in ("auto", "none"):
            return {"type": tool_choice}
    elif isinstance(tool_choice, dict):
        name = get_field(tool_choice.get("function"), "name") or tool_choice.get("name")
        if isinstance(name, str):
            return {"type": "tool", "name": name}
    return None


def _map_stop_reason(stop_reason: Any) -> FinishReason:
    if isinstance(stop_reason, str):
        return _STOP_REASONS.get(stop_reason, "stop")
    return "stop"


def _tool_input(call: ToolCall) -> dict[str, Any]:
    """Decode a tool call's arguments as the object ``tool_use.input`` requires."""
    arguments = json.loads(call.function.arguments)
    if not isinstance(arguments, dict):
        raise ValueError(
            f"ToolCall {call.id!r} arguments must be a JSON object, "
            f"got {type(arguments).__name__}"
        )
    return arguments


def _tool_call_from_block(block: Any) -> ToolCall:
    try:
        return ToolCall(
            id=get_field(block, "id") or "",
            function=FunctionCall(
                name=get_field(block, "name") or "",
                arguments=json.dumps(get_field(block, "input") or {}),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Malformed tool_use block: {e}") from e


def _terminal_chunk(final: Any, message_id: str) -> StreamChunk:
    deltas: list[ToolCallDelta] = []
    for block in get_field(final, "content") or []:
        if get_field(block, "type") == "tool_use":
            call = _tool_call_from_block(block)
            deltas.append(
                ToolCallDelta(
                    index=len(deltas),
                    id=call.id,
                    name=call.function.name,
                    arguments=call.function.arguments,
                )
            )
    return StreamChunk(
        id=str(get_field(final, "id") or message_id),
        content="",
        finish_reason=_map_stop_reason(get_field(final, "stop_reason")),
        tool_calls=tuple(deltas) if deltas else None,
    )
