"""OpenAI Chat Completions provider."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from switchyard.config import resolve_api_key
from switchyard.providers._chat import (
    build_chat_payload,
    format_chat_messages,
    get_field,
    parse_chat_chunk,
    parse_chat_completion,
)
from switchyard.providers.base import BaseProvider

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.types import (
        CompletionOptions,
        CompletionResponse,
        Message,
        StreamChunk,
    )

_DEFAULT_MODEL = "gpt-4-turbo-preview"
_CHAT_MODEL_PREFIX = "gpt-"


class OpenAIProvider(BaseProvider):
    """OpenAI Chat Completions provider (GPT-4, GPT-3.5-Turbo, ...)."""

    kind = "openai"

    def _get_client(self) -> Any:
        """Lazily initialize and return the async OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=resolve_api_key("openai", self.config),
                organization=self.config.organization,
                base_url=self.config.base_url,
                timeout=self._timeout_s(),
                # Retries are handled by switchyard.retry.
                max_retries=0,
            )
        return self._client

    def is_ready(self) -> bool:
        return bool(resolve_api_key("openai", self.config))

    def get_provider_default_model(self) -> str:
        return _DEFAULT_MODEL

    def format_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        return format_chat_messages(messages)

    def parse_response(self, response: Any, latency_ms: float) -> CompletionResponse:
        return parse_chat_completion(response, latency_ms)

    async def list_models(self) -> list[str]:
        """List chat models visible to this API key."""
        client = self._get_client()
        models: list[str] = []
        async for model in client.models.list():
            model_id = get_field(model, "id")
            if isinstance(model_id, str) and model_id.startswith(_CHAT_MODEL_PREFIX):
                models.append(model_id)
        return models

    async def validate_credentials(self) -> bool:
        try:
            await self.list_models()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.debug("Credential probe failed: %s", exc)
            return False
        return True

    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """Create a chat completion through the retry engine."""
        start = time.perf_counter()
        params = build_chat_payload(self._resolve_model(options), messages, options)
        if options is not None and options.timeout is not None:
            params["timeout"] = options.timeout / 1000

        self.logger.debug("Sending completion request", extra={"params": params})
        try:
            client = self._get_client()
            response = await self._with_retry(
                lambda: client.chat.completions.create(**params)
            )
        except Exception as exc:
            raise self.handle_error(exc, phase="complete") from exc

        latency_ms = (time.perf_counter() - start) * 1000
        return self.parse_response(response, latency_ms)

    async def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion; one chunk per streamed item."""
        params = build_chat_payload(
            self._resolve_model(options), messages, options, stream=True
        )
        if options is not None and options.timeout is not None:
            params["timeout"] = options.timeout / 1000

        self.logger.debug("Opening completion stream", extra={"params": params})
        try:
            client = self._get_client()
            response_stream = await client.chat.completions.create(**params)
        except Exception as exc:
            raise self.handle_error(exc, phase="stream") from exc

        try:
            async for item in response_stream:
                yield parse_chat_chunk(item)
        except Exception as exc:
            raise self.handle_error(exc, phase="stream") from exc
        finally:
            close = getattr(response_stream, "close", None)
            if close is not None:
                await close()
