"""OpenAI-compatible local server provider (Ollama, LM Studio, vLLM, LocalAI).

Talks HTTP directly with httpx; streaming responses are framed by hand from
the server-sent-events body.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any
import uuid

import httpx

from switchyard.config import DEFAULT_LOCAL_URL, resolve_api_key
from switchyard.errors import APIError, ResponseParseError
from switchyard.providers._chat import (
    build_chat_payload,
    format_chat_messages,
    get_field,
    parse_chat_chunk,
    parse_chat_completion,
)
from switchyard.providers._sse import iter_sse_data
from switchyard.providers.base import BaseProvider

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from switchyard.types import (
        CompletionOptions,
        CompletionResponse,
        Message,
        ProviderConfig,
        StreamChunk,
    )

_DEFAULT_MODEL = "llama3.2"


class LocalProvider(BaseProvider):
    """Provider for local servers exposing ``/chat/completions``."""

    kind = "local"

    def __init__(self, config: ProviderConfig | None = None) -> None:
        super().__init__(config)
        self.base_url = (self.config.base_url or DEFAULT_LOCAL_URL).rstrip("/")

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialize and return the shared HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            api_key = resolve_api_key("local", self.config)
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self._timeout_s(default_ms=None),
            )
        return self._client

    def is_ready(self) -> bool:
        return bool(self.base_url)

    def get_provider_default_model(self) -> str:
        return _DEFAULT_MODEL

    def format_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        return format_chat_messages(messages)

    def parse_response(self, response: Any, latency_ms: float) -> CompletionResponse:
        """Parse a chat-completions body; a missing id is generated."""
        return parse_chat_completion(
            response, latency_ms, fallback_id=uuid.uuid4().hex
        )

    async def list_models(self) -> list[str]:
        """Return model ids from ``GET /models``; empty on any failure."""
        try:
            response = await self._get_client().get("/models")
            if not response.is_success:
                return []
            data = get_field(response.json(), "data") or []
            return [m["id"] for m in data if isinstance(m, dict) and "id" in m]
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.warning(
                "Failed to list local models: %s", exc, extra={"base_url": self.base_url}
            )
            return []

    async def validate_credentials(self) -> bool:
        try:
            return len(await self.list_models()) > 0
        except asyncio.CancelledError:
            raise
        except Exception:
            return False

    async def complete(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> CompletionResponse:
        """POST a completion; transport failures are retried, bad bodies are not."""
        start = time.perf_counter()
        body = build_chat_payload(self._resolve_model(options), messages, options)
        timeout = _request_timeout(options)

        self.logger.debug(
            "Sending completion request to local server",
            extra={"body": body, "base_url": self.base_url},
        )

        async def send() -> bytes:
            response = await client.post("/chat/completions", json=body, timeout=timeout)
            if not response.is_success:
                raise APIError(
                    f"Local server error: {response.status_code} {response.text}",
                    status_code=response.status_code,
                    provider=self.kind,
                    phase="complete",
                )
            return response.content

        try:
            client = self._get_client()
            raw = await self._with_retry(send)
        except Exception as exc:
            raise self.handle_error(exc, phase="complete") from exc

        try:
            decoded = json.loads(raw)
        except ValueError as e:
            raise ResponseParseError(
                f"Local server returned invalid JSON: {raw[:200]!r}"
            ) from e

        latency_ms = (time.perf_counter() - start) * 1000
        return self.parse_response(decoded, latency_ms)

    async def stream(
        self,
        messages: Sequence[Message],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from the SSE body.

        Leaving the loop early closes the response and frees the connection.
        """
        body = build_chat_payload(
            self._resolve_model(options), messages, options, stream=True
        )
        timeout = _request_timeout(options)

        try:
            client = self._get_client()
            async with client.stream(
                "POST", "/chat/completions", json=body, timeout=timeout
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise APIError(
                        f"Local server error: {response.status_code} {response.text}",
                        status_code=response.status_code,
                        provider=self.kind,
                        phase="stream",
                    )
                async for payload in iter_sse_data(response.aiter_bytes()):
                    try:
                        chunk = parse_chat_chunk(payload)
                    except (
                        ResponseParseError,
                        LookupError,
                        TypeError,
                        ValueError,
                    ) as e:
                        self.logger.debug(
                            "Skipping malformed stream frame (%s): %.200s", e, payload
                        )
                        continue
                    yield chunk
        except Exception as exc:
            raise self.handle_error(exc, phase="stream") from exc


def _request_timeout(options: CompletionOptions | None) -> Any:
    """Per-request timeout in seconds, or the client's default."""
    if options is not None and options.timeout is not None:
        return options.timeout / 1000
    return httpx.USE_CLIENT_DEFAULT
