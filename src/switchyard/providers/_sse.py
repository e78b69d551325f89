"""Incremental server-sent-events framing over raw byte chunks."""

from __future__ import annotations

import codecs
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

log = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


async def iter_sse_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield complete text lines from a byte stream.

    Multi-byte characters and lines may be split across reads; the trailing
    partial line is held and joined onto the next read.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.rstrip("\r")
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer.rstrip("\r")


async def iter_sse_data(chunks: AsyncIterable[bytes]) -> AsyncIterator[dict[str, Any]]:
    """Yield the decoded JSON payload of each ``data:`` event.

    ``data: [DONE]`` ends the stream at once, even if more bytes follow.
    Frames whose payload is not a JSON object are skipped.
    """
    async for line in iter_sse_lines(chunks):
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            return
        try:
            payload = json.loads(data)
        except ValueError:
            log.debug("Skipping malformed SSE frame: %.200s", data)
            continue
        if isinstance(payload, dict):
            yield payload
