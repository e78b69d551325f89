"""Server-sent-events framing over arbitrarily split byte reads."""

from __future__ import annotations

import asyncio
import json

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from switchyard.providers._sse import iter_sse_data, iter_sse_lines

pytestmark = pytest.mark.unit


async def _reads(*parts: bytes):
    for part in parts:
        yield part


async def _collect(iterable) -> list:
    return [item async for item in iterable]


@pytest.mark.asyncio
async def test_frame_split_mid_line_yields_one_payload():
    payloads = await _collect(
        iter_sse_data(
            _reads(
                b'data: {"id":"1","choices":[{"delta":{"content":"hi"}}]}\n\nda',
                b"ta: [DONE]\n\n",
            )
        )
    )

    assert len(payloads) == 1
    assert payloads[0]["id"] == "1"


@pytest.mark.asyncio
async def test_done_stops_before_trailing_frames():
    payloads = await _collect(
        iter_sse_data(_reads(b'data: {"id":"a"}\n\ndata: [DONE]\n\ndata: {"id":"b"}\n\n'))
    )

    assert [p["id"] for p in payloads] == ["a"]


@pytest.mark.asyncio
async def test_malformed_and_non_data_lines_are_skipped():
    payloads = await _collect(
        iter_sse_data(
            _reads(
                b": keep-alive\n",
                b"event: message\n",
                b"data: {not json}\n",
                b"data: [1, 2]\n",
                b'data: {"id":"ok"}\n',
            )
        )
    )

    assert payloads == [{"id": "ok"}]


@pytest.mark.asyncio
async def test_crlf_and_split_multibyte_characters():
    encoded = "data: {\"c\":\"é\"}\r\n".encode()
    split = encoded.index("é".encode()) + 1

    lines = await _collect(iter_sse_lines(_reads(encoded[:split], encoded[split:])))

    assert lines == ['data: {"c":"é"}']


@pytest.mark.asyncio
async def test_unterminated_last_line_is_flushed():
    lines = await _collect(iter_sse_lines(_reads(b"data: x\ndata: y")))

    assert lines == ["data: x", "data: y"]


_FRAMES = [{"id": str(n), "choices": [{"delta": {"content": f"tök{n}"}}]} for n in range(4)]
_BODY = (
    "".join(f"data: {json.dumps(f, ensure_ascii=False)}\n\n" for f in _FRAMES)
    + "data: [DONE]\n\n"
).encode()


@settings(max_examples=75, deadline=None)
@given(cuts=st.lists(st.integers(min_value=0, max_value=len(_BODY)), max_size=8))
def test_payloads_do_not_depend_on_read_boundaries(cuts):
    bounds = [0, *sorted(cuts), len(_BODY)]
    parts = [_BODY[a:b] for a, b in zip(bounds, bounds[1:])]

    payloads = asyncio.run(_collect(iter_sse_data(_reads(*parts))))

    assert payloads == _FRAMES
