"""Channel, bridge and stream assembly behavior."""

from __future__ import annotations

import asyncio
from contextlib import aclosing

import pytest

from switchyard.errors import ResponseParseError
from switchyard.streaming import (
    Channel,
    ToolCallAccumulator,
    bridge,
    collect_stream,
)
from switchyard.types import StreamChunk, ToolCallDelta

pytestmark = pytest.mark.unit


async def _drain(iterable) -> list:
    return [item async for item in iterable]


async def _chunks(*chunks: StreamChunk):
    for chunk in chunks:
        yield chunk


# =============================================================================
# Channel
# =============================================================================


@pytest.mark.asyncio
async def test_channel_preserves_send_order_and_drains_before_close():
    channel: Channel[int] = Channel()
    for n in range(5):
        channel.send(n)
    channel.close()

    assert await _drain(channel) == [0, 1, 2, 3, 4]
    assert channel.closed


@pytest.mark.asyncio
async def test_channel_raises_close_error_after_buffered_items():
    channel: Channel[str] = Channel()
    channel.send("a")
    channel.close(RuntimeError("producer failed"))
    seen: list[str] = []

    with pytest.raises(RuntimeError, match="producer failed"):
        async for item in channel:
            seen.append(item)
    assert seen == ["a"]


@pytest.mark.asyncio
async def test_channel_close_is_idempotent_and_send_after_close_fails():
    channel: Channel[str] = Channel()
    channel.close()
    channel.close(RuntimeError("ignored"))

    with pytest.raises(RuntimeError, match="closed channel"):
        channel.send("late")
    assert await _drain(channel) == []


# =============================================================================
# bridge
# =============================================================================


@pytest.mark.asyncio
async def test_bridge_yields_everything_the_producer_sends():
    async def producer(channel: Channel[int]) -> None:
        for n in range(3):
            channel.send(n)
            await asyncio.sleep(0)

    assert await _drain(bridge(producer)) == [0, 1, 2]


@pytest.mark.asyncio
async def test_bridge_surfaces_producer_error_after_items():
    async def producer(channel: Channel[str]) -> None:
        channel.send("partial")
        raise ConnectionError("socket closed")

    seen: list[str] = []
    with pytest.raises(ConnectionError, match="socket closed"):
        async for item in bridge(producer):
            seen.append(item)
    assert seen == ["partial"]


@pytest.mark.asyncio
async def test_bridge_cancels_producer_when_consumer_stops_early():
    release = asyncio.Event()
    cancelled = asyncio.Event()

    async def producer(channel: Channel[str]) -> None:
        channel.send("first")
        try:
            await release.wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async with aclosing(bridge(producer)) as stream:
        async for item in stream:
            assert item == "first"
            break

    assert cancelled.is_set()


# =============================================================================
# Tool-call assembly
# =============================================================================


def test_accumulator_concatenates_arguments_per_index():
    acc = ToolCallAccumulator()
    acc.extend(
        [
            ToolCallDelta(index=0, id="c1", name="get_weather", arguments='{"ci'),
            ToolCallDelta(index=1, id="c2", name="get_time"),
            ToolCallDelta(index=0, arguments='ty": "Oslo"}'),
        ]
    )

    calls = acc.build()

    assert [c.id for c in calls] == ["c1", "c2"]
    assert calls[0].function.name == "get_weather"
    assert calls[0].function.arguments == '{"city": "Oslo"}'
    assert calls[1].function.arguments == "{}"


def test_accumulator_keeps_first_id_and_name():
    acc = ToolCallAccumulator()
    acc.add(ToolCallDelta(index=0, id="first", name="f"))
    acc.add(ToolCallDelta(index=0, id="second", name="g", arguments="{}"))

    (call,) = acc.build()
    assert (call.id, call.function.name) == ("first", "f")


def test_accumulator_rejects_truncated_arguments():
    acc = ToolCallAccumulator()
    acc.add(ToolCallDelta(index=0, id="c1", name="f", arguments='{"a": 1'))

    with pytest.raises(ResponseParseError, match="c1"):
        acc.build()


def test_empty_accumulator_is_falsy():
    assert not ToolCallAccumulator()
    assert ToolCallAccumulator().build() == ()


# =============================================================================
# collect_stream
# =============================================================================


@pytest.mark.asyncio
async def test_collect_stream_assembles_text_and_tool_calls():
    result = await collect_stream(
        _chunks(
            StreamChunk(id="s1", content="Hel"),
            StreamChunk(id="s1", content="lo"),
            StreamChunk(
                id="s1",
                tool_calls=(ToolCallDelta(index=0, id="t", name="f", arguments="{}"),),
            ),
            StreamChunk(id="s1", finish_reason="tool_calls"),
        )
    )

    assert result.id == "s1"
    assert result.content == "Hello"
    assert result.finish_reason == "tool_calls"
    assert result.chunk_count == 4
    assert result.tool_calls is not None
    assert result.tool_calls[0].id == "t"


@pytest.mark.asyncio
async def test_collect_stream_of_nothing():
    result = await collect_stream(_chunks())

    assert result.content == ""
    assert result.finish_reason is None
    assert result.tool_calls is None
    assert result.chunk_count == 0
