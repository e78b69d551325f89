"""Streaming helpers: an ordered push->pull channel and stream assembly.

``Channel`` turns callbacks or a background task that *push* items into a
single-consumer async iterator. Closing the channel is an item in the queue,
so the consumer always drains everything sent before it observes the end.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Generic, TypeVar

from switchyard.errors import ResponseParseError
from switchyard.types import FunctionCall, ToolCall

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from switchyard.types import FinishReason, StreamChunk, ToolCallDelta

T = TypeVar("T")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Closed:
    error: BaseException | None = None


class Channel(Generic[T]):
    """Unbounded FIFO channel with an explicit close signal."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[T | _Closed] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T) -> None:
        """Buffer *item* for the consumer. Never blocks."""
        if self._closed:
            raise RuntimeError("send() on a closed channel")
        self._queue.put_nowait(item)

    def close(self, error: BaseException | None = None) -> None:
        """Mark the end of the stream after all buffered items.

        With *error*, the consumer raises it once the buffer is drained.
        Closing twice is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_Closed(error))

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self._queue.get()
            if isinstance(item, _Closed):
                if item.error is not None:
                    raise item.error
                return
            yield item


async def bridge(
    producer: Callable[[Channel[T]], Awaitable[None]],
) -> AsyncIterator[T]:
    """Run *producer* in the background and yield what it sends, in order.

    The channel is closed when the producer returns, or closed with its
    exception when it fails. If the consumer stops early, the producer task
    is cancelled so the underlying connection is released.
    """
    channel: Channel[T] = Channel()

    async def run() -> None:
        try:
            await producer(channel)
        except asyncio.CancelledError:
            channel.close()
            raise
        except Exception as exc:
            channel.close(exc)
        else:
            channel.close()

    task = asyncio.create_task(run())
    try:
        async for item in channel:
            yield item
    finally:
        if not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


@dataclass
class _PendingCall:
    id: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)


class ToolCallAccumulator:
    """Assemble streamed :class:`ToolCallDelta` fragments into tool calls.

    Fragments are grouped by vendor index. The id and name come from the
    first fragment that carries them; argument text is concatenated in
    arrival order.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PendingCall] = {}

    def __bool__(self) -> bool:
        return bool(self._pending)

    def add(self, delta: ToolCallDelta) -> None:
        pending = self._pending.setdefault(delta.index, _PendingCall())
        if delta.id and not pending.id:
            pending.id = delta.id
        if delta.name and not pending.name:
            pending.name = delta.name
        if delta.arguments:
            pending.arguments.append(delta.arguments)

    def extend(self, deltas: Iterable[ToolCallDelta]) -> None:
        for delta in deltas:
            self.add(delta)

    def build(self) -> tuple[ToolCall, ...]:
        """Return complete tool calls ordered by index.

        Raises:
            ResponseParseError: If any call's arguments are not valid JSON.
        """
        calls: list[ToolCall] = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            arguments = "".join(pending.arguments) or "{}"
            try:
                calls.append(
                    ToolCall(
                        id=pending.id,
                        function=FunctionCall(name=pending.name, arguments=arguments),
                    )
                )
            except ValueError as e:
                raise ResponseParseError(
                    f"Streamed tool call {pending.id or index!r} has incomplete arguments",
                    hint="The stream may have been cut off before the call finished.",
                ) from e
        return tuple(calls)


@dataclass(frozen=True)
class StreamResult:
    """Everything a finished stream produced, assembled."""

    id: str
    content: str
    finish_reason: FinishReason | None
    tool_calls: tuple[ToolCall, ...] | None
    chunk_count: int


async def collect_stream(stream: AsyncIterator[StreamChunk]) -> StreamResult:
    """Consume *stream* fully and assemble its text and tool calls.

    Example:
        result = await collect_stream(dispatcher.stream(messages))
        print(result.content)
    """
    parts: list[str] = []
    tools = ToolCallAccumulator()
    stream_id = ""
    finish_reason: FinishReason | None = None
    count = 0

    async for chunk in stream:
        count += 1
        if chunk.id and not stream_id:
            stream_id = chunk.id
        if chunk.content:
            parts.append(chunk.content)
        if chunk.tool_calls:
            tools.extend(chunk.tool_calls)
        if chunk.finish_reason is not None:
            finish_reason = chunk.finish_reason

    log.debug("Collected %d stream chunks (finish_reason=%s)", count, finish_reason)
    return StreamResult(
        id=stream_id,
        content="".join(parts),
        finish_reason=finish_reason,
        tool_calls=tools.build() if tools else None,
        chunk_count=count,
    )
