"""
Server-sent-event transport for chat responses.

A single producer task writes :class:`StreamEvent` objects into an :class:`EventChannel`; the HTTP
response drains the channel and frames each event as ``data: <json>\\n\\n``.  The transport owns
the terminal event: exactly one ``done`` (producer returned) or ``error`` (producer raised) is
emitted, always last.  The producer task is cancelled and awaited on every exit path, including
a client disconnect.
"""

import asyncio
import contextlib
import logging
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Optional,
)

from finsight.core.schema import StreamEvent

logger = logging.getLogger(__name__)

Producer = Callable[["EventChannel"], Awaitable[None]]


class EventChannel:
    """Ordered single-writer queue of stream events."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: "asyncio.Queue[Optional[StreamEvent]]" = asyncio.Queue(maxsize)
        self._terminated = False

    @property
    def terminated(self) -> bool:
        """True once a terminal event has been written."""
        return self._terminated

    async def send(self, event: StreamEvent) -> None:
        """Queue *event*; nothing may follow a terminal event."""
        if self._terminated:
            raise RuntimeError(f"Cannot send '{event.type}' event after the stream has ended")
        if event.is_terminal:
            self._terminated = True
        await self._queue.put(event)

    async def close(self) -> None:
        """Signal the reader that no more events will arrive."""
        await self._queue.put(None)

    async def receive(self) -> Optional[StreamEvent]:
        """Next event, or ``None`` once the channel is closed."""
        return await self._queue.get()


def format_sse(event: StreamEvent) -> str:
    """Frame one event as a server-sent-event ``data:`` line."""
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


async def _drive(producer: Producer, channel: EventChannel) -> None:
    try:
        await producer(channel)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Chat stream failed")
        if not channel.terminated:
            await channel.send(StreamEvent(type="error", error=str(exc) or type(exc).__name__))
    else:
        if not channel.terminated:
            await channel.send(StreamEvent(type="done"))
    finally:
        await channel.close()


async def sse_events(producer: Producer) -> AsyncIterator[str]:
    """
    Run *producer* in its own task and yield its events as SSE frames.

    Parameters
    ----------
    producer:
        Coroutine function that writes non-terminal events into the channel it is given.
    """
    channel = EventChannel()
    task = asyncio.create_task(_drive(producer, channel))
    try:
        while True:
            event = await channel.receive()
            if event is None:
                break
            yield format_sse(event)
    finally:
        if not task.done():
            logger.info("Client went away, cancelling chat stream")
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
