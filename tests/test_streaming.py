"""Tests for the server-sent-event transport."""

import asyncio
import json
from typing import (
    Any,
    Dict,
    List,
)

import pytest

from fakes import run
from finsight.api.streaming import (
    EventChannel,
    format_sse,
    sse_events,
)
from finsight.core.schema import StreamEvent


def _collect(producer: Any) -> List[Dict[str, Any]]:
    async def drain() -> List[str]:
        return [frame async for frame in sse_events(producer)]

    frames = run(drain())
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
    return [json.loads(frame[len("data: ") :]) for frame in frames]


def test_format_sse_omits_unset_fields() -> None:
    """Frames carry camelCase keys and only the fields that were set."""

    frame = format_sse(StreamEvent(type="metadata", tools_used=["getQuote"], step_count=1))
    assert json.loads(frame[len("data: ") :]) == {
        "type": "metadata",
        "toolsUsed": ["getQuote"],
        "stepCount": 1,
    }


def test_successful_producer_ends_with_done() -> None:
    """A producer that returns normally is followed by exactly one ``done``."""

    async def producer(channel: EventChannel) -> None:
        await channel.send(StreamEvent(type="metadata", tools_used=[], step_count=0))
        await channel.send(StreamEvent(type="content", content="Hello"))

    events = _collect(producer)
    assert [e["type"] for e in events] == ["metadata", "content", "done"]


def test_failing_producer_ends_with_error() -> None:
    """An exception mid-stream becomes a single terminal ``error`` event."""

    async def producer(channel: EventChannel) -> None:
        await channel.send(StreamEvent(type="content", content="partial"))
        raise RuntimeError("model went away")

    events = _collect(producer)
    assert [e["type"] for e in events] == ["content", "error"]
    assert events[-1]["error"] == "model went away"


def test_producer_terminal_event_is_not_duplicated() -> None:
    """If the producer already ended the stream, no second terminal event is added."""

    async def producer(channel: EventChannel) -> None:
        await channel.send(StreamEvent(type="done"))

    assert [e["type"] for e in _collect(producer)] == ["done"]


def test_send_after_terminal_event_is_rejected() -> None:
    """Nothing may follow a terminal event."""

    async def scenario() -> None:
        channel = EventChannel()
        await channel.send(StreamEvent(type="error", error="boom"))
        await channel.send(StreamEvent(type="content", content="late"))

    with pytest.raises(RuntimeError):
        run(scenario())


def test_consumer_disconnect_cancels_producer() -> None:
    """Closing the stream early cancels the producer task."""

    cancelled = []

    async def producer(channel: EventChannel) -> None:
        await channel.send(StreamEvent(type="content", content="first"))
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    async def scenario() -> str:
        stream = sse_events(producer)
        first = await stream.__anext__()
        await stream.aclose()
        return first

    first = run(scenario())
    assert "first" in first
    assert cancelled == [True]
