from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from scriptforge.core.errors import SinkClosed
from scriptforge.core.events import EventSink, stream_events


def test_records_arrive_in_send_order():
    async def scenario() -> list[str]:
        sink = EventSink(3)

        async def produce() -> None:
            for i in range(10):
                await sink.emit("Generating Code", str(i))
            await sink.close()

        producer = asyncio.create_task(produce())
        outputs = [record.output async for record in sink]
        await producer
        return outputs

    assert asyncio.run(scenario()) == [str(i) for i in range(10)]


def test_send_after_close_raises():
    async def scenario() -> None:
        sink = EventSink()
        await sink.close()
        await sink.close()
        assert sink.closed
        with pytest.raises(SinkClosed):
            await sink.emit("Error", "late")

    asyncio.run(scenario())


def test_detach_releases_blocked_producer():
    async def scenario() -> None:
        sink = EventSink(1)
        await sink.emit("Session", "first")
        blocked = asyncio.create_task(sink.emit("Session", "second"))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        sink.detach()
        with pytest.raises(SinkClosed):
            await blocked
        with pytest.raises(SinkClosed):
            await sink.emit("Session", "third")

    asyncio.run(scenario())


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventSink(0)


def test_stream_events_yields_records_then_close_event():
    async def scenario() -> list[dict[str, str]]:
        sink = EventSink()
        await sink.emit("Session", "/tmp/forge_x")
        await sink.emit("Error", "line one\nline two")
        await sink.close()
        return [event async for event in stream_events(sink)]

    events = asyncio.run(scenario())

    assert len(events) == 3
    assert json.loads(events[0]["data"]) == {"title": "Session", "output": "/tmp/forge_x"}
    assert json.loads(events[1]["data"]) == {"title": "Error", "output": "line one\nline two"}
    assert "\n" not in events[1]["data"]
    assert "event" not in events[0]
    assert events[2]["event"] == "close"
    assert json.loads(events[2]["data"]) == {"title": "Close", "output": ""}


def test_cancelled_stream_detaches_sink():
    async def scenario() -> None:
        sink = EventSink()
        await sink.emit("Session", "/tmp/forge_x")
        events = stream_events(sink)
        await events.__anext__()
        await events.aclose()
        assert sink.closed
        with pytest.raises(SinkClosed):
            await sink.emit("Generating Code", "late")

    asyncio.run(scenario())
