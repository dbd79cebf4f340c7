"""Bounded progress channel between a pipeline and its HTTP stream."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator

from scriptforge.core.errors import SinkClosed
from scriptforge.core.schema import STEP_CLOSE, StepRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

_CLOSED = object()


class EventSink:
    """Multi-producer, single-consumer FIFO of :class:`StepRecord` items.

    Producers suspend while the buffer is full. The producing side ends the
    stream with :meth:`close`; the consuming side calls :meth:`detach` when
    the client goes away, after which every :meth:`send` raises
    :class:`SinkClosed`.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._detached = False

    @property
    def closed(self) -> bool:
        return self._closed or self._detached

    async def send(self, record: StepRecord) -> None:
        if self.closed:
            raise SinkClosed()
        await self._queue.put(record)
        if self._detached:
            # the consumer left while we were blocked on a full buffer
            raise SinkClosed()

    async def emit(self, title: str, output: str) -> None:
        await self.send(StepRecord(title=title, output=output))

    async def close(self) -> None:
        """Terminate the stream. Safe to call more than once."""

        if self._closed:
            return
        self._closed = True
        if self._detached:
            return
        await self._queue.put(_CLOSED)

    def detach(self) -> None:
        """Stop consumption and release producers blocked on a full buffer."""

        if self._detached:
            return
        self._detached = True
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        if dropped:
            logger.debug("Dropped %d undelivered step records", dropped)

    def __aiter__(self) -> AsyncIterator[StepRecord]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StepRecord]:
        while not self._detached:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]


CLOSE_EVENT = {"event": "close", "data": json.dumps({"title": STEP_CLOSE, "output": ""})}


async def stream_events(sink: EventSink) -> AsyncIterator[dict[str, str]]:
    """Render a sink as event dicts for ``EventSourceResponse``, ending with ``close``.

    Cancellation by the response (client gone) detaches the sink.
    """

    completed = False
    try:
        async for record in sink:
            yield {"data": record.model_dump_json()}
        completed = True
        yield dict(CLOSE_EVENT)
    finally:
        if not completed:
            sink.detach()
