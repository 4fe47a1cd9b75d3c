# parentline/infra/event_stream.py
"""
Queue-backed event sink and its Server-Sent Events rendering.

One sink per job:

    runner task ──append()──► bounded asyncio.Queue ──sse()──► HTTP response

- Single producer (the runner), single consumer (the responder), FIFO.
- ``close()`` marks the end of the stream; the consumer stops after it.
- ``abort()`` is the consumer's way of saying "nobody is listening any
  more": buffered events are dropped and the producer's next ``append``
  raises ``EventSinkClosed``.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator

from parentline.core.dispatch.domain import ProgressEvent
from parentline.core.dispatch.errors import EventSinkClosed
from parentline.infra.logging_config import get_logger

logger = get_logger(__name__)

SSE_HEARTBEAT = ": heartbeat\n\n"

_END = object()


def format_sse(text: str) -> str:
    """Render one event as an SSE frame (``data:`` per line, blank line terminator)."""
    lines = text.splitlines() or [""]
    return "".join(f"data: {line}\n" for line in lines) + "\n"


class QueueEventSink:
    """Bounded FIFO event sink for one job."""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._aborted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def append(self, event: ProgressEvent) -> None:
        if self._closed:
            raise EventSinkClosed()
        await self._queue.put(event)
        if self._aborted:
            # Consumer left while we were waiting for room.
            raise EventSinkClosed("Event stream consumer disconnected")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._aborted:
            await self._queue.put(_END)

    def abort(self) -> None:
        """Consumer-side shutdown: drop buffered events and reject new ones."""
        if self._aborted:
            return
        self._aborted = True
        self._closed = True
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        if dropped:
            logger.debug(f"Event sink aborted, dropped {dropped} buffered event(s)")

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in order until the sentinel (or end of stream)."""
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item
            if item.is_done:
                return

    async def sse(self, heartbeat_seconds: float | None = None) -> AsyncIterator[str]:
        """
        Yield SSE frames until the sentinel has been sent.

        When idle for ``heartbeat_seconds`` a comment frame is sent so
        proxies keep the connection open. Abandoning the iterator (client
        disconnect) aborts the sink.
        """
        finished = False
        try:
            while True:
                try:
                    if heartbeat_seconds:
                        item = await asyncio.wait_for(self._queue.get(), timeout=heartbeat_seconds)
                    else:
                        item = await self._queue.get()
                except asyncio.TimeoutError:
                    yield SSE_HEARTBEAT
                    continue

                if item is _END:
                    finished = True
                    return
                yield format_sse(item.text)
                if item.is_done:
                    finished = True
                    return
        finally:
            if not finished:
                logger.info("Event stream consumer went away before the job finished")
                self.abort()
