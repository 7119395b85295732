"""Per-client SSE relays for answer streams.

Each search runs as a producer task feeding a queue; the HTTP response drains
the queue.  A new search from the same client cancels the previous producer,
and a client disconnect cancels its own producer, which in turn closes the
upstream generation stream.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from voicekeeper.retrieval.events import ErrorEvent, StreamEvent, is_terminal, to_sse
from voicekeeper.retrieval.streaming import AnswerStreamer

logger = logging.getLogger(__name__)

SUPERSEDED_MESSAGE = "Superseded by a newer search"


class StreamRegistry:
    """Tracks the in-flight search task of each client."""

    def __init__(self) -> None:
        self._active: dict[str, asyncio.Task[None]] = {}

    def register(self, client_id: str, task: asyncio.Task[None]) -> None:
        """Make *task* the client's active search, cancelling any previous one."""
        previous = self._active.get(client_id)
        if previous is not None and previous is not task and not previous.done():
            logger.info("Cancelling superseded search for client %s", client_id)
            previous.cancel()
        self._active[client_id] = task

    def release(self, client_id: str, task: asyncio.Task[None]) -> None:
        if self._active.get(client_id) is task:
            del self._active[client_id]

    def active(self, client_id: str) -> asyncio.Task[None] | None:
        return self._active.get(client_id)

    def __len__(self) -> int:
        return len(self._active)


async def relay_events(
    streamer: AnswerStreamer,
    query: str,
    client_id: str,
    registry: StreamRegistry,
) -> AsyncIterator[str]:
    """Yield SSE frames for *query*, ending after the first terminal event."""
    queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
    finished = False

    async def produce() -> None:
        nonlocal finished
        try:
            async with aclosing(streamer.stream(query)) as events:
                async for event in events:
                    finished = finished or is_terminal(event)
                    queue.put_nowait(event)
        except asyncio.CancelledError:
            if not finished:
                queue.put_nowait(ErrorEvent(error=SUPERSEDED_MESSAGE))
            raise
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(produce(), name=f"answer-stream-{client_id}")
    registry.register(client_id, task)
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield to_sse(event)
            if is_terminal(event):
                break
    except asyncio.CancelledError:
        logger.debug("Client %s disconnected mid-stream", client_id)
        raise
    finally:
        task.cancel()
        registry.release(client_id, task)
