"""Status broadcaster: the single path through which source status changes."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from typing import Callable, Optional

from .db import FeedDB
from .models import Source, StatusEvent

logger = logging.getLogger(__name__)

ALL_CHANNEL = "source_status:all"
HISTORY_SIZE = 50

Listener = Callable[[StatusEvent], None]


def channel_for(source_id: int) -> str:
    return f"source_status:{source_id}"


class StatusBroadcaster:
    """Persists source status and fans events out to subscribers.

    Every ``update`` publishes exactly one event on the source's own channel
    and one on ``source_status:all``. Publishing is synchronous, so events
    for one source reach subscribers in the order they were produced.
    """

    def __init__(self, db: FeedDB, history_size: int = HISTORY_SIZE):
        self.db = db
        self._queues: dict[str, list[asyncio.Queue]] = defaultdict(list)
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._history: dict[str, deque[StatusEvent]] = defaultdict(
            lambda: deque(maxlen=history_size)
        )

    def update(self, source: Source, status: str, created: Optional[int] = None) -> None:
        self.db.update_source_status(source.id, status)
        source.status = status
        logger.info("%s: %s", source.name, status)

        for channel in (channel_for(source.id), ALL_CHANNEL):
            self._publish(
                StatusEvent(
                    channel=channel,
                    source_id=source.id,
                    source_name=source.name,
                    status=status,
                    created=created,
                )
            )

    def _publish(self, event: StatusEvent) -> None:
        self._history[event.channel].append(event)
        for queue in self._queues.get(event.channel, []):
            queue.put_nowait(event)
        for listener in self._listeners.get(event.channel, []):
            try:
                listener(event)
            except Exception:
                logger.exception("Status listener failed on %s", event.channel)

    # ── Subscription ────────────────────────────────────────────────

    def subscribe(self, channel: str = ALL_CHANNEL) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[channel].append(queue)
        return queue

    def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        queues = self._queues.get(channel, [])
        if queue in queues:
            queues.remove(queue)

    def add_listener(self, channel: str, listener: Listener) -> None:
        self._listeners[channel].append(listener)

    def remove_listener(self, channel: str, listener: Listener) -> None:
        listeners = self._listeners.get(channel, [])
        if listener in listeners:
            listeners.remove(listener)

    def recent(self, channel: str = ALL_CHANNEL, limit: int | None = None) -> list[StatusEvent]:
        events = list(self._history.get(channel, ()))
        return events[-limit:] if limit else events
