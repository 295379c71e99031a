"""Live subscriber hub for dashboard push.

Each dashboard connection owns a bounded queue. ``broadcast`` never waits on a
subscriber: a queue that is full means the connection is not keeping up, and
that subscriber is dropped from the active set.
"""
from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def format_sse(event: str, data: str) -> str:
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


@dataclass
class Subscriber:
    """One live connection. The hub writes to ``queue``; the transport reads it."""

    handle: str
    queue: "queue.Queue[tuple[str, str]]"
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: threading.Event = field(default_factory=threading.Event)

    def next_event(self, timeout: float | None = None) -> tuple[str, str] | None:
        """Return the next ``(event, json_data)`` pair, or None on timeout."""
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stream(self, keepalive_seconds: float) -> Iterator[str]:
        """Yield Server-Sent-Event frames until the subscriber is closed."""
        yield ": connected\n\n"
        while not self.closed.is_set():
            item = self.next_event(timeout=keepalive_seconds)
            if item is None:
                yield ": keepalive\n\n"
                continue
            event, data = item
            yield format_sse(event, data)


class LiveHub:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        subscriber = Subscriber(handle=uuid.uuid4().hex, queue=queue.Queue(maxsize=self._queue_size))
        with self._lock:
            self._subscribers[subscriber.handle] = subscriber
            total = len(self._subscribers)
        logger.info("[Live] Subscriber %s connected (%d active)", subscriber.handle, total)
        return subscriber

    def unsubscribe(self, handle: str) -> None:
        with self._lock:
            subscriber = self._subscribers.pop(handle, None)
            total = len(self._subscribers)
        if subscriber is None:
            return
        subscriber.closed.set()
        logger.info("[Live] Subscriber %s disconnected (%d active)", handle, total)

    def broadcast(self, event: str, payload: Any) -> int:
        """Queue ``payload`` for every connected subscriber.

        Returns the number of subscribers the event was queued for. The payload
        is serialised once here, so later changes to it are not seen by anyone.
        """
        data = json.dumps(payload, default=str)

        with self._lock:
            subscribers = list(self._subscribers.values())

        delivered = 0
        stalled = []
        for subscriber in subscribers:
            try:
                subscriber.queue.put_nowait((event, data))
                delivered += 1
            except queue.Full:
                stalled.append(subscriber.handle)

        for handle in stalled:
            logger.warning("[Live] Dropping subscriber %s: queue full", handle)
            self.unsubscribe(handle)

        logger.debug("[Live] Broadcast %s to %d subscriber(s)", event, delivered)
        return delivered

    def close_all(self) -> None:
        with self._lock:
            handles = list(self._subscribers)
        for handle in handles:
            self.unsubscribe(handle)
