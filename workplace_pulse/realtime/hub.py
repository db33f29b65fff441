"""In-process broadcast hub: one room of subscribers per session.

The server side of the push channel.  Each connected dashboard holds a
:class:`Subscription`; :meth:`RealtimeHub.broadcast` fans an event out to
every subscription in the event's session.  Delivery is at-least-once from
the consumer's point of view; deduplication is the reconciliation store's job.
"""
from __future__ import annotations

import datetime
import itertools
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Set

from workplace_pulse.realtime.events import RealtimeEvent

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class RoomStats:
    subscribers: int = 0
    broadcasts: int = 0
    started_at: datetime.datetime = field(default_factory=_utcnow)
    last_activity: datetime.datetime = field(default_factory=_utcnow)


class Subscription:
    """A single consumer's inbox for one session."""

    _CLOSED = object()

    def __init__(self, hub: "RealtimeHub", session_id: str, subscription_id: int):
        self.session_id = session_id
        self.subscription_id = subscription_id
        self._hub = hub
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: RealtimeEvent) -> None:
        if self.closed:
            raise RuntimeError(f"Subscription {self.subscription_id} is closed")
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[RealtimeEvent]:
        """Return the next event, or *None* on timeout or once closed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is self._CLOSED:
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        self._queue.put(self._CLOSED)
        self._hub.unsubscribe(self)

    def __iter__(self) -> Iterator[RealtimeEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


class RealtimeHub:
    """Thread-safe registry of per-session subscriptions."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[Subscription]] = {}
        self._stats: Dict[str, RoomStats] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def subscribe(self, session_id: str) -> Subscription:
        subscription = Subscription(self, session_id, next(self._ids))
        with self._lock:
            room = self._rooms.setdefault(session_id, set())
            stats = self._stats.setdefault(session_id, RoomStats())
            room.add(subscription)
            stats.subscribers = len(room)
            stats.last_activity = _utcnow()
            total = len(room)
        logger.info(
            "Client joined session %s. Total: %d", session_id, total,
            extra={"session_id": session_id},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            room = self._rooms.get(subscription.session_id)
            if room is None:
                return
            room.discard(subscription)
            if not room:
                del self._rooms[subscription.session_id]
                self._stats.pop(subscription.session_id, None)
                logger.info(
                    "Session %s closed - no clients remaining", subscription.session_id
                )
                return
            stats = self._stats[subscription.session_id]
            stats.subscribers = len(room)
            stats.last_activity = _utcnow()

    def broadcast(self, event: RealtimeEvent) -> int:
        """Deliver *event* to every subscriber of its session; return the count."""
        with self._lock:
            targets = list(self._rooms.get(event.session_id, ()))
            stats = self._stats.get(event.session_id)
            if stats is not None:
                stats.broadcasts += 1
                stats.last_activity = _utcnow()
        delivered = 0
        for subscription in targets:
            try:
                subscription.deliver(event)
                delivered += 1
            except RuntimeError as exc:
                logger.warning(
                    "Dropping dead subscription in session %s: %s",
                    event.session_id, exc,
                )
                self.unsubscribe(subscription)
        logger.debug(
            "broadcast",
            extra={"session_id": event.session_id, "kind": event.kind.value,
                   "delivered": delivered},
        )
        return delivered

    def get_stats(self, session_id: str) -> Optional[RoomStats]:
        with self._lock:
            stats = self._stats.get(session_id)
            return RoomStats(**vars(stats)) if stats else None

    def active_sessions(self) -> Dict[str, int]:
        """Return ``session_id → subscriber count`` for every open room."""
        with self._lock:
            return {sid: len(room) for sid, room in self._rooms.items()}
