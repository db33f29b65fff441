"""Live participant state for one presenter dashboard.

The store keeps the participant list of every session the dashboard watches
and a set of optimistic updates that have been applied locally but not yet
confirmed by the server.  Local actions show up immediately; push events that
merely echo them are recognised by their dedup key and dropped; everything
else is applied as it arrives.  A reconciliation sweep re-fetches
authoritative state and expires optimistic updates the server never echoed.

One instance is created per open dashboard and discarded when it closes.
"""
from __future__ import annotations

import dataclasses
import itertools
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple

from workplace_pulse import config
from workplace_pulse.analytics.aggregator import compute_analytics
from workplace_pulse.analytics.models import AnalyticsSnapshot
from workplace_pulse.cache import ANALYTICS_TTL, MISS, ReadCache, snapshot_key
from workplace_pulse.models import Participant
from workplace_pulse.realtime.events import EventKind, RealtimeEvent

logger = logging.getLogger(__name__)

FetchParticipants = Callable[[str], List[Participant]]


class TimerService(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[..., Any], *args: Any) -> int: ...

    def cancel(self, timer_id: int) -> bool: ...


class UpdateKind(str, Enum):
    JOIN = "join"
    ANSWER = "answer"
    COMPLETE = "complete"


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DISCONNECTED = "disconnected"


# Upper bounds (seconds since the last event) for each health grade
_HEALTH_THRESHOLDS: Tuple[Tuple[float, ConnectionHealth], ...] = (
    (5.0, ConnectionHealth.EXCELLENT),
    (30.0, ConnectionHealth.GOOD),
    (60.0, ConnectionHealth.FAIR),
)


def dedup_key(
    kind: UpdateKind,
    session_id: str,
    participant_id: str,
    question_index: Optional[int] = None,
) -> str:
    """Return the key shared by an optimistic update and its server echo."""
    if kind is UpdateKind.ANSWER:
        return f"{session_id}-{participant_id}-{question_index}"
    if kind is UpdateKind.COMPLETE:
        return f"{session_id}-{participant_id}-complete"
    return f"{session_id}-{participant_id}"


@dataclass(frozen=True)
class PendingUpdate:
    """A local mutation waiting for server confirmation.

    ``data`` holds the participant payload for joins, ``question_index`` and
    ``answer_id`` for answers, and ``scores`` for completions.  ``timestamp``
    is filled in by the store when left as *None*.
    """

    kind: UpdateKind
    session_id: str
    participant_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[float] = None

    @property
    def key(self) -> str:
        return dedup_key(
            self.kind,
            self.session_id,
            self.participant_id,
            self.data.get("question_index"),
        )

    @classmethod
    def join(cls, participant: Participant) -> "PendingUpdate":
        return cls(
            UpdateKind.JOIN,
            participant.session_id,
            participant.participant_id,
            participant.to_dict(),
        )

    @classmethod
    def answer(
        cls, session_id: str, participant_id: str, question_index: int, answer_id: str
    ) -> "PendingUpdate":
        return cls(
            UpdateKind.ANSWER,
            session_id,
            participant_id,
            {"question_index": int(question_index), "answer_id": answer_id},
        )

    @classmethod
    def complete(
        cls, session_id: str, participant_id: str, scores: Any
    ) -> "PendingUpdate":
        return cls(UpdateKind.COMPLETE, session_id, participant_id, {"scores": scores})


_EVENT_UPDATE_KINDS: Dict[EventKind, UpdateKind] = {
    EventKind.PARTICIPANT_JOINED: UpdateKind.JOIN,
    EventKind.RESPONSE_RECEIVED: UpdateKind.ANSWER,
    EventKind.PARTICIPANT_COMPLETED: UpdateKind.COMPLETE,
}


def update_from_event(event: RealtimeEvent) -> Optional[PendingUpdate]:
    """Translate a participant event into the equivalent update, if any."""
    kind = _EVENT_UPDATE_KINDS.get(event.kind)
    participant_id = event.participant_id
    if kind is None or not participant_id:
        return None
    if kind is UpdateKind.ANSWER:
        try:
            question_index = int(event.payload["question_index"])
        except (KeyError, TypeError, ValueError):
            return None
        answer_id = event.payload.get("answer_id")
        if answer_id is None:
            return None
        return PendingUpdate.answer(
            event.session_id, participant_id, question_index, answer_id
        )
    if kind is UpdateKind.COMPLETE:
        return PendingUpdate.complete(
            event.session_id, participant_id, event.payload.get("scores")
        )
    return PendingUpdate(UpdateKind.JOIN, event.session_id, participant_id, dict(event.payload))


class ReconciliationStore:
    """Thread-safe optimistic participant state for a presenter dashboard."""

    def __init__(
        self,
        fetch_participants: FetchParticipants,
        scheduler: TimerService,
        *,
        cache: Optional[ReadCache] = None,
        pending_ttl_seconds: float = config.PENDING_TTL_SECONDS,
        refresh_delay_seconds: float = config.REFRESH_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Create a store.

        Args:
            fetch_participants: Returns the authoritative participant list of a
                session.  May raise; failures are logged and leave local state
                untouched.
            scheduler: Timer service used for the debounced refresh.
            cache: Optional read cache used to memoize analytics snapshots.
            pending_ttl_seconds: Age after which an unconfirmed optimistic
                update is dropped by :meth:`reconcile`.
            refresh_delay_seconds: Debounce window of
                :meth:`schedule_throttled_refresh`.
            clock: Wall-clock source, injectable for tests.
        """
        self._fetch_participants = fetch_participants
        self._scheduler = scheduler
        self._cache = cache
        self._cache_owner = uuid.uuid4().hex
        self._pending_ttl = pending_ttl_seconds
        self._refresh_delay = refresh_delay_seconds
        self._clock = clock
        self._lock = threading.RLock()

        self._participants: Dict[str, Dict[str, Participant]] = {}
        self._versions: Dict[str, int] = {}
        self._pending_keys: Set[str] = set()
        self._queue: List[PendingUpdate] = []
        self._refresh_timers: Dict[str, Tuple[int, int]] = {}
        self._tokens = itertools.count(1)

        self._status = ConnectionStatus.CONNECTING
        self._reconnect_attempts = 0
        self._last_event_at = clock()
        self._events_received = 0
        self._optimistic_updates = 0
        self._reconciliations = 0

        self._handlers: Dict[EventKind, Callable[[RealtimeEvent], None]] = {
            EventKind.CONNECTED: self._on_connected,
            EventKind.DISCONNECTED: self._on_disconnected,
            EventKind.PARTICIPANT_JOINED: self._on_participant_event,
            EventKind.RESPONSE_RECEIVED: self._on_participant_event,
            EventKind.PARTICIPANT_COMPLETED: self._on_participant_event,
            EventKind.ANALYTICS_CHANGED: self._on_analytics_changed,
        }

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        with self._lock:
            return self._status

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    def participants(self, session_id: str) -> List[Participant]:
        """Return copies of the session's participants in join order."""
        with self._lock:
            return [p.copy() for p in self._participants.get(session_id, {}).values()]

    def pending_keys(self) -> Set[str]:
        with self._lock:
            return set(self._pending_keys)

    def get_analytics_snapshot(self, session_id: str) -> AnalyticsSnapshot:
        """Return analytics over the local participants, memoized per version."""
        with self._lock:
            version = self._versions.get(session_id, 0)
            snapshot_participants = self.participants(session_id)
        key = snapshot_key(self._cache_owner, session_id)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not MISS and cached[0] == version:
                return cached[1]
        snapshot = compute_analytics(snapshot_participants)
        if self._cache is not None:
            self._cache.set(key, (version, snapshot), ANALYTICS_TTL)
        return snapshot

    def connection_health(self) -> ConnectionHealth:
        with self._lock:
            if self._status is not ConnectionStatus.CONNECTED:
                return ConnectionHealth.DISCONNECTED
            elapsed = self._clock() - self._last_event_at
        for limit, grade in _HEALTH_THRESHOLDS:
            if elapsed < limit:
                return grade
        return ConnectionHealth.POOR

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = {
                "events_received": self._events_received,
                "optimistic_updates": self._optimistic_updates,
                "reconciliations": self._reconciliations,
                "pending_count": len(self._pending_keys),
                "queue_length": len(self._queue),
            }
        stats["connection_health"] = self.connection_health().value
        return stats

    # ------------------------------------------------------------------
    # Optimistic path
    # ------------------------------------------------------------------

    def apply_optimistic(self, update: PendingUpdate) -> PendingUpdate:
        """Apply *update* locally right away and remember it for dedup."""
        with self._lock:
            if update.timestamp is None:
                update = dataclasses.replace(update, timestamp=self._clock())
            self._optimistic_updates += 1
            self._pending_keys.add(update.key)
            self._queue.append(update)
            self._apply(update)
        logger.debug(
            "optimistic_update",
            extra={"session_id": update.session_id, "update_key": update.key},
        )
        return update

    # ------------------------------------------------------------------
    # Push channel
    # ------------------------------------------------------------------

    def on_server_event(self, event: RealtimeEvent) -> None:
        """Handle one push-channel event.  Never raises for bad payloads."""
        handler = self._handlers.get(event.kind)
        if handler is None:  # pragma: no cover – EventKind is closed
            logger.warning("Unhandled realtime event kind %s", event.kind)
            return
        handler(event)

    def _on_connected(self, event: RealtimeEvent) -> None:
        with self._lock:
            self._status = ConnectionStatus.CONNECTED
            self._reconnect_attempts = 0
            self._last_event_at = self._clock()
        logger.info("Realtime connected", extra={"session_id": event.session_id})
        self.reconcile()

    def _on_disconnected(self, event: RealtimeEvent) -> None:
        with self._lock:
            self._status = ConnectionStatus.DISCONNECTED
            self._reconnect_attempts += 1
            attempts = self._reconnect_attempts
        logger.info(
            "Realtime disconnected (attempt %d)", attempts,
            extra={"session_id": event.session_id},
        )

    def _record_activity(self) -> None:
        self._events_received += 1
        self._last_event_at = self._clock()

    def _on_participant_event(self, event: RealtimeEvent) -> None:
        update = update_from_event(event)
        with self._lock:
            self._record_activity()
            if update is None:
                logger.warning(
                    "Ignoring malformed %s event", event.kind.value,
                    extra={"session_id": event.session_id},
                )
                return
            key = update.key
            if key in self._pending_keys:
                # Echo of our own optimistic update: local state is already right.
                self._pending_keys.discard(key)
                self._queue = [u for u in self._queue if u.key != key]
                logger.debug("optimistic_update_confirmed", extra={"update_key": key})
                return
            self._apply(update)

    def _on_analytics_changed(self, event: RealtimeEvent) -> None:
        with self._lock:
            self._record_activity()
        self.schedule_throttled_refresh(event.session_id)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self) -> int:
        """Re-fetch sessions with pending updates and expire stale ones.

        Returns the number of sessions successfully refreshed.  A failed fetch
        is logged and does not stop the sweep for other sessions.
        """
        with self._lock:
            if not self._queue:
                return 0
            self._reconciliations += 1
            session_ids = list(dict.fromkeys(u.session_id for u in self._queue))

        refreshed = 0
        for session_id in session_ids:
            if self.refresh_session(session_id):
                refreshed += 1

        with self._lock:
            cutoff = self._clock() - self._pending_ttl
            before = len(self._queue)
            self._queue = [u for u in self._queue if u.timestamp > cutoff]
            self._pending_keys = {u.key for u in self._queue}
            expired = before - len(self._queue)
        logger.info(
            "Reconciled %d/%d session(s); expired %d pending update(s)",
            refreshed, len(session_ids), expired,
        )
        return refreshed

    def refresh_session(self, session_id: str) -> bool:
        """Replace the session's participants with authoritative data.

        Optimistic updates still pending for the session are re-applied on
        top of the fetched list.  Returns *False* if the fetch failed.
        """
        try:
            fetched = self._fetch_participants(session_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Failed to refresh session %s: %s", session_id, exc,
                extra={"session_id": session_id},
            )
            return False

        with self._lock:
            self._participants[session_id] = {
                p.participant_id: p.copy() for p in fetched
            }
            cutoff = self._clock() - self._pending_ttl
            for update in self._queue:
                if update.session_id == session_id and update.timestamp > cutoff:
                    self._apply(update)
            self._invalidate(session_id)
        logger.debug(
            "session_refreshed",
            extra={"session_id": session_id, "participants": len(fetched)},
        )
        return True

    def schedule_throttled_refresh(self, session_id: str) -> None:
        """Debounce refreshes of *session_id* (trailing edge, per session)."""
        with self._lock:
            previous = self._refresh_timers.pop(session_id, None)
            if previous is not None:
                self._scheduler.cancel(previous[0])
            token = next(self._tokens)
            timer_id = self._scheduler.schedule(
                self._refresh_delay, self._fire_refresh, session_id, token
            )
            self._refresh_timers[session_id] = (timer_id, token)

    def _fire_refresh(self, session_id: str, token: int) -> None:
        with self._lock:
            armed = self._refresh_timers.get(session_id)
            if armed is None or armed[1] != token:
                return  # superseded by a later trigger
            del self._refresh_timers[session_id]
        self.refresh_session(session_id)

    def reset(self) -> None:
        """Return to the initial state and disarm every refresh timer."""
        with self._lock:
            for timer_id, _ in self._refresh_timers.values():
                self._scheduler.cancel(timer_id)
            self._refresh_timers.clear()
            for session_id in self._participants:
                self._invalidate(session_id)
            self._participants.clear()
            self._pending_keys.clear()
            self._queue.clear()
            self._status = ConnectionStatus.CONNECTING
            self._reconnect_attempts = 0
            self._events_received = 0
            self._optimistic_updates = 0
            self._reconciliations = 0
            self._last_event_at = self._clock()

    # ------------------------------------------------------------------
    # Mutation helpers (lock held)
    # ------------------------------------------------------------------

    def _invalidate(self, session_id: str) -> None:
        self._versions[session_id] = self._versions.get(session_id, 0) + 1
        if self._cache is not None:
            self._cache.delete(snapshot_key(self._cache_owner, session_id))

    def _apply(self, update: PendingUpdate) -> None:
        roster = self._participants.setdefault(update.session_id, {})

        if update.kind is UpdateKind.JOIN:
            try:
                joined = Participant.from_dict(update.data, session_id=update.session_id)
            except ValueError as exc:
                logger.warning("Ignoring join without participant id: %s", exc)
                return
            existing = roster.get(joined.participant_id)
            if existing is None:
                roster[joined.participant_id] = joined
            else:
                # Merge rather than replace: a late join echo must not wipe
                # answers or a completion that already arrived.
                existing.name = joined.name or existing.name
                existing.generation = joined.generation or existing.generation
                existing.responses.update(joined.responses)
                if joined.completed and existing.complete(joined.preference_scores):
                    existing.completed_at = joined.completed_at
            self._invalidate(update.session_id)
            return

        participant = roster.get(update.participant_id)
        if participant is None:
            logger.debug(
                "Ignoring %s for unknown participant %s",
                update.kind.value, update.participant_id,
                extra={"session_id": update.session_id},
            )
            return

        if update.kind is UpdateKind.ANSWER:
            participant.record_answer(
                update.data["question_index"], update.data.get("answer_id")
            )
        elif not participant.complete(update.data.get("scores")):
            return
        self._invalidate(update.session_id)
