"""Runtime wiring for Workplace Pulse.

Builds the long-lived collaborators (thread pool, scheduler, read cache,
repository, realtime hub and session service) as one explicit
:class:`Runtime` object, and the per-view :class:`PresenterDashboard` that
connects a reconciliation store to the push channel.  Nothing here is a
module-level singleton: callers create a runtime, open dashboards from it and
shut it down when done.
"""
from __future__ import annotations

import logging
import os
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env before configuration is read
load_dotenv()

from workplace_pulse import config  # noqa: E402
from workplace_pulse.analytics.insights import (  # noqa: E402
    generate_ai_insights,
    rule_based_insights,
)
from workplace_pulse.analytics.models import AnalyticsSnapshot  # noqa: E402
from workplace_pulse.cache import ReadCache  # noqa: E402
from workplace_pulse.models import Participant, Session  # noqa: E402
from workplace_pulse.realtime import events  # noqa: E402
from workplace_pulse.realtime.hub import RealtimeHub, Subscription  # noqa: E402
from workplace_pulse.realtime.store import (  # noqa: E402
    ConnectionHealth,
    PendingUpdate,
    ReconciliationStore,
)
from workplace_pulse.reporting.render import render_report  # noqa: E402
from workplace_pulse.repository import InMemoryRepository, ParticipantRepository  # noqa: E402
from workplace_pulse.scheduler import Scheduler  # noqa: E402
from workplace_pulse.scoring import calculate_preference_scores  # noqa: E402
from workplace_pulse.service import SessionService  # noqa: E402

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=config.LOG_LEVEL,
)
logger = logging.getLogger(__name__)

# Seconds between periodic reconciliation sweeps of an open dashboard
RECONCILE_INTERVAL_SECONDS: float = float(
    os.getenv("PULSE_RECONCILE_INTERVAL_SECONDS", "15")
)


def submit_background(
    executor: ThreadPoolExecutor, fn: Callable[..., Any], *args: Any, **kwargs: Any
) -> Future:
    """Submit *fn* to *executor*, logging any exception it raises."""

    def _log_failure(fut: Future) -> None:
        exc = fut.exception()
        if exc is not None:
            logger.exception("Background task failed: %s", exc, exc_info=exc)

    future = executor.submit(fn, *args, **kwargs)
    future.add_done_callback(_log_failure)
    return future


@dataclass
class Runtime:
    """Long-lived collaborators shared by every dashboard of a process."""

    executor: ThreadPoolExecutor
    scheduler: Scheduler
    cache: ReadCache
    repository: ParticipantRepository
    hub: RealtimeHub
    service: SessionService

    def open_dashboard(self, session_code: str) -> "PresenterDashboard":
        dashboard = PresenterDashboard(self, session_code)
        dashboard.open()
        return dashboard

    def shutdown(self) -> None:
        """Gracefully shut down scheduler and thread pool executor."""
        logger.info("Shutting down scheduler and thread pool executor...")
        try:
            self.scheduler.shutdown()
        except Exception:  # pragma: no cover – ensure shutdown continues
            logger.exception("Error shutting down scheduler")
        self.executor.shutdown(wait=True)
        logger.info("Scheduler and thread pool executor shut down gracefully.")


def build_runtime(
    repository: Optional[ParticipantRepository] = None,
    *,
    max_workers: int = config.MAX_WORKERS,
) -> Runtime:
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pulse")
    cache = ReadCache()
    hub = RealtimeHub()
    repository = repository if repository is not None else InMemoryRepository()
    return Runtime(
        executor=executor,
        scheduler=Scheduler(executor),
        cache=cache,
        repository=repository,
        hub=hub,
        service=SessionService(repository, cache, hub),
    )


class PresenterDashboard:
    """One open presenter view of a session.

    Owns a :class:`ReconciliationStore`, a hub subscription pumped on a
    worker thread, and a periodic reconciliation timer.  Local actions go
    through the store's optimistic path first and then to the service.
    """

    def __init__(self, runtime: Runtime, session_code: str):
        self._runtime = runtime
        self.session: Session = runtime.service.find_session_by_code(session_code)
        self.store = ReconciliationStore(
            runtime.repository.fetch_participants,
            runtime.scheduler,
            cache=runtime.cache,
        )
        self._subscription: Optional[Subscription] = None
        self._pump: Optional[Future] = None
        self._reconcile_timer: Optional[int] = None

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # -- lifecycle --------------------------------------------------------

    def open(self) -> None:
        # Subscribe before the first fetch so joins landing in between are
        # buffered rather than lost.
        self._subscription = self._runtime.hub.subscribe(self.session_id)
        self.store.refresh_session(self.session_id)
        self._pump = submit_background(
            self._runtime.executor, self._pump_events, self._subscription
        )
        self._arm_reconcile()
        logger.info("dashboard_opened", extra={"session_id": self.session_id})

    def close(self, timeout: Optional[float] = 5.0) -> None:
        if self._reconcile_timer is not None:
            self._runtime.scheduler.cancel(self._reconcile_timer)
            self._reconcile_timer = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._pump is not None:
            self._pump.exception(timeout=timeout)
            self._pump = None
        self.store.reset()
        logger.info("dashboard_closed", extra={"session_id": self.session_id})

    def _pump_events(self, subscription: Subscription) -> None:
        self.store.on_server_event(events.connected(self.session_id))
        try:
            for event in subscription:
                self.store.on_server_event(event)
        finally:
            self.store.on_server_event(events.disconnected(self.session_id))

    def _arm_reconcile(self) -> None:
        self._reconcile_timer = self._runtime.scheduler.schedule(
            RECONCILE_INTERVAL_SECONDS, self._periodic_reconcile
        )

    def _periodic_reconcile(self) -> None:
        if self._subscription is None:
            return
        self.store.reconcile()
        self._arm_reconcile()

    # -- UI-facing API ----------------------------------------------------

    def get_analytics_snapshot(self) -> AnalyticsSnapshot:
        return self.store.get_analytics_snapshot(self.session_id)

    def apply_optimistic_update(self, update: PendingUpdate) -> None:
        self.store.apply_optimistic(update)

    def get_connection_health(self) -> ConnectionHealth:
        return self.store.connection_health()

    def get_stats(self) -> Dict[str, Any]:
        return self.store.get_stats()

    def participants(self) -> List[Participant]:
        return self.store.participants(self.session_id)

    def add_participant(self, name: str, generation: Optional[str] = None) -> Participant:
        participant = Participant(
            participant_id=str(uuid.uuid4()),
            session_id=self.session_id,
            name=name,
            generation=generation,
        )
        self.store.apply_optimistic(PendingUpdate.join(participant))
        return self._runtime.service.join_session(
            self.session.code, name, generation, participant_id=participant.participant_id
        )

    def submit_answer(self, participant_id: str, question_index: int, answer_id: str) -> Participant:
        self.store.apply_optimistic(
            PendingUpdate.answer(self.session_id, participant_id, question_index, answer_id)
        )
        return self._runtime.service.save_answer(
            self.session_id, participant_id, question_index, answer_id
        )

    def complete_participant(self, participant_id: str) -> Participant:
        local = {p.participant_id: p for p in self.participants()}.get(participant_id)
        if local is not None:
            scores = calculate_preference_scores(local.responses)
            self.store.apply_optimistic(
                PendingUpdate.complete(self.session_id, participant_id, scores.to_dict())
            )
        return self._runtime.service.complete_participant(self.session_id, participant_id)

    def insights(self, use_ai: bool = False) -> List[str]:
        snapshot = self.get_analytics_snapshot()
        return generate_ai_insights(snapshot) if use_ai else rule_based_insights(snapshot)

    def report(self, use_ai: bool = False) -> str:
        snapshot = self.get_analytics_snapshot()
        return render_report(self.session, snapshot, self.insights(use_ai))
