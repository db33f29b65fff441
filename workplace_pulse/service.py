"""Server-side commands and cached queries for sessions and participants.

Queries go through the read cache.  Every command invalidates the cache keys
of the session it touches (the cache never invalidates itself on write) and
broadcasts the matching push event so connected dashboards can update.
"""
from __future__ import annotations

import datetime
import logging
import re
import uuid
from typing import Any, List, Optional

from workplace_pulse import cache as cache_keys
from workplace_pulse.analytics.aggregator import compute_analytics
from workplace_pulse.analytics.models import AnalyticsSnapshot
from workplace_pulse.cache import MISS, ReadCache
from workplace_pulse.exceptions import (
    ParticipantAlreadyCompletedError,
    ParticipantNotFoundError,
    SessionInactiveError,
    SessionNotFoundError,
)
from workplace_pulse.models import Participant, Session
from workplace_pulse.realtime import events
from workplace_pulse.realtime.hub import RealtimeHub
from workplace_pulse.repository import ParticipantRepository
from workplace_pulse.scoring import calculate_preference_scores, get_question

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _slugify(name: str, code: str) -> str:
    base = _SLUG_RE.sub("-", name.lower()).strip("-")[:60]
    return f"{base}-{code.lower()}" if base else code.lower()


def _new_code() -> str:
    return uuid.uuid4().hex[:6].upper()


class SessionService:
    """Command/query facade over a :class:`ParticipantRepository`."""

    def __init__(
        self,
        repository: ParticipantRepository,
        cache: ReadCache,
        hub: Optional[RealtimeHub] = None,
    ):
        self._repository = repository
        self._cache = cache
        self._hub = hub

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _cached_session(self, key: str, loader, label: str) -> Session:
        session = self._cache.get(key)
        if session is MISS:
            session = loader()
            if session is None:
                raise SessionNotFoundError(f"Session {label} not found.")
            self._cache.set(key, session, cache_keys.SESSION_TTL)
        return session.copy()

    def find_session_by_slug(self, slug: str) -> Session:
        return self._cached_session(
            cache_keys.session_slug_key(slug),
            lambda: self._repository.fetch_session_by_slug(slug),
            slug,
        )

    def find_session_by_code(self, code: str) -> Session:
        return self._cached_session(
            cache_keys.session_code_key(code),
            lambda: self._repository.fetch_session(code),
            code,
        )

    def find_session_by_id(self, session_id: str) -> Session:
        return self._cached_session(
            cache_keys.session_id_key(session_id),
            lambda: self._repository.fetch_session_by_id(session_id),
            session_id,
        )

    def get_session_participants(self, session_id: str) -> List[Participant]:
        participants = self._cache.get_or_set(
            cache_keys.participants_key(session_id),
            lambda: self._repository.fetch_participants(session_id),
            cache_keys.PARTICIPANTS_TTL,
        )
        return [p.copy() for p in participants]

    def get_session_analytics(self, slug: str) -> AnalyticsSnapshot:
        session = self.find_session_by_slug(slug)
        return self._cache.get_or_set(
            cache_keys.analytics_key(slug),
            lambda: compute_analytics(self.get_session_participants(session.session_id)),
            cache_keys.ANALYTICS_TTL,
        )

    # ------------------------------------------------------------------
    # Session commands
    # ------------------------------------------------------------------

    def create_session(
        self, name: str, presenter_id: Optional[str] = None, code: Optional[str] = None
    ) -> Session:
        code = (code or _new_code()).upper()
        session = Session(
            session_id=str(uuid.uuid4()),
            code=code,
            name=name,
            slug=_slugify(name, code),
            presenter_id=presenter_id,
        )
        stored = self._repository.insert_session(session)
        cache_keys.invalidate_session(self._cache, stored)
        logger.info(
            "session_created",
            extra={"session_id": stored.session_id, "code": stored.code},
        )
        return stored

    def update_session(self, session_id: str, **patch: Any) -> Session:
        before = self._require_session(session_id)
        updated = self._repository.update_session(session_id, patch)
        # Slug or code may have changed: drop keys for both versions.
        cache_keys.invalidate_session(self._cache, before)
        cache_keys.invalidate_session(self._cache, updated)
        return updated

    def end_session(self, session_id: str) -> Session:
        session = self._require_session(session_id)
        if not session.is_active:
            return session
        updated = self._repository.update_session(
            session_id,
            {
                "is_active": False,
                "ended_at": datetime.datetime.now(datetime.timezone.utc),
            },
        )
        cache_keys.invalidate_session(self._cache, updated)
        self._broadcast(events.analytics_changed(session_id))
        logger.info("session_ended", extra={"session_id": session_id})
        return updated

    def delete_session(self, session_id: str) -> None:
        session = self._require_session(session_id)
        self._repository.delete_session(session_id)
        cache_keys.invalidate_session(self._cache, session)

    # ------------------------------------------------------------------
    # Participant commands
    # ------------------------------------------------------------------

    def join_session(
        self,
        code: str,
        name: str,
        generation: Optional[str] = None,
        participant_id: Optional[str] = None,
    ) -> Participant:
        session = self._repository.fetch_session(code)
        if session is None:
            raise SessionNotFoundError(f"Session {code} not found.")
        if not session.is_active:
            raise SessionInactiveError(f"Session {code} has ended.")
        participant = Participant(
            participant_id=participant_id or str(uuid.uuid4()),
            session_id=session.session_id,
            name=name,
            generation=generation,
        )
        stored = self._repository.insert_participant(session.session_id, participant)
        cache_keys.invalidate_session(self._cache, session)
        self._broadcast(events.participant_joined(session.session_id, stored.to_dict()))
        logger.info(
            "participant_joined",
            extra={"session_id": session.session_id, "participant_id": stored.participant_id},
        )
        return stored

    def save_answer(
        self, session_id: str, participant_id: str, question_index: int, answer_id: str
    ) -> Participant:
        if get_question(int(question_index)) is None:
            raise ValueError(f"Question {question_index} does not exist.")
        session = self._require_session(session_id)
        if not session.is_active:
            raise SessionInactiveError(f"Session {session.code} has ended.")
        participant = self._require_participant(session_id, participant_id)
        if participant.completed:
            raise ParticipantAlreadyCompletedError(
                f"Participant {participant_id} already completed session {session_id}."
            )
        participant.record_answer(question_index, answer_id)
        updated = self._repository.update_participant(
            participant_id, {"responses": participant.responses}
        )
        cache_keys.invalidate_session(self._cache, session)
        self._broadcast(
            events.response_received(session_id, participant_id, question_index, answer_id)
        )
        return updated

    def complete_participant(self, session_id: str, participant_id: str) -> Participant:
        """Score the participant's answers and finalise them (exactly once)."""
        session = self._require_session(session_id)
        participant = self._require_participant(session_id, participant_id)
        if participant.completed:
            raise ParticipantAlreadyCompletedError(
                f"Participant {participant_id} already completed session {session_id}."
            )
        scores = calculate_preference_scores(participant.responses)
        participant.complete(scores)
        updated = self._repository.update_participant(
            participant_id,
            {
                "completed": True,
                "preference_scores": participant.preference_scores,
                "completed_at": participant.completed_at,
            },
        )
        cache_keys.invalidate_session(self._cache, session)
        self._broadcast(
            events.participant_completed(session_id, participant_id, scores.to_dict())
        )
        self._broadcast(events.analytics_changed(session_id))
        logger.info(
            "participant_completed",
            extra={"session_id": session_id, "participant_id": participant_id},
        )
        return updated

    def delete_participant(self, session_id: str, participant_id: str) -> None:
        session = self._require_session(session_id)
        self._require_participant(session_id, participant_id)
        self._repository.delete_participant(participant_id)
        cache_keys.invalidate_session(self._cache, session)
        self._broadcast(events.analytics_changed(session_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_session(self, session_id: str) -> Session:
        session = self._repository.fetch_session_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        return session

    def _require_participant(self, session_id: str, participant_id: str) -> Participant:
        for participant in self._repository.fetch_participants(session_id):
            if participant.participant_id == participant_id:
                return participant
        raise ParticipantNotFoundError(
            f"Participant {participant_id} not found in session {session_id}."
        )

    def _broadcast(self, event: events.RealtimeEvent) -> None:
        if self._hub is not None:
            self._hub.broadcast(event)
