"""Persistence interface consumed by the core, plus an in-memory implementation.

The production application keeps sessions and participants in a relational
database behind its own CRUD layer.  The core only needs the handful of
operations declared by :class:`ParticipantRepository`; :class:`InMemoryRepository`
implements them for tests, demos and the command line entry point.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol

from workplace_pulse.exceptions import ParticipantNotFoundError, SessionNotFoundError
from workplace_pulse.models import Participant, Session

logger = logging.getLogger(__name__)


class ParticipantRepository(Protocol):
    """Operations the core expects from the persistence layer."""

    def fetch_session(self, code: str) -> Optional[Session]: ...

    def fetch_session_by_slug(self, slug: str) -> Optional[Session]: ...

    def fetch_session_by_id(self, session_id: str) -> Optional[Session]: ...

    def fetch_participants(self, session_id: str) -> List[Participant]: ...

    def insert_session(self, session: Session) -> Session: ...

    def update_session(self, session_id: str, patch: Mapping[str, Any]) -> Session: ...

    def delete_session(self, session_id: str) -> Optional[Session]: ...

    def insert_participant(self, session_id: str, data: Participant) -> Participant: ...

    def update_participant(self, participant_id: str, patch: Mapping[str, Any]) -> Participant: ...

    def delete_participant(self, participant_id: str) -> Optional[Participant]: ...


_SESSION_FIELDS = frozenset({"name", "slug", "code", "is_active", "ended_at", "presenter_id"})
_PARTICIPANT_FIELDS = frozenset(
    {"name", "generation", "responses", "completed", "preference_scores", "completed_at"}
)


class InMemoryRepository:
    """A thread-safe, dict-backed :class:`ParticipantRepository`.

    Records are copied on the way in and out so callers can never mutate the
    stored state behind the repository's back.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._participants: Dict[str, Participant] = {}
        self._lock = threading.Lock()

    # -- sessions -------------------------------------------------------

    def fetch_session(self, code: str) -> Optional[Session]:
        with self._lock:
            for session in self._sessions.values():
                if session.code.upper() == code.upper():
                    return session.copy()
        return None

    def fetch_session_by_slug(self, slug: str) -> Optional[Session]:
        with self._lock:
            for session in self._sessions.values():
                if session.slug == slug:
                    return session.copy()
        return None

    def fetch_session_by_id(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    def insert_session(self, session: Session) -> Session:
        with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"Session with ID {session.session_id} already exists.")
            for other in self._sessions.values():
                if other.code.upper() == session.code.upper():
                    raise ValueError(f"Session code {session.code} is already in use.")
                if other.slug == session.slug:
                    raise ValueError(f"Session slug {session.slug} is already in use.")
            self._sessions[session.session_id] = session.copy()
            return session.copy()

    def update_session(self, session_id: str, patch: Mapping[str, Any]) -> Session:
        unknown = set(patch) - _SESSION_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found.")
            for key, value in patch.items():
                setattr(session, key, value)
            return session.copy()

    def delete_session(self, session_id: str) -> Optional[Session]:
        """Remove a session and, by cascade, all of its participants."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return None
            doomed = [
                pid for pid, p in self._participants.items() if p.session_id == session_id
            ]
            for pid in doomed:
                del self._participants[pid]
        logger.info(
            "Deleted session %s and %d participant(s)", session_id, len(doomed),
            extra={"session_id": session_id},
        )
        return session

    # -- participants ---------------------------------------------------

    def fetch_participants(self, session_id: str) -> List[Participant]:
        with self._lock:
            return [
                p.copy() for p in self._participants.values() if p.session_id == session_id
            ]

    def fetch_participant(self, participant_id: str) -> Optional[Participant]:
        with self._lock:
            participant = self._participants.get(participant_id)
            return participant.copy() if participant else None

    def insert_participant(self, session_id: str, data: Participant) -> Participant:
        with self._lock:
            if session_id not in self._sessions:
                raise SessionNotFoundError(f"Session {session_id} not found.")
            if data.participant_id in self._participants:
                raise ValueError(
                    f"Participant with ID {data.participant_id} already exists."
                )
            stored = data.copy()
            stored.session_id = session_id
            self._participants[stored.participant_id] = stored
            return stored.copy()

    def update_participant(
        self, participant_id: str, patch: Mapping[str, Any]
    ) -> Participant:
        unknown = set(patch) - _PARTICIPANT_FIELDS
        if unknown:
            raise ValueError(f"Unknown participant fields: {sorted(unknown)}")
        with self._lock:
            participant = self._participants.get(participant_id)
            if participant is None:
                raise ParticipantNotFoundError(f"Participant {participant_id} not found.")
            for key, value in patch.items():
                setattr(participant, key, value)
            return participant.copy()

    def delete_participant(self, participant_id: str) -> Optional[Participant]:
        with self._lock:
            return self._participants.pop(participant_id, None)
