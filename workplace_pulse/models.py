"""Core records shared by the aggregation engine, the stores and the service.

A *session* is one live run of the workplace-preference quiz, opened by a
presenter and joined by participants through a short code.  Each
*participant* answers the quiz one question at a time and is finalised
exactly once, at which point their preference scores are frozen.
"""
from __future__ import annotations

import copy
import datetime
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Generation(str, Enum):
    """The four generational cohorts a participant can pick."""

    BABY_BOOMER = "Baby Boomer"
    GEN_X = "Gen X"
    MILLENNIAL = "Millennial"
    GEN_Z = "Gen Z"

    @classmethod
    def parse(cls, value: Any) -> Optional["Generation"]:
        """Return the matching member, or *None* for missing/unknown labels.

        The quiz form uses plural labels ("Baby Boomers", "Millennials") while
        the dashboard uses singular ones; both are accepted.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        label = value.strip()
        for member in cls:
            if label == member.value or label == f"{member.value}s":
                return member
        return None


def _parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Return an aware datetime from an ISO-8601 string, or *None*.

    Naive values are taken as UTC; a trailing ``Z`` is accepted.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def _as_number(value: Any) -> float:
    """Return *value* as a float, or 0 for anything non-numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


@dataclass(slots=True)
class PreferenceScores:
    """Four-dimension preference vector on the 0–10 scale."""

    collaboration: float = 0
    formality: float = 0
    technology: float = 0
    wellness: float = 0

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "PreferenceScores":
        """Build scores from an upstream mapping without ever raising.

        Producers disagree on the name of the technology dimension, so both
        ``technology`` and ``tech`` are accepted (``technology`` wins when both
        are present).  Missing or non-numeric fields count as zero.
        """
        if isinstance(raw, PreferenceScores):
            return cls(raw.collaboration, raw.formality, raw.technology, raw.wellness)
        if not isinstance(raw, Mapping):
            return cls()
        tech = raw.get("technology")
        if tech is None:
            tech = raw.get("tech")
        return cls(
            collaboration=_as_number(raw.get("collaboration")),
            formality=_as_number(raw.get("formality")),
            technology=_as_number(tech),
            wellness=_as_number(raw.get("wellness")),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class Session:
    """A single live survey instance owned by a presenter."""

    def __init__(
        self,
        session_id: str,
        code: str,
        name: str,
        slug: Optional[str] = None,
        presenter_id: Optional[str] = None,
    ):
        self.session_id: str = session_id
        self.code: str = code
        self.name: str = name
        self.slug: str = slug or code.lower()
        self.presenter_id: Optional[str] = presenter_id
        self.is_active: bool = True
        self.created_at: datetime.datetime = _utcnow()
        self.ended_at: Optional[datetime.datetime] = None

    def end(self) -> None:
        """Mark the session inactive.  Ending twice keeps the first timestamp."""
        if not self.is_active:
            return
        self.is_active = False
        self.ended_at = _utcnow()

    def copy(self) -> "Session":
        return copy.copy(self)

    def __repr__(self) -> str:
        parts = [
            f"session_id='{self.session_id}'",
            f"code='{self.code}'",
            f"slug='{self.slug}'",
            f"is_active={self.is_active}",
        ]
        if self.ended_at:
            parts.append(f"ended_at='{self.ended_at.isoformat()}'")
        return f"Session({', '.join(parts)})"


class Participant:
    """One respondent within a session.

    ``responses`` maps a question index to the chosen answer id.  Answers are
    merged one at a time with overwrite semantics, so replaying the same
    answer is harmless.  ``complete`` freezes the score vector.
    """

    def __init__(
        self,
        participant_id: str,
        session_id: str,
        name: str = "",
        generation: Optional[str] = None,
        responses: Optional[Dict[int, str]] = None,
        joined_at: Optional[datetime.datetime] = None,
    ):
        self.participant_id: str = participant_id
        self.session_id: str = session_id
        self.name: str = name
        # Raw label as submitted; unknown values are tolerated and skipped by
        # the aggregation engine.
        self.generation: Optional[str] = generation
        self.responses: Dict[int, str] = dict(responses or {})
        self.completed: bool = False
        self.preference_scores: Optional[PreferenceScores] = None
        self.joined_at: datetime.datetime = joined_at or _utcnow()
        self.completed_at: Optional[datetime.datetime] = None

    @property
    def generation_label(self) -> Optional[Generation]:
        return Generation.parse(self.generation)

    def record_answer(self, question_index: int, answer_id: str) -> None:
        self.responses[int(question_index)] = answer_id

    def complete(self, scores: Any) -> bool:
        """Finalise the participant with *scores*.

        Returns *False* (and changes nothing) if the participant was already
        completed, since a finalised score vector is immutable.
        """
        if self.completed:
            return False
        self.preference_scores = PreferenceScores.from_mapping(scores)
        self.completed = True
        self.completed_at = _utcnow()
        return True

    def copy(self) -> "Participant":
        clone = copy.copy(self)
        clone.responses = dict(self.responses)
        if self.preference_scores is not None:
            clone.preference_scores = PreferenceScores.from_mapping(
                self.preference_scores
            )
        return clone

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], session_id: Optional[str] = None):
        """Build a participant from a loosely-shaped payload.

        Accepts both snake_case and the camelCase keys emitted by the web
        client (``participantId``/``id``, ``preferenceScores``).  ISO-8601
        ``joined_at``/``completed_at`` values are kept; missing or unparsable
        ones fall back to the current time.
        """
        participant_id = (
            data.get("participant_id") or data.get("participantId") or data.get("id")
        )
        if not participant_id:
            raise ValueError("Participant payload is missing an id.")
        raw_responses = data.get("responses") or {}
        responses: Dict[int, str] = {}
        if isinstance(raw_responses, Mapping):
            for key, value in raw_responses.items():
                try:
                    responses[int(key)] = value
                except (TypeError, ValueError):
                    continue
        participant = cls(
            participant_id=str(participant_id),
            session_id=str(
                session_id or data.get("session_id") or data.get("sessionId") or ""
            ),
            name=data.get("name") or "",
            generation=data.get("generation"),
            responses=responses,
            joined_at=_parse_timestamp(data.get("joined_at") or data.get("joinedAt")),
        )
        scores = data.get("preference_scores") or data.get("preferenceScores")
        if data.get("completed"):
            participant.complete(scores)
            completed_at = _parse_timestamp(
                data.get("completed_at") or data.get("completedAt")
            )
            if completed_at is not None:
                participant.completed_at = completed_at
        elif scores is not None:
            participant.preference_scores = PreferenceScores.from_mapping(scores)
        return participant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "session_id": self.session_id,
            "name": self.name,
            "generation": self.generation,
            "responses": dict(self.responses),
            "completed": self.completed,
            "preference_scores": (
                self.preference_scores.to_dict() if self.preference_scores else None
            ),
            "joined_at": self.joined_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }

    def __repr__(self) -> str:
        parts = [
            f"participant_id='{self.participant_id}'",
            f"session_id='{self.session_id}'",
            f"generation={self.generation!r}",
            f"answers={len(self.responses)}",
            f"completed={self.completed}",
        ]
        if self.preference_scores is not None:
            parts.append(f"scores={self.preference_scores.to_dict()}")
        return f"Participant({', '.join(parts)})"
