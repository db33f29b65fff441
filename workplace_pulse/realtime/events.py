"""Push-channel events and their server-sent-event framing.

Every message on the channel is one :class:`RealtimeEvent`: a kind tag, the
session it concerns and a JSON-serialisable payload.  Consumers dispatch on
``event.kind`` in a single handler.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Event kinds carried by the push channel."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    PARTICIPANT_JOINED = "participant_joined"
    RESPONSE_RECEIVED = "response_received"
    PARTICIPANT_COMPLETED = "participant_completed"
    ANALYTICS_CHANGED = "analytics_changed"


@dataclass(frozen=True)
class RealtimeEvent:
    kind: EventKind
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def participant_id(self) -> Optional[str]:
        value = self.payload.get("participant_id")
        return str(value) if value is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {"session_id": self.session_id, **self.payload}

    @classmethod
    def from_dict(cls, kind: EventKind | str, data: Mapping[str, Any]) -> "RealtimeEvent":
        payload = dict(data)
        session_id = payload.pop("session_id", None) or payload.pop("sessionId", "")
        return cls(kind=EventKind(kind), session_id=str(session_id), payload=payload)


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def connected(session_id: str) -> RealtimeEvent:
    return RealtimeEvent(EventKind.CONNECTED, session_id)


def disconnected(session_id: str) -> RealtimeEvent:
    return RealtimeEvent(EventKind.DISCONNECTED, session_id)


def participant_joined(session_id: str, participant: Mapping[str, Any]) -> RealtimeEvent:
    """*participant* is the participant's ``to_dict()`` form."""
    return RealtimeEvent(EventKind.PARTICIPANT_JOINED, session_id, dict(participant))


def response_received(
    session_id: str, participant_id: str, question_index: int, answer_id: str
) -> RealtimeEvent:
    return RealtimeEvent(
        EventKind.RESPONSE_RECEIVED,
        session_id,
        {
            "participant_id": participant_id,
            "question_index": int(question_index),
            "answer_id": answer_id,
        },
    )


def participant_completed(
    session_id: str, participant_id: str, scores: Mapping[str, Any]
) -> RealtimeEvent:
    return RealtimeEvent(
        EventKind.PARTICIPANT_COMPLETED,
        session_id,
        {"participant_id": participant_id, "scores": dict(scores)},
    )


def analytics_changed(session_id: str) -> RealtimeEvent:
    return RealtimeEvent(EventKind.ANALYTICS_CHANGED, session_id)


# ---------------------------------------------------------------------------
# SSE framing
# ---------------------------------------------------------------------------


def format_sse(event: RealtimeEvent, event_id: Optional[int] = None) -> str:
    """Encode *event* as one SSE message (terminated by a blank line)."""
    lines = [
        f"event: {event.kind.value}",
        f"data: {json.dumps(event.to_dict(), default=str)}",
    ]
    if event_id is not None:
        lines.append(f"id: {event_id}")
    return "\n".join(lines) + "\n\n"


def heartbeat(stamp: int) -> str:
    """Return an SSE comment line used as a keep-alive."""
    return f":heartbeat {stamp}\n\n"


def _frames(text: str) -> Iterator[List[str]]:
    block: List[str] = []
    for line in text.splitlines():
        if line == "":
            if block:
                yield block
            block = []
        else:
            block.append(line)
    if block:
        yield block


def parse_sse(text: str) -> List[RealtimeEvent]:
    """Decode a stream chunk into events.

    Comment lines (heartbeats) are ignored; frames with an unknown event kind
    or a non-JSON payload are skipped with a warning.
    """
    events: List[RealtimeEvent] = []
    for block in _frames(text):
        kind: Optional[str] = None
        data_lines: List[str] = []
        for line in block:
            if line.startswith(":"):
                continue
            name, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if name == "event":
                kind = value
            elif name == "data":
                data_lines.append(value)
        if kind is None:
            continue
        try:
            data = json.loads("\n".join(data_lines)) if data_lines else {}
            events.append(RealtimeEvent.from_dict(kind, data))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed SSE frame (%s): %s", kind, exc)
    return events
