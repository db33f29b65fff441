"""Tests for push-channel events and SSE framing."""
from __future__ import annotations

import logging

from workplace_pulse.realtime import events
from workplace_pulse.realtime.events import EventKind, RealtimeEvent


def test_constructors_shape_payloads():
    answer = events.response_received("s1", "p1", "2", "yes")
    assert answer.kind is EventKind.RESPONSE_RECEIVED
    assert answer.participant_id == "p1"
    assert answer.payload == {"participant_id": "p1", "question_index": 2, "answer_id": "yes"}

    done = events.participant_completed("s1", "p1", {"technology": 7})
    assert done.payload["scores"] == {"technology": 7}
    assert events.analytics_changed("s1").participant_id is None


def test_format_sse_frame():
    frame = events.format_sse(events.connected("s1"), event_id=4)
    assert frame == 'event: connected\ndata: {"session_id": "s1"}\nid: 4\n\n'


def test_parse_sse_recovers_events_and_skips_heartbeats():
    stream = (
        events.heartbeat(1)
        + events.format_sse(events.participant_joined("s1", {"participant_id": "p1", "name": "Ada"}))
        + events.format_sse(events.response_received("s1", "p1", 1, "no"), event_id=2)
    )

    parsed = events.parse_sse(stream)

    assert [e.kind for e in parsed] == [
        EventKind.PARTICIPANT_JOINED,
        EventKind.RESPONSE_RECEIVED,
    ]
    assert parsed[0] == RealtimeEvent(
        EventKind.PARTICIPANT_JOINED, "s1", {"participant_id": "p1", "name": "Ada"}
    )
    assert parsed[1].payload["question_index"] == 1


def test_parse_sse_skips_malformed_frames(caplog):
    stream = (
        "event: nonsense\ndata: {}\n\n"
        "event: connected\ndata: {not json\n\n"
        "data: {\"orphan\": true}\n\n"
        "event: analytics_changed\ndata: {\"sessionId\": \"s9\"}\n\n"
    )
    with caplog.at_level(logging.WARNING):
        parsed = events.parse_sse(stream)

    assert parsed == [RealtimeEvent(EventKind.ANALYTICS_CHANGED, "s9")]
    assert caplog.text.count("Skipping malformed SSE frame") == 2
