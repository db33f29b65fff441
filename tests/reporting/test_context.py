"""Unit tests for reporting.context.build_report_context."""

from __future__ import annotations

from workplace_pulse.analytics.aggregator import compute_analytics
from workplace_pulse.models import Participant, Session
from workplace_pulse.reporting.context import _participation_bar, build_report_context


def _session() -> Session:
    return Session("s1", "ABC123", "Offsite")


def _workshop():
    scores = {"collaboration": 8, "formality": 2, "technology": 9, "wellness": 7}
    participants = []
    for idx in range(6):
        participant = Participant(f"c{idx}", "s1", generation="Gen Z" if idx < 3 else "Millennial")
        participant.complete(scores)
        participants.append(participant)
    participants.extend(Participant(f"a{idx}", "s1") for idx in range(4))
    return participants


def test_context_fields():
    snapshot = compute_analytics(_workshop())
    ctx = build_report_context(_session(), snapshot, ["Add quiet rooms"])

    assert ctx.session_name == "Offsite"
    assert ctx.session_code == "ABC123"
    assert ctx.is_active is True
    assert ctx.response_rate == 60
    assert ctx.participation_bar == "█" * 12 + "░" * 8
    assert ctx.scores == {"collaboration": 8, "formality": 2, "technology": 9, "wellness": 7}
    assert ctx.insights == ["Add quiet rooms"]
    assert ctx.note is None


def test_generation_rows_cover_every_generation():
    snapshot = compute_analytics(_workshop())
    rows = {row["generation"]: row for row in build_report_context(_session(), snapshot).generation_rows}

    assert list(rows) == ["Baby Boomer", "Gen X", "Millennial", "Gen Z"]
    assert rows["Gen X"]["scores"] is None
    assert rows["Gen Z"]["count"] == 3
    assert rows["Gen Z"]["scores"]["technology"] == 9


def test_top_words_are_largest_first():
    snapshot = compute_analytics(_workshop())
    ctx = build_report_context(_session(), snapshot)

    assert ctx.top_words[:3] == ["Technology", "Collaboration", "Wellness"]
    assert len(ctx.top_words) == 8


def test_note_when_nobody_completed():
    snapshot = compute_analytics([Participant("a", "s1")])
    ctx = build_report_context(_session(), snapshot)

    assert ctx.note == "No participant has completed the quiz yet."
    assert ctx.participation_bar == "░" * 20


def test_participation_bar_clamps():
    assert _participation_bar(100, width=4) == "████"
    assert _participation_bar(250, width=4) == "████"
