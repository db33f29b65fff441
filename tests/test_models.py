"""Tests for the core session and participant records."""
from __future__ import annotations

import datetime

import pytest

from workplace_pulse.models import Generation, Participant, PreferenceScores, Session


@pytest.mark.parametrize(
    "label,expected",
    [
        ("Gen Z", Generation.GEN_Z),
        (" Millennials ", Generation.MILLENNIAL),
        ("Baby Boomers", Generation.BABY_BOOMER),
        (Generation.GEN_X, Generation.GEN_X),
        ("Martian", None),
        (None, None),
        (42, None),
    ],
)
def test_generation_parse(label, expected):
    assert Generation.parse(label) is expected


class TestPreferenceScores:
    def test_from_mapping_accepts_tech_alias(self):
        scores = PreferenceScores.from_mapping({"tech": 6, "wellness": 2})
        assert scores == PreferenceScores(0, 0, 6, 2)

    def test_technology_wins_over_alias(self):
        scores = PreferenceScores.from_mapping({"tech": 1, "technology": 9})
        assert scores.technology == 9

    @pytest.mark.parametrize("raw", [None, "nope", {"collaboration": "high"},
                                     {"formality": float("nan")}, {"wellness": True}])
    def test_malformed_values_count_as_zero(self, raw):
        assert PreferenceScores.from_mapping(raw) == PreferenceScores()

    def test_to_dict_uses_canonical_key(self):
        assert PreferenceScores(1, 2, 3, 4).to_dict() == {
            "collaboration": 1,
            "formality": 2,
            "technology": 3,
            "wellness": 4,
        }


class TestSession:
    def test_slug_defaults_to_lower_code(self):
        assert Session("s1", "ABC123", "Offsite").slug == "abc123"

    def test_end_is_idempotent(self):
        session = Session("s1", "ABC123", "Offsite")
        session.end()
        first = session.ended_at
        session.end()
        assert session.is_active is False
        assert session.ended_at == first

    def test_repr(self):
        assert "code='ABC123'" in repr(Session("s1", "ABC123", "Offsite"))


class TestParticipant:
    def test_answers_overwrite(self):
        participant = Participant("p1", "s1")
        participant.record_answer(1, "yes")
        participant.record_answer("1", "no")
        assert participant.responses == {1: "no"}

    def test_completion_is_final(self):
        participant = Participant("p1", "s1")
        assert participant.complete({"collaboration": 8}) is True
        assert participant.complete({"collaboration": 1}) is False
        assert participant.preference_scores.collaboration == 8

    def test_copy_is_independent(self):
        participant = Participant("p1", "s1", responses={1: "yes"})
        participant.complete({"wellness": 5})
        clone = participant.copy()
        clone.record_answer(2, "no")
        clone.preference_scores.wellness = 0

        assert participant.responses == {1: "yes"}
        assert participant.preference_scores.wellness == 5

    def test_from_dict_accepts_camel_case(self):
        participant = Participant.from_dict(
            {
                "id": "p9",
                "sessionId": "s1",
                "name": "Ada",
                "generation": "Gen X",
                "responses": {"1": "yes", "bad": "no"},
                "completed": True,
                "preferenceScores": {"tech": 7},
            }
        )
        assert participant.participant_id == "p9"
        assert participant.session_id == "s1"
        assert participant.responses == {1: "yes"}
        assert participant.completed is True
        assert participant.preference_scores.technology == 7

    def test_from_dict_requires_id(self):
        with pytest.raises(ValueError):
            Participant.from_dict({"name": "nobody"})

    def test_from_dict_keeps_timestamps(self):
        participant = Participant("p1", "s1")
        participant.complete({"wellness": 4})
        participant.joined_at = datetime.datetime(2024, 5, 1, 9, 0, tzinfo=datetime.timezone.utc)
        participant.completed_at = datetime.datetime(2024, 5, 1, 9, 7, tzinfo=datetime.timezone.utc)

        restored = Participant.from_dict(participant.to_dict())

        assert restored.joined_at == participant.joined_at
        assert restored.completed_at == participant.completed_at

    def test_from_dict_accepts_zulu_and_naive_timestamps(self):
        participant = Participant.from_dict(
            {"id": "p1", "joinedAt": "2024-05-01T09:00:00Z",
             "completed": True, "completedAt": "2024-05-01T09:07:00"}
        )
        utc = datetime.timezone.utc
        assert participant.joined_at == datetime.datetime(2024, 5, 1, 9, 0, tzinfo=utc)
        assert participant.completed_at == datetime.datetime(2024, 5, 1, 9, 7, tzinfo=utc)

    def test_from_dict_ignores_unparsable_timestamps(self):
        before = datetime.datetime.now(datetime.timezone.utc)
        participant = Participant.from_dict({"id": "p1", "joined_at": "yesterday-ish"})
        assert participant.joined_at >= before

    def test_to_dict_round_trips_through_from_dict(self):
        participant = Participant("p1", "s1", name="Ada", generation="Gen Z")
        participant.record_answer(3, "yes")
        participant.complete({"technology": 3})

        restored = Participant.from_dict(participant.to_dict())

        assert restored.to_dict()["preference_scores"] == {
            "collaboration": 0,
            "formality": 0,
            "technology": 3,
            "wellness": 0,
        }
        assert restored.responses == {3: "yes"}
