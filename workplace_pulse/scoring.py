"""Fixed scoring table that turns quiz answers into preference scores.

Every question is a yes/no statement.  Each answer adds (or removes) points
on one or more dimensions; the summed points are clamped onto the canonical
0–10 scale used everywhere else in the package.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

from workplace_pulse.models import PreferenceScores

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 10


@dataclass(frozen=True)
class Question:
    """A quiz statement and the points each answer contributes."""

    index: int
    text: str
    category: str
    options: Dict[str, Dict[str, int]]


QUESTIONS: Tuple[Question, ...] = (
    Question(
        index=1,
        text="I prefer working in a structured environment with clear guidelines and procedures.",
        category="formality",
        options={
            "yes": {"formality": 3, "collaboration": -1},
            "no": {"formality": -1, "collaboration": 1},
        },
    ),
    Question(
        index=2,
        text="I enjoy brainstorming and collaborating with others on creative projects.",
        category="collaboration",
        options={
            "yes": {"collaboration": 3, "technology": -1},
            "no": {"collaboration": -1, "technology": 1},
        },
    ),
    Question(
        index=3,
        text="I prefer using the latest technology and digital tools in my work.",
        category="technology",
        options={
            "yes": {"technology": 3, "wellness": -1},
            "no": {"technology": -1, "wellness": 1},
        },
    ),
    Question(
        index=4,
        text="Work-life balance and wellness initiatives are important to me.",
        category="wellness",
        options={
            "yes": {"wellness": 3, "formality": -1},
            "no": {"wellness": -1, "formality": 1},
        },
    ),
    Question(
        index=5,
        text="I thrive in a fast-paced, dynamic work environment.",
        category="formality",
        options={
            "yes": {"formality": -2, "collaboration": 2},
            "no": {"formality": 2, "collaboration": -2},
        },
    ),
)

_BY_INDEX: Dict[int, Question] = {q.index: q for q in QUESTIONS}


def get_question(index: int) -> Question | None:
    return _BY_INDEX.get(index)


def _clamp(value: float) -> int:
    return int(min(SCORE_MAX, max(SCORE_MIN, round(value))))


def calculate_preference_scores(responses: Mapping[int, str]) -> PreferenceScores:
    """Return the clamped 0–10 score vector for a participant's answers.

    Unknown question indexes and answer ids are ignored.
    """
    totals: Dict[str, float] = {
        "collaboration": 0,
        "formality": 0,
        "technology": 0,
        "wellness": 0,
    }
    for raw_index, answer_id in responses.items():
        try:
            question = _BY_INDEX.get(int(raw_index))
        except (TypeError, ValueError):
            question = None
        if question is None:
            logger.debug("Ignoring answer for unknown question %r", raw_index)
            continue
        contribution = question.options.get(str(answer_id).lower())
        if contribution is None:
            logger.debug(
                "Ignoring unknown answer %r for question %d", answer_id, question.index
            )
            continue
        for dimension, points in contribution.items():
            totals[dimension] += points

    return PreferenceScores(**{dim: _clamp(val) for dim, val in totals.items()})


def validate_responses(responses: Mapping[int, str]) -> List[str]:
    """Return a list of problems with *responses* (empty when complete)."""
    errors: List[str] = []
    for question in QUESTIONS:
        answer = responses.get(question.index)
        if answer is None:
            errors.append(f"Question {question.index} is unanswered")
        elif str(answer).lower() not in question.options:
            errors.append(f"Question {question.index} has unknown answer '{answer}'")
    for raw_index in responses:
        if raw_index not in _BY_INDEX:
            errors.append(f"Question {raw_index} does not exist")
    return errors
