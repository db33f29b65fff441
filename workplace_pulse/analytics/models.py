"""Data structures produced by the aggregation engine."""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from workplace_pulse.analytics import config
from workplace_pulse.models import PreferenceScores


@dataclass(slots=True)
class WordCloudItem:
    """A single weighted word-cloud term."""

    text: str
    size: float


@dataclass(slots=True)
class GenerationBreakdown:
    """Average scores of the completed members of one generation."""

    count: int
    scores: PreferenceScores

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, **self.scores.to_dict()}


@dataclass(slots=True)
class AnalyticsSnapshot:
    """Derived, recomputable aggregate over one session's participants.

    ``computed_at`` is excluded from comparisons so that two computations
    over the same participant set compare equal.
    """

    active_count: int
    completed_count: int
    total_count: int
    response_rate: int
    generation_distribution: Dict[str, int]
    preference_scores: PreferenceScores
    generation_preferences: Dict[str, GenerationBreakdown]
    workplace_dna: str
    word_cloud: List[WordCloudItem] = field(default_factory=list)
    computed_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc),
        compare=False,
    )

    @property
    def dna_traits(self) -> List[str]:
        if self.workplace_dna == config.BALANCED_LABEL:
            return []
        return self.workplace_dna.split(config.DNA_SEPARATOR)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["generation_preferences"] = {
            gen: breakdown.to_dict()
            for gen, breakdown in self.generation_preferences.items()
        }
        data["computed_at"] = self.computed_at.isoformat()
        return data
