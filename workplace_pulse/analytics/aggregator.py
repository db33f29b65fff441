"""Aggregate participant records into an :class:`AnalyticsSnapshot`."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Tuple

from workplace_pulse.analytics import config
from workplace_pulse.analytics.models import (
    AnalyticsSnapshot,
    GenerationBreakdown,
    WordCloudItem,
)
from workplace_pulse.models import Generation, Participant, PreferenceScores

logger = logging.getLogger(__name__)

_DIMENSIONS: Tuple[str, ...] = ("collaboration", "formality", "technology", "wellness")

# (dimension, high trait, low trait)
_DNA_TRAITS: Tuple[Tuple[str, str, str], ...] = (
    ("collaboration", "Collaborative", "Independent"),
    ("formality", "Structured", "Flexible"),
    ("technology", "Tech-Forward", "Traditional"),
    ("wellness", "Wellness-Focused", "Performance-Driven"),
)

_DIMENSION_WORDS: Tuple[Tuple[str, str], ...] = (
    ("collaboration", "Collaboration"),
    ("formality", "Formality"),
    ("technology", "Technology"),
    ("wellness", "Wellness"),
)

_BONUS_WORDS: Tuple[Tuple[str, str], ...] = (
    ("collaboration", "Team-Oriented"),
    ("technology", "Digital-First"),
    ("wellness", "Well-Being"),
    ("formality", "Professional"),
)


def _round_half_up(value: float) -> int:
    """Round like a dashboard would (2.5 → 3), not banker's rounding."""
    return int(math.floor(value + 0.5))


def _empty_totals() -> Dict[str, float]:
    return {dim: 0.0 for dim in _DIMENSIONS}


def _accumulate(totals: Dict[str, float], participant: Participant) -> None:
    scores = PreferenceScores.from_mapping(participant.preference_scores)
    for dim in _DIMENSIONS:
        totals[dim] += getattr(scores, dim)


def _average(totals: Dict[str, float], count: int) -> PreferenceScores:
    if count <= 0:
        return PreferenceScores(0, 0, 0, 0)
    return PreferenceScores(
        **{dim: _round_half_up(totals[dim] / count) for dim in _DIMENSIONS}
    )


def average_scores(participants: Iterable[Participant]) -> PreferenceScores:
    """Return rounded per-dimension averages over *completed* participants."""
    totals = _empty_totals()
    count = 0
    for participant in participants:
        if not participant.completed:
            continue
        _accumulate(totals, participant)
        count += 1
    return _average(totals, count)


def generate_workplace_dna(scores: PreferenceScores) -> str:
    """Return the workplace DNA label for averaged *scores*."""
    traits: List[str] = []
    for dim, high, low in _DNA_TRAITS:
        value = getattr(scores, dim)
        if value >= config.DNA_HIGH_THRESHOLD:
            traits.append(high)
        elif value <= config.DNA_LOW_THRESHOLD:
            traits.append(low)
    return config.DNA_SEPARATOR.join(traits) if traits else config.BALANCED_LABEL


def build_word_cloud(
    scores: PreferenceScores, generations: Dict[str, int]
) -> List[WordCloudItem]:
    """Return weighted word-cloud terms for averaged *scores* and *generations*.

    Sizes are deterministic so that recomputing a snapshot is idempotent.
    """
    words: List[WordCloudItem] = [
        WordCloudItem(
            text=label,
            size=config.DIMENSION_WORD_BASE
            + getattr(scores, dim) * config.DIMENSION_WORD_STEP,
        )
        for dim, label in _DIMENSION_WORDS
    ]

    for generation in Generation:
        count = generations.get(generation.value, 0)
        if count > 0:
            words.append(
                WordCloudItem(
                    text=generation.value,
                    size=config.GENERATION_WORD_BASE
                    + count * config.GENERATION_WORD_STEP,
                )
            )

    dna = generate_workplace_dna(scores)
    if dna != config.BALANCED_LABEL:
        for trait in dna.split(config.DNA_SEPARATOR):
            words.append(WordCloudItem(text=trait, size=config.TRAIT_WORD_SIZE))

    for dim, label in _BONUS_WORDS:
        if getattr(scores, dim) >= config.WORD_CLOUD_BONUS_THRESHOLD:
            words.append(WordCloudItem(text=label, size=config.BONUS_WORD_SIZE))

    return words


def compute_analytics(participants: Iterable[Participant]) -> AnalyticsSnapshot:
    """Convert *participants* into an :class:`AnalyticsSnapshot`.

    The function is read-only and makes a single pass over its input.  It
    never raises for malformed records: unknown generations are skipped and
    missing score fields count as zero.  With nobody completed the DNA is
    ``Balanced`` and the word cloud is empty.
    """
    total = 0
    completed = 0
    distribution: Dict[str, int] = {gen.value: 0 for gen in Generation}
    totals = _empty_totals()
    per_generation: Dict[str, Dict[str, float]] = {}
    per_generation_count: Dict[str, int] = {}

    for participant in participants:
        total += 1
        if not participant.completed:
            continue
        completed += 1
        _accumulate(totals, participant)

        generation = participant.generation_label
        if generation is None:
            continue
        distribution[generation.value] += 1
        bucket = per_generation.setdefault(generation.value, _empty_totals())
        _accumulate(bucket, participant)
        per_generation_count[generation.value] = (
            per_generation_count.get(generation.value, 0) + 1
        )

    averages = _average(totals, completed)
    if completed:
        dna = generate_workplace_dna(averages)
        word_cloud = build_word_cloud(averages, distribution)
    else:
        # Zero averages are "no data", not low scores.
        dna = config.BALANCED_LABEL
        word_cloud = []
    generation_preferences = {
        gen.value: GenerationBreakdown(
            count=per_generation_count[gen.value],
            scores=_average(per_generation[gen.value], per_generation_count[gen.value]),
        )
        for gen in Generation
        if per_generation_count.get(gen.value)
    }

    snapshot = AnalyticsSnapshot(
        active_count=total - completed,
        completed_count=completed,
        total_count=total,
        response_rate=_round_half_up(completed / total * 100) if total else 0,
        generation_distribution=distribution,
        preference_scores=averages,
        generation_preferences=generation_preferences,
        workplace_dna=dna,
        word_cloud=word_cloud,
    )
    logger.debug(
        "analytics_computed",
        extra={"total": total, "completed": completed, "dna": snapshot.workplace_dna},
    )
    return snapshot
