"""Context dataclass for rendering session reports.

`ReportContext` holds every value the Jinja2 template
`workplace_pulse/reporting/templates/report.md.j2` expects, so the
aggregation logic can be tested without touching template strings.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime as _dt
from datetime import timezone as _tz
from typing import Any, Dict, List, Optional

from workplace_pulse.analytics.models import AnalyticsSnapshot
from workplace_pulse.models import Session

__all__ = [
    "ReportContext",
    "build_report_context",
]

# Word-cloud terms listed in the report
MAX_WORDS: int = int(os.getenv("REPORT_MAX_WORDS", "8"))

# Width (in characters) of the participation bar
BAR_WIDTH: int = 20


@dataclass(slots=True)
class ReportContext:
    """Container with all fields used by the report template."""

    session_name: str
    session_code: str
    date: str  # ISO-8601 date string (UTC)
    is_active: bool

    total_count: int
    completed_count: int
    active_count: int
    response_rate: int
    participation_bar: str

    generation_rows: List[Dict[str, Any]]
    scores: Dict[str, float]
    workplace_dna: str
    top_words: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    version: str = "1"
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        return asdict(self)


def _participation_bar(rate: int, width: int = BAR_WIDTH) -> str:
    filled = max(0, min(width, round(rate / 100 * width)))
    return "█" * filled + "░" * (width - filled)


def build_report_context(
    session: Session,
    snapshot: AnalyticsSnapshot,
    insights: Optional[List[str]] = None,
) -> ReportContext:
    """Convert a snapshot into a :class:`ReportContext` (pure)."""

    rows: List[Dict[str, Any]] = []
    for generation, count in snapshot.generation_distribution.items():
        breakdown = snapshot.generation_preferences.get(generation)
        rows.append(
            {
                "generation": generation,
                "count": count,
                "scores": breakdown.scores.to_dict() if breakdown else None,
            }
        )

    words = sorted(snapshot.word_cloud, key=lambda w: w.size, reverse=True)
    top_words = list(dict.fromkeys(w.text for w in words))[:MAX_WORDS]

    note = None
    if snapshot.completed_count == 0:
        note = "No participant has completed the quiz yet."

    return ReportContext(
        session_name=session.name,
        session_code=session.code,
        date=_dt.now(tz=_tz.utc).strftime("%Y-%m-%d"),
        is_active=session.is_active,
        total_count=snapshot.total_count,
        completed_count=snapshot.completed_count,
        active_count=snapshot.active_count,
        response_rate=snapshot.response_rate,
        participation_bar=_participation_bar(snapshot.response_rate),
        generation_rows=rows,
        scores=snapshot.preference_scores.to_dict(),
        workplace_dna=snapshot.workplace_dna,
        top_words=top_words,
        insights=list(insights or []),
        version=os.getenv("REPORT_VERSION", "0.1"),
        note=note,
    )
