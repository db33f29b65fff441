"""Command line entry point: render a report from a participant export.

Usage::

    python -m workplace_pulse.main export.json [--ai]

The export is the JSON the dashboard downloads: either a list of participant
objects or ``{"session": {...}, "participants": [...]}``.  Keeping the
bootstrap here (instead of in :mod:`workplace_pulse.app`) lets the rest of
the package be imported by tests without side effects.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from workplace_pulse.app import logger
from workplace_pulse.analytics.aggregator import compute_analytics
from workplace_pulse.analytics.insights import generate_ai_insights, rule_based_insights
from workplace_pulse.models import Participant, Session
from workplace_pulse.reporting.render import render_report


def load_export(path: Path) -> tuple[Session, List[Participant]]:
    """Parse an export file into a session and its participants.

    Participant records that are not objects or lack an id are skipped with a
    warning.  Raises :class:`ValueError` when the file has neither shape.
    """
    raw: Any = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, list):
        session_data: Any = {}
        records: Any = raw
    elif isinstance(raw, Mapping):
        session_data = raw.get("session") or {}
        records = raw.get("participants") or []
    else:
        raise ValueError("export must be a JSON list or object")
    if not isinstance(session_data, Mapping):
        raise ValueError("'session' must be a JSON object")
    if not isinstance(records, list):
        raise ValueError("'participants' must be a JSON list")

    session = Session(
        session_id=str(session_data.get("session_id") or session_data.get("id") or path.stem),
        code=str(session_data.get("code") or path.stem.upper()),
        name=str(session_data.get("name") or path.stem),
        slug=session_data.get("slug"),
    )
    if session_data.get("is_active") is False or session_data.get("isActive") is False:
        session.end()

    participants: List[Participant] = []
    for record in records:
        if not isinstance(record, Mapping):
            logger.warning("Skipping participant record: not an object: %r", record)
            continue
        try:
            participants.append(Participant.from_dict(record, session.session_id))
        except ValueError as exc:
            logger.warning("Skipping participant record: %s", exc)
    return session, participants


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Render a Workplace Pulse report.")
    parser.add_argument("export", type=Path, help="participant export (JSON)")
    parser.add_argument(
        "--ai", action="store_true", help="ask the OpenAI assistant for insights"
    )
    args = parser.parse_args(argv)

    try:
        session, participants = load_export(args.export)
    except (OSError, ValueError) as exc:
        logger.error("Could not read export %s: %s", args.export, exc)
        return 1

    snapshot = compute_analytics(participants)
    insights = generate_ai_insights(snapshot) if args.ai else rule_based_insights(snapshot)
    sys.stdout.write(render_report(session, snapshot, insights))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
