"""Render session reports using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from workplace_pulse.analytics.models import AnalyticsSnapshot
from workplace_pulse.models import Session
from workplace_pulse.reporting.context import build_report_context

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown output: HTML escaping would mangle apostrophes and ampersands.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_report(
    session: Session,
    snapshot: AnalyticsSnapshot,
    insights: Optional[List[str]] = None,
) -> str:
    """Render a markdown report for *session* from *snapshot*."""

    context = build_report_context(session, snapshot, insights)
    template = _env.get_template("report.md.j2")
    text = template.render(**context.to_dict())
    logger.debug(
        "Report generated for session=%s len=%d", session.session_id, len(text)
    )
    return text
