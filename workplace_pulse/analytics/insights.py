"""Presenter-facing insights derived from an analytics snapshot.

Two flavours are offered: :func:`rule_based_insights`, a deterministic list
driven by the same thresholds as the workplace DNA, and
:func:`generate_ai_insights`, which asks the OpenAI assistant and falls back
to the rule-based list whenever the call fails.
"""
from __future__ import annotations

import json
import logging
import re
from typing import List

from workplace_pulse.analytics import config
from workplace_pulse.analytics.models import AnalyticsSnapshot
from workplace_pulse.openai_client import chat_completion

_logger = logging.getLogger(__name__)

WAITING_MESSAGE = "Waiting for participants to complete the survey..."
CONTINUE_MESSAGE = "Continue gathering responses for detailed insights."

_GENERATION_INSIGHTS = {
    "Gen Z": "Gen Z majority: prioritize digital-first solutions and flexibility.",
    "Millennial": "Millennial workforce values work-life balance and collaborative tech.",
    "Gen X": "Gen X employees appreciate autonomy and efficiency-focused workspaces.",
    "Baby Boomer": "Balance digital tools with traditional face-to-face communication.",
}

_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

_SYSTEM_PROMPT = (
    "You are a workplace strategy consultant. Given aggregated, anonymous "
    "results of a workplace-preference survey, write short, actionable "
    "recommendations for the office design and team practices. Respond ONLY "
    "with a minified JSON array of 3 to 5 strings, each under 140 characters."
)


def rule_based_insights(snapshot: AnalyticsSnapshot) -> List[str]:
    """Return deterministic recommendations for *snapshot*."""

    if snapshot.completed_count == 0:
        return [WAITING_MESSAGE]

    scores = snapshot.preference_scores
    high, low = config.DNA_HIGH_THRESHOLD, config.DNA_LOW_THRESHOLD
    rules = [
        (scores.collaboration >= high,
         "Strong collaborative preference. Consider open spaces and team areas."),
        (scores.collaboration <= low,
         "Values independent work. Focus on private workspaces and quiet zones."),
        (scores.technology >= high,
         "Highly tech-savvy workforce. Invest in cutting-edge digital tools."),
        (scores.technology <= low,
         "Prefers traditional methods. Balance technology introductions carefully."),
        (scores.wellness >= high,
         "Wellness priority. Add wellness rooms and ergonomic furniture."),
        (scores.formality >= high,
         "Appreciates structure. Maintain clear hierarchies and meeting spaces."),
        (scores.formality <= low,
         "Thrives in flexibility. Consider hot-desking and informal areas."),
    ]
    insights = [text for matched, text in rules if matched]

    distribution = snapshot.generation_distribution
    if any(distribution.values()):
        # ties resolve to the first generation in distribution order
        dominant = max(distribution, key=lambda gen: distribution[gen])
        if dominant in _GENERATION_INSIGHTS:
            insights.append(_GENERATION_INSIGHTS[dominant])

    if len(insights) < 3:
        insights.append(CONTINUE_MESSAGE)
    return insights


def _build_user_prompt(snapshot: AnalyticsSnapshot) -> str:
    payload = {
        "participants": snapshot.total_count,
        "completed": snapshot.completed_count,
        "response_rate": snapshot.response_rate,
        "generations": snapshot.generation_distribution,
        "average_scores_0_to_10": snapshot.preference_scores.to_dict(),
        "workplace_dna": snapshot.workplace_dna,
    }
    return (
        "Survey results:\n"
        f"{json.dumps(payload, sort_keys=True)}\n\n"
        "Please produce the recommendations."
    )


def _parse(content: str) -> List[str]:
    match = _ARRAY_RE.search(content)
    if not match:
        raise ValueError("Model response lacked JSON array")
    data = json.loads(match.group(0))
    if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
        raise ValueError("Expected JSON array of strings")
    return [item.strip() for item in data if item.strip()]


def generate_ai_insights(
    snapshot: AnalyticsSnapshot,
    *,
    temperature: float = 0.4,
    max_tokens: int = 400,
) -> List[str]:
    """Ask the assistant for recommendations; fall back to rules on failure.

    Never raises.  Returns the waiting message without calling the model when
    nobody has completed the quiz yet.
    """

    if snapshot.completed_count == 0:
        return [WAITING_MESSAGE]

    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": _build_user_prompt(snapshot)},
    ]
    try:
        content = chat_completion(
            messages, temperature=temperature, max_tokens=max_tokens
        )
        insights = _parse(content)
        if not insights:
            raise ValueError("Model returned no insights")
        return insights
    except Exception as exc:  # noqa: BLE001
        _logger.warning("AI insight generation failed: %s", exc)
        return rule_based_insights(snapshot)
