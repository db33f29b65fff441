"""Runtime configuration read from the environment.

Values may also come from a ``.env`` file; :mod:`workplace_pulse.app` loads
it with python-dotenv before anything else reads these constants.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def _positive_float_from_env(name: str, default: float) -> float:
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; using %s.", name, raw_val, default)
        return default
    if parsed <= 0:
        logger.warning("Ignoring %s=%s (must be positive)", name, raw_val)
        return default
    return parsed


def _positive_int_from_env(name: str) -> Optional[int]:
    raw_val = os.getenv(name)
    if not raw_val:
        return None
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be integer.", name, raw_val)
        return None
    if parsed <= 0:
        logger.warning("Ignoring %s=%s (must be positive int)", name, raw_val)
        return None
    return parsed


LOG_LEVEL: str = os.getenv("PULSE_LOG_LEVEL", "INFO")

# Optimistic updates older than this are dropped by a reconciliation sweep
PENDING_TTL_SECONDS: float = _positive_float_from_env("PULSE_PENDING_TTL_SECONDS", 5.0)

# Debounce window for "something changed" refresh signals
REFRESH_DELAY_SECONDS: float = _positive_float_from_env(
    "PULSE_REFRESH_DELAY_SECONDS", 0.5
)

# Worker threads for background refreshes and event pumps
MAX_WORKERS: int = _positive_int_from_env("PULSE_MAX_WORKERS") or 10

# Read-cache TTLs (seconds) per key class
SESSION_CACHE_TTL: float = _positive_float_from_env("PULSE_SESSION_CACHE_TTL", 30.0)
PARTICIPANTS_CACHE_TTL: float = _positive_float_from_env(
    "PULSE_PARTICIPANTS_CACHE_TTL", 15.0
)
ANALYTICS_CACHE_TTL: float = _positive_float_from_env(
    "PULSE_ANALYTICS_CACHE_TTL", 15.0
)
