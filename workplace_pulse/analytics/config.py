"""Configuration constants for the aggregation engine."""
from __future__ import annotations

import os

# Averaged score at or above which a dimension contributes its "high" trait
DNA_HIGH_THRESHOLD: float = float(os.getenv("DNA_HIGH_THRESHOLD", "7"))

# Averaged score at or below which a dimension contributes its "low" trait
DNA_LOW_THRESHOLD: float = float(os.getenv("DNA_LOW_THRESHOLD", "3"))

# Averaged score at or above which bonus word-cloud terms are added
WORD_CLOUD_BONUS_THRESHOLD: float = float(
    os.getenv("WORD_CLOUD_BONUS_THRESHOLD", "8")
)

# Separator between workplace DNA traits
DNA_SEPARATOR: str = " & "

# Label used when no dimension is extreme enough to contribute a trait
BALANCED_LABEL: str = "Balanced"

# Word-cloud sizing (base + per-unit weight)
DIMENSION_WORD_BASE: int = 20
DIMENSION_WORD_STEP: int = 8
GENERATION_WORD_BASE: int = 15
GENERATION_WORD_STEP: int = 5
TRAIT_WORD_SIZE: int = 40
BONUS_WORD_SIZE: int = 40
