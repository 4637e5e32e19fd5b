"""
Composite sleep-quality scoring against age norms and personal baselines.
"""

from .baseline import compute_baseline
from .engine import calculate_sleep_score
from .models import (
    AgeNorm,
    ComponentName,
    ComponentResult,
    ScoreAdjustments,
    ScoreBreakdown,
    ScoreFlag,
    UserBaseline,
)
from .norms import get_age_norm

__all__ = [
    "AgeNorm",
    "ComponentName",
    "ComponentResult",
    "ScoreAdjustments",
    "ScoreBreakdown",
    "ScoreFlag",
    "UserBaseline",
    "calculate_sleep_score",
    "compute_baseline",
    "get_age_norm",
]
