"""
Sleep record and user profile models, plus physiology estimation.

These feed the cycle distributor and the scoring engine.
"""

from .models import (
    Chronotype,
    DataSource,
    PhysiologyEstimate,
    ScreenTimeSummary,
    Sex,
    SleepRecord,
    UserProfile,
)
from .physiology import ActivityLevel, estimate_physiology

__all__ = [
    "ActivityLevel",
    "Chronotype",
    "DataSource",
    "PhysiologyEstimate",
    "ScreenTimeSummary",
    "Sex",
    "SleepRecord",
    "UserProfile",
    "estimate_physiology",
]
