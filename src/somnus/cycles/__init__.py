"""
Synthesized sleep-cycle timelines for sessions that only report stage totals.
"""

from .distributor import ALGORITHM_VERSION, distribute_sleep_cycles, to_timeline_rows
from .models import (
    CycleBreakdown,
    CycleDistributorInput,
    CycleDistributorOutput,
    PhaseTimelineRow,
    StageBudget,
)

__all__ = [
    "ALGORITHM_VERSION",
    "CycleBreakdown",
    "CycleDistributorInput",
    "CycleDistributorOutput",
    "PhaseTimelineRow",
    "StageBudget",
    "distribute_sleep_cycles",
    "to_timeline_rows",
]
