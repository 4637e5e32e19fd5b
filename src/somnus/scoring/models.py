"""
Scoring result models.

``ScoreBreakdown`` is the full, explainable output of one scoring run:
per-component results, the adjustments applied on top, the baseline and
age norm used, and any flags raised.  Everything is immutable, and two
breakdowns compare equal when they differ only in ``calculated_at``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from somnus.hypnogram.models import Confidence


class ComponentName(StrEnum):
    DURATION = "duration"
    DEEP_SLEEP = "deep_sleep"
    REM_SLEEP = "rem_sleep"
    EFFICIENCY = "efficiency"
    WASO = "waso"
    CONSISTENCY = "consistency"
    TIMING = "timing"
    SCREEN_TIME = "screen_time"


class ScoreFlag(StrEnum):
    """Anomalies and data-sufficiency notes attached to a score."""

    DURATION_BELOW_5H = "duration_below_5h"
    DURATION_BELOW_GOAL = "duration_below_goal_20pct"
    DEEP_BELOW_15PCT = "deep_below_15pct"
    REM_BELOW_15PCT = "rem_below_15pct"
    DEEP_OUTSIDE_AGE_BAND = "deep_outside_age_band"
    REM_OUTSIDE_AGE_BAND = "rem_outside_age_band"
    EFFICIENCY_BELOW_AGE_NORM = "efficiency_below_age_norm"
    AWAKE_ABOVE_10PCT_TST = "awake_above_10pct_tst"
    WASO_ABOVE_ACCEPTABLE = "waso_above_acceptable"
    WASO_SEVERE = "waso_severe"
    LATE_BEDTIME_VS_MEDIAN = "late_bedtime_vs_median"
    EXTREME_BEDTIME_SHIFT = "extreme_bedtime_shift"
    SOCIAL_JET_LAG = "social_jet_lag"
    CHRONIC_SLEEP_DEBT = "chronic_sleep_debt"
    INSUFFICIENT_HISTORY = "insufficient_history"
    SOURCE_LOW_RELIABILITY = "source_low_reliability"
    DATA_INCOMPLETE = "data_incomplete"
    DATA_INCOMPLETE_STAGES = "data_incomplete_stages"


@dataclass(frozen=True)
class AgeNorm:
    """Population reference values for one age band."""

    band: str
    ideal_duration_minutes: float
    min_healthy_duration_minutes: float
    deep_pct_ideal: float
    deep_pct_low: float
    deep_pct_high: float
    rem_pct_ideal: float
    rem_pct_low: float
    rem_pct_high: float
    efficiency_ideal: float
    efficiency_low: float
    waso_expected: float
    waso_acceptable: float


@dataclass(frozen=True)
class UserBaseline:
    """Rolling statistics over prior nights.

    Bed and wake times are minutes from the previous midnight, so times
    before noon are pushed past 1440 and a 23:30 → 00:30 shift reads as
    60 minutes rather than 1380.
    """

    avg_duration_minutes: float
    avg_deep_pct: float
    avg_rem_pct: float
    avg_efficiency: float
    avg_waso_minutes: float
    median_bedtime_minutes: float
    median_wake_minutes: float
    bedtime_std_minutes: float
    p25_duration_minutes: float
    p75_duration_minutes: float
    nights_analysed: int
    confidence: Confidence


@dataclass(frozen=True)
class ComponentResult:
    name: ComponentName
    raw: float | None
    target: float | None
    normalized: float
    weight: float
    contribution: float
    confidence: Confidence


@dataclass(frozen=True)
class ScoreAdjustments:
    source_reliability_factor: float
    data_completeness_factor: float
    chronic_debt_penalty: float
    age_efficiency_correction: float
    chronotype_alignment_delta: float


@dataclass(frozen=True)
class ScoreBreakdown:
    """Composite sleep score with everything needed to explain it."""

    score: int
    confidence: Confidence
    components: tuple[ComponentResult, ...]
    adjustments: ScoreAdjustments
    flags: tuple[ScoreFlag, ...]
    baseline: UserBaseline
    age_norm: AgeNorm
    calculated_at: datetime = field(compare=False)

    def component(self, name: ComponentName | str) -> ComponentResult:
        try:
            key = ComponentName(name)
        except ValueError:
            raise KeyError(name) from None
        for result in self.components:
            if result.name == key:
                return result
        raise KeyError(name)

    @property
    def weights(self) -> dict[str, float]:
        return {str(c.name): c.weight for c in self.components}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "score": self.score,
            "confidence": str(self.confidence),
            "components": {
                str(c.name): {
                    "raw": c.raw,
                    "target": c.target,
                    "normalized": round(c.normalized, 4),
                    "weight": c.weight,
                    "contribution": round(c.contribution, 4),
                    "confidence": str(c.confidence),
                }
                for c in self.components
            },
            "adjustments": asdict(self.adjustments),
            "flags": [str(f) for f in self.flags],
            "baseline": {**asdict(self.baseline), "confidence": str(self.baseline.confidence)},
            "age_norm": asdict(self.age_norm),
            "calculated_at": self.calculated_at.isoformat(),
        }
