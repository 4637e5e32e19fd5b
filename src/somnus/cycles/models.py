"""
Cycle distributor inputs and outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from somnus.core.exceptions import ValidationError
from somnus.health.models import PhysiologyEstimate
from somnus.hypnogram.models import Confidence, Phase, SleepStage


@dataclass(frozen=True)
class CycleDistributorInput:
    """Coarse stage totals for one session.

    Bucket minutes are optional; missing ones are estimated from age (and
    personal ratios when given).  ``seed`` drives brief-awakening placement
    when no random source is passed to the distributor.
    """

    start_time: datetime
    end_time: datetime
    session_id: str = "session"
    deep_minutes: float | None = None
    rem_minutes: float | None = None
    light_minutes: float | None = None
    awake_minutes: float | None = None
    age: int | None = None
    physiology: PhysiologyEstimate | None = None
    personal_deep_ratio: float | None = None
    personal_rem_ratio: float | None = None
    history_night_count: int = 0
    seed: int = 0

    def __post_init__(self):
        for name in ("deep_minutes", "rem_minutes", "light_minutes", "awake_minutes"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} cannot be negative ({value})")
        for name in ("personal_deep_ratio", "personal_rem_ratio"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 1:
                raise ValidationError(f"{name} must be within [0, 1], got {value}")
        if self.history_night_count < 0:
            raise ValidationError(f"history_night_count cannot be negative ({self.history_night_count})")

    @property
    def has_stage_data(self) -> bool:
        return self.deep_minutes is not None and self.rem_minutes is not None

    @property
    def resolved_age(self) -> int | None:
        if self.age is not None:
            return self.age
        return self.physiology.age if self.physiology else None


@dataclass(frozen=True)
class StageBudget:
    """Whole-minute buckets the distributor may spend."""

    light: int
    deep: int
    rem: int
    awake: int

    def as_dict(self) -> dict[SleepStage, int]:
        return {
            SleepStage.LIGHT: self.light,
            SleepStage.DEEP: self.deep,
            SleepStage.REM: self.rem,
            SleepStage.AWAKE: self.awake,
        }


@dataclass(frozen=True)
class CycleBreakdown:
    cycle_number: int
    start_time: datetime
    end_time: datetime
    light_minutes: int
    deep_minutes: int
    rem_minutes: int
    awake_minutes: int
    dominant_stage: SleepStage

    @property
    def duration_minutes(self) -> int:
        return self.light_minutes + self.deep_minutes + self.rem_minutes + self.awake_minutes


@dataclass(frozen=True)
class CycleDistributorOutput:
    """Synthesized timeline for one session."""

    phases: tuple[Phase, ...]
    cycles: tuple[CycleBreakdown, ...]
    estimated_cycles: int
    total_minutes: int
    confidence: Confidence
    algorithm_version: int
    budget: StageBudget | None = None

    def stage_totals(self) -> dict[SleepStage, float]:
        """Minutes per stage across every phase, sleep-onset latency included."""
        totals = {stage: 0.0 for stage in SleepStage}
        for phase in self.phases:
            totals[phase.stage] += phase.duration_minutes
        return totals

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "phases": [phase.to_row() for phase in self.phases],
            "cycles": [
                {
                    "cycle_number": c.cycle_number,
                    "start_time": c.start_time.isoformat(),
                    "end_time": c.end_time.isoformat(),
                    "light_minutes": c.light_minutes,
                    "deep_minutes": c.deep_minutes,
                    "rem_minutes": c.rem_minutes,
                    "awake_minutes": c.awake_minutes,
                    "dominant_stage": str(c.dominant_stage),
                }
                for c in self.cycles
            ],
            "estimated_cycles": self.estimated_cycles,
            "total_minutes": self.total_minutes,
            "confidence": str(self.confidence),
            "algorithm_version": self.algorithm_version,
        }


@dataclass(frozen=True)
class PhaseTimelineRow:
    """Persisted shape of one synthesized phase."""

    id: str
    sleep_session_id: str
    user_id: str
    cycle_number: int
    stage: SleepStage
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    confidence: Confidence
    algorithm_version: int
    created_at: datetime = field(compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sleep_session_id": self.sleep_session_id,
            "user_id": self.user_id,
            "cycle_number": self.cycle_number,
            "stage": str(self.stage),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": self.duration_minutes,
            "confidence": str(self.confidence),
            "algorithm_version": self.algorithm_version,
            "created_at": self.created_at.isoformat(),
        }
