"""
Hypnogram data models.

A ``Phase`` is one contiguous interval labelled with a single sleep stage.
Phases are immutable; every transformation returns new instances.
Malformed windows and unknown labels are rejected here, at ingestion,
so nothing downstream has to second-guess its input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from somnus.core.exceptions import ValidationError

from .time_grid import to_epoch_ms

# Stored durations are whole minutes; anything within this tolerance of the
# window length is accepted as rounding.
DURATION_TOLERANCE_MINUTES = 1.0


class SleepStage(StrEnum):
    """Closed set of hypnogram stages."""

    AWAKE = "awake"
    LIGHT = "light"
    DEEP = "deep"
    REM = "rem"

    @classmethod
    def parse(cls, value: Any) -> SleepStage:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown sleep stage: {value!r}") from None


class Confidence(StrEnum):
    """Confidence attached to measured or synthesized data."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> Confidence:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown confidence level: {value!r}") from None


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


def worst_confidence(*levels: Confidence) -> Confidence:
    """Lowest of the given confidence levels (HIGH when called with none)."""
    if not levels:
        return Confidence.HIGH
    return min(levels, key=lambda c: c.rank)


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Accept a datetime or an ISO-8601 string."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid {field_name}: {value!r}") from None
    raise ValidationError(f"Invalid {field_name}: {value!r}")


@dataclass(frozen=True)
class Phase:
    """A single stage interval.

    Attributes:
        id: Stable identifier (row id for persisted phases).
        stage: Sleep stage for the whole interval.
        start_time: Inclusive start.
        end_time: Exclusive end; must be after ``start_time``.
        cycle_number: 0 for pre-sleep awake, 1..N for sleep cycles.
        confidence: How much the source trusts this interval.
    """

    id: str
    stage: SleepStage
    start_time: datetime
    end_time: datetime
    cycle_number: int = 0
    confidence: Confidence = Confidence.HIGH

    def __post_init__(self):
        object.__setattr__(self, "stage", SleepStage.parse(self.stage))
        object.__setattr__(self, "confidence", Confidence.parse(self.confidence))
        if isinstance(self.cycle_number, bool) or not isinstance(self.cycle_number, int):
            raise ValidationError(f"Phase {self.id}: cycle_number must be an int, got {self.cycle_number!r}")
        if self.cycle_number < 0:
            raise ValidationError(f"Phase {self.id}: cycle_number must be >= 0, got {self.cycle_number}")
        try:
            ordered = self.end_time > self.start_time
        except TypeError:
            raise ValidationError(f"Phase {self.id}: cannot compare naive and aware timestamps") from None
        if not ordered:
            raise ValidationError(
                f"Phase {self.id}: end_time {self.end_time.isoformat()} must be after "
                f"start_time {self.start_time.isoformat()}"
            )

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> float:
        """Window length in minutes (derived, never stored)."""
        return self.duration.total_seconds() / 60

    @property
    def start_ms(self) -> int:
        return to_epoch_ms(self.start_time)

    @property
    def end_ms(self) -> int:
        return to_epoch_ms(self.end_time)

    def with_window(self, start_time: datetime, end_time: datetime) -> Phase:
        """Copy with a new window (validated like any other phase)."""
        return replace(self, start_time=start_time, end_time=end_time)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Phase:
        """Build a phase from a persisted timeline row.

        Accepts ISO strings or datetimes.  A stored ``duration_minutes`` that
        disagrees with the window by more than rounding is rejected.
        """
        try:
            phase_id = row["id"]
            stage = row["stage"]
            start_raw = row["start_time"]
            end_raw = row["end_time"]
        except KeyError as e:
            raise ValidationError(f"Phase row missing field: {e.args[0]}") from None

        cycle_raw = row.get("cycle_number", 0)
        try:
            cycle_number = int(cycle_raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Phase {phase_id}: invalid cycle_number {cycle_raw!r}") from None

        phase = cls(
            id=str(phase_id),
            stage=SleepStage.parse(stage),
            start_time=parse_timestamp(start_raw, "start_time"),
            end_time=parse_timestamp(end_raw, "end_time"),
            cycle_number=cycle_number,
            confidence=Confidence.parse(row.get("confidence", Confidence.HIGH)),
        )

        stored = row.get("duration_minutes")
        if stored is not None:
            try:
                stored_minutes = float(stored)
            except (TypeError, ValueError):
                raise ValidationError(f"Phase {phase_id}: invalid duration_minutes {stored!r}") from None
            if abs(stored_minutes - phase.duration_minutes) > DURATION_TOLERANCE_MINUTES:
                raise ValidationError(
                    f"Phase {phase_id}: duration_minutes {stored_minutes} does not match "
                    f"window of {phase.duration_minutes:.2f} minutes"
                )
        return phase

    def to_row(self) -> dict[str, Any]:
        """JSON-ready representation (ISO timestamps, rounded minutes)."""
        return {
            "id": self.id,
            "cycle_number": self.cycle_number,
            "stage": str(self.stage),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": round(self.duration_minutes),
            "confidence": str(self.confidence),
        }
