"""
Health data models.

One night's sleep measurement plus the user context the scoring engine and
cycle distributor read.  Records are immutable and validated on
construction; ``from_dict`` is the ingestion path for loosely-typed data.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from somnus.core.exceptions import ValidationError
from somnus.hypnogram.coalescer import coalesce_phases
from somnus.hypnogram.models import Confidence, Phase, SleepStage, parse_timestamp


class DataSource(StrEnum):
    """Where a sleep record came from."""

    WEARABLE = "wearable"
    HEALTH_CONNECT = "health_connect"
    MANUAL = "manual"
    DIGITAL_WELLBEING = "digital_wellbeing"
    USAGE_STATS = "usage_stats"

    @classmethod
    def parse(cls, value: Any) -> DataSource:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown data source: {value!r}") from None


class Chronotype(StrEnum):
    MORNING = "morning"
    INTERMEDIATE = "intermediate"
    EVENING = "evening"

    @classmethod
    def parse(cls, value: Any) -> Chronotype:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown chronotype: {value!r}") from None


class Sex(StrEnum):
    MALE = "male"
    FEMALE = "female"


# ── Sleep records ────────────────────────────────────────────────────

_BUCKET_FIELDS = ("total_minutes", "deep_minutes", "light_minutes", "rem_minutes", "wake_minutes")
_SCREEN_TIME_FIELDS = ("total_minutes_last_2_hours", "blue_light", "last_app_used_minutes_before_bed")


@dataclass(frozen=True)
class ScreenTimeSummary:
    """Pre-bed device usage."""

    total_minutes_last_2_hours: float | None = None
    blue_light: bool | None = None
    last_app_used_minutes_before_bed: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScreenTimeSummary:
        unknown = sorted(str(key) for key in data if key not in _SCREEN_TIME_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown screen_time fields: {', '.join(unknown)}")
        return cls(**data)


@dataclass(frozen=True)
class SleepRecord:
    """A single night's sleep data.

    ``total_minutes`` is total sleep time; ``wake_minutes`` is wake after
    sleep onset.  Stage buckets may be missing (None) — the engine degrades
    confidence rather than refusing to score.
    """

    id: str
    date: date
    start_time: datetime | None = None
    end_time: datetime | None = None
    total_minutes: float | None = None
    deep_minutes: float | None = None
    light_minutes: float | None = None
    rem_minutes: float | None = None
    wake_minutes: float | None = None
    source: DataSource = DataSource.WEARABLE
    confidence: Confidence = Confidence.HIGH
    screen_time: ScreenTimeSummary | None = None
    phases: tuple[Phase, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "source", DataSource.parse(self.source))
        object.__setattr__(self, "confidence", Confidence.parse(self.confidence))
        object.__setattr__(self, "phases", tuple(self.phases))

        for name in _BUCKET_FIELDS:
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValidationError(f"Sleep record {self.id}: {name} cannot be negative ({value})")

        if self.start_time is not None and self.end_time is not None:
            try:
                ordered = self.end_time > self.start_time
            except TypeError:
                raise ValidationError(f"Sleep record {self.id}: cannot compare naive and aware timestamps") from None
            if not ordered:
                raise ValidationError(
                    f"Sleep record {self.id}: end_time {self.end_time.isoformat()} must be after "
                    f"start_time {self.start_time.isoformat()}"
                )

    @property
    def has_timing(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    @property
    def time_in_bed_minutes(self) -> float | None:
        if not self.has_timing:
            return None
        return (self.end_time - self.start_time).total_seconds() / 60

    @property
    def missing_stage_fields(self) -> list[str]:
        stage_fields = ("deep_minutes", "rem_minutes", "light_minutes", "wake_minutes")
        return [name for name in stage_fields if getattr(self, name) is None]

    def with_phase_buckets(self) -> SleepRecord:
        """Fill missing buckets (and timing) from explicit phase rows.

        Measured buckets always win; phases only fill gaps.  Returns
        ``self`` when there is nothing to derive.
        """
        if not self.phases:
            return self

        coalesced = coalesce_phases(self.phases)
        per_stage = {stage: 0.0 for stage in SleepStage}
        for phase in coalesced:
            per_stage[phase.stage] += phase.duration_minutes

        # Pre-sleep awake (cycle 0) is latency, not WASO.
        wake_after_onset = sum(
            p.duration_minutes for p in coalesced if p.stage == SleepStage.AWAKE and p.cycle_number > 0
        )
        asleep = per_stage[SleepStage.LIGHT] + per_stage[SleepStage.DEEP] + per_stage[SleepStage.REM]

        updates: dict[str, Any] = {}
        derived = {
            "deep_minutes": per_stage[SleepStage.DEEP],
            "light_minutes": per_stage[SleepStage.LIGHT],
            "rem_minutes": per_stage[SleepStage.REM],
            "wake_minutes": wake_after_onset,
            "total_minutes": asleep,
        }
        for name, value in derived.items():
            if getattr(self, name) is None:
                updates[name] = round(value, 2)
        if self.start_time is None and self.end_time is None:
            updates["start_time"] = coalesced[0].start_time
            updates["end_time"] = max(p.end_time for p in coalesced)

        return replace(self, **updates) if updates else self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SleepRecord:
        """Ingest a loosely-typed mapping (JSON/YAML document, DB row)."""
        try:
            record_id = str(data["id"])
        except KeyError:
            raise ValidationError("Sleep record missing field: id") from None

        start = data.get("start_time")
        end = data.get("end_time")
        start_time = parse_timestamp(start, "start_time") if start is not None else None
        end_time = parse_timestamp(end, "end_time") if end is not None else None

        raw_date = data.get("date")
        if raw_date is None:
            if start_time is None:
                raise ValidationError(f"Sleep record {record_id}: needs a date or start_time")
            record_date = start_time.date()
        elif isinstance(raw_date, date):
            record_date = raw_date
        else:
            try:
                record_date = date.fromisoformat(str(raw_date))
            except ValueError:
                raise ValidationError(f"Sleep record {record_id}: invalid date {raw_date!r}") from None

        buckets: dict[str, float | None] = {}
        for name in _BUCKET_FIELDS:
            value = data.get(name)
            if value is None:
                buckets[name] = None
                continue
            try:
                buckets[name] = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Sleep record {record_id}: invalid {name} {value!r}") from None

        screen = data.get("screen_time")
        if screen is None:
            screen_time = None
        elif isinstance(screen, Mapping):
            screen_time = ScreenTimeSummary.from_dict(screen)
        else:
            kind = type(screen).__name__
            raise ValidationError(f"Sleep record {record_id}: screen_time must be a mapping, got {kind}")

        return cls(
            id=record_id,
            date=record_date,
            start_time=start_time,
            end_time=end_time,
            source=DataSource.parse(data.get("source", DataSource.WEARABLE)),
            confidence=Confidence.parse(data.get("confidence", Confidence.HIGH)),
            screen_time=screen_time,
            phases=tuple(Phase.from_row(row) for row in data.get("phases") or ()),
            **buckets,
        )


@dataclass(frozen=True)
class UserProfile:
    """Optional user context for scoring."""

    age: int | None = None
    chronotype: Chronotype | None = None
    sleep_goal_minutes: int | None = None

    def __post_init__(self):
        if self.chronotype is not None:
            object.__setattr__(self, "chronotype", Chronotype.parse(self.chronotype))
        if self.age is not None and not 0 < self.age <= 120:
            raise ValidationError(f"Implausible age: {self.age}")
        if self.sleep_goal_minutes is not None and self.sleep_goal_minutes <= 0:
            raise ValidationError(f"Sleep goal must be positive, got {self.sleep_goal_minutes}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        return cls(
            age=data.get("age"),
            chronotype=data.get("chronotype"),
            sleep_goal_minutes=data.get("sleep_goal_minutes"),
        )


@dataclass(frozen=True)
class PhysiologyEstimate:
    """Resting physiology inferred from a profile (see ``physiology.estimate_physiology``)."""

    resting_hr: float
    vo2max: float
    age: int
    sex: Sex | None = None
    hr_max: float | None = None
    hrv_rmssd: float | None = None
    respiratory_rate: float | None = None
    basis_notes: tuple[str, ...] = ()
