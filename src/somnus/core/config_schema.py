"""Pydantic models for engine policy configuration.

``Config.validated()`` returns a typed ``SomnusConfig``.  Each engine entry
point accepts the matching section (``CoalescerSettings``,
``GeometrySettings``, ...) and falls back to the defaults below when none is
passed, so library callers never need a config file.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CoalescerSettings(BaseModel):
    """Thresholds for phase merging, boundary snapping and short-transition collapse."""

    model_config = ConfigDict(frozen=True)

    merge_threshold_ms: int = Field(default=60_000, gt=0)
    transition_snap_ms: int = Field(default=3_000, ge=0)
    min_stable_ms: int = Field(default=10_000, ge=0)


class GeometrySettings(BaseModel):
    """Pixel-space tuning for hypnogram geometry."""

    model_config = ConfigDict(frozen=True)

    min_segment_px: float = Field(default=2.0, ge=0)
    max_ticks: int = Field(default=12, ge=1)


class DistributorSettings(BaseModel):
    """Cycle synthesis policy.  Any change here warrants an algorithm version bump."""

    model_config = ConfigDict(frozen=True)

    cycle_minutes: int = Field(default=90, gt=0)
    min_cycle_minutes: int = Field(default=10, ge=1)
    light_ceiling_minutes: int = Field(default=30, ge=0)
    deep_ceiling_minutes: int = Field(default=40, ge=0)
    rem_ceiling_minutes: int = Field(default=30, ge=0)
    awake_ceiling_minutes: int = Field(default=5, ge=1)
    light_cycle_fraction: float = Field(default=0.40, gt=0, le=1)
    deep_cycle_fraction: float = Field(default=0.30, gt=0, le=1)
    rem_cycle_fraction: float = Field(default=0.30, gt=0, le=1)
    first_cycle_rem_max: int = Field(default=10, ge=0)
    deep_decay_lambda: float = Field(default=0.7, ge=0)
    rem_growth_factor: float = Field(default=1.0, gt=0)
    awakening_probability: float = Field(default=0.5, ge=0, le=1)


class ScoringSettings(BaseModel):
    """Component weights and blend ratios for the scoring engine."""

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = {
        "duration": 0.27,
        "deep_sleep": 0.18,
        "rem_sleep": 0.18,
        "efficiency": 0.14,
        "waso": 0.10,
        "consistency": 0.07,
        "timing": 0.04,
        "screen_time": 0.02,
    }
    personal_blend: float = Field(default=0.6, ge=0, le=1)
    default_goal_minutes: int = Field(default=480, gt=0)

    @field_validator("weights")
    @classmethod
    def _weights_cover_components(cls, v: dict[str, float]) -> dict[str, float]:
        expected = {
            "duration",
            "deep_sleep",
            "rem_sleep",
            "efficiency",
            "waso",
            "consistency",
            "timing",
            "screen_time",
        }
        if set(v) != expected:
            raise ValueError(f"weights must name exactly {sorted(expected)}, got {sorted(v)}")
        if any(w < 0 for w in v.values()):
            raise ValueError("weights must be non-negative")
        return v

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> ScoringSettings:
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"component weights must sum to 1, got {total}")
        return self


class SomnusConfig(BaseModel):
    """Root configuration model.

    Uses ``extra="allow"`` so consumers can bolt on custom sections
    without touching this schema.
    """

    model_config = ConfigDict(extra="allow")

    coalescer: CoalescerSettings = CoalescerSettings()
    geometry: GeometrySettings = GeometrySettings()
    distributor: DistributorSettings = DistributorSettings()
    scoring: ScoringSettings = ScoringSettings()
