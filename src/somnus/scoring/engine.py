"""
Sleep scoring engine.

Scores one night against a blend of population norms (by age band) and the
user's own baseline.  Eight components are normalized to [0, 1] and
weighted; adjustments for source reliability, data completeness, chronic
sleep debt and chronotype alignment are applied on top.  Missing data never
raises: it lowers confidence and shows up in ``flags``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC, datetime

from loguru import logger

from somnus.core.config_schema import ScoringSettings
from somnus.health.models import Chronotype, SleepRecord, UserProfile
from somnus.hypnogram.models import Confidence, worst_confidence

from . import norms
from .baseline import compute_baseline, minutes_from_midnight
from .models import (
    AgeNorm,
    ComponentName,
    ComponentResult,
    ScoreAdjustments,
    ScoreBreakdown,
    ScoreFlag,
    UserBaseline,
)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def gaussian(value: float, target: float, sigma: float) -> float:
    if sigma <= 0:
        return 0.0
    return math.exp(-0.5 * ((value - target) / sigma) ** 2)


def asymmetric_gaussian(value: float, target: float, sigma_below: float, sigma_above: float) -> float:
    return gaussian(value, target, sigma_below if value < target else sigma_above)


def circular_diff_minutes(a: float, b: float) -> float:
    direct = abs(a - b) % 1440
    return min(direct, 1440 - direct)


def blend(personal: float, population: float, personal_weight: float) -> float:
    return personal_weight * personal + (1 - personal_weight) * population


# ── Adjustments ──────────────────────────────────────────────────────


def data_completeness_factor(record: SleepRecord) -> float:
    factor = 1.0 - len(record.missing_stage_fields) * norms.MISSING_STAGE_PENALTY
    if not record.has_timing:
        factor -= norms.MISSING_TIMING_PENALTY
    return _clamp(factor, norms.MIN_COMPLETENESS_FACTOR, 1.0)


def chronic_debt_penalty(history: Iterable[SleepRecord], goal_minutes: float) -> float:
    """Fraction (0 to 0.12) to take off the score for a run of short nights."""
    recent = sorted((r for r in history if (r.total_minutes or 0) > 0), key=lambda r: r.date, reverse=True)
    recent = recent[: norms.CHRONIC_DEBT_WINDOW_NIGHTS]
    if len(recent) < norms.CHRONIC_DEBT_MIN_NIGHTS:
        return 0.0
    average = sum(r.total_minutes for r in recent) / len(recent)
    deficit_ratio = max(0.0, (goal_minutes - average) / goal_minutes)
    return min(deficit_ratio * norms.CHRONIC_DEBT_SCALE, norms.CHRONIC_DEBT_MAX_PENALTY)


def age_efficiency_correction(age: int | None) -> float:
    """Efficiency points forgiven for age (0 to 5)."""
    if age is None or age <= norms.AGE_EFFICIENCY_START_AGE:
        return 0.0
    years = age - norms.AGE_EFFICIENCY_START_AGE
    return min(norms.AGE_EFFICIENCY_MAX_POINTS, years * norms.AGE_EFFICIENCY_POINTS_PER_YEAR)


def chronotype_alignment_delta(record: SleepRecord, chronotype: Chronotype | None) -> float:
    """Score points (±3) for bed/wake times matching the stated chronotype."""
    if chronotype is None or not record.has_timing:
        return 0.0
    bed = record.start_time.hour * 60 + record.start_time.minute
    wake = record.end_time.hour * 60 + record.end_time.minute
    sigma = norms.CHRONOTYPE_SIGMA_MINUTES
    bed_fit = gaussian(circular_diff_minutes(bed, norms.CHRONOTYPE_BEDTIME[chronotype]), 0, sigma)
    wake_fit = gaussian(circular_diff_minutes(wake, norms.CHRONOTYPE_WAKE[chronotype]), 0, sigma)
    alignment = (bed_fit + wake_fit) / 2
    return round(norms.CHRONOTYPE_MAX_DELTA * (2 * alignment - 1), 2)


# ── Components ───────────────────────────────────────────────────────


class _ComponentContext:
    """Inputs shared by every component scorer for one run."""

    def __init__(
        self,
        record: SleepRecord,
        norm: AgeNorm,
        baseline: UserBaseline,
        profile: UserProfile,
        settings: ScoringSettings,
    ):
        self.record = record
        self.tst = record.total_minutes or 0.0
        self.norm = norm
        self.baseline = baseline
        self.profile = profile
        self.settings = settings
        self.reliability = norms.SOURCE_RELIABILITY[record.source]

    def result(
        self,
        name: ComponentName,
        raw: float | None,
        target: float | None,
        normalized: float,
        confidence: Confidence,
    ) -> ComponentResult:
        weight = self.settings.weights[str(name)]
        normalized = _clamp(normalized)
        return ComponentResult(
            name=name,
            raw=None if raw is None else round(raw, 4),
            target=None if target is None else round(target, 4),
            normalized=normalized,
            weight=weight,
            contribution=normalized * weight,
            confidence=confidence,
        )

    def neutral(self, name: ComponentName, confidence: Confidence) -> ComponentResult:
        return self.result(name, None, None, norms.NEUTRAL_COMPONENT_SCORE, confidence)

    def blended(self, personal: float, population: float) -> float:
        return blend(personal, population, self.settings.personal_blend)


def _score_duration(ctx: _ComponentContext) -> ComponentResult:
    norm = ctx.norm
    target = ctx.blended(ctx.baseline.avg_duration_minutes, norm.ideal_duration_minutes)
    if ctx.tst < norm.min_healthy_duration_minutes:
        deficit = (norm.min_healthy_duration_minutes - ctx.tst) / norm.min_healthy_duration_minutes
        normalized = 1 - deficit * norms.SHORT_SLEEP_SLOPE
    else:
        normalized = asymmetric_gaussian(ctx.tst, target, *norms.DURATION_SIGMA)
    confidence = Confidence.HIGH if ctx.record.has_timing else Confidence.MEDIUM
    return ctx.result(ComponentName.DURATION, ctx.tst, target, normalized, confidence)


def _score_stage_share(
    ctx: _ComponentContext,
    name: ComponentName,
    minutes: float | None,
    personal_pct: float,
    ideal_pct: float,
    sigma: tuple[float, float],
) -> ComponentResult:
    if minutes is None:
        return ctx.neutral(name, Confidence.LOW)
    pct = minutes / ctx.tst * 100
    target = ctx.blended(personal_pct, ideal_pct)
    confidence = Confidence.HIGH if ctx.reliability.stage_data_valid else Confidence.LOW
    return ctx.result(name, pct, target, asymmetric_gaussian(pct, target, *sigma), confidence)


def _score_deep(ctx: _ComponentContext) -> ComponentResult:
    return _score_stage_share(
        ctx,
        ComponentName.DEEP_SLEEP,
        ctx.record.deep_minutes,
        ctx.baseline.avg_deep_pct,
        ctx.norm.deep_pct_ideal,
        norms.DEEP_SIGMA,
    )


def _score_rem(ctx: _ComponentContext) -> ComponentResult:
    sigma_below, sigma_above = norms.REM_SIGMA
    if ctx.profile.chronotype == Chronotype.EVENING:
        sigma_below = norms.REM_SIGMA_BELOW_EVENING
    return _score_stage_share(
        ctx,
        ComponentName.REM_SLEEP,
        ctx.record.rem_minutes,
        ctx.baseline.avg_rem_pct,
        ctx.norm.rem_pct_ideal,
        (sigma_below, sigma_above),
    )


def _score_efficiency(ctx: _ComponentContext, age_correction: float) -> ComponentResult:
    record = ctx.record
    time_in_bed = record.time_in_bed_minutes or ctx.tst + (record.wake_minutes or 0)
    if time_in_bed <= 0:
        return ctx.neutral(ComponentName.EFFICIENCY, Confidence.LOW)
    efficiency = ctx.tst / time_in_bed
    target = ctx.blended(ctx.baseline.avg_efficiency, ctx.norm.efficiency_ideal) - age_correction / 100
    normalized = asymmetric_gaussian(efficiency, target, *norms.EFFICIENCY_SIGMA)
    confidence = Confidence.HIGH if record.has_timing else Confidence.MEDIUM
    return ctx.result(ComponentName.EFFICIENCY, efficiency, target, normalized, confidence)


def _score_waso(ctx: _ComponentContext) -> ComponentResult:
    waso = ctx.record.wake_minutes
    if waso is None:
        return ctx.neutral(ComponentName.WASO, Confidence.MEDIUM)
    expected = ctx.blended(ctx.baseline.avg_waso_minutes, ctx.norm.waso_expected)
    # Decay rate chosen so the score reaches the tail target at twice the acceptable WASO.
    k = math.log(1 / norms.WASO_TAIL_TARGET) / max(1.0, 2 * ctx.norm.waso_acceptable - expected)
    normalized = math.exp(-k * max(0.0, waso - expected))
    return ctx.result(ComponentName.WASO, waso, expected, normalized, Confidence.HIGH)


def _score_consistency(ctx: _ComponentContext) -> ComponentResult:
    baseline = ctx.baseline
    if baseline.nights_analysed < norms.CONSISTENCY_MIN_NIGHTS or ctx.record.start_time is None:
        confidence = Confidence.LOW if baseline.nights_analysed == 0 else Confidence.MEDIUM
        return ctx.neutral(ComponentName.CONSISTENCY, confidence)
    deviation = abs(minutes_from_midnight(ctx.record.start_time) - baseline.median_bedtime_minutes)
    bedtime_fit = gaussian(deviation, 0, norms.CONSISTENCY_SIGMA_MINUTES)
    spread_fit = _clamp(1 - baseline.bedtime_std_minutes / norms.CONSISTENCY_STD_CEILING_MINUTES)
    normalized = 0.6 * bedtime_fit + 0.4 * spread_fit
    return ctx.result(
        ComponentName.CONSISTENCY, deviation, baseline.median_bedtime_minutes, normalized, Confidence.HIGH
    )


def _score_timing(ctx: _ComponentContext) -> ComponentResult:
    start = ctx.record.start_time
    if start is None:
        return ctx.neutral(ComponentName.TIMING, Confidence.MEDIUM)
    bedtime = start.hour * 60 + start.minute
    target = norms.CHRONOTYPE_BEDTIME[ctx.profile.chronotype or Chronotype.INTERMEDIATE]
    normalized = gaussian(circular_diff_minutes(bedtime, target), 0, norms.TIMING_SIGMA_MINUTES)
    return ctx.result(ComponentName.TIMING, bedtime, target, normalized, Confidence.HIGH)


def _score_screen_time(ctx: _ComponentContext) -> ComponentResult:
    summary = ctx.record.screen_time
    if summary is None:
        return ctx.neutral(ComponentName.SCREEN_TIME, Confidence.MEDIUM)
    minutes = summary.total_minutes_last_2_hours or 0.0
    normalized = 1 / (1 + math.exp(norms.SCREEN_TIME_STEEPNESS * (minutes - norms.SCREEN_TIME_MIDPOINT_MINUTES)))
    return ctx.result(
        ComponentName.SCREEN_TIME, minutes, norms.SCREEN_TIME_MIDPOINT_MINUTES, normalized, Confidence.HIGH
    )


# ── Flags ────────────────────────────────────────────────────────────


def _flags(
    record: SleepRecord,
    norm: AgeNorm,
    baseline: UserBaseline,
    goal_minutes: float,
    debt_penalty: float,
) -> list[ScoreFlag]:
    tst = record.total_minutes or 0.0
    deep = record.deep_minutes
    rem = record.rem_minutes
    waso = record.wake_minutes or 0.0
    flags: list[ScoreFlag] = []

    if tst < norms.FLAG_DURATION_BELOW_MINUTES:
        flags.append(ScoreFlag.DURATION_BELOW_5H)
    if tst < goal_minutes * norms.FLAG_GOAL_LOW_RATIO:
        flags.append(ScoreFlag.DURATION_BELOW_GOAL)
    if deep is not None and deep / tst < norms.FLAG_DEEP_LOW_RATIO:
        flags.append(ScoreFlag.DEEP_BELOW_15PCT)
    if rem is not None and rem / tst < norms.FLAG_REM_LOW_RATIO:
        flags.append(ScoreFlag.REM_BELOW_15PCT)
    if deep is not None and not norm.deep_pct_low <= deep / tst * 100 <= norm.deep_pct_high:
        flags.append(ScoreFlag.DEEP_OUTSIDE_AGE_BAND)
    if rem is not None and not norm.rem_pct_low <= rem / tst * 100 <= norm.rem_pct_high:
        flags.append(ScoreFlag.REM_OUTSIDE_AGE_BAND)
    time_in_bed = record.time_in_bed_minutes or tst + waso
    if tst / time_in_bed < norm.efficiency_low:
        flags.append(ScoreFlag.EFFICIENCY_BELOW_AGE_NORM)
    if waso > 0 and waso / tst > norms.FLAG_AWAKE_HIGH_RATIO:
        flags.append(ScoreFlag.AWAKE_ABOVE_10PCT_TST)
    if waso > norm.waso_acceptable:
        flags.append(ScoreFlag.WASO_ABOVE_ACCEPTABLE)
    if waso > norms.WASO_SEVERE_MINUTES:
        flags.append(ScoreFlag.WASO_SEVERE)

    if baseline.nights_analysed >= norms.CONSISTENCY_MIN_NIGHTS:
        if record.start_time is not None:
            deviation = abs(minutes_from_midnight(record.start_time) - baseline.median_bedtime_minutes)
            if deviation > norms.FLAG_BEDTIME_DEVIATION_WARNING:
                flags.append(ScoreFlag.LATE_BEDTIME_VS_MEDIAN)
            if deviation > norms.FLAG_BEDTIME_DEVIATION_SEVERE:
                flags.append(ScoreFlag.EXTREME_BEDTIME_SHIFT)
        if baseline.bedtime_std_minutes > norms.FLAG_SOCIAL_JET_LAG_STD:
            flags.append(ScoreFlag.SOCIAL_JET_LAG)
    else:
        flags.append(ScoreFlag.INSUFFICIENT_HISTORY)

    if debt_penalty > 0:
        flags.append(ScoreFlag.CHRONIC_SLEEP_DEBT)
    if deep is None or rem is None:
        flags.append(ScoreFlag.DATA_INCOMPLETE_STAGES)
    if record.source in norms.LOW_RELIABILITY_SOURCES:
        flags.append(ScoreFlag.SOURCE_LOW_RELIABILITY)
    return flags


# ── Entry point ──────────────────────────────────────────────────────


def calculate_sleep_score(
    record: SleepRecord,
    history: Iterable[SleepRecord] = (),
    profile: UserProfile | None = None,
    settings: ScoringSettings | None = None,
    now: datetime | None = None,
) -> ScoreBreakdown:
    """Score one night.

    Args:
        record: The night to score.  Buckets missing from the record are
            derived from its explicit phases when it has any.
        history: Prior nights, in any order.  Used for the baseline and
            chronic-debt penalty.
        profile: Age, chronotype and sleep goal; all optional.
        settings: Component weights and blend ratio.
        now: Timestamp stored as ``calculated_at``; not part of equality.

    Returns:
        A ``ScoreBreakdown`` with ``score`` in [0, 100].  A record with no
        sleep time scores 0 with ``data_incomplete`` flags.
    """
    settings = settings or ScoringSettings()
    profile = profile or UserProfile()
    now = now or datetime.now(UTC)

    record = record.with_phase_buckets()
    history = [r.with_phase_buckets() for r in history]
    norm = norms.get_age_norm(profile.age)
    chronotype = profile.chronotype
    baseline = compute_baseline(
        history,
        norm,
        default_bedtime_minutes=norms.CHRONOTYPE_BEDTIME[chronotype] if chronotype else None,
        default_wake_minutes=norms.CHRONOTYPE_WAKE[chronotype] if chronotype else None,
    )
    goal = profile.sleep_goal_minutes or settings.default_goal_minutes
    reliability = norms.SOURCE_RELIABILITY[record.source]

    if (record.total_minutes or 0) <= 0:
        logger.warning(f"Sleep record {record.id}: no sleep time, returning zero score")
        return _zero_breakdown(record, norm, baseline, settings, now)

    age_correction = age_efficiency_correction(profile.age)
    ctx = _ComponentContext(record, norm, baseline, profile, settings)
    components = (
        _score_duration(ctx),
        _score_deep(ctx),
        _score_rem(ctx),
        _score_efficiency(ctx, age_correction),
        _score_waso(ctx),
        _score_consistency(ctx),
        _score_timing(ctx),
        _score_screen_time(ctx),
    )

    debt = chronic_debt_penalty(history, goal)
    chrono_delta = chronotype_alignment_delta(record, chronotype)
    reliability_factor = reliability.factor
    if record.confidence == Confidence.LOW:
        reliability_factor *= norms.LOW_CONFIDENCE_EXTRA_FACTOR
    completeness = data_completeness_factor(record)

    raw = sum(c.contribution for c in components) * 100
    adjusted = raw - debt * 100 + chrono_delta
    shrunk = norms.PRIOR_MEAN + (adjusted - norms.PRIOR_MEAN) * reliability_factor
    score = round(_clamp(shrunk * completeness, 0, 100))

    confidence = worst_confidence(record.confidence, baseline.confidence, *(c.confidence for c in components))
    flags = _flags(record, norm, baseline, goal, debt)

    logger.debug(
        f"Sleep record {record.id}: raw {raw:.1f}, debt -{debt * 100:.1f}, chronotype {chrono_delta:+.1f}, "
        f"reliability x{reliability_factor:.2f}, completeness x{completeness:.2f} -> {score} ({confidence})"
    )
    return ScoreBreakdown(
        score=int(score),
        confidence=confidence,
        components=components,
        adjustments=ScoreAdjustments(
            source_reliability_factor=reliability_factor,
            data_completeness_factor=completeness,
            chronic_debt_penalty=round(debt * 100, 2),
            age_efficiency_correction=age_correction,
            chronotype_alignment_delta=chrono_delta,
        ),
        flags=tuple(flags),
        baseline=baseline,
        age_norm=norm,
        calculated_at=now,
    )


def _zero_breakdown(
    record: SleepRecord,
    norm: AgeNorm,
    baseline: UserBaseline,
    settings: ScoringSettings,
    now: datetime,
) -> ScoreBreakdown:
    components = tuple(
        ComponentResult(
            name=name,
            raw=0.0,
            target=None,
            normalized=0.0,
            weight=settings.weights[str(name)],
            contribution=0.0,
            confidence=Confidence.LOW,
        )
        for name in ComponentName
    )
    return ScoreBreakdown(
        score=0,
        confidence=Confidence.LOW,
        components=components,
        adjustments=ScoreAdjustments(
            source_reliability_factor=norms.SOURCE_RELIABILITY[record.source].factor,
            data_completeness_factor=data_completeness_factor(record),
            chronic_debt_penalty=0.0,
            age_efficiency_correction=0.0,
            chronotype_alignment_delta=0.0,
        ),
        flags=(ScoreFlag.DATA_INCOMPLETE, ScoreFlag.DATA_INCOMPLETE_STAGES),
        baseline=baseline,
        age_norm=norm,
        calculated_at=now,
    )
