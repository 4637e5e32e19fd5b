"""
Personal sleep baseline from prior nights.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable
from datetime import datetime

from loguru import logger

from somnus.health.models import SleepRecord
from somnus.hypnogram.models import Confidence

from .models import AgeNorm, UserBaseline
from .norms import DEFAULT_BEDTIME_MINUTES, DEFAULT_WAKE_MINUTES

HIGH_CONFIDENCE_NIGHTS = 7

NOON_MINUTES = 12 * 60
DAY_MINUTES = 24 * 60


def minutes_from_midnight(value: datetime) -> int:
    """Wall-clock minutes, with pre-noon times pushed into the next day."""
    minutes = value.hour * 60 + value.minute
    if minutes < NOON_MINUTES:
        minutes += DAY_MINUTES
    return minutes


def quartiles(values: list[float]) -> tuple[float, float, float]:
    """Linear-interpolated (p25, median, p75); a single value is all three."""
    if not values:
        raise ValueError("quartiles of an empty list")
    if len(values) == 1:
        return (float(values[0]),) * 3
    p25, median, p75 = statistics.quantiles(values, n=4, method="inclusive")
    return p25, median, p75


def _mean_or(values: list[float], fallback: float) -> float:
    return statistics.fmean(values) if values else fallback


def _as_night_minutes(minutes: float) -> float:
    return minutes + DAY_MINUTES if minutes < NOON_MINUTES else minutes


def compute_baseline(
    history: Iterable[SleepRecord],
    norm: AgeNorm,
    default_bedtime_minutes: float | None = None,
    default_wake_minutes: float | None = None,
) -> UserBaseline:
    """Aggregate prior nights into a baseline.

    Nights without positive sleep time are skipped.  Any statistic with no
    data behind it falls back to the age norm (or the default bed/wake time),
    so an empty history yields a norm-shaped baseline with LOW confidence.
    """
    durations: list[float] = []
    deep_pcts: list[float] = []
    rem_pcts: list[float] = []
    efficiencies: list[float] = []
    wasos: list[float] = []
    bedtimes: list[float] = []
    wakes: list[float] = []

    for record in history:
        tst = record.total_minutes or 0
        if tst <= 0:
            continue
        durations.append(tst)
        if record.deep_minutes is not None:
            deep_pcts.append(record.deep_minutes / tst * 100)
        if record.rem_minutes is not None:
            rem_pcts.append(record.rem_minutes / tst * 100)

        time_in_bed = record.time_in_bed_minutes or tst + (record.wake_minutes or 0)
        if time_in_bed > 0:
            efficiencies.append(tst / time_in_bed)
        if record.wake_minutes is not None:
            wasos.append(record.wake_minutes)
        if record.start_time is not None:
            bedtimes.append(minutes_from_midnight(record.start_time))
        if record.end_time is not None:
            wakes.append(minutes_from_midnight(record.end_time))

    nights = len(durations)

    bedtime_default = _as_night_minutes(
        DEFAULT_BEDTIME_MINUTES if default_bedtime_minutes is None else default_bedtime_minutes
    )
    wake_default = _as_night_minutes(DEFAULT_WAKE_MINUTES if default_wake_minutes is None else default_wake_minutes)

    p25, _, p75 = quartiles(durations) if durations else (norm.ideal_duration_minutes,) * 3

    if nights == 0:
        confidence = Confidence.LOW
    elif nights < HIGH_CONFIDENCE_NIGHTS:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.HIGH

    baseline = UserBaseline(
        avg_duration_minutes=_mean_or(durations, norm.ideal_duration_minutes),
        avg_deep_pct=_mean_or(deep_pcts, norm.deep_pct_ideal),
        avg_rem_pct=_mean_or(rem_pcts, norm.rem_pct_ideal),
        avg_efficiency=_mean_or(efficiencies, norm.efficiency_ideal),
        avg_waso_minutes=_mean_or(wasos, norm.waso_expected),
        median_bedtime_minutes=statistics.median(bedtimes) if bedtimes else bedtime_default,
        median_wake_minutes=statistics.median(wakes) if wakes else wake_default,
        bedtime_std_minutes=statistics.pstdev(bedtimes) if len(bedtimes) > 1 else 0.0,
        p25_duration_minutes=p25,
        p75_duration_minutes=p75,
        nights_analysed=nights,
        confidence=confidence,
    )
    logger.debug(f"Baseline over {nights} nights ({confidence}): avg TST {baseline.avg_duration_minutes:.0f} min")
    return baseline
