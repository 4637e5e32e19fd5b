"""
Cycle distributor: synthesize a plausible stage timeline from bucket totals.

Used when a source reports only per-stage minutes (or nothing but a time
window).  The night is laid out as a pre-sleep awake interval followed by
~90-minute cycles.  Each cycle spends from the stage buckets in the order
Light, Deep, REM, brief Awake, and every allocation is capped by what is
left in the bucket, a per-cycle ceiling and a share of the cycle's own length.
Deep targets decay across the night and REM targets grow, so deep sleep is
front-loaded and REM back-loaded.

The distributor never spends more than a bucket holds.  When the light
bucket runs dry the cycle in progress is shortened, and no further cycle is
opened unless it could hold ``min_cycle_minutes`` of sleep, so the timeline
may stop short of the session end.  Anything that changes the output for a
given input must bump ``ALGORITHM_VERSION``.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from somnus.core.config_schema import DistributorSettings
from somnus.hypnogram.models import Confidence, Phase, SleepStage

from .models import (
    CycleBreakdown,
    CycleDistributorInput,
    CycleDistributorOutput,
    PhaseTimelineRow,
    StageBudget,
)

ALGORITHM_VERSION = 2

# (max age inclusive, deep ratio, rem ratio); first match wins.
AGE_STAGE_RATIOS = (
    (24, 0.22, 0.23),
    (44, 0.18, 0.22),
    (64, 0.14, 0.20),
)
ELDERLY_STAGE_RATIOS = (0.10, 0.18)
DEFAULT_STAGE_RATIOS = (0.18, 0.22)
AWAKE_FALLBACK_RATIO = 0.07

# Sleep-onset latency
DEFAULT_RESTING_HR = 60.0
DEFAULT_AGE = 35
SOL_MIN_MINUTES = 5
SOL_MAX_MINUTES = 30

HISTORY_HIGH_CONFIDENCE = 7
HISTORY_MEDIUM_CONFIDENCE = 3

# Tie-break order for a cycle's dominant stage.
DOMINANCE_ORDER = (SleepStage.DEEP, SleepStage.REM, SleepStage.LIGHT, SleepStage.AWAKE)


def age_stage_ratios(age: int | None) -> tuple[float, float]:
    """Population (deep, rem) share of the night for an age."""
    if age is None:
        return DEFAULT_STAGE_RATIOS
    for max_age, deep, rem in AGE_STAGE_RATIOS:
        if age <= max_age:
            return deep, rem
    return ELDERLY_STAGE_RATIOS


def resolve_budget(data: CycleDistributorInput, session_minutes: int, personal_blend: float = 0.6) -> StageBudget:
    """Whole-minute buckets: supplied values floored, missing ones estimated.

    Personal ratios only shape buckets the source did not report.
    """
    age_deep, age_rem = age_stage_ratios(data.resolved_age)

    def ratio(personal: float | None, population: float) -> float:
        if personal is None:
            return population
        return personal * personal_blend + population * (1 - personal_blend)

    def floor_or(value: float | None, fallback: float) -> int:
        return int(math.floor(value)) if value is not None else int(math.floor(fallback))

    deep = floor_or(data.deep_minutes, session_minutes * ratio(data.personal_deep_ratio, age_deep))
    rem = floor_or(data.rem_minutes, session_minutes * ratio(data.personal_rem_ratio, age_rem))
    awake = floor_or(data.awake_minutes, session_minutes * AWAKE_FALLBACK_RATIO)
    light = floor_or(data.light_minutes, max(0, session_minutes - deep - rem - awake))
    return StageBudget(light=light, deep=deep, rem=rem, awake=awake)


def sleep_onset_latency(resting_hr: float | None, age: int | None) -> int:
    """Minutes from lights-out to sleep, from resting HR and age."""
    hr = DEFAULT_RESTING_HR if resting_hr is None else resting_hr
    if hr > 70:
        base = 18
    elif hr > 58:
        base = 13
    elif hr > 48:
        base = 9
    else:
        base = 7
    years = DEFAULT_AGE if age is None else age
    latency = round(base + max(0.0, (years - 40) * 0.15))
    return max(SOL_MIN_MINUTES, min(SOL_MAX_MINUTES, latency))


def distribution_confidence(data: CycleDistributorInput) -> Confidence:
    if data.has_stage_data and data.history_night_count >= HISTORY_HIGH_CONFIDENCE:
        return Confidence.HIGH
    if data.has_stage_data or data.history_night_count >= HISTORY_MEDIUM_CONFIDENCE:
        return Confidence.MEDIUM
    return Confidence.LOW


@dataclass
class _Cursor:
    """Mutable state for one distribution run."""

    remaining: dict[SleepStage, int]
    minute: int = 0
    deep_carry: float = 0.0
    rem_carry: float = 0.0


def distribute_sleep_cycles(
    data: CycleDistributorInput,
    rng: random.Random | None = None,
    settings: DistributorSettings | None = None,
) -> CycleDistributorOutput:
    """Lay out a synthesized phase timeline for one session.

    Args:
        data: Session window, bucket minutes and physiology.
        rng: Source for brief-awakening decisions.  Defaults to
            ``random.Random(data.seed)``, so output is reproducible.
        settings: Cycle length, per-stage ceilings and fractions.

    Returns:
        Output with phases, per-cycle breakdown and confidence.  A session
        with ``end_time <= start_time`` yields an empty output.
    """
    settings = settings or DistributorSettings()
    rng = rng or random.Random(data.seed)
    confidence = distribution_confidence(data)

    if data.end_time <= data.start_time:
        logger.warning(
            f"Session {data.session_id}: end {data.end_time.isoformat()} is not after "
            f"start {data.start_time.isoformat()}; returning empty distribution"
        )
        return CycleDistributorOutput(
            phases=(),
            cycles=(),
            estimated_cycles=0,
            total_minutes=0,
            confidence=Confidence.LOW,
            algorithm_version=ALGORITHM_VERSION,
        )

    session_minutes = int((data.end_time - data.start_time).total_seconds() // 60)
    budget = resolve_budget(data, session_minutes)
    state = _Cursor(remaining=budget.as_dict())
    spans: list[tuple[SleepStage, int, int, int]] = []  # stage, cycle, start minute, minutes

    resting_hr = data.physiology.resting_hr if data.physiology else None
    latency = min(sleep_onset_latency(resting_hr, data.resolved_age), budget.awake, session_minutes)
    if latency > 0:
        spans.append((SleepStage.AWAKE, 0, 0, latency))
        state.remaining[SleepStage.AWAKE] -= latency
        state.minute = latency

    usable = session_minutes - state.minute
    planned = usable // settings.cycle_minutes
    if usable % settings.cycle_minutes >= settings.min_cycle_minutes:
        planned += 1
    deep_weights = [math.exp(-settings.deep_decay_lambda * i) for i in range(planned)]
    rem_weights = [math.log(1 + settings.rem_growth_factor * (i + 1)) for i in range(planned)]

    cycle_number = 0
    while session_minutes - state.minute >= settings.min_cycle_minutes:
        cycle_number += 1
        cycle_length = min(settings.cycle_minutes, session_minutes - state.minute)
        index = cycle_number - 1
        deep_share = budget.deep * deep_weights[index] / sum(deep_weights) if index < planned else 0.0
        rem_share = budget.rem * rem_weights[index] / sum(rem_weights) if index < planned else 0.0

        allocated = _allocate_cycle(cycle_number, cycle_length, deep_share, rem_share, state, rng, settings)
        if not allocated:
            break
        for stage, minutes in allocated:
            spans.append((stage, cycle_number, state.minute, minutes))
            state.minute += minutes

    phases = _to_phases(data, spans, confidence)
    cycles = _breakdown(phases)
    total = sum(minutes for _, _, _, minutes in spans)
    logger.debug(
        f"Session {data.session_id}: {len(cycles)} cycles, {len(phases)} phases, "
        f"{total}/{session_minutes} minutes covered (SOL {latency})"
    )
    return CycleDistributorOutput(
        phases=tuple(phases),
        cycles=tuple(cycles),
        estimated_cycles=len(cycles),
        total_minutes=total,
        confidence=confidence,
        algorithm_version=ALGORITHM_VERSION,
        budget=budget,
    )


def _allocate_cycle(
    cycle_number: int,
    window: int,
    deep_share: float,
    rem_share: float,
    state: _Cursor,
    rng: random.Random,
    settings: DistributorSettings,
) -> list[tuple[SleepStage, int]]:
    """Spend one cycle's minutes; returns (stage, minutes) in timeline order.

    Fraction caps apply to the minutes the cycle actually gets.  When the
    light bucket cannot fill ``window`` the cycle is shortened and planned
    again until it fits.  A cycle that would hold less than
    ``min_cycle_minutes`` of sleep is not opened and an empty list comes back.
    """
    remaining = state.remaining
    deep_target = deep_share + state.deep_carry
    rem_target = rem_share + state.rem_carry
    rem_cap = settings.first_cycle_rem_max if cycle_number == 1 else settings.rem_ceiling_minutes

    awake_wanted = 0
    if remaining[SleepStage.AWAKE] > 0 and rng.random() < settings.awakening_probability:
        awake_wanted = rng.randint(1, settings.awake_ceiling_minutes)

    length = window
    while True:
        light = min(
            remaining[SleepStage.LIGHT],
            settings.light_ceiling_minutes,
            int(length * settings.light_cycle_fraction),
        )
        deep = min(
            remaining[SleepStage.DEEP],
            settings.deep_ceiling_minutes,
            int(length * settings.deep_cycle_fraction),
            length - light,
            round(deep_target),
        )
        rem = min(
            remaining[SleepStage.REM],
            rem_cap,
            int(length * settings.rem_cycle_fraction),
            length - light - deep,
            round(rem_target),
        )
        room = length - light - deep - rem
        awake = min(remaining[SleepStage.AWAKE], room, awake_wanted)
        filler = max(0, min(remaining[SleepStage.LIGHT] - light, room - awake))

        used = light + deep + rem + awake + filler
        if used == length:
            break
        # Light ran dry; re-plan against the shorter cycle.
        length = used

    if light + filler + deep + rem < settings.min_cycle_minutes:
        return []

    state.deep_carry = max(0.0, deep_target - deep)
    state.rem_carry = max(0.0, rem_target - rem)
    remaining[SleepStage.LIGHT] -= light + filler
    remaining[SleepStage.DEEP] -= deep
    remaining[SleepStage.REM] -= rem
    remaining[SleepStage.AWAKE] -= awake

    ordered = [
        (SleepStage.LIGHT, light),
        (SleepStage.DEEP, deep),
        (SleepStage.LIGHT, filler),
        (SleepStage.REM, rem),
        (SleepStage.AWAKE, awake),
    ]
    result: list[tuple[SleepStage, int]] = []
    for stage, minutes in ordered:
        if minutes <= 0:
            continue
        if result and result[-1][0] == stage:
            result[-1] = (stage, result[-1][1] + minutes)
        else:
            result.append((stage, minutes))
    return result


def _to_phases(
    data: CycleDistributorInput,
    spans: list[tuple[SleepStage, int, int, int]],
    confidence: Confidence,
) -> list[Phase]:
    phases = []
    for index, (stage, cycle_number, start_minute, minutes) in enumerate(spans, start=1):
        start = data.start_time + timedelta(minutes=start_minute)
        phases.append(
            Phase(
                id=f"{data.session_id}-p{index:03d}",
                stage=stage,
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
                cycle_number=cycle_number,
                confidence=confidence,
            )
        )
    return phases


def _breakdown(phases: list[Phase]) -> list[CycleBreakdown]:
    by_cycle: dict[int, list[Phase]] = {}
    for phase in phases:
        if phase.cycle_number > 0:
            by_cycle.setdefault(phase.cycle_number, []).append(phase)

    cycles = []
    for cycle_number, members in by_cycle.items():
        minutes = {stage: 0 for stage in SleepStage}
        for phase in members:
            minutes[phase.stage] += round(phase.duration_minutes)
        dominant = max(DOMINANCE_ORDER, key=lambda s: (minutes[s], -DOMINANCE_ORDER.index(s)))
        cycles.append(
            CycleBreakdown(
                cycle_number=cycle_number,
                start_time=members[0].start_time,
                end_time=members[-1].end_time,
                light_minutes=minutes[SleepStage.LIGHT],
                deep_minutes=minutes[SleepStage.DEEP],
                rem_minutes=minutes[SleepStage.REM],
                awake_minutes=minutes[SleepStage.AWAKE],
                dominant_stage=dominant,
            )
        )
    return cycles


def to_timeline_rows(
    output: CycleDistributorOutput,
    sleep_session_id: str,
    user_id: str,
    created_at: datetime,
) -> list[PhaseTimelineRow]:
    """Persistable rows for a distribution; ``algorithm_version`` is carried through."""
    return [
        PhaseTimelineRow(
            id=phase.id,
            sleep_session_id=sleep_session_id,
            user_id=user_id,
            cycle_number=phase.cycle_number,
            stage=phase.stage,
            start_time=phase.start_time,
            end_time=phase.end_time,
            duration_minutes=round(phase.duration_minutes),
            confidence=phase.confidence,
            algorithm_version=output.algorithm_version,
            created_at=created_at,
        )
        for phase in output.phases
    ]
