"""
Phase coalescing: turn a raw stage sequence into a minimal, clean one.

Three rules are applied until none changes anything:

- Merge: adjacent same-stage phases whose gap is strictly below the merge
  threshold become one phase spanning both (earlier id, worst confidence).
- Snap: a boundary between different stages that misses by at most the
  snap tolerance (a sliver gap or overlap) moves to its midpoint.
- Collapse: a phase shorter than the minimum stable duration, sitting
  between two phases of the same *other* stage, is re-tagged to that stage
  and stretched to exactly fill the space between them.

The result is a fixed point: coalescing it again returns it unchanged.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import timedelta
from typing import Any

from loguru import logger

from somnus.core.config_schema import CoalescerSettings
from somnus.core.exceptions import ValidationError

from .models import Phase, worst_confidence


def coalesce_phases(
    phases: Iterable[Phase | Mapping[str, Any]],
    settings: CoalescerSettings | None = None,
) -> list[Phase]:
    """Sort, merge and clean a session's phases.

    Args:
        phases: Phases (or persisted phase rows) in any order.
        settings: Merge threshold, snap tolerance and minimum stable duration.

    Returns:
        New list of phases ordered by start time with no two adjacent
        entries sharing a stage.

    Raises:
        ValidationError: If any phase has ``end_time <= start_time`` or an
            unknown stage, or if naive and aware timestamps are mixed.
    """
    settings = settings or CoalescerSettings()
    ordered = [_as_phase(p) for p in phases]
    _check_timezones(ordered)
    ordered.sort(key=lambda p: p.start_time)
    if len(ordered) < 2:
        return ordered

    merge_threshold = timedelta(milliseconds=settings.merge_threshold_ms)
    snap = timedelta(milliseconds=settings.transition_snap_ms)
    min_stable = timedelta(milliseconds=settings.min_stable_ms)

    current = ordered
    passes = 0
    while True:
        passes += 1
        merged = _merge_adjacent(current, merge_threshold)
        snapped = _snap_transitions(merged, snap)
        cleaned = _collapse_short_transitions(snapped, min_stable)
        if cleaned == current:
            break
        current = cleaned

    logger.debug(f"Coalesced {len(ordered)} phases into {len(current)} ({passes} passes)")
    return current


def _as_phase(item: Phase | Mapping[str, Any]) -> Phase:
    if isinstance(item, Phase):
        return item
    if isinstance(item, Mapping):
        return Phase.from_row(item)
    raise ValidationError(f"Expected a Phase or phase row, got {type(item).__name__}")


def _check_timezones(phases: list[Phase]) -> None:
    aware = {phase.start_time.tzinfo is not None for phase in phases}
    if len(aware) > 1:
        raise ValidationError("Cannot coalesce a mix of naive and timezone-aware phases")


def _merge_adjacent(phases: list[Phase], threshold: timedelta) -> list[Phase]:
    merged: list[Phase] = []
    for phase in phases:
        if not merged:
            merged.append(phase)
            continue

        last = merged[-1]
        gap = phase.start_time - last.end_time
        if last.stage == phase.stage and gap < threshold:
            merged[-1] = Phase(
                id=last.id,
                stage=last.stage,
                start_time=last.start_time,
                end_time=max(last.end_time, phase.end_time),
                cycle_number=last.cycle_number,
                confidence=worst_confidence(last.confidence, phase.confidence),
            )
            continue
        merged.append(phase)
    return merged


def _snap_transitions(phases: list[Phase], tolerance: timedelta) -> list[Phase]:
    result = list(phases)
    for i in range(1, len(result)):
        prev, nxt = result[i - 1], result[i]
        delta = nxt.start_time - prev.end_time
        if not delta or abs(delta) > tolerance or prev.stage == nxt.stage:
            continue
        midpoint = prev.end_time + delta / 2
        # Never snap a phase out of existence.
        if midpoint <= prev.start_time or midpoint >= nxt.end_time:
            continue
        result[i - 1] = replace(prev, end_time=midpoint)
        result[i] = replace(nxt, start_time=midpoint)
    return result


def _collapse_short_transitions(phases: list[Phase], min_stable: timedelta) -> list[Phase]:
    result = list(phases)
    for i in range(1, len(result) - 1):
        prev, current, nxt = result[i - 1], result[i], result[i + 1]
        if current.duration >= min_stable:
            continue
        if prev.stage != nxt.stage or current.stage == prev.stage:
            continue

        # Stretch over the space between the flanks; when the flanks already
        # touch or overlap the blip keeps its own window and merges away.
        if nxt.start_time > prev.end_time:
            start, end = prev.end_time, nxt.start_time
        else:
            start, end = current.start_time, current.end_time

        logger.debug(
            f"Collapsing {current.stage} blip {current.id} ({current.duration.total_seconds():.1f}s) into {prev.stage}"
        )
        result[i] = Phase(
            id=current.id,
            stage=prev.stage,
            start_time=start,
            end_time=end,
            cycle_number=current.cycle_number,
            confidence=current.confidence,
        )
    return result
