"""
Hypnogram geometry: a render-ready description of one night.

``build_hypnogram_geometry`` resolves phases into pixel space for a given
chart size: stage segments, uncovered gaps, time ticks and cycle-boundary
markers.  It draws nothing; a rendering layer consumes the result.

Segments narrower than ``min_segment_px`` are widened in place and drawn
over whatever follows them; no other segment moves or shrinks.  At the
right edge there is nothing to widen into, so a floored segment there is
shifted left and overlaps the tail of its predecessor instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, tzinfo
from typing import Any

from loguru import logger

from somnus.core.config_schema import CoalescerSettings, GeometrySettings
from somnus.core.exceptions import ValidationError

from .coalescer import coalesce_phases
from .models import Confidence, Phase, SleepStage
from .time_grid import (
    format_tick_label,
    map_time_to_x,
    select_grid_interval_ms,
    tick_times,
    to_epoch_ms,
)

# Vertical share of the drawable height per stage lane, top to bottom.
BAND_FRACTIONS = {
    SleepStage.AWAKE: 0.06,
    SleepStage.REM: 0.22,
    SleepStage.LIGHT: 0.36,
    SleepStage.DEEP: 0.36,
}
LANE_ORDER = (SleepStage.AWAKE, SleepStage.REM, SleepStage.LIGHT, SleepStage.DEEP)


@dataclass(frozen=True)
class BandLane:
    top: float
    height: float


@dataclass(frozen=True)
class BandLayout:
    """Vertical lane placement for each stage."""

    lanes: dict[SleepStage, BandLane]
    gap: float

    def lane(self, stage: SleepStage) -> BandLane:
        return self.lanes[stage]


@dataclass(frozen=True)
class HypnogramSegment:
    id: str
    stage: SleepStage
    cycle_number: int
    start_ms: int
    end_ms: int
    x_start: float
    x_end: float
    width: float
    y: float
    height: float
    confidence: Confidence
    low_confidence: bool


@dataclass(frozen=True)
class HypnogramGap:
    id: str
    start_ms: int
    end_ms: int
    x_start: float
    x_end: float
    width: float
    low_confidence: bool


@dataclass(frozen=True)
class HypnogramTick:
    time_ms: int
    x: float
    label: str
    is_major: bool


@dataclass(frozen=True)
class CycleBoundary:
    cycle_number: int
    time_ms: int
    x: float


@dataclass(frozen=True)
class HypnogramGeometry:
    """Everything a renderer needs for one chart, already in pixel space."""

    segments: tuple[HypnogramSegment, ...]
    gaps: tuple[HypnogramGap, ...]
    ticks: tuple[HypnogramTick, ...]
    cycle_boundaries: tuple[CycleBoundary, ...]
    bands: BandLayout
    t0: int
    t1: int
    width: float
    height: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["bands"] = {
            "gap": self.bands.gap,
            **{str(stage): asdict(lane) for stage, lane in self.bands.lanes.items()},
        }
        for segment in data["segments"]:
            segment["stage"] = str(segment["stage"])
            segment["confidence"] = str(segment["confidence"])
        return data


def build_band_layout(width: float, height: float) -> BandLayout:
    """Split the chart height into one lane per stage, separated by a gap scaled to width."""
    gap = max(4, int((width / 360) * 4))
    available = max(1.0, height - gap * (len(LANE_ORDER) - 1))

    lanes: dict[SleepStage, BandLane] = {}
    top = 0.0
    for stage in LANE_ORDER:
        lane_height = available * BAND_FRACTIONS[stage]
        lanes[stage] = BandLane(top=top, height=lane_height)
        top += lane_height + gap
    return BandLayout(lanes=lanes, gap=gap)


def build_hypnogram_geometry(
    phases: Iterable[Phase | Mapping[str, Any]],
    session_start: datetime,
    session_end: datetime,
    width: float,
    height: float,
    settings: GeometrySettings | None = None,
    coalescer_settings: CoalescerSettings | None = None,
    tz: tzinfo = UTC,
) -> HypnogramGeometry:
    """Resolve a night's phases into chart geometry.

    Args:
        phases: Raw or coalesced phases; they are coalesced here regardless.
        session_start: Left edge of the chart.
        session_end: Right edge of the chart.
        width: Chart width in pixels.
        height: Chart height in pixels.
        settings: Minimum segment width and tick density.
        coalescer_settings: Passed through to :func:`coalesce_phases`.
        tz: Zone used for tick labels.

    Raises:
        ValidationError: For an empty/inverted session window, a
            non-positive chart size or malformed phases.
    """
    settings = settings or GeometrySettings()
    if width <= 0 or height <= 0:
        raise ValidationError(f"Chart size must be positive, got {width}x{height}")

    t0 = to_epoch_ms(session_start)
    t1 = to_epoch_ms(session_end)
    if t1 <= t0:
        raise ValidationError(
            f"Session end {session_end.isoformat()} must be after session start {session_start.isoformat()}"
        )

    coalesced = coalesce_phases(phases, coalescer_settings)
    visible = _clip_to_window(coalesced, t0, t1)
    bands = build_band_layout(width, height)

    segments = tuple(
        _segment(phase, start_ms, end_ms, t0, t1, width, bands, settings) for phase, start_ms, end_ms in visible
    )
    gaps = tuple(_gaps(visible, t0, t1, width))
    cycle_boundaries = tuple(_cycle_boundaries(visible, t0, t1, width))
    ticks = tuple(_ticks(t0, t1, width, settings, tz))

    logger.debug(
        f"Geometry: {len(segments)} segments, {len(gaps)} gaps, {len(ticks)} ticks, "
        f"{len(cycle_boundaries)} cycle boundaries at {width}x{height}"
    )
    return HypnogramGeometry(
        segments=segments,
        gaps=gaps,
        ticks=ticks,
        cycle_boundaries=cycle_boundaries,
        bands=bands,
        t0=t0,
        t1=t1,
        width=width,
        height=height,
    )


def _clip_to_window(phases: list[Phase], t0: int, t1: int) -> list[tuple[Phase, int, int]]:
    visible = []
    for phase in phases:
        start_ms = max(phase.start_ms, t0)
        end_ms = min(phase.end_ms, t1)
        if end_ms <= start_ms:
            logger.debug(f"Dropping phase {phase.id} outside the session window")
            continue
        visible.append((phase, start_ms, end_ms))
    return visible


def _segment(
    phase: Phase,
    start_ms: int,
    end_ms: int,
    t0: int,
    t1: int,
    width: float,
    bands: BandLayout,
    settings: GeometrySettings,
) -> HypnogramSegment:
    x_start = map_time_to_x(start_ms, t0, t1, width)
    x_end = map_time_to_x(end_ms, t0, t1, width)

    # Floored segments overlap a neighbour; neighbours keep their coordinates.
    seg_width = min(width, max(settings.min_segment_px, x_end - x_start))
    if x_start + seg_width > width:
        x_start = width - seg_width
    x_end = x_start + seg_width

    lane = bands.lane(phase.stage)
    return HypnogramSegment(
        id=phase.id,
        stage=phase.stage,
        cycle_number=phase.cycle_number,
        start_ms=start_ms,
        end_ms=end_ms,
        x_start=x_start,
        x_end=x_end,
        width=seg_width,
        y=lane.top,
        height=lane.height,
        confidence=phase.confidence,
        low_confidence=phase.confidence == Confidence.LOW,
    )


def _gaps(visible: list[tuple[Phase, int, int]], t0: int, t1: int, width: float) -> list[HypnogramGap]:
    def make(index: int, start_ms: int, end_ms: int, low_confidence: bool) -> HypnogramGap:
        x_start = map_time_to_x(start_ms, t0, t1, width)
        x_end = map_time_to_x(end_ms, t0, t1, width)
        return HypnogramGap(
            id=f"gap-{index}",
            start_ms=start_ms,
            end_ms=end_ms,
            x_start=x_start,
            x_end=x_end,
            width=x_end - x_start,
            low_confidence=low_confidence,
        )

    if not visible:
        return [make(0, t0, t1, True)]

    gaps: list[HypnogramGap] = []
    first_phase, first_start, _ = visible[0]
    if first_start > t0:
        gaps.append(make(len(gaps), t0, first_start, True))

    covered_until = visible[0][2]
    previous = first_phase
    for phase, start_ms, end_ms in visible[1:]:
        if start_ms > covered_until:
            low = Confidence.LOW in (previous.confidence, phase.confidence)
            gaps.append(make(len(gaps), covered_until, start_ms, low))
        if end_ms >= covered_until:
            covered_until = end_ms
            previous = phase

    if covered_until < t1:
        gaps.append(make(len(gaps), covered_until, t1, True))
    return gaps


def _cycle_boundaries(visible: list[tuple[Phase, int, int]], t0: int, t1: int, width: float) -> list[CycleBoundary]:
    boundaries = []
    for (current, _, _), (nxt, next_start, _) in zip(visible, visible[1:], strict=False):
        if nxt.cycle_number > current.cycle_number:
            boundaries.append(
                CycleBoundary(
                    cycle_number=nxt.cycle_number,
                    time_ms=next_start,
                    x=map_time_to_x(next_start, t0, t1, width),
                )
            )
    return boundaries


def _ticks(t0: int, t1: int, width: float, settings: GeometrySettings, tz: tzinfo) -> list[HypnogramTick]:
    interval = select_grid_interval_ms(t0, t1, settings.max_ticks)
    ticks = []
    for time_ms in tick_times(t0, t1, interval):
        ticks.append(
            HypnogramTick(
                time_ms=time_ms,
                x=map_time_to_x(time_ms, t0, t1, width),
                label=format_tick_label(time_ms, tz),
                is_major=(time_ms // interval) % 2 == 0,
            )
        )
    return ticks
