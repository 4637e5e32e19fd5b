"""
Hypnogram timeline cleaning and chart geometry.

Pure functions only — no drawing, no I/O.
"""

from .coalescer import coalesce_phases
from .geometry import (
    BandLayout,
    CycleBoundary,
    HypnogramGap,
    HypnogramGeometry,
    HypnogramSegment,
    HypnogramTick,
    build_band_layout,
    build_hypnogram_geometry,
)
from .models import Confidence, Phase, SleepStage, worst_confidence
from .time_grid import map_time_to_x, select_grid_interval_ms, to_epoch_ms

__all__ = [
    "BandLayout",
    "Confidence",
    "CycleBoundary",
    "HypnogramGap",
    "HypnogramGeometry",
    "HypnogramSegment",
    "HypnogramTick",
    "Phase",
    "SleepStage",
    "build_band_layout",
    "build_hypnogram_geometry",
    "coalesce_phases",
    "map_time_to_x",
    "select_grid_interval_ms",
    "to_epoch_ms",
    "worst_confidence",
]
