"""Shared test fixtures for somnus."""

import os
import tempfile
from datetime import UTC, datetime, timedelta

import pytest

from somnus.hypnogram.models import Confidence, Phase

NIGHT_START = datetime(2025, 3, 1, 23, 0, tzinfo=UTC)


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "coalescer": {"merge_threshold_ms": 30_000},
        "geometry": {"min_segment_px": 3.0},
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def at():
    """Timestamp factory: ``at(minutes, seconds=0)`` after 23:00 UTC on 2025-03-01."""

    def _at(minutes: float = 0, seconds: float = 0) -> datetime:
        return NIGHT_START + timedelta(minutes=minutes, seconds=seconds)

    return _at


@pytest.fixture
def make_phase(at):
    """Phase factory with minute offsets from the night start."""
    counter = iter(range(1, 10_000))

    def _make(
        stage: str,
        start_min: float,
        end_min: float,
        cycle: int = 1,
        confidence: Confidence = Confidence.HIGH,
        phase_id: str | None = None,
    ) -> Phase:
        return Phase(
            id=phase_id or f"p{next(counter)}",
            stage=stage,
            start_time=at(start_min),
            end_time=at(end_min),
            cycle_number=cycle,
            confidence=confidence,
        )

    return _make
