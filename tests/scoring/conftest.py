"""Sleep-record factories for scoring tests."""

from datetime import UTC, date, datetime, timedelta

import pytest

from somnus.health.models import SleepRecord

GOOD_BUCKETS = {
    "total_minutes": 450,
    "deep_minutes": 85,
    "rem_minutes": 100,
    "light_minutes": 265,
    "wake_minutes": 30,
}


@pytest.fixture
def night():
    """Build a record for the night of ``day``; pre-noon bedtimes fall on the next calendar day."""

    def _night(
        record_id: str = "tonight",
        day: date = date(2025, 3, 1),
        bed: tuple[int, int] = (23, 0),
        hours_in_bed: float = 8,
        **fields,
    ) -> SleepRecord:
        start = datetime(day.year, day.month, day.day, *bed, tzinfo=UTC)
        if bed[0] < 12:
            start += timedelta(days=1)
        buckets = {**GOOD_BUCKETS, **fields}
        return SleepRecord(
            id=record_id,
            date=day,
            start_time=start,
            end_time=start + timedelta(hours=hours_in_bed),
            **buckets,
        )

    return _night


@pytest.fixture
def steady_history(night):
    """Seven regular nights before 2025-03-01."""
    return [night(f"h{i}", day=date(2025, 2, 22) + timedelta(days=i)) for i in range(7)]
