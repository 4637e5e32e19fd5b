"""Tests for scoring.baseline."""

from datetime import UTC, date, datetime, timedelta

import pytest

from somnus.health.models import SleepRecord
from somnus.hypnogram.models import Confidence
from somnus.scoring.baseline import compute_baseline, minutes_from_midnight, quartiles
from somnus.scoring.norms import get_age_norm

NORM = get_age_norm(30)


class TestMinutesFromMidnight:
    def test_evening(self):
        assert minutes_from_midnight(datetime(2025, 3, 1, 23, 0)) == 1380

    def test_after_midnight_wraps(self):
        assert minutes_from_midnight(datetime(2025, 3, 2, 0, 30)) == 1470

    def test_noon(self):
        assert minutes_from_midnight(datetime(2025, 3, 2, 12, 0)) == 720


class TestQuartiles:
    def test_interpolates(self):
        assert quartiles([480, 420, 450]) == pytest.approx((435, 450, 465))

    def test_single_value(self):
        assert quartiles([400]) == (400.0, 400.0, 400.0)

    def test_empty(self):
        with pytest.raises(ValueError):
            quartiles([])


class TestComputeBaseline:
    def test_empty_history_uses_norm(self):
        baseline = compute_baseline([], NORM)
        assert baseline.nights_analysed == 0
        assert baseline.confidence == Confidence.LOW
        assert baseline.avg_duration_minutes == NORM.ideal_duration_minutes
        assert baseline.avg_deep_pct == NORM.deep_pct_ideal
        assert baseline.avg_efficiency == NORM.efficiency_ideal
        assert baseline.median_bedtime_minutes == 1380
        assert baseline.median_wake_minutes == 7 * 60 + 1440
        assert baseline.bedtime_std_minutes == 0

    def test_chronotype_defaults(self):
        baseline = compute_baseline([], NORM, default_bedtime_minutes=60, default_wake_minutes=9 * 60)
        assert baseline.median_bedtime_minutes == 60 + 1440
        assert baseline.median_wake_minutes == 9 * 60 + 1440

    def test_statistics(self):
        bedtimes = [(23, 0), (23, 30), (0, 30)]
        history = []
        for i, ((hour, minute), tst) in enumerate(zip(bedtimes, [420, 450, 480], strict=True)):
            start = datetime(2025, 3, 1 + i, hour, minute, tzinfo=UTC)
            history.append(
                SleepRecord(
                    id=f"h{i}",
                    date=date(2025, 3, 1 + i),
                    start_time=start,
                    end_time=start + timedelta(minutes=tst + 30),
                    total_minutes=tst,
                    deep_minutes=tst * 0.2,
                    wake_minutes=30,
                )
            )
        baseline = compute_baseline(history, NORM)
        assert baseline.nights_analysed == 3
        assert baseline.confidence == Confidence.MEDIUM
        assert baseline.avg_duration_minutes == pytest.approx(450)
        assert baseline.avg_deep_pct == pytest.approx(20)
        assert baseline.avg_rem_pct == NORM.rem_pct_ideal
        assert baseline.avg_waso_minutes == 30
        assert baseline.median_bedtime_minutes == 1410
        assert baseline.p25_duration_minutes == pytest.approx(435)
        assert baseline.p75_duration_minutes == pytest.approx(465)
        assert baseline.bedtime_std_minutes > 0

    def test_zero_sleep_nights_skipped(self):
        history = [
            SleepRecord(id="a", date=date(2025, 3, 1), total_minutes=0),
            SleepRecord(id="b", date=date(2025, 3, 2)),
            SleepRecord(id="c", date=date(2025, 3, 3), total_minutes=400),
        ]
        baseline = compute_baseline(history, NORM)
        assert baseline.nights_analysed == 1
        assert baseline.avg_duration_minutes == 400

    def test_week_of_history_is_high_confidence(self):
        history = [SleepRecord(id=str(i), date=date(2025, 3, 1 + i), total_minutes=450) for i in range(7)]
        assert compute_baseline(history, NORM).confidence == Confidence.HIGH

    def test_measured_zero_stage_counts(self):
        history = [
            SleepRecord(id="a", date=date(2025, 3, 1), total_minutes=400, deep_minutes=0, rem_minutes=80),
            SleepRecord(id="b", date=date(2025, 3, 2), total_minutes=400, deep_minutes=80, rem_minutes=80),
        ]
        baseline = compute_baseline(history, NORM)
        assert baseline.avg_deep_pct == pytest.approx(10)
        assert baseline.avg_rem_pct == pytest.approx(20)
