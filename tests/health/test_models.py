"""Tests for health.models — sleep records, profiles and enums."""

from datetime import UTC, date, datetime

import pytest

from somnus.core.exceptions import ValidationError
from somnus.health.models import (
    Chronotype,
    DataSource,
    ScreenTimeSummary,
    SleepRecord,
    UserProfile,
)
from somnus.hypnogram.models import Confidence


class TestEnums:
    def test_data_source_parse(self):
        assert DataSource.parse(" Manual ") == DataSource.MANUAL
        assert DataSource.parse(DataSource.WEARABLE) is DataSource.WEARABLE

    def test_data_source_unknown(self):
        with pytest.raises(ValidationError, match="Unknown data source"):
            DataSource.parse("fitbit")

    def test_chronotype_parse(self):
        assert Chronotype.parse("Evening") == Chronotype.EVENING

    def test_is_string_enum(self):
        assert isinstance(DataSource.MANUAL, str)


class TestSleepRecord:
    def test_defaults(self):
        rec = SleepRecord(id="n1", date=date(2025, 1, 1))
        assert rec.total_minutes is None
        assert rec.source == DataSource.WEARABLE
        assert rec.confidence == Confidence.HIGH
        assert rec.phases == ()
        assert not rec.has_timing

    def test_string_enums_coerced(self):
        rec = SleepRecord(id="n1", date=date(2025, 1, 1), source="manual", confidence="low")
        assert rec.source == DataSource.MANUAL
        assert rec.confidence == Confidence.LOW

    def test_negative_bucket(self):
        with pytest.raises(ValidationError, match="deep_minutes cannot be negative"):
            SleepRecord(id="n1", date=date(2025, 1, 1), deep_minutes=-5)

    def test_end_before_start(self, at):
        with pytest.raises(ValidationError, match="must be after"):
            SleepRecord(id="n1", date=date(2025, 3, 1), start_time=at(60), end_time=at(0))

    def test_time_in_bed(self, at):
        rec = SleepRecord(id="n1", date=date(2025, 3, 1), start_time=at(0), end_time=at(480))
        assert rec.time_in_bed_minutes == 480

    def test_missing_stage_fields(self):
        rec = SleepRecord(id="n1", date=date(2025, 1, 1), total_minutes=420, deep_minutes=80)
        assert rec.missing_stage_fields == ["rem_minutes", "light_minutes", "wake_minutes"]


class TestPhaseBuckets:
    @pytest.fixture
    def phases(self, make_phase):
        return (
            make_phase("awake", 0, 15, cycle=0),
            make_phase("light", 15, 45, cycle=1),
            make_phase("deep", 45, 90, cycle=1),
            make_phase("rem", 90, 100, cycle=1),
            make_phase("awake", 100, 105, cycle=1),
            make_phase("light", 105, 150, cycle=2),
        )

    def test_buckets_from_phases(self, phases, at):
        rec = SleepRecord(id="n1", date=date(2025, 3, 1), phases=phases).with_phase_buckets()
        assert rec.deep_minutes == 45
        assert rec.light_minutes == 75
        assert rec.rem_minutes == 10
        assert rec.wake_minutes == 5
        assert rec.total_minutes == 130
        assert rec.start_time == at(0)
        assert rec.end_time == at(150)

    def test_measured_buckets_win(self, phases):
        rec = SleepRecord(id="n1", date=date(2025, 3, 1), deep_minutes=60, phases=phases).with_phase_buckets()
        assert rec.deep_minutes == 60
        assert rec.rem_minutes == 10

    def test_no_phases_returns_self(self):
        rec = SleepRecord(id="n1", date=date(2025, 1, 1))
        assert rec.with_phase_buckets() is rec


class TestSleepRecordFromDict:
    def test_minimal(self):
        rec = SleepRecord.from_dict({"id": 7, "date": "2025-03-01", "total_minutes": "420"})
        assert rec.id == "7"
        assert rec.date == date(2025, 3, 1)
        assert rec.total_minutes == 420.0

    def test_date_from_start_time(self):
        rec = SleepRecord.from_dict(
            {"id": "n1", "start_time": "2025-03-01T23:00:00+00:00", "end_time": "2025-03-02T07:00:00+00:00"}
        )
        assert rec.date == date(2025, 3, 1)
        assert rec.start_time == datetime(2025, 3, 1, 23, 0, tzinfo=UTC)
        assert rec.time_in_bed_minutes == 480

    def test_screen_time_and_source(self):
        rec = SleepRecord.from_dict(
            {
                "id": "n1",
                "date": "2025-03-01",
                "source": "usage_stats",
                "screen_time": {"total_minutes_last_2_hours": 55, "blue_light": True},
            }
        )
        assert rec.source == DataSource.USAGE_STATS
        assert rec.screen_time == ScreenTimeSummary(total_minutes_last_2_hours=55, blue_light=True)

    def test_phase_rows(self):
        rec = SleepRecord.from_dict(
            {
                "id": "n1",
                "date": "2025-03-01",
                "phases": [
                    {
                        "id": "a",
                        "stage": "deep",
                        "start_time": "2025-03-01T23:30:00+00:00",
                        "end_time": "2025-03-02T00:10:00+00:00",
                        "cycle_number": 1,
                    }
                ],
            }
        )
        assert len(rec.phases) == 1
        assert rec.with_phase_buckets().deep_minutes == 40

    def test_missing_id(self):
        with pytest.raises(ValidationError, match="missing field: id"):
            SleepRecord.from_dict({"date": "2025-03-01"})

    def test_needs_date_or_start(self):
        with pytest.raises(ValidationError, match="needs a date"):
            SleepRecord.from_dict({"id": "n1"})

    def test_invalid_date(self):
        with pytest.raises(ValidationError, match="invalid date"):
            SleepRecord.from_dict({"id": "n1", "date": "March 1st"})

    def test_invalid_bucket(self):
        with pytest.raises(ValidationError, match="invalid deep_minutes"):
            SleepRecord.from_dict({"id": "n1", "date": "2025-03-01", "deep_minutes": "lots"})

    def test_unknown_screen_time_field(self):
        with pytest.raises(ValidationError, match="Unknown screen_time fields: foo"):
            SleepRecord.from_dict({"id": "n1", "date": "2025-03-01", "screen_time": {"foo": 1}})

    def test_screen_time_not_a_mapping(self):
        with pytest.raises(ValidationError, match="must be a mapping"):
            SleepRecord.from_dict({"id": "n1", "date": "2025-03-01", "screen_time": 55})


class TestUserProfile:
    def test_defaults(self):
        profile = UserProfile()
        assert profile.age is None
        assert profile.chronotype is None

    def test_from_dict(self):
        profile = UserProfile.from_dict({"age": 42, "chronotype": "morning", "sleep_goal_minutes": 450})
        assert profile.chronotype == Chronotype.MORNING
        assert profile.sleep_goal_minutes == 450

    @pytest.mark.parametrize("age", [0, -3, 121])
    def test_implausible_age(self, age):
        with pytest.raises(ValidationError, match="Implausible age"):
            UserProfile(age=age)

    def test_non_positive_goal(self):
        with pytest.raises(ValidationError, match="Sleep goal"):
            UserProfile(sleep_goal_minutes=0)

    def test_unknown_chronotype(self):
        with pytest.raises(ValidationError):
            UserProfile(chronotype="owl")
