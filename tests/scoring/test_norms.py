"""Tests for scoring.norms reference tables."""

import pytest

from somnus.core.config_schema import ScoringSettings
from somnus.health.models import DataSource
from somnus.scoring.norms import AGE_NORMS, SOURCE_RELIABILITY, get_age_norm


class TestAgeNorms:
    @pytest.mark.parametrize(
        "age, band",
        [
            (None, "26-35"),
            (10, "under18"),
            (17, "under18"),
            (18, "18-25"),
            (25, "18-25"),
            (26, "26-35"),
            (35, "26-35"),
            (36, "36-50"),
            (50, "36-50"),
            (51, "51-65"),
            (65, "51-65"),
            (66, "65plus"),
            (99, "65plus"),
        ],
    )
    def test_band_boundaries(self, age, band):
        assert get_age_norm(age).band == band

    def test_bands_are_consistent(self):
        for band, norm in AGE_NORMS.items():
            assert norm.band == band
            assert norm.deep_pct_low < norm.deep_pct_ideal < norm.deep_pct_high
            assert norm.rem_pct_low < norm.rem_pct_ideal < norm.rem_pct_high
            assert norm.efficiency_low < norm.efficiency_ideal < 1
            assert norm.waso_expected <= norm.waso_acceptable
            assert norm.min_healthy_duration_minutes <= norm.ideal_duration_minutes

    def test_needs_decline_with_age(self):
        ordered = ["under18", "18-25", "26-35", "36-50", "51-65", "65plus"]
        durations = [AGE_NORMS[band].ideal_duration_minutes for band in ordered]
        deep = [AGE_NORMS[band].deep_pct_ideal for band in ordered]
        assert durations == sorted(durations, reverse=True)
        assert deep == sorted(deep, reverse=True)


class TestSourceReliability:
    def test_every_source_covered(self):
        assert set(SOURCE_RELIABILITY) == set(DataSource)

    def test_factors_in_range(self):
        for reliability in SOURCE_RELIABILITY.values():
            assert 0 < reliability.factor <= 1

    def test_only_wearables_trusted_for_stages(self):
        trusted = {source for source, r in SOURCE_RELIABILITY.items() if r.stage_data_valid}
        assert trusted == {DataSource.WEARABLE, DataSource.HEALTH_CONNECT}


def test_default_weights_sum_to_one():
    assert sum(ScoringSettings().weights.values()) == pytest.approx(1.0)
