"""
Reference tables for sleep scoring.

Single source of truth for the population norms, source reliability
factors and curve constants the scoring engine reads.  Imports nothing but
models so it can be used from anywhere without import cycles.

Sources:
- Age norms: AASM duration guidance, Ohayon et al. (2004) stage meta-analysis
- Gaussian widths and penalty curves: product policy, not clinical ground truth
"""

from dataclasses import dataclass

from somnus.health.models import Chronotype, DataSource

from .models import AgeNorm

# =============================================================================
# AGE NORMS
# =============================================================================
# Durations and WASO in minutes, stage shares in percent of TST,
# efficiency as a ratio.

AGE_NORMS = {
    "under18": AgeNorm(
        band="under18",
        ideal_duration_minutes=540,
        min_healthy_duration_minutes=480,
        deep_pct_ideal=22,
        deep_pct_low=17,
        deep_pct_high=28,
        rem_pct_ideal=22,
        rem_pct_low=17,
        rem_pct_high=28,
        efficiency_ideal=0.93,
        efficiency_low=0.85,
        waso_expected=15,
        waso_acceptable=20,
    ),
    "18-25": AgeNorm(
        band="18-25",
        ideal_duration_minutes=490,
        min_healthy_duration_minutes=420,
        deep_pct_ideal=20,
        deep_pct_low=16,
        deep_pct_high=25,
        rem_pct_ideal=22,
        rem_pct_low=17,
        rem_pct_high=27,
        efficiency_ideal=0.92,
        efficiency_low=0.85,
        waso_expected=18,
        waso_acceptable=20,
    ),
    "26-35": AgeNorm(
        band="26-35",
        ideal_duration_minutes=460,
        min_healthy_duration_minutes=420,
        deep_pct_ideal=18,
        deep_pct_low=14,
        deep_pct_high=23,
        rem_pct_ideal=21,
        rem_pct_low=16,
        rem_pct_high=26,
        efficiency_ideal=0.91,
        efficiency_low=0.85,
        waso_expected=22,
        waso_acceptable=25,
    ),
    "36-50": AgeNorm(
        band="36-50",
        ideal_duration_minutes=450,
        min_healthy_duration_minutes=420,
        deep_pct_ideal=15,
        deep_pct_low=11,
        deep_pct_high=20,
        rem_pct_ideal=20,
        rem_pct_low=15,
        rem_pct_high=25,
        efficiency_ideal=0.88,
        efficiency_low=0.82,
        waso_expected=32,
        waso_acceptable=40,
    ),
    "51-65": AgeNorm(
        band="51-65",
        ideal_duration_minutes=440,
        min_healthy_duration_minutes=420,
        deep_pct_ideal=13,
        deep_pct_low=9,
        deep_pct_high=17,
        rem_pct_ideal=19,
        rem_pct_low=14,
        rem_pct_high=24,
        efficiency_ideal=0.85,
        efficiency_low=0.79,
        waso_expected=42,
        waso_acceptable=55,
    ),
    "65plus": AgeNorm(
        band="65plus",
        ideal_duration_minutes=420,
        min_healthy_duration_minutes=390,
        deep_pct_ideal=11,
        deep_pct_low=7,
        deep_pct_high=15,
        rem_pct_ideal=17,
        rem_pct_low=12,
        rem_pct_high=22,
        efficiency_ideal=0.82,
        efficiency_low=0.75,
        waso_expected=52,
        waso_acceptable=70,
    ),
}

DEFAULT_AGE_BAND = "26-35"

# (max age inclusive, band)
AGE_BAND_LIMITS = [
    (17, "under18"),
    (25, "18-25"),
    (35, "26-35"),
    (50, "36-50"),
    (65, "51-65"),
]


def get_age_norm(age: int | None = None) -> AgeNorm:
    """Norms for an age; a missing age uses the 26-35 band."""
    if age is None:
        return AGE_NORMS[DEFAULT_AGE_BAND]
    for max_age, band in AGE_BAND_LIMITS:
        if age <= max_age:
            return AGE_NORMS[band]
    return AGE_NORMS["65plus"]


# =============================================================================
# SOURCE RELIABILITY
# =============================================================================


@dataclass(frozen=True)
class SourceReliability:
    factor: float
    stage_data_valid: bool


SOURCE_RELIABILITY = {
    DataSource.WEARABLE: SourceReliability(factor=1.0, stage_data_valid=True),
    DataSource.HEALTH_CONNECT: SourceReliability(factor=0.95, stage_data_valid=True),
    DataSource.MANUAL: SourceReliability(factor=0.85, stage_data_valid=False),
    DataSource.DIGITAL_WELLBEING: SourceReliability(factor=0.7, stage_data_valid=False),
    DataSource.USAGE_STATS: SourceReliability(factor=0.65, stage_data_valid=False),
}

LOW_RELIABILITY_SOURCES = {DataSource.DIGITAL_WELLBEING, DataSource.USAGE_STATS}

# Scores shrink toward this prior by (1 - factor).
PRIOR_MEAN = 50.0
# Extra shrink for records that flag themselves low-confidence
LOW_CONFIDENCE_EXTRA_FACTOR = 0.9


# =============================================================================
# COMPLETENESS
# =============================================================================

MISSING_STAGE_PENALTY = 0.10
MISSING_TIMING_PENALTY = 0.05
MIN_COMPLETENESS_FACTOR = 0.6


# =============================================================================
# COMPONENT CURVES
# =============================================================================

NEUTRAL_COMPONENT_SCORE = 0.5

# Asymmetric Gaussian widths (below target, above target)
DURATION_SIGMA = (60.0, 90.0)  # minutes
DEEP_SIGMA = (4.0, 6.0)  # percentage points
REM_SIGMA = (4.5, 6.0)
REM_SIGMA_BELOW_EVENING = 3.5
EFFICIENCY_SIGMA = (0.07, 0.05)

# Below the minimum healthy duration the score falls linearly
SHORT_SLEEP_SLOPE = 1.5

CONSISTENCY_SIGMA_MINUTES = 60.0
CONSISTENCY_MIN_NIGHTS = 5
CONSISTENCY_STD_CEILING_MINUTES = 120.0

TIMING_SIGMA_MINUTES = 70.0

# Fraction of the score left at twice the acceptable WASO
WASO_TAIL_TARGET = 0.3
WASO_SEVERE_MINUTES = 60

# Logistic on pre-bed screen minutes: 0.5 at the midpoint
SCREEN_TIME_MIDPOINT_MINUTES = 40.0
SCREEN_TIME_STEEPNESS = 0.04


# =============================================================================
# CHRONOTYPE
# =============================================================================
# Minutes from midnight

CHRONOTYPE_BEDTIME = {
    Chronotype.MORNING: 22 * 60,
    Chronotype.INTERMEDIATE: 23 * 60,
    Chronotype.EVENING: 1 * 60,
}
CHRONOTYPE_WAKE = {
    Chronotype.MORNING: 6 * 60,
    Chronotype.INTERMEDIATE: 7 * 60,
    Chronotype.EVENING: 9 * 60,
}
DEFAULT_BEDTIME_MINUTES = CHRONOTYPE_BEDTIME[Chronotype.INTERMEDIATE]
DEFAULT_WAKE_MINUTES = CHRONOTYPE_WAKE[Chronotype.INTERMEDIATE]

CHRONOTYPE_MAX_DELTA = 3.0  # score points
CHRONOTYPE_SIGMA_MINUTES = 60.0


# =============================================================================
# ADJUSTMENTS
# =============================================================================

# Chronic debt: up to 12 points when recent nights average below goal
CHRONIC_DEBT_WINDOW_NIGHTS = 7
CHRONIC_DEBT_MIN_NIGHTS = 3
CHRONIC_DEBT_SCALE = 0.5
CHRONIC_DEBT_MAX_PENALTY = 0.12

# Age efficiency correction: lowers the efficiency target past 40
AGE_EFFICIENCY_START_AGE = 40
AGE_EFFICIENCY_POINTS_PER_YEAR = 0.15
AGE_EFFICIENCY_MAX_POINTS = 5.0


# =============================================================================
# FLAGS
# =============================================================================

FLAG_DURATION_BELOW_MINUTES = 300
FLAG_GOAL_LOW_RATIO = 0.8
FLAG_DEEP_LOW_RATIO = 0.15
FLAG_REM_LOW_RATIO = 0.15
FLAG_AWAKE_HIGH_RATIO = 0.10
FLAG_BEDTIME_DEVIATION_WARNING = 90
FLAG_BEDTIME_DEVIATION_SEVERE = 180
FLAG_SOCIAL_JET_LAG_STD = 90
