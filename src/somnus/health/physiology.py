"""
Resting physiology estimates from a user profile.

Used when no wearable measurements exist: VO2max is taken from a per-sex
activity table, aged, and converted to resting heart rate, HRV and
respiratory rate.  Population-level heuristics, not a diagnosis.
"""

from __future__ import annotations

from datetime import date
from enum import StrEnum
from typing import Any

from loguru import logger

from somnus.core.exceptions import ValidationError

from .models import PhysiologyEstimate, Sex


class ActivityLevel(StrEnum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


DEFAULT_AGE = 35
DEFAULT_ACTIVITY = ActivityLevel.MODERATE

# ml/kg/min at age 25
VO2MAX_BASE = {
    ActivityLevel.SEDENTARY: {Sex.MALE: 35, Sex.FEMALE: 30},
    ActivityLevel.LIGHT: {Sex.MALE: 40, Sex.FEMALE: 35},
    ActivityLevel.MODERATE: {Sex.MALE: 46, Sex.FEMALE: 41},
    ActivityLevel.ACTIVE: {Sex.MALE: 53, Sex.FEMALE: 47},
    ActivityLevel.VERY_ACTIVE: {Sex.MALE: 59, Sex.FEMALE: 53},
}

# Population resting HR for a 30-year-old male, bpm
RESTING_HR_ANCHOR = {
    ActivityLevel.SEDENTARY: 52,
    ActivityLevel.LIGHT: 50,
    ActivityLevel.MODERATE: 48,
    ActivityLevel.ACTIVE: 46,
    ActivityLevel.VERY_ACTIVE: 42,
}

VO2MAX_RANGE = (10.0, 80.0)
RESTING_HR_RANGE = (38.0, 90.0)
HRV_RANGE = (12.0, 80.0)
RESPIRATORY_RANGE = (12.0, 17.0)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _age_on(date_of_birth: date, today: date) -> int:
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _parse_dob(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date_of_birth: {value!r}") from None


def _parse_sex(value: Any) -> Sex | None:
    if value is None or isinstance(value, Sex):
        return value
    normalized = str(value).strip().lower()
    if normalized in ("m", "male"):
        return Sex.MALE
    if normalized in ("f", "female"):
        return Sex.FEMALE
    logger.debug(f"Unrecognised sex {value!r}; using population average")
    return None


def _parse_activity(value: Any) -> ActivityLevel | None:
    if value is None or isinstance(value, ActivityLevel):
        return value
    try:
        return ActivityLevel(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown activity level: {value!r}") from None


def _by_sex(table: dict[Sex, float], sex: Sex | None) -> float:
    if sex is None:
        return (table[Sex.MALE] + table[Sex.FEMALE]) / 2
    return table[sex]


def estimate_physiology(
    date_of_birth: date | str | None = None,
    sex: Sex | str | None = None,
    activity_level: ActivityLevel | str | None = None,
    today: date | None = None,
) -> PhysiologyEstimate:
    """Estimate resting physiology from whatever profile fields are known.

    Missing inputs fall back to a 35-year-old, moderately active, sex-averaged
    adult; each fallback is recorded in ``basis_notes``.

    Args:
        date_of_birth: ISO date or ``date``.
        sex: ``male``/``female`` (``m``/``f`` accepted); anything else averages.
        activity_level: One of :class:`ActivityLevel`.
        today: Reference date for the age computation.

    Raises:
        ValidationError: For an unparseable date of birth or activity level,
            or a date of birth after ``today``.
    """
    today = today or date.today()
    notes: list[str] = []

    dob = _parse_dob(date_of_birth)
    if dob is None:
        age = DEFAULT_AGE
        notes.append(f"age defaulted to {DEFAULT_AGE}")
    else:
        if dob > today:
            raise ValidationError(f"date_of_birth {dob.isoformat()} is in the future")
        age = _age_on(dob, today)

    parsed_sex = _parse_sex(sex)
    if parsed_sex is None:
        notes.append("sex unknown: averaged male/female tables")

    activity = _parse_activity(activity_level)
    if activity is None:
        activity = DEFAULT_ACTIVITY
        notes.append(f"activity defaulted to {DEFAULT_ACTIVITY}")

    age_factor = 1 - max(0, age - 25) * 0.0025
    vo2max = _clamp(_by_sex(VO2MAX_BASE[activity], parsed_sex) * age_factor, *VO2MAX_RANGE)

    hr_max = 207 - 0.7 * age
    raw_rhr = hr_max / (vo2max / 15)
    female_offset = {Sex.MALE: 0.0, Sex.FEMALE: 4.0, None: 2.0}[parsed_sex]
    anchor = RESTING_HR_ANCHOR[activity] + female_offset + max(0, age - 30) * 0.35
    resting_hr = _clamp(raw_rhr * 0.12 + anchor * 0.88, *RESTING_HR_RANGE)

    hrv = _clamp(20 + (70 - resting_hr) * 0.9, *HRV_RANGE)
    hrv += {Sex.MALE: 0.0, Sex.FEMALE: 6.0, None: 3.0}[parsed_sex]
    hrv = _clamp(hrv - max(0, age - 30) * 0.15, *HRV_RANGE)

    respiratory_rate = _clamp(14 - (vo2max - 35) * 0.05, *RESPIRATORY_RANGE)

    estimate = PhysiologyEstimate(
        resting_hr=round(resting_hr, 1),
        vo2max=round(vo2max, 1),
        age=age,
        sex=parsed_sex,
        hr_max=round(hr_max, 1),
        hrv_rmssd=round(hrv, 1),
        respiratory_rate=round(respiratory_rate, 1),
        basis_notes=tuple(notes),
    )
    logger.debug(f"Physiology estimate: RHR {estimate.resting_hr}, VO2max {estimate.vo2max}, age {age}")
    return estimate
