"""Time ↔ pixel mapping and tick-grid selection for hypnogram charts.

Everything here works on integer epoch milliseconds so geometry stays
exact and reproducible.  Naive datetimes are treated as UTC.
"""

from datetime import UTC, datetime, timedelta, tzinfo

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

# Smallest rung of the tick ladder; each further rung doubles.
BASE_GRID_INTERVAL_MS = 30 * MINUTE_MS
DEFAULT_MAX_TICKS = 12

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds (naive = UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value_ms: int, tz: tzinfo = UTC) -> datetime:
    """Inverse of :func:`to_epoch_ms`."""
    return (_EPOCH + timedelta(milliseconds=value_ms)).astimezone(tz)


def map_time_to_x(time_ms: float, start_ms: float, end_ms: float, width: float) -> float:
    """Map a timestamp onto ``[0, width]``.

    Values outside the window clamp to the nearest edge.  A degenerate
    window (``end <= start``) or a non-positive width maps everything to 0.
    """
    if end_ms <= start_ms or width <= 0:
        return 0.0
    ratio = (time_ms - start_ms) / (end_ms - start_ms)
    return max(0.0, min(1.0, ratio)) * width


def select_grid_interval_ms(start_ms: int, end_ms: int, max_ticks: int = DEFAULT_MAX_TICKS) -> int:
    """Pick a tick interval so the span shows at most ``max_ticks`` intervals.

    Ladder: 30 min, 60 min, 120 min, 240 min, ... so a 6 h night gets
    half-hour ticks, a 12 h window hourly ticks and a 16 h window two-hour
    ticks.
    """
    span = max(0, end_ms - start_ms)
    interval = BASE_GRID_INTERVAL_MS
    while span > interval * max_ticks:
        interval *= 2
    return interval


def tick_times(start_ms: int, end_ms: int, interval_ms: int) -> list[int]:
    """Tick positions: both bounds plus every natural multiple of the interval between them."""
    if end_ms <= start_ms:
        return [start_ms]

    ticks = [start_ms]
    first = -(-start_ms // interval_ms) * interval_ms  # ceil to the interval
    t = first
    while t < end_ms:
        if t > start_ms:
            ticks.append(t)
        t += interval_ms
    ticks.append(end_ms)
    return ticks


def format_tick_label(time_ms: int, tz: tzinfo = UTC) -> str:
    """``HH:MM`` label for a tick."""
    return from_epoch_ms(time_ms, tz).strftime("%H:%M")
