"""Time-of-day helpers.

Times of day are integer minutes since midnight in the facility's local
timezone. Dates are naive calendar dates in that same timezone.
"""

import re
from datetime import date

MINUTES_PER_DAY = 24 * 60

_TIME_OF_DAY_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def day_of_week(value: date) -> int:
    """Return 0 for Sunday through 6 for Saturday."""
    return value.isoweekday() % 7


def parse_time_of_day(value: str) -> int:
    match = _TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f'Invalid time of day: {value!r}. Expected HH:MM.')
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time_of_day(minutes: int) -> str:
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f'Minutes out of range: {minutes}.')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def coerce_time_of_day(value: int | str) -> int:
    """Accept minutes since midnight or an ``HH:MM`` string."""
    if isinstance(value, bool):
        raise ValueError('Time of day must be minutes since midnight or HH:MM.')
    if isinstance(value, int):
        if not 0 <= value < MINUTES_PER_DAY:
            raise ValueError('Time of day must be between 0 and 1439 minutes.')
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return coerce_time_of_day(int(stripped))
        return parse_time_of_day(stripped)
    raise ValueError('Time of day must be minutes since midnight or HH:MM.')
