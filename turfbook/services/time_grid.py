"""Wall-clock time arithmetic for turf hours and booking slots.

Times of day carry no date or timezone. They travel as ``HH:MM`` text at the
edges and as integer minutes since midnight everywhere else.
"""

import re

MINUTES_PER_DAY = 24 * 60
SLOT_MINUTES = 60

_TIME_OF_DAY_RE = re.compile(r"([01]?[0-9]|2[0-3]):([0-5][0-9])")


class InvalidTimeFormat(ValueError):
    pass


def parse_time_of_day(text: str) -> int:
    """Parse ``HH:MM`` (hour may be a single digit) into minutes since midnight.

    >>> parse_time_of_day("09:30")
    570
    """
    if not isinstance(text, str):
        raise InvalidTimeFormat(f"Expected HH:MM text, got {type(text).__name__}")
    match = _TIME_OF_DAY_RE.fullmatch(text)
    if not match:
        raise InvalidTimeFormat(f"Invalid time {text!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time_of_day(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute offset {minutes} is outside a single day")
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def generate_hourly_slots(
    open_minutes: int, close_minutes: int, step: int = SLOT_MINUTES
) -> list[tuple[int, int]]:
    """Contiguous (start, end) cells from opening time up to closing time.

    A trailing cell that would run past closing is dropped: closing is a hard
    boundary, not the start of another slot.
    """
    if step <= 0:
        raise ValueError("Slot step must be positive")
    slots: list[tuple[int, int]] = []
    current = open_minutes
    while current + step <= close_minutes:
        slots.append((current, current + step))
        current += step
    return slots


def minute_of_day(hour: int, minute: int) -> int:
    return hour * 60 + minute
