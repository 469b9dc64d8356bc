"""Clock arithmetic for same-day schedules.

Schedules never cross midnight: a slot that would end after 23:59 does not
fit, and callers keep the schedule they had instead.
"""

from datetime import time

MINUTES_PER_DAY = 24 * 60
LATEST_MINUTE = MINUTES_PER_DAY - 1  # 23:59


def to_minutes(t: time) -> int:
    """Minutes since midnight."""
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    """Time of day for minutes since midnight, clamped to 00:00-23:59."""
    minutes = max(0, min(minutes, LATEST_MINUTE))
    return time(hour=minutes // 60, minute=minutes % 60)


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" string.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    hours, _, minutes = value.partition(":")
    return time(hour=int(hours), minute=int(minutes or 0))


def fit_slot(start_minutes: int, duration: int) -> tuple[time, time] | None:
    """Start/end for an activity beginning at `start_minutes`.

    Returns None when the activity would not finish by 23:59.
    """
    end_minutes = start_minutes + duration
    if start_minutes < 0 or end_minutes > LATEST_MINUTE:
        return None
    return from_minutes(start_minutes), from_minutes(end_minutes)
