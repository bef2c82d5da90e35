"""Wall-clock slot arithmetic shared by every booking flow.

Everything here is pure: no database access, no settings lookups beyond
default values. Times are same-day wall-clock times (``datetime.time``).
"""
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from typing import Protocol

DEFAULT_DURATION_MINUTES = 60
DEFAULT_CLOSING_TIME = time(19, 0)

_ANCHOR_DATE = date(2000, 1, 1)


class TimeInterval(Protocol):
    start_time: time
    end_time: time


def parse_time(value: str | time) -> time:
    """Accept "HH:MM", "HH:MM:SS" or a time; raise ValueError on anything else."""
    if isinstance(value, time):
        return value
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time label: {value!r}")


def format_slot(t: time) -> str:
    return t.strftime("%H:%M")


def minutes_since_midnight(t: time) -> int:
    return t.hour * 60 + t.minute


def generate_time_slots(
    open_hour: int,
    last_hour: int,
    step_minutes: int = 15,
    extra_slots: Iterable[str] = (),
) -> list[str]:
    """Labels from open_hour:00 through the last step inside last_hour, plus extra_slots.

    With hours 8..18 and a 15 minute step the grid ends at 18:45. Extra labels
    (e.g. a last booking slot before closing) are appended once, in order.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    if not 0 <= open_hour <= last_hour <= 23:
        raise ValueError("Hours must satisfy 0 <= open_hour <= last_hour <= 23")
    slots: list[str] = []
    current = open_hour * 60
    end_exclusive = (last_hour + 1) * 60
    while current < end_exclusive:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += step_minutes
    for label in extra_slots:
        label = format_slot(parse_time(label))
        if label not in slots:
            slots.append(label)
    return slots


def _resolve_duration(duration_minutes: int | None) -> int:
    if duration_minutes is None:
        return DEFAULT_DURATION_MINUTES
    if duration_minutes < 0:
        raise ValueError("duration_minutes must not be negative")
    return duration_minutes


def end_time_for(start: str | time, duration_minutes: int | None = None) -> time:
    """Start plus duration with wall-clock rollover (23:50 + 30 -> 00:20)."""
    start_t = parse_time(start)
    duration = _resolve_duration(duration_minutes)
    end_dt = datetime.combine(_ANCHOR_DATE, start_t) + timedelta(minutes=duration)
    return end_dt.time()


def calculate_end_time(start: str | time, duration_minutes: int | None = None) -> str:
    """End time as "HH:MM:SS"; duration defaults to 60 minutes when unset."""
    return end_time_for(start, duration_minutes).strftime("%H:%M:%S")


def exceeds_closing_time(
    start: str | time,
    duration_minutes: int | None = None,
    closing_time: str | time = DEFAULT_CLOSING_TIME,
) -> bool:
    """True when the session would end at or after closing time.

    Uses the unwrapped end (start minutes + duration), so a session that would
    run past midnight is always rejected.
    """
    end_minutes = minutes_since_midnight(parse_time(start)) + _resolve_duration(duration_minutes)
    return end_minutes >= minutes_since_midnight(parse_time(closing_time))


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open [start, end) overlap: touching boundaries are not a conflict."""
    return end_b > start_a and start_b < end_a


def find_overlapping(
    start: time,
    end: time,
    bookings: Iterable[TimeInterval],
) -> list[TimeInterval]:
    return [b for b in bookings if intervals_overlap(start, end, b.start_time, b.end_time)]


def slot_occupancy(
    slot_labels: Sequence[str],
    bookings: Sequence[TimeInterval],
) -> dict[str, list[TimeInterval]]:
    """For each grid label, the bookings whose interval covers it (start <= label < end)."""
    out: dict[str, list[TimeInterval]] = {}
    for label in slot_labels:
        t = parse_time(label)
        out[label] = [b for b in bookings if b.start_time <= t < b.end_time]
    return out
