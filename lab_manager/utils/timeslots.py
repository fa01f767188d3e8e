from datetime import date, datetime, time, timedelta, timezone
import re
from typing import Tuple

from lab_manager.errors import ValidationError

HHMM_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

# 1=Monday ... 7=Sunday
DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def parse_hhmm(value: str) -> int:
    """
    "09:30" -> 570 (minutes since midnight)
    """
    m = HHMM_RE.match((value or "").strip())
    if not m:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}")
    return int(m.group(1)) * 60 + int(m.group(2))


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_day_of_week(day: int) -> int:
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 7:
        raise ValidationError(f"day_of_week must be an integer 1-7, got {day!r}")
    return day


def parse_time_range(start_time: str, end_time: str) -> Tuple[int, int]:
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if end <= start:
        raise ValidationError("End time must be after start time",
                              {"start_time": start_time, "end_time": end_time})
    return start, end


def to_epoch_millis(ts: datetime) -> int:
    # naive timestamps are stored as UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


def session_bounds(scheduled_at: datetime, duration: int) -> Tuple[int, int]:
    """
    (scheduled_at, duration minutes) -> (start, end) epoch millis
    """
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ValidationError(f"duration must be a positive number of minutes, got {duration!r}")
    start = to_epoch_millis(scheduled_at)
    return start, start + duration * 60 * 1000


def session_day(scheduled_at: datetime) -> date:
    if scheduled_at.tzinfo is not None:
        scheduled_at = scheduled_at.astimezone(timezone.utc)
    return scheduled_at.date()


def day_window(day: date) -> Tuple[datetime, datetime]:
    """Naive UTC [start, end) covering one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def strip_tz(ts: datetime) -> datetime:
    # columns are naive UTC
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)
