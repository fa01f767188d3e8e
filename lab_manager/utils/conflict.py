# lab_manager/utils/conflict.py
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

DayQualifier = Union[int, date]


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """
    Half-open [start, end) overlap on any comparable ordinal
    (minutes since midnight for timetables, epoch millis for sessions).

    Touching ranges do not overlap: [09:00,10:00) and [10:00,11:00) -> False
    """
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class ScheduleInterval:
    """A timetable slot or a one-off session reduced to what conflict checks need."""

    id: Optional[int]
    class_id: Optional[int]
    lab_id: int
    day: DayQualifier
    start: int
    end: int
    kind: str = "timetable"

    def overlaps(self, other: "ScheduleInterval") -> bool:
        return self.day == other.day and overlaps(self.start, self.end, other.start, other.end)
