from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from lab_manager.errors import ValidationError
from lab_manager.storage import Storage
from lab_manager.utils.conflict import ScheduleInterval
from lab_manager.utils.timeslots import (
    DAY_NAMES,
    format_minutes,
    parse_time_range,
    session_bounds,
    session_day,
    validate_day_of_week,
)

import logging
logger = logging.getLogger("app.conflicts")

Dimension = Literal["lab", "class"]


@dataclass(frozen=True)
class Conflict:
    interval: ScheduleInterval
    # "class" wins when an interval shares both the class and the lab
    dimension: Dimension

    def to_dict(self) -> Dict:
        iv = self.interval
        out = {
            "id": iv.id,
            "kind": iv.kind,
            "class_id": iv.class_id,
            "lab_id": iv.lab_id,
            "dimension": self.dimension,
        }
        if iv.kind == "timetable":
            out.update({
                "day_of_week": iv.day,
                "start_time": format_minutes(iv.start),
                "end_time": format_minutes(iv.end),
            })
        else:
            out.update({
                "date": iv.day.isoformat(),
                "start": datetime.fromtimestamp(iv.start / 1000, tz=timezone.utc).isoformat(),
                "end": datetime.fromtimestamp(iv.end / 1000, tz=timezone.utc).isoformat(),
            })
        return out


@dataclass
class ConflictResult:
    conflicts: List[Conflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def conflict_type(self) -> Optional[Dimension]:
        if not self.conflicts:
            return None
        if any(c.dimension == "class" for c in self.conflicts):
            return "class"
        return "lab"

    @property
    def message(self) -> str:
        if self.conflict_type == "class":
            return "Class already has a session at this time"
        if self.conflict_type == "lab":
            return "Lab is already occupied by another class at this time"
        return "No conflicts"

    def to_dict(self) -> Dict:
        return {
            "has_conflicts": self.has_conflicts,
            "conflict_type": self.conflict_type,
            "message": self.message,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


def find_conflicts(proposed: ScheduleInterval, candidates: List[ScheduleInterval],
                   exclude_id=None, match_class: bool = True) -> List[Conflict]:
    """
    Every candidate that shares the day, overlaps in time and shares the lab
    or (when match_class) the class. ``exclude_id`` skips the row being edited.
    """
    out = []
    for c in candidates:
        if exclude_id is not None and c.id == exclude_id:
            continue
        if not proposed.overlaps(c):
            continue
        same_class = match_class and c.class_id == proposed.class_id
        same_lab = c.lab_id == proposed.lab_id
        if same_class:
            out.append(Conflict(c, "class"))
        elif same_lab:
            out.append(Conflict(c, "lab"))
    return out


class ScheduleConflictChecker:
    """
    Decides whether a timetable slot or one-off session may be written.

    A conflict is a normal result, never an exception; only malformed input
    (bad "HH:MM", day outside 1-7, non-positive duration) raises
    ValidationError, and that happens before anything is read.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def check_timetable(
        self,
        lab_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> ConflictResult:
        _require_lab(lab_id)
        validate_day_of_week(day_of_week)
        start, end = parse_time_range(start_time, end_time)

        proposed = ScheduleInterval(
            id=exclude_id, class_id=class_id, lab_id=lab_id,
            day=day_of_week, start=start, end=end, kind="timetable",
        )
        candidates = self.storage.list_intervals_for_day(day_of_week, lab_id=lab_id, class_id=class_id)
        result = ConflictResult(find_conflicts(proposed, candidates, exclude_id, match_class=class_id is not None))

        if result.has_conflicts:
            logger.info(
                "Timetable conflict lab=%s class=%s %s %s-%s -> %d hit(s), type=%s",
                lab_id, class_id, DAY_NAMES[day_of_week], start_time, end_time,
                len(result.conflicts), result.conflict_type,
            )
        return result

    def check_session(
        self,
        lab_id: int,
        scheduled_at: datetime,
        duration: int,
        exclude_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> ConflictResult:
        _require_lab(lab_id)
        start, end = session_bounds(scheduled_at, duration)
        day = session_day(scheduled_at)

        proposed = ScheduleInterval(
            id=exclude_id, class_id=class_id, lab_id=lab_id,
            day=day, start=start, end=end, kind="session",
        )
        candidates = self.storage.list_intervals_for_day(day, lab_id=lab_id, class_id=class_id)
        result = ConflictResult(find_conflicts(proposed, candidates, exclude_id, match_class=class_id is not None))

        if result.has_conflicts:
            logger.info(
                "Session conflict lab=%s class=%s at %s (%d min) -> %d hit(s), type=%s",
                lab_id, class_id, scheduled_at.isoformat(), duration,
                len(result.conflicts), result.conflict_type,
            )
        return result


def _require_lab(lab_id):
    if lab_id is None:
        raise ValidationError("lab_id is required")
