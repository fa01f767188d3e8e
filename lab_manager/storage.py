from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator, List, Optional, Set

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lab_manager.errors import ConstraintViolation
from lab_manager.models.computer import Computer
from lab_manager.models.coursework import Submission
from lab_manager.models.enrollment import Enrollment
from lab_manager.models.group import Group
from lab_manager.models.lab_class import LabClass
from lab_manager.models.lab_session import LabSession
from lab_manager.models.timetable import Timetable
from lab_manager.models.user import User
from lab_manager.utils.conflict import DayQualifier, ScheduleInterval
from lab_manager.utils.timeslots import day_window, parse_hhmm, session_bounds, session_day

import logging
logger = logging.getLogger("app.storage")


class Storage:
    """
    Queries the scheduling and grouping core needs, over one Session.

    Plain reads never commit. Multi-step writes go through ``transaction()``,
    which commits once at the end or rolls everything back.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.db
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Constraint violation, rolled back: %s", e.orig)
            raise ConstraintViolation("Conflict with existing data", {"detail": str(e.orig)}) from e
        except Exception:
            self.db.rollback()
            raise

    # ---- lookups ----

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_class(self, class_id: int) -> Optional[LabClass]:
        return self.db.get(LabClass, class_id)

    def get_group(self, group_id: int) -> Optional[Group]:
        return self.db.get(Group, group_id)

    def get_computer(self, computer_id: int) -> Optional[Computer]:
        return self.db.get(Computer, computer_id)

    # ---- intervals ----

    def list_intervals_for_day(
        self,
        day: DayQualifier,
        lab_id: Optional[int] = None,
        class_id: Optional[int] = None,
        active_only: bool = True,
    ) -> List[ScheduleInterval]:
        """
        int day -> weekly timetable slots on that weekday
        date day -> one-off sessions on that calendar day (lab = the class's lab)

        Rows are narrowed to those sharing the lab or the class.
        """
        if isinstance(day, date):
            return self._session_intervals(day, lab_id, class_id, active_only)
        return self._timetable_intervals(day, lab_id, class_id, active_only)

    def _timetable_intervals(self, day, lab_id, class_id, active_only) -> List[ScheduleInterval]:
        q = self.db.query(Timetable).filter(Timetable.day_of_week == day)
        if active_only:
            q = q.filter(Timetable.is_active.is_(True))
        scope = _scope_filter(Timetable.lab_id, Timetable.class_id, lab_id, class_id)
        if scope is not None:
            q = q.filter(scope)

        out = []
        for t in q.order_by(Timetable.start_time.asc(), Timetable.id.asc()).all():
            out.append(ScheduleInterval(
                id=t.id,
                class_id=t.class_id,
                lab_id=t.lab_id,
                day=t.day_of_week,
                start=parse_hhmm(t.start_time),
                end=parse_hhmm(t.end_time),
                kind="timetable",
            ))
        return out

    def _session_intervals(self, day, lab_id, class_id, active_only) -> List[ScheduleInterval]:
        lo, hi = day_window(day)
        q = (
            self.db.query(LabSession, LabClass.lab_id)
            .join(LabClass, LabClass.id == LabSession.class_id)
            .filter(LabSession.scheduled_at >= lo, LabSession.scheduled_at < hi)
        )
        if active_only:
            q = q.filter(LabSession.is_active.is_(True))
        scope = _scope_filter(LabClass.lab_id, LabSession.class_id, lab_id, class_id)
        if scope is not None:
            q = q.filter(scope)

        out = []
        for s, s_lab_id in q.order_by(LabSession.scheduled_at.asc(), LabSession.id.asc()).all():
            start, end = session_bounds(s.scheduled_at, s.duration)
            out.append(ScheduleInterval(
                id=s.id,
                class_id=s.class_id,
                lab_id=s_lab_id,
                day=session_day(s.scheduled_at),
                start=start,
                end=end,
                kind="session",
            ))
        return out

    # ---- groups / enrollments / computers ----

    def list_groups_for_class(self, class_id: int) -> List[Group]:
        return (
            self.db.query(Group)
            .filter(Group.class_id == class_id)
            .order_by(Group.created_at.asc(), Group.id.asc())
            .all()
        )

    def list_active_enrollments_for_class(self, class_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.class_id == class_id, Enrollment.is_active.is_(True))
            .order_by(Enrollment.enrolled_at.asc(), Enrollment.id.asc())
            .all()
        )

    def list_seat_numbers(self, class_id: int) -> List[str]:
        # every row, dropped ones included, so a label is never handed out twice
        rows = (
            self.db.query(Enrollment.seat_number)
            .filter(Enrollment.class_id == class_id, Enrollment.seat_number.isnot(None))
            .all()
        )
        return [r[0] for r in rows]

    def get_enrollment(self, class_id: int, student_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.class_id == class_id, Enrollment.student_id == student_id)
            .first()
        )

    def list_group_members(self, group_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.group_id == group_id, Enrollment.is_active.is_(True))
            .order_by(Enrollment.id.asc())
            .all()
        )

    def list_computers_for_lab(self, lab_id: int, active_only: bool = True) -> List[Computer]:
        q = self.db.query(Computer).filter(Computer.lab_id == lab_id)
        if active_only:
            q = q.filter(Computer.is_active.is_(True))
        return q.order_by(Computer.name.asc(), Computer.id.asc()).all()

    def claimed_computer_ids(self, computer_ids: Iterable[int], exclude_group_id: Optional[int] = None) -> Set[int]:
        ids = list(computer_ids)
        if not ids:
            return set()
        q = self.db.query(Group.computer_id).filter(Group.computer_id.in_(ids))
        if exclude_group_id is not None:
            q = q.filter(Group.id != exclude_group_id)
        return {r[0] for r in q.distinct().all()}

    def count_group_members(self, group_id: int) -> int:
        return (
            self.db.query(func.count(Enrollment.id))
            .filter(Enrollment.group_id == group_id, Enrollment.is_active.is_(True))
            .scalar()
        )

    # ---- writes (caller owns the transaction) ----

    def create_group(self, **fields) -> Group:
        g = Group(**fields)
        self.db.add(g)
        self.db.flush()
        return g

    def create_enrollment(self, **fields) -> Enrollment:
        e = Enrollment(**fields)
        self.db.add(e)
        self.db.flush()
        return e

    def bulk_set_group_on_enrollments(self, class_id: int, student_ids: List[int], group_id: int) -> int:
        """
        Only rows that are active and still unassigned are touched; the
        returned count lets the caller detect a concurrent claim.
        """
        result = self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.class_id == class_id,
                Enrollment.student_id.in_(student_ids),
                Enrollment.is_active.is_(True),
                Enrollment.group_id.is_(None),
            )
            .values(group_id=group_id)
            .execution_options(synchronize_session=False)
        )
        # loaded Enrollment objects are stale after a bulk UPDATE
        self.db.expire_all()
        return result.rowcount

    def clear_group_on_enrollments(self, group_id: int) -> int:
        result = self.db.execute(
            update(Enrollment)
            .where(Enrollment.group_id == group_id)
            .values(group_id=None)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()
        return result.rowcount

    def clear_group_on_submissions(self, group_id: int) -> int:
        result = self.db.execute(
            update(Submission)
            .where(Submission.group_id == group_id)
            .values(group_id=None)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()
        return result.rowcount


def _scope_filter(lab_col, class_col, lab_id, class_id):
    conds = []
    if lab_id is not None:
        conds.append(lab_col == lab_id)
    if class_id is not None:
        conds.append(class_col == class_id)
    if not conds:
        return None
    return or_(*conds)
