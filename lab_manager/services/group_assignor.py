from collections import Counter
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from lab_manager.errors import (
    AppError,
    NoCapacity,
    NotFound,
    RaceDetected,
    ValidationError,
)
from lab_manager.models.computer import Computer
from lab_manager.models.enrollment import Enrollment
from lab_manager.models.group import Group
from lab_manager.models.lab_class import LabClass
from lab_manager.storage import Storage

import logging
logger = logging.getLogger("app.groups")

MIN_MEMBERS = 1
MAX_MEMBERS = 10

SEAT_RE = re.compile(r"^S(\d+)$")


@dataclass
class AssignmentSuccess:
    group: Group
    enrollment: Optional[Enrollment] = None
    group_created: bool = False


@dataclass
class AssignmentFailure:
    error: AppError


AssignmentResult = Union[AssignmentSuccess, AssignmentFailure]


def seat_label(n: int) -> str:
    """
    Seat after the n-th one: 0 -> "S01", 9 -> "S10".
    """
    return f"S{n + 1:02d}"


def next_seat_label(taken: Iterable[str]) -> str:
    highest = 0
    for label in taken:
        m = SEAT_RE.match(label or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return seat_label(highest)


def next_group_name(groups: List[Group]) -> str:
    taken = {g.name for g in groups}
    n = len(groups) + 1
    while f"Group {n}" in taken:
        n += 1
    return f"Group {n}"


def first_fit(groups: List[Group], counts: Counter) -> Optional[Group]:
    for g in groups:
        if counts.get(g.id, 0) < g.max_members:
            return g
    return None


def validate_max_members(max_members: int):
    if not MIN_MEMBERS <= max_members <= MAX_MEMBERS:
        raise ValidationError(f"max_members must be between {MIN_MEMBERS} and {MAX_MEMBERS}")


class GroupAssignor:
    """
    Places students into a class's groups and hands out seat labels.

    Every public method returns AssignmentSuccess or AssignmentFailure; the
    failure carries the typed error (NotFound, NoCapacity, ValidationError,
    RaceDetected, ConstraintViolation). Reads used for a decision are taken
    once per call, and each mutation runs inside one storage transaction.
    """

    def __init__(self, storage: Storage, default_max_members: int = 4):
        validate_max_members(default_max_members)
        self.storage = storage
        self.default_max_members = default_max_members

    def _run(self, op, *args, **kwargs) -> AssignmentResult:
        try:
            return op(*args, **kwargs)
        except AppError as e:
            logger.info("%s failed: %s %s", op.__name__, e.code, e.message)
            return AssignmentFailure(e)

    # ---- one student at a time ----

    def assign_student(self, class_id: int, student_id: int) -> AssignmentResult:
        return self._run(self._assign_student, class_id, student_id)

    def _assign_student(self, class_id: int, student_id: int) -> AssignmentSuccess:
        student = self.storage.get_user(student_id)
        if student is None or student.role != "student":
            raise NotFound("Student not found", {"student_id": student_id})
        cls = self.storage.get_class(class_id)
        if cls is None:
            raise NotFound("Class not found", {"class_id": class_id})

        existing = self.storage.get_enrollment(class_id, student_id)
        if existing is not None and existing.is_active:
            raise ValidationError("Student is already enrolled in this class",
                                  {"enrollment_id": existing.id})

        # one snapshot for the whole decision
        groups = self.storage.list_groups_for_class(class_id)
        enrollments = self.storage.list_active_enrollments_for_class(class_id)
        counts = Counter(e.group_id for e in enrollments if e.group_id is not None)

        group = first_fit(groups, counts)
        new_group_fields = None
        if group is None:
            computer = self._pick_computer(cls)
            new_group_fields = dict(
                name=next_group_name(groups),
                class_id=class_id,
                lab_id=cls.lab_id,
                computer_id=computer.id,
                max_members=self.default_max_members,
                leader_id=student_id,
            )

        if existing is not None and existing.seat_number:
            seat = existing.seat_number
        else:
            seat = next_seat_label(self.storage.list_seat_numbers(class_id))

        with self.storage.transaction():
            if new_group_fields is not None:
                group = self.storage.create_group(**new_group_fields)
            if existing is not None:
                # inactive row left over from an earlier drop
                existing.is_active = True
                existing.group_id = group.id
                existing.seat_number = seat
                enrollment = existing
                self.storage.db.flush()
            else:
                enrollment = self.storage.create_enrollment(
                    student_id=student_id,
                    class_id=class_id,
                    group_id=group.id,
                    seat_number=seat,
                )

        logger.info(
            "Enrolled student=%s class=%s group=%s(%s) seat=%s new_group=%s",
            student_id, class_id, group.id, group.name, seat, new_group_fields is not None,
        )
        return AssignmentSuccess(group=group, enrollment=enrollment,
                                 group_created=new_group_fields is not None)

    def _pick_computer(self, cls: LabClass) -> Computer:
        computers = self.storage.list_computers_for_lab(cls.lab_id)
        if not computers:
            raise NoCapacity("All groups are full and the class's lab has no computers",
                             {"lab_id": cls.lab_id})
        claimed = self.storage.claimed_computer_ids(c.id for c in computers)
        for c in computers:
            if c.id not in claimed:
                return c
        logger.warning("Lab %s has no free computer; sharing %s", cls.lab_id, computers[0].name)
        return computers[0]

    # ---- explicit roster ----

    def create_group_with_students(
        self,
        class_id: int,
        name: str,
        student_ids: List[int],
        leader_id: Optional[int] = None,
        computer_id: Optional[int] = None,
        max_members: Optional[int] = None,
    ) -> AssignmentResult:
        return self._run(self._create_group_with_students, class_id, name, student_ids,
                         leader_id, computer_id, max_members)

    def _create_group_with_students(self, class_id, name, student_ids, leader_id,
                                    computer_id, max_members) -> AssignmentSuccess:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        if max_members is None:
            max_members = self.default_max_members
        validate_max_members(max_members)

        ids = list(dict.fromkeys(student_ids or []))
        if len(ids) > max_members:
            raise ValidationError(f"Group can have at most {max_members} members",
                                  {"requested": len(ids)})
        if leader_id is not None and leader_id not in ids:
            raise ValidationError("Leader must be one of the group's members", {"leader_id": leader_id})

        cls = self.storage.get_class(class_id)
        if cls is None:
            raise NotFound("Class not found", {"class_id": class_id})

        enrollments = self.storage.list_active_enrollments_for_class(class_id)
        by_student = {e.student_id: e for e in enrollments}

        already_grouped = [sid for sid in ids if sid in by_student and by_student[sid].group_id is not None]
        if already_grouped:
            raise ValidationError("Some students already belong to a group in this class",
                                  {"student_ids": already_grouped})
        not_enrolled = [sid for sid in ids if sid not in by_student]
        if not_enrolled:
            raise ValidationError("Some students are not enrolled in this class",
                                  {"student_ids": not_enrolled})

        if computer_id is not None:
            self._check_computer(cls, computer_id)

        with self.storage.transaction():
            group = self.storage.create_group(
                name=name,
                class_id=class_id,
                lab_id=cls.lab_id,
                computer_id=computer_id,
                leader_id=leader_id,
                max_members=max_members,
            )
            if ids:
                updated = self.storage.bulk_set_group_on_enrollments(class_id, ids, group.id)
                if updated != len(ids):
                    logger.warning(
                        "Race on group %s in class %s: updated %d of %d enrollments, rolling back",
                        name, class_id, updated, len(ids),
                    )
                    raise RaceDetected(
                        "Enrollments changed while the group was being created; nothing was saved",
                        {"requested": len(ids), "updated": updated},
                    )

        logger.info("Created group %s(%s) in class %s with %d member(s)", group.id, name, class_id, len(ids))
        return AssignmentSuccess(group=group, group_created=True)

    def _check_computer(self, cls: LabClass, computer_id: int, group_id: Optional[int] = None):
        computer = self.storage.get_computer(computer_id)
        if computer is None:
            raise NotFound("Computer not found", {"computer_id": computer_id})
        if computer.lab_id != cls.lab_id:
            raise ValidationError("Computer does not belong to the class's lab", {"computer_id": computer_id})
        if not computer.is_active:
            raise ValidationError("Computer is not active", {"computer_id": computer_id})
        if self.storage.claimed_computer_ids([computer_id], exclude_group_id=group_id):
            raise ValidationError("Computer is already assigned to another group", {"computer_id": computer_id})

    # ---- membership changes ----

    def add_member(self, group_id: int, student_id: int) -> AssignmentResult:
        return self._run(self._add_member, group_id, student_id)

    def _add_member(self, group_id: int, student_id: int) -> AssignmentSuccess:
        group = self.storage.get_group(group_id)
        if group is None:
            raise NotFound("Group not found", {"group_id": group_id})
        enrollment = self.storage.get_enrollment(group.class_id, student_id)
        if enrollment is None or not enrollment.is_active:
            raise NotFound("Student is not enrolled in this class", {"student_id": student_id})
        if enrollment.group_id is not None:
            # assigned(A) -> assigned(B) must go through unassigned
            raise ValidationError("Student already belongs to a group; remove them first",
                                  {"group_id": enrollment.group_id})
        if self.storage.count_group_members(group_id) >= group.max_members:
            raise NoCapacity("Group is full", {"max_members": group.max_members})

        with self.storage.transaction():
            updated = self.storage.bulk_set_group_on_enrollments(group.class_id, [student_id], group_id)
            if updated != 1:
                raise RaceDetected("Enrollment changed while being assigned; nothing was saved",
                                   {"requested": 1, "updated": updated})

        logger.info("Added student=%s to group=%s", student_id, group_id)
        return AssignmentSuccess(group=group, enrollment=enrollment)

    def remove_member(self, group_id: int, student_id: int) -> AssignmentResult:
        return self._run(self._remove_member, group_id, student_id)

    def _remove_member(self, group_id: int, student_id: int) -> AssignmentSuccess:
        group = self.storage.get_group(group_id)
        if group is None:
            raise NotFound("Group not found", {"group_id": group_id})
        members = self.storage.list_group_members(group_id)
        enrollment = next((m for m in members if m.student_id == student_id), None)
        if enrollment is None:
            raise NotFound("Student is not a member of this group", {"student_id": student_id})

        if group.leader_id == student_id and len(members) > 1:
            raise ValidationError("Cannot remove the group leader; reassign leadership first")

        with self.storage.transaction():
            enrollment.group_id = None
            if group.leader_id == student_id:
                group.leader_id = None

        logger.info("Removed student=%s from group=%s", student_id, group_id)
        return AssignmentSuccess(group=group, enrollment=enrollment)

    def set_leader(self, group_id: int, student_id: int) -> AssignmentResult:
        return self._run(self._set_leader, group_id, student_id)

    def _set_leader(self, group_id: int, student_id: int) -> AssignmentSuccess:
        group = self.storage.get_group(group_id)
        if group is None:
            raise NotFound("Group not found", {"group_id": group_id})
        members = self.storage.list_group_members(group_id)
        if student_id not in {m.student_id for m in members}:
            raise ValidationError("Leader must be a member of the group", {"student_id": student_id})

        with self.storage.transaction():
            group.leader_id = student_id

        return AssignmentSuccess(group=group)

    def update_group(self, group_id: int, name: Optional[str] = None, max_members: Optional[int] = None,
                     computer_id: Optional[int] = None, clear_computer: bool = False) -> AssignmentResult:
        return self._run(self._update_group, group_id, name, max_members, computer_id, clear_computer)

    def _update_group(self, group_id, name, max_members, computer_id, clear_computer) -> AssignmentSuccess:
        group = self.storage.get_group(group_id)
        if group is None:
            raise NotFound("Group not found", {"group_id": group_id})
        if name is not None and not name.strip():
            raise ValidationError("Group name is required")
        if max_members is not None:
            validate_max_members(max_members)
            current = self.storage.count_group_members(group_id)
            if max_members < current:
                raise ValidationError("max_members cannot be lower than the current member count",
                                      {"members": current})
        if computer_id is not None and computer_id != group.computer_id:
            cls = self.storage.get_class(group.class_id)
            self._check_computer(cls, computer_id, group_id=group_id)

        with self.storage.transaction():
            if name is not None:
                group.name = name.strip()
            if max_members is not None:
                group.max_members = max_members
            if clear_computer:
                group.computer_id = None
            elif computer_id is not None:
                group.computer_id = computer_id

        return AssignmentSuccess(group=group)

    def delete_group(self, group_id: int) -> AssignmentResult:
        return self._run(self._delete_group, group_id)

    def _delete_group(self, group_id: int) -> AssignmentSuccess:
        group = self.storage.get_group(group_id)
        if group is None:
            raise NotFound("Group not found", {"group_id": group_id})

        with self.storage.transaction():
            released = self.storage.clear_group_on_enrollments(group_id)
            self.storage.clear_group_on_submissions(group_id)
            self.storage.db.delete(group)

        logger.info("Deleted group=%s, released %d enrollment(s)", group_id, released)
        return AssignmentSuccess(group=group)

    # ---- leaving a class ----

    def drop_enrollment(self, enrollment_id: int) -> AssignmentResult:
        return self._run(self._drop_enrollment, enrollment_id)

    def _drop_enrollment(self, enrollment_id: int) -> AssignmentSuccess:
        enrollment = self.storage.db.get(Enrollment, enrollment_id)
        if enrollment is None or not enrollment.is_active:
            raise NotFound("Enrollment not found", {"enrollment_id": enrollment_id})

        group = self.storage.get_group(enrollment.group_id) if enrollment.group_id else None
        with self.storage.transaction():
            if group is not None and group.leader_id == enrollment.student_id:
                # leadership is cleared, never left pointing at a non-member
                group.leader_id = None
            enrollment.group_id = None
            enrollment.is_active = False

        logger.info("Dropped enrollment=%s (student=%s class=%s)",
                    enrollment_id, enrollment.student_id, enrollment.class_id)
        return AssignmentSuccess(group=group, enrollment=enrollment)
