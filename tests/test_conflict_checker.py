"""Tests for ScheduleConflictChecker."""

from datetime import datetime

import pytest

from lab_manager.errors import ValidationError
from lab_manager.services.conflict_checker import ScheduleConflictChecker

MONDAY = 1
TUESDAY = 2


@pytest.fixture
def checker(storage):
    return ScheduleConflictChecker(storage)


@pytest.fixture
def lab(make):
    return make.lab()


@pytest.fixture
def other_lab(make):
    return make.lab()


class TestTimetableConflicts:
    def test_empty_schedule_has_no_conflicts(self, checker, lab, make):
        c1 = make.lab_class(lab)
        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", class_id=c1.id)
        assert not result.has_conflicts
        assert result.conflicts == []
        assert result.conflict_type is None

    def test_boundary_touch_is_not_a_conflict(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.timetable(c1, MONDAY, "09:00", "10:00")
        result = checker.check_timetable(lab.id, MONDAY, "10:00", "11:00", class_id=c1.id)
        assert not result.has_conflicts

    def test_same_lab_other_class_is_a_lab_conflict(self, checker, lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(lab)
        existing = make.timetable(c2, MONDAY, "09:30", "10:00")

        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:30", class_id=c1.id)

        assert result.has_conflicts
        assert result.conflict_type == "lab"
        assert [c.interval.id for c in result.conflicts] == [existing.id]
        assert result.conflicts[0].dimension == "lab"

    def test_same_class_other_lab_is_a_class_conflict(self, checker, lab, other_lab, make):
        c1 = make.lab_class(lab)
        existing = make.timetable(c1, MONDAY, "09:00", "10:00", lab=other_lab)

        result = checker.check_timetable(lab.id, MONDAY, "09:30", "10:30", class_id=c1.id)

        assert result.conflict_type == "class"
        assert result.conflicts[0].interval.id == existing.id
        assert "Class already has a session" in result.message

    def test_all_conflicts_are_reported_with_their_dimension(self, checker, lab, other_lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(lab)
        lab_hit = make.timetable(c2, MONDAY, "09:00", "09:45")
        class_hit = make.timetable(c1, MONDAY, "09:30", "10:15", lab=other_lab)

        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", class_id=c1.id)

        dims = {c.interval.id: c.dimension for c in result.conflicts}
        assert dims == {lab_hit.id: "lab", class_hit.id: "class"}
        assert result.conflict_type == "class"

    def test_different_lab_and_class_never_conflict(self, checker, lab, other_lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(other_lab)
        make.timetable(c2, MONDAY, "09:00", "10:00")

        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", class_id=c1.id)
        assert not result.has_conflicts

    def test_other_day_never_conflicts(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.timetable(c1, TUESDAY, "09:00", "10:00")
        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", class_id=c1.id)
        assert not result.has_conflicts

    def test_inactive_slots_are_ignored(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.timetable(c1, MONDAY, "09:00", "10:00", is_active=False)
        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", class_id=c1.id)
        assert not result.has_conflicts

    def test_excluded_slot_does_not_conflict_with_itself(self, checker, lab, make):
        c1 = make.lab_class(lab)
        t = make.timetable(c1, MONDAY, "09:00", "10:00")
        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00", exclude_id=t.id, class_id=c1.id)
        assert not result.has_conflicts

    def test_exclusion_only_skips_the_given_slot(self, checker, lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(lab)
        t = make.timetable(c1, MONDAY, "09:00", "10:00")
        other = make.timetable(c2, MONDAY, "10:00", "11:00")

        result = checker.check_timetable(lab.id, MONDAY, "09:30", "10:30", exclude_id=t.id, class_id=c1.id)
        assert [c.interval.id for c in result.conflicts] == [other.id]

    def test_without_class_only_lab_is_checked(self, checker, lab, other_lab, make):
        c1 = make.lab_class(lab)
        make.timetable(c1, MONDAY, "09:00", "10:00", lab=other_lab)
        result = checker.check_timetable(lab.id, MONDAY, "09:00", "10:00")
        assert not result.has_conflicts

    @pytest.mark.parametrize("day,start,end", [
        (0, "09:00", "10:00"),
        (8, "09:00", "10:00"),
        (MONDAY, "9am", "10:00"),
        (MONDAY, "10:00", "09:00"),
    ])
    def test_malformed_input_raises_before_reading(self, lab, day, start, end):
        class ExplodingStorage:
            def list_intervals_for_day(self, *a, **kw):
                raise AssertionError("storage must not be read")

        with pytest.raises(ValidationError):
            ScheduleConflictChecker(ExplodingStorage()).check_timetable(lab.id, day, start, end)

    def test_missing_lab_is_a_validation_error(self, checker):
        with pytest.raises(ValidationError):
            checker.check_timetable(None, MONDAY, "09:00", "10:00")

    def test_to_dict_shape(self, checker, lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(lab)
        make.timetable(c2, MONDAY, "09:00", "10:00")
        body = checker.check_timetable(lab.id, MONDAY, "09:30", "10:30", class_id=c1.id).to_dict()
        assert body["has_conflicts"] is True
        assert body["conflict_type"] == "lab"
        assert body["conflicts"][0]["start_time"] == "09:00"
        assert body["conflicts"][0]["end_time"] == "10:00"


class TestSessionConflicts:
    def test_overlapping_session_in_same_lab(self, checker, lab, make):
        c1 = make.lab_class(lab)
        c2 = make.lab_class(lab)
        existing = make.lab_session(c2, datetime(2026, 3, 2, 9, 0), 60)

        result = checker.check_session(lab.id, datetime(2026, 3, 2, 9, 30), 60, class_id=c1.id)

        assert result.conflict_type == "lab"
        assert result.conflicts[0].interval.id == existing.id
        assert result.conflicts[0].interval.kind == "session"

    def test_back_to_back_sessions_do_not_conflict(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.lab_session(c1, datetime(2026, 3, 2, 9, 0), 60)
        result = checker.check_session(lab.id, datetime(2026, 3, 2, 10, 0), 45, class_id=c1.id)
        assert not result.has_conflicts

    def test_other_calendar_day_does_not_conflict(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.lab_session(c1, datetime(2026, 3, 2, 9, 0), 60)
        result = checker.check_session(lab.id, datetime(2026, 3, 9, 9, 0), 60, class_id=c1.id)
        assert not result.has_conflicts

    def test_same_class_in_other_lab(self, checker, lab, other_lab, make):
        c1 = make.lab_class(lab)
        make.lab_session(c1, datetime(2026, 3, 2, 14, 0), 120)
        result = checker.check_session(other_lab.id, datetime(2026, 3, 2, 15, 0), 30, class_id=c1.id)
        assert result.conflict_type == "class"

    def test_exclude_own_session_on_update(self, checker, lab, make):
        c1 = make.lab_class(lab)
        s = make.lab_session(c1, datetime(2026, 3, 2, 9, 0), 60)
        result = checker.check_session(lab.id, datetime(2026, 3, 2, 9, 15), 60, exclude_id=s.id, class_id=c1.id)
        assert not result.has_conflicts

    def test_cancelled_sessions_are_ignored(self, checker, lab, make):
        c1 = make.lab_class(lab)
        make.lab_session(c1, datetime(2026, 3, 2, 9, 0), 60, is_active=False)
        result = checker.check_session(lab.id, datetime(2026, 3, 2, 9, 0), 60, class_id=c1.id)
        assert not result.has_conflicts
