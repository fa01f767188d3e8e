"""Test fixtures for the lab management backend."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), ".logs"))

from datetime import datetime  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from lab_manager.database import Database  # noqa: E402
from lab_manager.main import create_app  # noqa: E402
from lab_manager.models.computer import Computer  # noqa: E402
from lab_manager.models.enrollment import Enrollment  # noqa: E402
from lab_manager.models.group import Group  # noqa: E402
from lab_manager.models.lab import Lab  # noqa: E402
from lab_manager.models.lab_class import LabClass  # noqa: E402
from lab_manager.models.lab_session import LabSession  # noqa: E402
from lab_manager.models.timetable import Timetable  # noqa: E402
from lab_manager.models.user import User  # noqa: E402
from lab_manager.storage import Storage  # noqa: E402
from lab_manager.utils.auth import create_access_token  # noqa: E402

_seq = count(1)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.session() as s:
        yield s


@pytest.fixture
def storage(session):
    return Storage(session)


class Factory:
    """Inserts rows directly; password hashes are placeholders."""

    def __init__(self, session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def user(self, role="student", **kw):
        n = next(_seq)
        return self._save(User(
            email=kw.pop("email", f"user{n}@school.test"),
            password_hash="x",
            role=role,
            first_name=kw.pop("first_name", f"First{n}"),
            last_name=kw.pop("last_name", f"Last{n}"),
            **kw,
        ))

    def lab(self, **kw):
        n = next(_seq)
        return self._save(Lab(
            name=kw.pop("name", f"Lab {n}"),
            location=kw.pop("location", "Building A"),
            capacity=kw.pop("capacity", 20),
            **kw,
        ))

    def computer(self, lab, **kw):
        n = next(_seq)
        return self._save(Computer(name=kw.pop("name", f"PC-{n:02d}"), lab_id=lab.id, **kw))

    def lab_class(self, lab, instructor=None, **kw):
        n = next(_seq)
        instructor = instructor or self.user(role="instructor")
        section = kw.pop("section", "ABCDEF"[n % 6])
        return self._save(LabClass(
            name=kw.pop("name", f"Computer Science {n}"),
            code=kw.pop("code", f"CS{n}"),
            grade_level=kw.pop("grade_level", 11),
            trade_type=kw.pop("trade_type", "NM"),
            section=section,
            display_name=f"11 NM {section}",
            lab_id=lab.id,
            instructor_id=instructor.id,
            semester=kw.pop("semester", f"Fall-{n}"),
            year=kw.pop("year", 2026),
            **kw,
        ))

    def group(self, lab_class, **kw):
        n = next(_seq)
        return self._save(Group(
            name=kw.pop("name", f"Team {n}"),
            class_id=lab_class.id,
            lab_id=lab_class.lab_id,
            max_members=kw.pop("max_members", 4),
            **kw,
        ))

    def enrollment(self, lab_class, student, **kw):
        return self._save(Enrollment(class_id=lab_class.id, student_id=student.id, **kw))

    def timetable(self, lab_class, day, start, end, lab=None, **kw):
        return self._save(Timetable(
            class_id=lab_class.id,
            lab_id=lab.id if lab is not None else lab_class.lab_id,
            day_of_week=day,
            start_time=start,
            end_time=end,
            **kw,
        ))

    def lab_session(self, lab_class, scheduled_at: datetime, duration: int, **kw):
        return self._save(LabSession(
            title=kw.pop("title", "Lab session"),
            class_id=lab_class.id,
            scheduled_at=scheduled_at,
            duration=duration,
            **kw,
        ))


@pytest.fixture
def make(session):
    return Factory(session)


@pytest.fixture
def client(database):
    app = create_app(database)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_session(client, database):
    """A session on the same engine the app uses, for seeding API tests."""
    with database.session() as s:
        yield s


@pytest.fixture
def api_make(api_session):
    return Factory(api_session)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def instructor(api_make):
    return api_make.user(role="instructor")


@pytest.fixture
def instructor_headers(instructor):
    return auth_headers(instructor)
