"""Tests for group, enrollment and roster endpoints."""

import pytest

from conftest import auth_headers


@pytest.fixture
def lab(api_make):
    return api_make.lab()


@pytest.fixture
def cls(api_make, lab, instructor):
    return api_make.lab_class(lab, instructor=instructor)


class TestEnroll:
    def test_enroll_creates_group_and_seat(self, client, instructor_headers, api_make, lab, cls):
        pc = api_make.computer(lab)
        student = api_make.user()

        r = client.post(f"/classes/{cls.id}/enroll", json={"student_id": student.id}, headers=instructor_headers)

        assert r.status_code == 201, r.text
        body = r.json()
        assert body["group_created"] is True
        assert body["group"]["name"] == "Group 1"
        assert body["group"]["computer_id"] == pc.id
        assert body["group"]["leader_id"] == student.id
        assert body["enrollment"]["seat_number"] == "S01"
        assert body["enrollment"]["group_id"] == body["group"]["id"]

    def test_second_student_shares_group(self, client, instructor_headers, api_make, lab, cls):
        api_make.computer(lab)
        x, y = api_make.user(), api_make.user()
        first = client.post(f"/classes/{cls.id}/enroll", json={"student_id": x.id}, headers=instructor_headers)
        second = client.post(f"/classes/{cls.id}/enroll", json={"student_id": y.id}, headers=instructor_headers)

        assert second.json()["group"]["id"] == first.json()["group"]["id"]
        assert second.json()["enrollment"]["seat_number"] == "S02"
        assert second.json()["group_created"] is False

    def test_unknown_student(self, client, instructor_headers, cls):
        r = client.post(f"/classes/{cls.id}/enroll", json={"student_id": 99999}, headers=instructor_headers)
        assert r.status_code == 404
        assert r.json()["error"] == "NOT_FOUND"

    def test_no_computers(self, client, instructor_headers, api_make, cls):
        r = client.post(f"/classes/{cls.id}/enroll", json={"student_id": api_make.user().id},
                        headers=instructor_headers)
        assert r.status_code == 400
        assert r.json()["error"] == "NO_CAPACITY"

    def test_already_enrolled(self, client, instructor_headers, api_make, lab, cls):
        api_make.computer(lab)
        s = api_make.user()
        client.post(f"/classes/{cls.id}/enroll", json={"student_id": s.id}, headers=instructor_headers)
        r = client.post(f"/classes/{cls.id}/enroll", json={"student_id": s.id}, headers=instructor_headers)
        assert r.status_code == 400
        assert r.json()["error"] == "VALIDATION_ERROR"

    def test_drop_and_student_view(self, client, instructor_headers, api_make, lab, cls):
        api_make.computer(lab)
        s = api_make.user()
        e = client.post(f"/classes/{cls.id}/enroll", json={"student_id": s.id}, headers=instructor_headers).json()

        r = client.get(f"/students/{s.id}/enrollments", headers=auth_headers(s))
        assert [x["id"] for x in r.json()] == [e["enrollment"]["id"]]

        r = client.delete(f"/enrollments/{e['enrollment']['id']}", headers=instructor_headers)
        assert r.status_code == 200
        assert r.json()["is_active"] is False
        assert client.get(f"/classes/{cls.id}/enrollments", headers=instructor_headers).json() == []


class TestGroups:
    @pytest.fixture
    def students(self, api_make, cls):
        out = [api_make.user() for _ in range(3)]
        for s in out:
            api_make.enrollment(cls, s)
        return out

    def test_create_and_list(self, client, instructor_headers, cls, students):
        ids = [s.id for s in students[:2]]
        r = client.post(f"/classes/{cls.id}/groups", json={"name": "Alpha", "student_ids": ids, "leader_id": ids[0]},
                        headers=instructor_headers)
        assert r.status_code == 201, r.text

        r = client.get(f"/classes/{cls.id}/groups", headers=instructor_headers)
        groups = r.json()
        assert len(groups) == 1
        assert groups[0]["member_count"] == 2
        assert groups[0]["member_ids"] == sorted(ids)

    def test_create_with_unenrolled_student(self, client, instructor_headers, api_make, cls):
        r = client.post(f"/classes/{cls.id}/groups", json={"name": "Beta", "student_ids": [api_make.user().id]},
                        headers=instructor_headers)
        assert r.status_code == 400
        assert "student_ids" in r.json()

    def test_membership_flow(self, client, instructor_headers, cls, students):
        a, b, c = students
        g = client.post(f"/classes/{cls.id}/groups",
                        json={"name": "Gamma", "student_ids": [a.id, b.id], "leader_id": a.id, "max_members": 2},
                        headers=instructor_headers).json()

        r = client.post(f"/groups/{g['id']}/members", json={"student_id": c.id}, headers=instructor_headers)
        assert r.status_code == 400
        assert r.json()["error"] == "NO_CAPACITY"

        r = client.delete(f"/groups/{g['id']}/members/{a.id}", headers=instructor_headers)
        assert r.status_code == 400

        r = client.put(f"/groups/{g['id']}/leader", json={"student_id": b.id}, headers=instructor_headers)
        assert r.json()["leader_id"] == b.id

        r = client.delete(f"/groups/{g['id']}/members/{a.id}", headers=instructor_headers)
        assert r.status_code == 200
        assert r.json()["group_id"] is None

        r = client.post(f"/groups/{g['id']}/members", json={"student_id": c.id}, headers=instructor_headers)
        assert r.status_code == 200
        assert r.json()["group_id"] == g["id"]

    def test_update_and_delete(self, client, instructor_headers, api_make, lab, cls, students):
        pc = api_make.computer(lab)
        g = client.post(f"/classes/{cls.id}/groups", json={"name": "Delta", "student_ids": [students[0].id]},
                        headers=instructor_headers).json()

        r = client.patch(f"/groups/{g['id']}", json={"computer_id": pc.id, "name": "Delta 2"},
                         headers=instructor_headers)
        assert r.status_code == 200
        assert (r.json()["computer_id"], r.json()["name"]) == (pc.id, "Delta 2")

        r = client.patch(f"/groups/{g['id']}", json={"computer_id": None}, headers=instructor_headers)
        assert r.json()["computer_id"] is None

        assert client.delete(f"/groups/{g['id']}", headers=instructor_headers).status_code == 204
        assert client.get(f"/classes/{cls.id}/groups", headers=instructor_headers).json() == []
        enrollments = client.get(f"/classes/{cls.id}/enrollments", headers=instructor_headers).json()
        assert all(e["group_id"] is None for e in enrollments)

    def test_students_cannot_create_groups(self, client, cls, students):
        r = client.post(f"/classes/{cls.id}/groups", json={"name": "X", "student_ids": []},
                        headers=auth_headers(students[0]))
        assert r.status_code == 403


class TestRosterImport:
    def test_csv_import(self, client, instructor_headers, api_make, lab, cls):
        api_make.computer(lab)
        a = api_make.user(email="a@school.test")
        b = api_make.user(email="b@school.test")
        csv = f"Email,Name\n{a.email.upper()},A\nmissing@school.test,M\n\n{b.email},B\n"

        r = client.post(
            f"/classes/{cls.id}/roster/import",
            files={"file": ("roster.csv", csv.encode(), "text/csv")},
            headers=instructor_headers,
        )

        assert r.status_code == 200, r.text
        body = r.json()
        assert (body["enrolled"], body["failed"]) == (2, 1)
        ok_rows = [row for row in body["rows"] if row["ok"]]
        assert [row["seat_number"] for row in ok_rows] == ["S01", "S02"]
        bad = [row for row in body["rows"] if not row["ok"]]
        assert bad[0]["email"] == "missing@school.test"
        assert bad[0]["row"] == 3

    def test_missing_email_column(self, client, instructor_headers, cls):
        r = client.post(
            f"/classes/{cls.id}/roster/import",
            files={"file": ("roster.csv", b"name\nA\n", "text/csv")},
            headers=instructor_headers,
        )
        assert r.status_code == 400
