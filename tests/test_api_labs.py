"""Tests for lab, computer and class endpoints."""

import pytest


@pytest.fixture
def lab_id(client, instructor_headers):
    r = client.post("/labs", json={"name": "Lab 1", "location": "Block C", "capacity": 24}, headers=instructor_headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def class_body(lab_id, instructor_id, **kw):
    body = {
        "name": "Computer Science",
        "code": "CS11",
        "grade_level": 11,
        "trade_type": "NM",
        "section": "A",
        "lab_id": lab_id,
        "instructor_id": instructor_id,
        "semester": "Fall",
        "year": 2026,
    }
    body.update(kw)
    return body


class TestLabs:
    def test_crud(self, client, instructor_headers, lab_id):
        r = client.get(f"/labs/{lab_id}", headers=instructor_headers)
        assert r.json()["name"] == "Lab 1"

        r = client.patch(f"/labs/{lab_id}", json={"capacity": 30}, headers=instructor_headers)
        assert r.status_code == 200
        assert r.json()["capacity"] == 30

        assert client.delete(f"/labs/{lab_id}", headers=instructor_headers).status_code == 204
        assert client.get(f"/labs/{lab_id}", headers=instructor_headers).status_code == 404

    def test_computers(self, client, instructor_headers, lab_id):
        for name in ("PC-02", "PC-01"):
            r = client.post("/computers", json={"name": name, "lab_id": lab_id}, headers=instructor_headers)
            assert r.status_code == 201

        r = client.get(f"/labs/{lab_id}/computers", headers=instructor_headers)
        assert [c["name"] for c in r.json()] == ["PC-01", "PC-02"]

        dup = client.post("/computers", json={"name": "PC-01", "lab_id": lab_id}, headers=instructor_headers)
        assert dup.status_code == 409

    def test_computer_for_missing_lab(self, client, instructor_headers):
        r = client.post("/computers", json={"name": "PC-01", "lab_id": 9999}, headers=instructor_headers)
        assert r.status_code == 400


class TestClasses:
    def test_create_sets_display_name(self, client, instructor, instructor_headers, lab_id):
        r = client.post("/classes", json=class_body(lab_id, instructor.id), headers=instructor_headers)
        assert r.status_code == 201, r.text
        assert r.json()["display_name"] == "11 NM A"

    def test_duplicate_class(self, client, instructor, instructor_headers, lab_id):
        body = class_body(lab_id, instructor.id)
        assert client.post("/classes", json=body, headers=instructor_headers).status_code == 201
        assert client.post("/classes", json=body, headers=instructor_headers).status_code == 409

    def test_bad_section(self, client, instructor, instructor_headers, lab_id):
        r = client.post("/classes", json=class_body(lab_id, instructor.id, trade_type="C", section="E"),
                        headers=instructor_headers)
        assert r.status_code == 422

    def test_unknown_lab(self, client, instructor, instructor_headers):
        r = client.post("/classes", json=class_body(9999, instructor.id), headers=instructor_headers)
        assert r.status_code == 400

    def test_list_filters_by_lab(self, client, instructor, instructor_headers, lab_id):
        client.post("/classes", json=class_body(lab_id, instructor.id), headers=instructor_headers)
        r = client.get("/classes", params={"lab_id": lab_id}, headers=instructor_headers)
        assert len(r.json()) == 1
        r = client.get("/classes", params={"lab_id": 9999}, headers=instructor_headers)
        assert r.json() == []
