"""Tests for the self-service training log."""
from collections import defaultdict

import pytest

from app.worklog import auth, create_app
from app.worklog.models import Base

PASSWORD = "password123"

COURSE = {
    "courseName": "Intro to SQL",
    "courseLink": "https://example.com/sql",
    "courseCategory": "Data",
    "organizationName": "Example University",
    "certificateTitle": "SQL Basics",
    "level": "beginner",
    "startDate": "2024-02-01",
    "expectedEndDate": "2024-03-01",
    "status": "in_progress",
    "outcome": "certificate",
}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setattr(auth, "_login_attempts", defaultdict(list))

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    c = app.test_client()
    r = c.post(
        "/auth/signup",
        json={"companyName": "Acme", "firstName": "Olive", "lastName": "Owner", "email": "owner@example.com", "password": PASSWORD},
    )
    assert r.status_code == 201
    _login(c, "owner@example.com")
    return c


def _login(client, email):
    r = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200
    client.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["csrf_token"]


def test_training_crud(client):
    r = client.post("/api/training", json=COURSE)
    assert r.status_code == 201
    training_id = r.json["id"]
    assert r.json["startDate"] == "2024-02-01"
    assert r.json["endDate"] is None

    r = client.put(f"/api/training/{training_id}", json={**COURSE, "status": "completed", "endDate": "2024-02-20"})
    assert r.status_code == 200
    assert r.json["status"] == "completed"
    assert r.json["endDate"] == "2024-02-20"

    assert client.get(f"/api/training/{training_id}").json["status"] == "completed"
    assert client.delete(f"/api/training/{training_id}").status_code == 200
    assert client.get(f"/api/training/{training_id}").status_code == 404


def test_training_validation(client):
    r = client.post("/api/training", json={"courseName": "Half filled"})
    assert r.status_code == 400
    assert r.json["error"].startswith("Missing required fields: courseCategory")

    r = client.post("/api/training", json={**COURSE, "level": "expert", "outcome": "badge"})
    assert r.status_code == 400
    assert r.json["errors"] == ["Invalid level.", "Invalid outcome."]


def test_training_search_and_filters(client):
    client.post("/api/training", json=COURSE)
    client.post("/api/training", json={**COURSE, "courseName": "Kubernetes", "courseCategory": "Ops", "level": "advanced"})

    assert len(client.get("/api/training").json) == 2
    assert [t["courseName"] for t in client.get("/api/training?search=kube").json] == ["Kubernetes"]
    assert [t["courseName"] for t in client.get("/api/training?level=beginner").json] == ["Intro to SQL"]
    assert len(client.get("/api/training?status=all&level=all").json) == 2


def test_training_is_private(client):
    training_id = client.post("/api/training", json=COURSE).json["id"]
    employee_role = next(r["id"] for r in client.get("/api/roles").json if r["name"] == "Employee")
    client.post(
        "/api/users",
        json={"email": "emp@example.com", "firstName": "Eve", "lastName": "Emp", "password": PASSWORD, "roleId": employee_role},
    )
    emp = client.application.test_client()
    _login(emp, "emp@example.com")

    assert emp.get("/api/training").json == []
    assert emp.get(f"/api/training/{training_id}").status_code == 404
    assert emp.delete(f"/api/training/{training_id}").status_code == 404
