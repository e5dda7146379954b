"""Tests for Projects module."""
from collections import defaultdict

import pytest

from app.worklog import auth, create_app
from app.worklog.db import session_scope
from app.worklog.models import Base
from app.worklog.modules.timesheets.models import TimesheetEntry

PASSWORD = "password123"


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


def test_project_create(client):
    r = client.post(
        "/api/projects",
        json={"name": "Apollo", "description": "Moonshot", "totalHours": "120", "isPaid": True, "amount": "2500.50", "invoice": "INV-1"},
    )
    assert r.status_code == 201
    assert r.json["name"] == "Apollo"
    assert r.json["totalHours"] == 120
    assert r.json["amount"] == 2500.5
    assert r.json["isPaid"] is True
    assert r.json["isActive"] is True
    assert r.json["timesheetCount"] == 0
    assert r.json["createdBy"] == {"firstName": "Olive", "lastName": "Owner"}


def test_project_create_validation(client):
    r = client.post("/api/projects", json={"name": "", "totalHours": "lots", "amount": "-5", "isPaid": "yes"})
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "Project name is required." in errors
    assert "totalHours must be a whole number." in errors
    assert "amount cannot be negative." in errors
    assert "isPaid must be a boolean." in errors


def test_project_list_includes_timesheet_count(client):
    project_id = client.post("/api/projects", json={"name": "Apollo"}).json["id"]
    client.post("/api/projects", json={"name": "Gemini"})
    for day in ("2024-01-01", "2024-01-02"):
        assert client.post("/api/timesheet", json={"projectId": project_id, "date": day, "hours": 2}).status_code == 201

    counts = {p["name"]: p["timesheetCount"] for p in client.get("/api/projects").json}
    assert counts == {"Apollo": 2, "Gemini": 0}


def test_project_partial_update(client):
    project_id = client.post("/api/projects", json={"name": "Apollo", "description": "Moonshot"}).json["id"]
    r = client.patch(f"/api/projects/{project_id}", json={"isActive": False})
    assert r.status_code == 200
    assert r.json["isActive"] is False
    assert r.json["name"] == "Apollo"
    assert r.json["description"] == "Moonshot"

    r = client.patch(f"/api/projects/{project_id}", json={"name": "  "})
    assert r.status_code == 400


def test_project_delete_cascades_entries(client):
    project_id = client.post("/api/projects", json={"name": "Apollo"}).json["id"]
    client.post("/api/timesheet", json={"projectId": project_id, "date": "2024-01-01", "hours": 1})

    assert client.delete(f"/api/projects/{project_id}").status_code == 200
    assert client.get("/api/projects").json == []
    with session_scope(client.application) as s:
        assert s.query(TimesheetEntry).count() == 0


def test_employee_can_list_but_not_manage(client):
    client.post("/api/projects", json={"name": "Apollo"})
    employee_role = next(r["id"] for r in client.get("/api/roles").json if r["name"] == "Employee")
    client.post(
        "/api/users",
        json={"email": "emp@example.com", "firstName": "Eve", "lastName": "Emp", "password": PASSWORD, "roleId": employee_role},
    )
    emp = client.application.test_client()
    _login(emp, "emp@example.com")

    assert [p["name"] for p in emp.get("/api/projects").json] == ["Apollo"]
    r = emp.post("/api/projects", json={"name": "Side gig"})
    assert r.status_code == 403
    assert r.json["missing_permission"] == "manage_projects"


def test_projects_are_company_scoped(client):
    project_id = client.post("/api/projects", json={"name": "Apollo"}).json["id"]

    other = client.application.test_client()
    other.post(
        "/auth/signup",
        json={"companyName": "Globex", "firstName": "Gus", "lastName": "G", "email": "gus@example.com", "password": PASSWORD},
    )
    _login(other, "gus@example.com")
    assert other.get("/api/projects").json == []
    assert other.patch(f"/api/projects/{project_id}", json={"name": "Mine now"}).status_code == 404
    assert other.delete(f"/api/projects/{project_id}").status_code == 404


@pytest.mark.parametrize("amount", ["NaN", "sNaN", "Infinity"])
def test_project_amount_must_be_finite(client, amount):
    r = client.post("/api/projects", json={"name": "Apollo", "amount": amount})
    assert r.status_code == 400
    assert r.json["errors"] == ["amount must be a number."]

    project_id = client.post("/api/projects", json={"name": "Gemini"}).json["id"]
    r = client.patch(f"/api/projects/{project_id}", json={"amount": amount})
    assert r.status_code == 400
    assert client.get("/api/projects").json[0]["amount"] is None
