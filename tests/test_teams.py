"""Tests for teams: global team admins vs. team leads scoped to their own teams."""
from collections import defaultdict

import pytest

from app.worklog import auth, create_app
from app.worklog.models import Base

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


def _create_user(client, email, role_id):
    r = client.post(
        "/api/users",
        json={"email": email, "firstName": "Team", "lastName": "Member", "password": PASSWORD, "roleId": role_id},
    )
    assert r.status_code == 201
    return r.json["id"]


@pytest.fixture()
def lead_setup(client):
    """Owner builds two teams; a team lead belongs to the first one only."""
    lead_role = client.post("/api/roles", json={"name": "Team Lead", "permissions": ["manage_assigned_teams"]}).json["id"]
    employee_role = next(r["id"] for r in client.get("/api/roles").json if r["name"] == "Employee")
    lead_id = _create_user(client, "lead@example.com", lead_role)
    worker_id = _create_user(client, "worker@example.com", employee_role)

    mine = client.post("/api/teams", json={"name": "Mine"}).json["id"]
    theirs = client.post("/api/teams", json={"name": "Theirs"}).json["id"]
    assert client.put(f"/api/teams/{mine}/members", json={"userIds": [lead_id, worker_id]}).status_code == 200
    assert client.put(f"/api/teams/{theirs}/members", json={"userIds": [worker_id]}).status_code == 200

    lead = client.application.test_client()
    _login(lead, "lead@example.com")
    return {"lead": lead, "lead_id": lead_id, "worker_id": worker_id, "mine": mine, "theirs": theirs}


def test_create_and_list_teams(client):
    r = client.post("/api/teams", json={"name": "  Platform ", "description": "Infra"})
    assert r.status_code == 201
    assert r.json["name"] == "Platform"
    assert r.json["members"] == []

    r = client.get("/api/teams")
    assert [t["name"] for t in r.json] == ["Platform"]


def test_create_team_requires_name(client):
    r = client.post("/api/teams", json={"name": " "})
    assert r.status_code == 400
    assert r.json["error"] == "Team name is required."


def test_set_members_and_projects(client):
    team_id = client.post("/api/teams", json={"name": "Red"}).json["id"]
    owner_id = client.get("/auth/session").json["user"]["id"]
    project_id = client.post("/api/projects", json={"name": "Apollo"}).json["id"]

    r = client.put(f"/api/teams/{team_id}/members", json={"userIds": [owner_id, owner_id]})
    assert r.status_code == 200
    assert [m["user"]["id"] for m in r.json["team"]["members"]] == [owner_id]

    r = client.put(f"/api/teams/{team_id}/projects", json={"projectIds": [project_id]})
    assert r.status_code == 200
    assert r.json["team"]["teamProjects"] == [{"project": {"id": project_id, "name": "Apollo"}}]

    r = client.put(f"/api/teams/{team_id}/members", json={"userIds": []})
    assert r.json["team"]["members"] == []


def test_set_members_rejects_unknown_ids(client):
    team_id = client.post("/api/teams", json={"name": "Red"}).json["id"]
    r = client.put(f"/api/teams/{team_id}/members", json={"userIds": [424242]})
    assert r.status_code == 400
    assert r.json["error"] == "Unknown users: 424242"

    r = client.put(f"/api/teams/{team_id}/projects", json={"projectIds": "1,2"})
    assert r.status_code == 400
    assert r.json["error"] == "projectIds must be an array."


def test_delete_team(client):
    team_id = client.post("/api/teams", json={"name": "Red"}).json["id"]
    assert client.delete(f"/api/teams/{team_id}").status_code == 200
    assert client.get(f"/api/teams/{team_id}").status_code == 404


def test_lead_sees_only_own_teams(lead_setup):
    lead = lead_setup["lead"]
    r = lead.get("/api/teams")
    assert r.status_code == 200
    assert [t["name"] for t in r.json] == ["Mine"]


def test_lead_manages_own_team(lead_setup):
    lead = lead_setup["lead"]
    mine = lead_setup["mine"]
    assert lead.get(f"/api/teams/{mine}").status_code == 200

    r = lead.patch(f"/api/teams/{mine}", json={"name": "Mine (renamed)"})
    assert r.status_code == 200
    assert r.json["name"] == "Mine (renamed)"

    r = lead.put(f"/api/teams/{mine}/members", json={"userIds": [lead_setup["lead_id"]]})
    assert r.status_code == 200


def test_lead_cannot_touch_other_teams(lead_setup):
    lead = lead_setup["lead"]
    theirs = lead_setup["theirs"]

    r = lead.get(f"/api/teams/{theirs}")
    assert r.status_code == 403
    assert r.json["missing_permission"] == "manage_teams | manage_assigned_teams"

    assert lead.patch(f"/api/teams/{theirs}", json={"name": "Hijacked"}).status_code == 403
    assert lead.put(f"/api/teams/{theirs}/members", json={"userIds": [lead_setup["lead_id"]]}).status_code == 403


def test_lead_cannot_create_or_delete_teams(lead_setup):
    lead = lead_setup["lead"]
    r = lead.post("/api/teams", json={"name": "Shadow"})
    assert r.status_code == 403
    assert r.json["missing_permission"] == "manage_teams"
    assert lead.delete(f"/api/teams/{lead_setup['mine']}").status_code == 403


def test_lead_removing_self_loses_access(lead_setup):
    lead = lead_setup["lead"]
    mine = lead_setup["mine"]
    r = lead.put(f"/api/teams/{mine}/members", json={"userIds": [lead_setup["worker_id"]]})
    assert r.status_code == 200
    assert lead.get(f"/api/teams/{mine}").status_code == 403


def test_employee_without_team_permissions(client):
    employee_role = next(r["id"] for r in client.get("/api/roles").json if r["name"] == "Employee")
    _create_user(client, "emp@example.com", employee_role)
    emp = client.application.test_client()
    _login(emp, "emp@example.com")

    r = emp.get("/api/teams")
    assert r.status_code == 403
    assert r.json["missing_permission"] == "manage_teams | manage_assigned_teams"
