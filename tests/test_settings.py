from collections import defaultdict

import pytest

from app.worklog import auth, create_app
from app.worklog.db import session_scope
from app.worklog.models import AuditEvent, Base

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
    r = c.post("/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    c.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["csrf_token"]
    return c


def test_settings_defaults(client):
    r = client.get("/api/settings")
    assert r.status_code == 200
    assert r.json["name"] == "Acme"
    assert r.json["theme"] == "system"


def test_settings_update(client):
    r = client.patch("/api/settings", json={"name": "Acme Corp", "theme": "dark"})
    assert r.status_code == 200
    assert r.json == {"id": r.json["id"], "name": "Acme Corp", "theme": "dark"}

    with session_scope(client.application) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "company.settings_update").one()
        assert "Acme Corp" in ev.metadata_json


def test_settings_validation(client):
    r = client.patch("/api/settings", json={"name": "", "theme": "neon"})
    assert r.status_code == 400
    assert r.json["errors"] == ["Company name is required.", "Invalid theme value."]
    assert client.get("/api/settings").json["name"] == "Acme"
