"""Tests for the report summary and exports."""
import csv
import io
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


def _create_user(client, email, first, last):
    employee_role = next(r["id"] for r in client.get("/api/roles").json if r["name"] == "Employee")
    r = client.post(
        "/api/users",
        json={"email": email, "firstName": first, "lastName": last, "password": PASSWORD, "roleId": employee_role},
    )
    assert r.status_code == 201
    return r.json["id"]


def _log(client, user_id, project_id, day, hours, description=None):
    r = client.post(
        "/api/timesheet",
        json={"userId": user_id, "projectId": project_id, "date": day, "hours": hours, "description": description},
    )
    assert r.status_code == 201


@pytest.fixture()
def data(client):
    """
    Ann: 2h Apollo (01-02) + 3h Gemini (01-01); Bob: 1h Apollo (01-03).
    Team Red = {Ann}, team Idle = {owner} with no hours.
    """
    ann = _create_user(client, "ann@example.com", "Ann", "Archer")
    bob = _create_user(client, "bob@example.com", "Bob", "Baker")
    owner = client.get("/auth/session").json["user"]["id"]
    apollo = client.post("/api/projects", json={"name": "Apollo", "isPaid": True, "amount": 1000}).json["id"]
    gemini = client.post("/api/projects", json={"name": "Gemini"}).json["id"]

    _log(client, ann, apollo, "2024-01-02", 2, "Design, phase \"one\"")
    _log(client, ann, gemini, "2024-01-01", 3)
    _log(client, bob, apollo, "2024-01-03", 1)

    red = client.post("/api/teams", json={"name": "Red"}).json["id"]
    idle = client.post("/api/teams", json={"name": "Idle"}).json["id"]
    client.put(f"/api/teams/{red}/members", json={"userIds": [ann]})
    client.put(f"/api/teams/{idle}/members", json={"userIds": [owner]})
    return {"ann": ann, "bob": bob, "apollo": apollo, "gemini": gemini, "red": red}


def test_report_summary(client, data):
    r = client.get("/api/reports")
    assert r.status_code == 200
    body = r.json
    assert body["summary"] == {"totalHours": 6.0, "totalRevenue": 1000.0, "totalProjects": 2, "totalUsers": 3}

    users = {u["userName"]: u for u in body["userHours"]}
    assert users["Ann Archer"]["hours"] == 5.0
    assert users["Ann Archer"]["projects"] == 2
    assert users["Bob Baker"] == {"userId": data["bob"], "userName": "Bob Baker", "hours": 1.0, "projects": 1}

    projects = {p["projectName"]: p for p in body["projectHours"]}
    assert projects["Apollo"]["hours"] == 3.0
    assert projects["Apollo"]["users"] == 2
    assert projects["Apollo"]["revenue"] == 1000.0
    assert projects["Gemini"]["revenue"] == 0

    assert body["teamHours"] == [{"teamId": data["red"], "teamName": "Red", "hours": 5.0, "members": 1}]
    assert body["dailyHours"] == [
        {"date": "2024-01-01", "hours": 3.0},
        {"date": "2024-01-02", "hours": 2.0},
        {"date": "2024-01-03", "hours": 1.0},
    ]


def test_report_filters(client, data):
    body = client.get("/api/reports?from=2024-01-02&to=2024-01-03").json
    assert body["summary"]["totalHours"] == 3.0

    body = client.get(f"/api/reports?project={data['apollo']}&user=all").json
    assert body["summary"]["totalHours"] == 3.0
    assert body["summary"]["totalProjects"] == 1

    body = client.get(f"/api/reports?user={data['bob']}").json
    assert [u["userName"] for u in body["userHours"]] == ["Bob Baker"]
    assert body["summary"]["totalUsers"] == 1


def test_report_team_filter_omits_team_breakdown(client, data):
    body = client.get(f"/api/reports?team={data['red']}").json
    assert body["summary"]["totalHours"] == 5.0
    assert body["teamHours"] == []
    assert [u["userName"] for u in body["userHours"]] == ["Ann Archer"]


def test_report_bad_date(client, data):
    r = client.get("/api/reports?from=yesterday")
    assert r.status_code == 400
    assert r.json["error"] == "from must be YYYY-MM-DD"


def test_report_requires_generate_reports(client, data):
    ann = client.application.test_client()
    _login(ann, "ann@example.com")
    r = ann.get("/api/reports")
    assert r.status_code == 403
    assert r.json["missing_permission"] == "generate_reports"
    assert ann.get("/api/reports/export?format=csv").status_code == 403


def test_export_csv(client, data):
    r = client.get("/api/reports/export?format=csv")
    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert "attachment" in r.headers["Content-Disposition"]

    rows = list(csv.reader(io.StringIO(r.get_data(as_text=True))))
    assert rows[0] == ["Date", "User", "Email", "Project", "Hours", "Description", "Revenue"]
    assert len(rows) == 4
    assert rows[1][0] == "2024-01-01"
    design = next(row for row in rows[1:] if row[5])
    assert design[5] == 'Design, phase "one"'
    assert design[6] == "1000.00"
    assert next(row for row in rows[1:] if row[3] == "Gemini")[6] == "0"


def test_export_html(client, data):
    r = client.get("/api/reports/export?format=pdf&from=2024-01-01")
    assert r.status_code == 200
    assert r.mimetype == "text/html"
    html = r.get_data(as_text=True)
    assert "Timesheet Report" in html
    assert "Period: 2024-01-01 - Present" in html
    assert "Ann Archer" in html
    # descriptions are escaped
    assert "&#34;one&#34;" in html


def test_export_rejects_unknown_format(client, data):
    r = client.get("/api/reports/export?format=xlsx")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid format. Use 'csv' or 'pdf'"


def test_report_date_with_trailing_junk_rejected(client, data):
    r = client.get("/api/reports?to=2024-01-02garbage")
    assert r.status_code == 400
    assert r.json["error"] == "to must be YYYY-MM-DD"
