"""Tests for the pure report reducers."""
from datetime import date, datetime
from decimal import Decimal

from app.worklog.modules.reports.aggregation import (
    ReportRow,
    TeamInfo,
    day_key,
    hours_by_day,
    hours_by_project,
    hours_by_team,
    hours_by_user,
    total_hours,
)


def _row(user, project, hours, day="2024-01-01", amount=None):
    return ReportRow(
        user_id=user,
        user_name=f"User {user}",
        project_id=project,
        project_name=f"Project {project}",
        hours=hours,
        date=day,
        project_amount=amount,
    )


def test_hours_by_user_sums_hours_and_counts_distinct_projects():
    rows = [_row("A", "P1", 2), _row("A", "P2", 3), _row("B", "P1", 1)]
    out = hours_by_user(rows)
    by_id = {r["userId"]: r for r in out}
    assert by_id["A"]["hours"] == 5
    assert by_id["A"]["projects"] == 2
    assert by_id["B"]["hours"] == 1
    assert by_id["B"]["projects"] == 1
    assert by_id["A"]["userName"] == "User A"


def test_hours_by_user_keeps_first_seen_order():
    rows = [_row("B", "P1", 1), _row("A", "P1", 1), _row("B", "P2", 1)]
    assert [r["userId"] for r in hours_by_user(rows)] == ["B", "A"]


def test_hours_by_user_same_project_counted_once():
    rows = [_row("A", "P1", 1), _row("A", "P1", 4)]
    assert hours_by_user(rows) == [{"userId": "A", "userName": "User A", "hours": 5, "projects": 1}]


def test_hours_by_project_counts_users_and_takes_first_revenue():
    rows = [
        _row("A", "P1", 2, amount=Decimal("1000.00")),
        _row("B", "P1", 3, amount=Decimal("5000.00")),
        _row("A", "P2", 1),
    ]
    out = hours_by_project(rows)
    assert out[0] == {
        "projectId": "P1",
        "projectName": "Project P1",
        "hours": 5,
        "revenue": Decimal("1000.00"),
        "users": 2,
    }
    assert out[1]["revenue"] == 0
    assert out[1]["users"] == 1


def test_hours_by_team_excludes_teams_without_hours():
    teams = [TeamInfo("T1", "Only A", frozenset({"A"}))]
    rows = [_row("B", "P1", 4)]
    assert hours_by_team(teams, rows) == []


def test_hours_by_team_reports_member_count():
    teams = [
        TeamInfo("T1", "Alpha", frozenset({"A", "B", "C"})),
        TeamInfo("T2", "Beta", frozenset({"B"})),
        TeamInfo("T3", "Empty", frozenset()),
    ]
    rows = [_row("A", "P1", 2), _row("B", "P1", 3), _row("Z", "P2", 8)]
    assert hours_by_team(teams, rows) == [
        {"teamId": "T1", "teamName": "Alpha", "hours": 5, "members": 3},
        {"teamId": "T2", "teamName": "Beta", "hours": 3, "members": 1},
    ]


def test_hours_by_day_sorted_ascending():
    rows = [_row("A", "P1", 3, day="2024-01-02"), _row("A", "P1", 2, day="2024-01-01")]
    assert hours_by_day(rows) == [
        {"date": "2024-01-01", "hours": 2},
        {"date": "2024-01-02", "hours": 3},
    ]


def test_hours_by_day_merges_date_types():
    rows = [
        _row("A", "P1", 1, day=date(2024, 3, 5)),
        _row("B", "P1", 2, day=datetime(2024, 3, 5, 23, 30)),
        _row("C", "P1", 4, day="2024-03-05T08:00:00"),
    ]
    assert hours_by_day(rows) == [{"date": "2024-03-05", "hours": 7}]


def test_day_key_has_no_timezone_shift():
    assert day_key(datetime(2024, 12, 31, 23, 59)) == "2024-12-31"
    assert day_key(date(2024, 1, 9)) == "2024-01-09"


def test_decimal_hours_stay_exact():
    rows = [_row("A", "P1", Decimal("0.10")), _row("A", "P1", Decimal("0.20"))]
    assert total_hours(rows) == Decimal("0.30")
    assert hours_by_user(rows)[0]["hours"] == Decimal("0.30")


def test_empty_rows():
    assert total_hours([]) == 0
    assert hours_by_user([]) == []
    assert hours_by_project([]) == []
    assert hours_by_day([]) == []
    assert hours_by_team([TeamInfo("T1", "Alpha", frozenset({"A"}))], []) == []
