from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from flask import render_template
from sqlalchemy import func, select

from app.worklog.models import User
from app.worklog.modules.projects.models import Project
from app.worklog.modules.reports.aggregation import (
    ReportRow,
    TeamInfo,
    hours_by_day,
    hours_by_project,
    hours_by_team,
    hours_by_user,
    total_hours,
)
from app.worklog.modules.teams.models import Team, TeamMember
from app.worklog.modules.timesheets.models import TimesheetEntry
from app.worklog.utils import parse_date, parse_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

EXPORT_FORMATS = ("csv", "pdf")
CSV_HEADERS = ["Date", "User", "Email", "Project", "Hours", "Description", "Revenue"]


@dataclass(frozen=True)
class ReportFilters:
    date_from: date | None = None
    date_to: date | None = None
    user_id: int | None = None
    project_id: int | None = None
    team_id: int | None = None

    @property
    def team_unfiltered(self) -> bool:
        return self.team_id is None


def parse_report_filters(args: Any) -> tuple[ReportFilters, list[str]]:
    """Read from/to/user/project/team query args. 'all' or blank means unfiltered."""
    errors: list[str] = []
    dates: dict[str, date | None] = {}
    for key in ("from", "to"):
        try:
            dates[key] = parse_date(args.get(key))
        except ValueError:
            dates[key] = None
            errors.append(f"{key} must be YYYY-MM-DD")
    filters = ReportFilters(
        date_from=dates["from"],
        date_to=dates["to"],
        user_id=parse_id(args.get("user")),
        project_id=parse_id(args.get("project")),
        team_id=parse_id(args.get("team")),
    )
    return filters, errors


def query_entries(s: "Session", company_id: int, filters: ReportFilters) -> list[TimesheetEntry]:
    q = (
        s.query(TimesheetEntry)
        .join(Project, Project.id == TimesheetEntry.project_id)
        .filter(Project.company_id == company_id)
    )
    if filters.date_from:
        q = q.filter(TimesheetEntry.date >= filters.date_from)
    if filters.date_to:
        q = q.filter(TimesheetEntry.date <= filters.date_to)
    if filters.user_id is not None:
        q = q.filter(TimesheetEntry.user_id == filters.user_id)
    if filters.project_id is not None:
        q = q.filter(TimesheetEntry.project_id == filters.project_id)
    if filters.team_id is not None:
        member_ids = select(TeamMember.user_id).where(TeamMember.team_id == filters.team_id)
        q = q.filter(TimesheetEntry.user_id.in_(member_ids))
    return q.order_by(TimesheetEntry.date.asc(), TimesheetEntry.id.asc()).all()


def to_report_rows(entries: list[TimesheetEntry]) -> list[ReportRow]:
    return [
        ReportRow(
            user_id=e.user.id,
            user_name=e.user.full_name,
            project_id=e.project.id,
            project_name=e.project.name,
            hours=e.hours,
            date=e.date,
            project_amount=e.project.amount,
        )
        for e in entries
    ]


def company_teams(s: "Session", company_id: int) -> list[TeamInfo]:
    teams = s.query(Team).filter(Team.company_id == company_id).order_by(Team.id.asc()).all()
    return [TeamInfo(team_id=t.id, team_name=t.name, member_ids=frozenset(t.member_ids)) for t in teams]


def _plain(value: Any) -> Any:
    """Decimals to floats, recursively, for JSON output."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def build_report(s: "Session", company_id: int, filters: ReportFilters) -> dict[str, Any]:
    rows = to_report_rows(query_entries(s, company_id, filters))

    paid = s.query(func.coalesce(func.sum(Project.amount), 0)).filter(
        Project.company_id == company_id,
        Project.is_paid.is_(True),
        Project.amount.isnot(None),
    )
    active_projects = s.query(func.count(Project.id)).filter(Project.company_id == company_id, Project.is_active.is_(True))
    if filters.project_id is not None:
        paid = paid.filter(Project.id == filters.project_id)
        active_projects = active_projects.filter(Project.id == filters.project_id)

    active_users = s.query(func.count(User.id)).filter(User.company_id == company_id, User.is_active.is_(True))
    if filters.user_id is not None:
        active_users = active_users.filter(User.id == filters.user_id)

    # Per-team totals only make sense when the report is not already cut to one team.
    team_hours = hours_by_team(company_teams(s, company_id), rows) if filters.team_unfiltered else []

    return _plain(
        {
            "summary": {
                "totalHours": total_hours(rows),
                "totalRevenue": paid.scalar() or 0,
                "totalProjects": int(active_projects.scalar() or 0),
                "totalUsers": int(active_users.scalar() or 0),
            },
            "userHours": hours_by_user(rows),
            "projectHours": hours_by_project(rows),
            "teamHours": team_hours,
            "dailyHours": hours_by_day(rows),
        }
    )


def export_csv(entries: list[TimesheetEntry]) -> str:
    out = io.StringIO()
    w = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    w.writerow(CSV_HEADERS)
    for e in entries:
        revenue = e.project.amount if e.project.is_paid and e.project.amount is not None else 0
        w.writerow(
            [
                e.date.isoformat(),
                e.user.full_name,
                e.user.email,
                e.project.name,
                str(e.hours),
                e.description or "",
                str(revenue),
            ]
        )
    return out.getvalue()


def export_html(entries: list[TimesheetEntry], filters: ReportFilters) -> str:
    return render_template(
        "reports/export.html",
        entries=entries,
        period_from=filters.date_from.isoformat() if filters.date_from else "All time",
        period_to=filters.date_to.isoformat() if filters.date_to else "Present",
    )
