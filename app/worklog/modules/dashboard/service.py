from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.worklog.models import User
from app.worklog.modules.projects.models import Project
from app.worklog.modules.reports.aggregation import hours_by_project, hours_by_user, total_hours
from app.worklog.modules.reports.service import ReportFilters, query_entries, to_report_rows
from app.worklog.modules.timesheets.models import TimesheetEntry
from app.worklog.utils import iso, money

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy.orm import Session


def compute_company_stats(s: "Session", company_id: int, filters: ReportFilters) -> dict[str, Any]:
    """
    Analytics tiles for the dashboard. User/project counts and revenue are company-wide;
    hours honour the date/project/user filters.
    """
    rows = to_report_rows(query_entries(s, company_id, filters))

    total_users = s.query(func.count(User.id)).filter(User.company_id == company_id, User.is_active.is_(True)).scalar()
    total_projects = (
        s.query(func.count(Project.id)).filter(Project.company_id == company_id, Project.is_active.is_(True)).scalar()
    )
    total_revenue = (
        s.query(func.coalesce(func.sum(Project.amount), 0))
        .filter(Project.company_id == company_id, Project.is_paid.is_(True), Project.amount.isnot(None))
        .scalar()
    )

    return {
        "totalUsers": int(total_users or 0),
        "totalProjects": int(total_projects or 0),
        "totalHours": money(total_hours(rows)),
        "totalRevenue": money(total_revenue),
        "projectStats": [
            {"name": p["projectName"], "hours": money(p["hours"]), "revenue": money(p["revenue"])}
            for p in hours_by_project(rows)
        ],
        "userStats": [{"name": u["userName"], "hours": money(u["hours"])} for u in hours_by_user(rows)],
    }


def compute_user_stats(
    s: "Session",
    user_id: int,
    *,
    date_from: "date | None" = None,
    date_to: "date | None" = None,
    recent_limit: int = 5,
) -> dict[str, Any]:
    def _window(q):
        q = q.filter(TimesheetEntry.user_id == user_id)
        if date_from:
            q = q.filter(TimesheetEntry.date >= date_from)
        if date_to:
            q = q.filter(TimesheetEntry.date <= date_to)
        return q

    hours = _window(s.query(func.coalesce(func.sum(TimesheetEntry.hours), 0))).scalar()
    project_count = _window(s.query(func.count(func.distinct(TimesheetEntry.project_id)))).scalar()
    recent = (
        _window(s.query(TimesheetEntry))
        .order_by(TimesheetEntry.created_at.desc(), TimesheetEntry.id.desc())
        .limit(recent_limit)
        .all()
    )
    return {
        "totalHours": money(hours),
        "totalProjects": int(project_count or 0),
        "recentEntries": [{"project": e.project.name, "hours": money(e.hours), "date": iso(e.date)} for e in recent],
    }
