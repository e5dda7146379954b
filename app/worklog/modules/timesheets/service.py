from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.worklog.audit import record_event
from app.worklog.models import User
from app.worklog.utils import clean_str, iso, parse_date, parse_decimal, parse_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.modules.timesheets.models import TimesheetEntry

MAX_HOURS_PER_ENTRY = Decimal("24")


def validate_entry_payload(s: "Session", payload: dict[str, Any], company_id: int) -> list[str]:
    """Validate timesheet entry payload. Returns list of errors."""
    from app.worklog.modules.projects.models import Project

    errors: list[str] = []
    project_id = parse_id(payload.get("projectId"))
    project = s.get(Project, project_id) if project_id is not None else None
    if not project or project.company_id != company_id:
        errors.append("A valid project is required.")
    elif not project.is_active:
        errors.append("Project is not active.")

    try:
        if parse_date(payload.get("date")) is None:
            errors.append("Date is required.")
    except ValueError:
        errors.append("Date must be YYYY-MM-DD.")

    try:
        hours = parse_decimal(payload.get("hours"))
        if hours is None:
            errors.append("Hours are required.")
        elif hours <= 0 or hours > MAX_HOURS_PER_ENTRY:
            errors.append(f"Hours must be greater than 0 and at most {MAX_HOURS_PER_ENTRY}.")
    except ValueError:
        errors.append("Hours must be a number.")
    return errors


def resolve_entry_owner(s: "Session", payload: dict[str, Any], actor: User, *, can_manage: bool) -> User | None:
    """
    Entries belong to the caller unless they manage timesheets and name another user.
    None means the named user is not in the caller's company.
    """
    target_id = parse_id(payload.get("userId"))
    if not can_manage or target_id is None or target_id == actor.id:
        return actor
    target = s.get(User, target_id)
    if not target or target.company_id != actor.company_id:
        return None
    return target


def create_entry(s: "Session", payload: dict[str, Any], owner: User, actor: User) -> "TimesheetEntry":
    from app.worklog.modules.timesheets.models import TimesheetEntry

    entry = TimesheetEntry(
        user_id=owner.id,
        project_id=parse_id(payload.get("projectId")),
        date=parse_date(payload.get("date")),
        hours=parse_decimal(payload.get("hours")),
        description=clean_str(payload.get("description")),
    )
    s.add(entry)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="timesheet.create",
        entity_type="TimesheetEntry",
        entity_id=str(entry.id),
        metadata={"user_id": owner.id, "project_id": entry.project_id, "date": str(entry.date), "hours": str(entry.hours)},
    )
    return entry


def delete_entry(s: "Session", entry: "TimesheetEntry", actor: User) -> None:
    record_event(
        s,
        actor=actor,
        action="timesheet.delete",
        entity_type="TimesheetEntry",
        entity_id=str(entry.id),
        metadata={"user_id": entry.user_id, "project_id": entry.project_id, "date": str(entry.date), "hours": str(entry.hours)},
    )
    s.delete(entry)


def serialize_entry(entry: "TimesheetEntry") -> dict[str, Any]:
    return {
        "id": entry.id,
        "date": iso(entry.date),
        "hours": float(entry.hours),
        "description": entry.description,
        "createdAt": iso(entry.created_at),
        "project": {"id": entry.project.id, "name": entry.project.name},
        "user": {"id": entry.user.id, "firstName": entry.user.first_name, "lastName": entry.user.last_name},
    }
