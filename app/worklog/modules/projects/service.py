from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.worklog.audit import record_event
from app.worklog.utils import clean_str, iso, money, parse_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.models import User
    from app.worklog.modules.projects.models import Project


def _parse_total_hours(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("totalHours must be a whole number.")
    return int(str(value).strip())


def validate_project_payload(payload: dict[str, Any], *, partial: bool) -> list[str]:
    """Validate project create/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("Project name is required.")
    if "totalHours" in payload:
        try:
            th = _parse_total_hours(payload.get("totalHours"))
            if th is not None and th < 0:
                errors.append("totalHours cannot be negative.")
        except ValueError:
            errors.append("totalHours must be a whole number.")
    if "amount" in payload:
        try:
            amt = parse_decimal(payload.get("amount"))
            if amt is not None and amt < 0:
                errors.append("amount cannot be negative.")
        except ValueError:
            errors.append("amount must be a number.")
    for flag in ("isPaid", "isActive"):
        if payload.get(flag) is not None and not isinstance(payload.get(flag), bool):
            errors.append(f"{flag} must be a boolean.")
    return errors


def create_project(s: "Session", payload: dict[str, Any], user: "User") -> "Project":
    from app.worklog.modules.projects.models import Project

    project = Project(
        company_id=user.company_id,
        created_by_user_id=user.id,
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
        total_hours=_parse_total_hours(payload.get("totalHours")),
        is_paid=bool(payload.get("isPaid") or False),
        amount=parse_decimal(payload.get("amount")),
        invoice=clean_str(payload.get("invoice")),
        is_active=True,
    )
    s.add(project)
    s.flush()

    record_event(
        s,
        actor=user,
        action="project.create",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"name": project.name, "is_paid": project.is_paid, "amount": project.amount},
    )
    return project


def update_project(s: "Session", project: "Project", payload: dict[str, Any], user: "User") -> "Project":
    """Only keys present in the payload are touched."""
    changes: dict[str, Any] = {}

    def _set(attr: str, new: Any) -> None:
        old = getattr(project, attr)
        if old != new:
            changes[attr] = {"old": old, "new": new}
            setattr(project, attr, new)

    if "name" in payload:
        _set("name", clean_str(payload.get("name")))
    if "description" in payload:
        _set("description", clean_str(payload.get("description")))
    if "totalHours" in payload:
        _set("total_hours", _parse_total_hours(payload.get("totalHours")))
    if "isPaid" in payload and payload.get("isPaid") is not None:
        _set("is_paid", payload["isPaid"])
    if "amount" in payload:
        _set("amount", parse_decimal(payload.get("amount")))
    if "invoice" in payload:
        _set("invoice", clean_str(payload.get("invoice")))
    if "isActive" in payload and payload.get("isActive") is not None:
        _set("is_active", payload["isActive"])

    record_event(
        s,
        actor=user,
        action="project.update",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"name": project.name, "changes": changes},
    )
    return project


def delete_project(s: "Session", project: "Project", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="project.delete",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"name": project.name},
    )
    s.delete(project)


def serialize_project(project: "Project", *, timesheet_count: int | None = None) -> dict[str, Any]:
    created_by = project.created_by
    data = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "totalHours": project.total_hours,
        "isPaid": project.is_paid,
        "amount": money(project.amount) if project.amount is not None else None,
        "invoice": project.invoice,
        "isActive": project.is_active,
        "companyId": project.company_id,
        "createdAt": iso(project.created_at),
        "createdBy": {"firstName": created_by.first_name, "lastName": created_by.last_name} if created_by else None,
    }
    if timesheet_count is not None:
        data["timesheetCount"] = timesheet_count
    return data
