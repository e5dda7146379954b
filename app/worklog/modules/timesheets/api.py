from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.worklog.db import db_session
from app.worklog.models import User
from app.worklog.modules.projects.models import Project
from app.worklog.modules.timesheets.models import TimesheetEntry
from app.worklog.modules.timesheets.service import (
    create_entry,
    delete_entry,
    resolve_entry_owner,
    serialize_entry,
    validate_entry_payload,
)
from app.worklog.permissions import EDIT_ALL_TIMESHEETS, MANAGE_TIMESHEETS, VIEW_ALL_TIMESHEETS
from app.worklog.rbac import current_user_can, require_login
from app.worklog.utils import current_user, errors_response, json_body, parse_date, parse_id

bp = Blueprint("timesheets", __name__)


@bp.get("/timesheet")
@require_login
def timesheet_list():
    s = db_session()
    u = current_user()

    try:
        day = parse_date(request.args.get("date"))
    except ValueError:
        return errors_response(["date must be YYYY-MM-DD"])
    user_filter = parse_id(request.args.get("userId"))

    q = (
        s.query(TimesheetEntry)
        .join(Project, Project.id == TimesheetEntry.project_id)
        .filter(Project.company_id == u.company_id)
    )
    if day:
        q = q.filter(TimesheetEntry.date == day)

    can_see_all = current_user_can(VIEW_ALL_TIMESHEETS) or current_user_can(MANAGE_TIMESHEETS)
    if not can_see_all:
        q = q.filter(TimesheetEntry.user_id == u.id)
    elif user_filter is not None:
        q = q.filter(TimesheetEntry.user_id == user_filter)

    entries = q.order_by(TimesheetEntry.created_at.desc(), TimesheetEntry.id.desc()).all()
    return jsonify([serialize_entry(e) for e in entries])


@bp.post("/timesheet")
@require_login
def timesheet_create():
    s = db_session()
    u = current_user()
    payload = json_body()

    errors = validate_entry_payload(s, payload, u.company_id)
    if errors:
        return errors_response(errors)

    owner: User | None = resolve_entry_owner(s, payload, u, can_manage=current_user_can(MANAGE_TIMESHEETS))
    if owner is None:
        return errors_response(["A valid user is required."])

    entry = create_entry(s, payload, owner, u)
    s.commit()
    return jsonify(serialize_entry(entry)), 201


@bp.delete("/timesheet/<int:entry_id>")
@require_login
def timesheet_delete(entry_id: int):
    s = db_session()
    u = current_user()
    entry = s.get(TimesheetEntry, entry_id)
    if not entry or entry.project.company_id != u.company_id:
        abort(404, description="Timesheet entry not found")

    if entry.user_id != u.id and not current_user_can(EDIT_ALL_TIMESHEETS):
        abort(403, description="You can only delete your own timesheet entries")

    delete_entry(s, entry, u)
    s.commit()
    return jsonify({"message": "Timesheet entry deleted successfully"})
