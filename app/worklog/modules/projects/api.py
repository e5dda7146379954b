from __future__ import annotations

from flask import Blueprint, abort, jsonify
from sqlalchemy import func

from app.worklog.db import db_session
from app.worklog.modules.projects.models import Project
from app.worklog.modules.projects.service import (
    create_project,
    delete_project,
    serialize_project,
    update_project,
    validate_project_payload,
)
from app.worklog.modules.timesheets.models import TimesheetEntry
from app.worklog.permissions import MANAGE_PROJECTS
from app.worklog.rbac import require_login, require_permission
from app.worklog.utils import current_user, errors_response, json_body

bp = Blueprint("projects", __name__)


def _get_company_project(project_id: int) -> Project:
    s = db_session()
    project = s.get(Project, project_id)
    if not project or project.company_id != current_user().company_id:
        abort(404, description="Project not found")
    return project


def _timesheet_counts(project_ids: list[int]) -> dict[int, int]:
    if not project_ids:
        return {}
    s = db_session()
    rows = (
        s.query(TimesheetEntry.project_id, func.count(TimesheetEntry.id))
        .filter(TimesheetEntry.project_id.in_(project_ids))
        .group_by(TimesheetEntry.project_id)
        .all()
    )
    return {int(pid): int(cnt or 0) for pid, cnt in rows}


@bp.get("/projects")
@require_login
def projects_list():
    s = db_session()
    projects = (
        s.query(Project)
        .filter(Project.company_id == current_user().company_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )
    counts = _timesheet_counts([p.id for p in projects])
    return jsonify([serialize_project(p, timesheet_count=counts.get(p.id, 0)) for p in projects])


@bp.post("/projects")
@require_permission(MANAGE_PROJECTS)
def projects_create():
    s = db_session()
    payload = json_body()

    errors = validate_project_payload(payload, partial=False)
    if errors:
        return errors_response(errors)

    project = create_project(s, payload, current_user())
    s.commit()
    return jsonify(serialize_project(project, timesheet_count=0)), 201


@bp.patch("/projects/<int:project_id>")
@require_permission(MANAGE_PROJECTS)
def projects_update(project_id: int):
    s = db_session()
    project = _get_company_project(project_id)
    payload = json_body()

    errors = validate_project_payload(payload, partial=True)
    if errors:
        return errors_response(errors)

    update_project(s, project, payload, current_user())
    s.commit()
    counts = _timesheet_counts([project.id])
    return jsonify(serialize_project(project, timesheet_count=counts.get(project.id, 0)))


@bp.delete("/projects/<int:project_id>")
@require_permission(MANAGE_PROJECTS)
def projects_delete(project_id: int):
    s = db_session()
    project = _get_company_project(project_id)
    delete_project(s, project, current_user())
    s.commit()
    return jsonify({"message": "Project deleted successfully"})
