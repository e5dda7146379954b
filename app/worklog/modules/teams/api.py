from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.worklog.db import db_session
from app.worklog.modules.teams.models import Team, TeamMember
from app.worklog.modules.teams.service import (
    create_team,
    delete_team,
    serialize_team,
    set_team_members,
    set_team_projects,
    update_team,
    validate_id_list,
    validate_team_payload,
)
from app.worklog.permissions import MANAGE_ASSIGNED_TEAMS, MANAGE_TEAMS
from app.worklog.rbac import current_user_can, require_any_permission, require_permission, require_team_access
from app.worklog.utils import current_user, errors_response, json_body

bp = Blueprint("teams", __name__)


def _get_company_team(team_id: int) -> Team:
    s = db_session()
    team = s.get(Team, team_id)
    if not team or team.company_id != current_user().company_id:
        abort(404, description="Team not found")
    return team


def _get_managed_team(team_id: int) -> Team:
    team = _get_company_team(team_id)
    require_team_access(team.member_ids)
    return team


@bp.get("/teams")
@require_any_permission(MANAGE_TEAMS, MANAGE_ASSIGNED_TEAMS)
def teams_list():
    s = db_session()
    u = current_user()
    q = s.query(Team).filter(Team.company_id == u.company_id)
    if not current_user_can(MANAGE_TEAMS):
        # Team leads only see the teams they belong to.
        q = q.join(TeamMember, TeamMember.team_id == Team.id).filter(TeamMember.user_id == u.id)
    teams = q.order_by(Team.created_at.desc(), Team.id.desc()).all()
    return jsonify([serialize_team(t) for t in teams])


@bp.post("/teams")
@require_permission(MANAGE_TEAMS)
def teams_create():
    s = db_session()
    payload = json_body()

    errors = validate_team_payload(payload)
    if errors:
        return errors_response(errors)

    team = create_team(s, payload, current_user())
    s.commit()
    return jsonify(serialize_team(team)), 201


@bp.get("/teams/<int:team_id>")
@require_any_permission(MANAGE_TEAMS, MANAGE_ASSIGNED_TEAMS)
def teams_detail(team_id: int):
    return jsonify(serialize_team(_get_managed_team(team_id)))


@bp.patch("/teams/<int:team_id>")
@require_any_permission(MANAGE_TEAMS, MANAGE_ASSIGNED_TEAMS)
def teams_update(team_id: int):
    s = db_session()
    team = _get_managed_team(team_id)
    payload = json_body()

    errors = validate_team_payload(payload)
    if errors:
        return errors_response(errors)

    update_team(s, team, payload, current_user())
    s.commit()
    return jsonify(serialize_team(team))


@bp.delete("/teams/<int:team_id>")
@require_permission(MANAGE_TEAMS)
def teams_delete(team_id: int):
    s = db_session()
    team = _get_company_team(team_id)
    delete_team(s, team, current_user())
    s.commit()
    return jsonify({"message": "Team deleted successfully"})


@bp.put("/teams/<int:team_id>/members")
@require_any_permission(MANAGE_TEAMS, MANAGE_ASSIGNED_TEAMS)
def teams_members_update(team_id: int):
    s = db_session()
    team = _get_managed_team(team_id)

    user_ids, errors = validate_id_list(json_body(), "userIds")
    if not errors:
        errors = set_team_members(s, team, user_ids, current_user())
    if errors:
        return errors_response(errors)

    s.commit()
    return jsonify({"message": "Team members updated successfully", "team": serialize_team(team)})


@bp.put("/teams/<int:team_id>/projects")
@require_any_permission(MANAGE_TEAMS, MANAGE_ASSIGNED_TEAMS)
def teams_projects_update(team_id: int):
    s = db_session()
    team = _get_managed_team(team_id)

    project_ids, errors = validate_id_list(json_body(), "projectIds")
    if not errors:
        errors = set_team_projects(s, team, project_ids, current_user())
    if errors:
        return errors_response(errors)

    s.commit()
    return jsonify({"message": "Team projects updated successfully", "team": serialize_team(team)})
