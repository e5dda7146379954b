from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.worklog.audit import record_event
from app.worklog.models import User
from app.worklog.utils import clean_str, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.modules.teams.models import Team


def validate_team_payload(payload: dict[str, Any]) -> list[str]:
    if not clean_str(payload.get("name")):
        return ["Team name is required."]
    return []


def validate_id_list(payload: dict[str, Any], key: str) -> tuple[list[int], list[str]]:
    """Pull an id list out of the payload. Returns (ids, errors); ids are de-duplicated in order."""
    raw = payload.get(key)
    if not isinstance(raw, list):
        return [], [f"{key} must be an array."]
    ids: list[int] = []
    for v in raw:
        if isinstance(v, bool):
            return [], [f"{key} must contain ids."]
        try:
            i = int(v)
        except (TypeError, ValueError):
            return [], [f"{key} must contain ids."]
        if i not in ids:
            ids.append(i)
    return ids, []


def create_team(s: "Session", payload: dict[str, Any], user: User) -> "Team":
    from app.worklog.modules.teams.models import Team

    team = Team(
        company_id=user.company_id,
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
    )
    s.add(team)
    s.flush()

    record_event(
        s,
        actor=user,
        action="team.create",
        entity_type="Team",
        entity_id=str(team.id),
        metadata={"name": team.name},
    )
    return team


def update_team(s: "Session", team: "Team", payload: dict[str, Any], user: User) -> "Team":
    changes: dict[str, Any] = {}
    new_name = clean_str(payload.get("name")) or team.name
    if new_name != team.name:
        changes["name"] = {"old": team.name, "new": new_name}
        team.name = new_name
    new_description = clean_str(payload.get("description"))
    if "description" in payload and new_description != team.description:
        changes["description"] = {"old": team.description, "new": new_description}
        team.description = new_description

    record_event(
        s,
        actor=user,
        action="team.update",
        entity_type="Team",
        entity_id=str(team.id),
        metadata={"name": team.name, "changes": changes},
    )
    return team


def delete_team(s: "Session", team: "Team", user: User) -> None:
    record_event(
        s,
        actor=user,
        action="team.delete",
        entity_type="Team",
        entity_id=str(team.id),
        metadata={"name": team.name},
    )
    s.delete(team)


def set_team_members(s: "Session", team: "Team", user_ids: list[int], actor: User) -> list[str]:
    """
    Replace the member set. Every id must be a user of the team's company.
    Returns errors; nothing changes if any.
    """
    users = s.query(User).filter(User.id.in_(user_ids)).all() if user_ids else []
    by_id = {u.id: u for u in users if u.company_id == team.company_id}
    missing = [i for i in user_ids if i not in by_id]
    if missing:
        return [f"Unknown users: {', '.join(str(i) for i in missing)}"]

    old = sorted(team.member_ids)
    team.members = [by_id[i] for i in user_ids]
    record_event(
        s,
        actor=actor,
        action="team.members_update",
        entity_type="Team",
        entity_id=str(team.id),
        metadata={"old": old, "new": sorted(user_ids)},
    )
    return []


def set_team_projects(s: "Session", team: "Team", project_ids: list[int], actor: User) -> list[str]:
    from app.worklog.modules.projects.models import Project

    projects = s.query(Project).filter(Project.id.in_(project_ids)).all() if project_ids else []
    by_id = {p.id: p for p in projects if p.company_id == team.company_id}
    missing = [i for i in project_ids if i not in by_id]
    if missing:
        return [f"Unknown projects: {', '.join(str(i) for i in missing)}"]

    old = sorted(p.id for p in team.projects)
    team.projects = [by_id[i] for i in project_ids]
    record_event(
        s,
        actor=actor,
        action="team.projects_update",
        entity_type="Team",
        entity_id=str(team.id),
        metadata={"old": old, "new": sorted(project_ids)},
    )
    return []


def serialize_team(team: "Team") -> dict[str, Any]:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "companyId": team.company_id,
        "createdAt": iso(team.created_at),
        "members": [
            {"user": {"id": u.id, "firstName": u.first_name, "lastName": u.last_name, "email": u.email}}
            for u in team.members
        ],
        "teamProjects": [{"project": {"id": p.id, "name": p.name}} for p in team.projects],
    }
