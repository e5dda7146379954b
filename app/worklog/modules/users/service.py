from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from werkzeug.security import generate_password_hash

from app.worklog.audit import record_event
from app.worklog.models import Role, User
from app.worklog.utils import clean_str, iso, parse_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.modules.projects.models import Project

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def normalize_email(value: Any) -> str:
    return (clean_str(value) or "").lower()


def validate_password(password: Any) -> list[str]:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return [f"Password must be at least {MIN_PASSWORD_LENGTH} characters."]
    return []


def email_taken(s: "Session", email: str) -> bool:
    return s.query(User).filter(User.email == email).one_or_none() is not None


def company_role(s: "Session", company_id: int, role_id: Any) -> Role | None:
    rid = parse_id(role_id)
    if rid is None:
        return None
    role = s.get(Role, rid)
    if not role or role.company_id != company_id:
        return None
    return role


def validate_user_payload(s: "Session", payload: dict[str, Any], company_id: int) -> list[str]:
    """Validate user creation payload. Returns list of errors."""
    errors: list[str] = []
    email = normalize_email(payload.get("email"))
    if not EMAIL_RE.match(email):
        errors.append("A valid email is required.")
    elif email_taken(s, email):
        errors.append("User with this email already exists.")
    if not clean_str(payload.get("firstName")) or not clean_str(payload.get("lastName")):
        errors.append("First name and last name are required.")
    if company_role(s, company_id, payload.get("roleId")) is None:
        errors.append("A valid role is required.")
    errors.extend(validate_password(payload.get("password")))
    return errors


def create_user(s: "Session", payload: dict[str, Any], actor: User) -> User:
    """
    Users created by an admin must change their password and complete their profile on first login.
    """
    role = company_role(s, actor.company_id, payload.get("roleId"))
    user = User(
        company_id=actor.company_id,
        role_id=role.id if role else None,
        email=normalize_email(payload.get("email")),
        password_hash=generate_password_hash(payload["password"]),
        first_name=clean_str(payload.get("firstName")) or "",
        last_name=clean_str(payload.get("lastName")) or "",
        is_active=True,
        must_change_password=True,
        profile_completed=False,
    )
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "role": role.name if role else None},
    )
    return user


def update_user(s: "Session", user: User, payload: dict[str, Any], actor: User) -> list[str]:
    """Apply a partial update. Returns validation errors (nothing is changed if any)."""
    errors: list[str] = []
    role = None
    if payload.get("roleId") not in (None, ""):
        role = company_role(s, actor.company_id, payload.get("roleId"))
        if role is None:
            errors.append("A valid role is required.")
    is_active = payload.get("isActive")
    if is_active is not None and not isinstance(is_active, bool):
        errors.append("isActive must be a boolean.")
    if is_active is False and user.id == actor.id:
        errors.append("You cannot deactivate your own account.")
    if errors:
        return errors

    changes: dict[str, Any] = {}
    if is_active is not None and is_active != user.is_active:
        changes["is_active"] = {"old": user.is_active, "new": is_active}
        user.is_active = is_active
    if role is not None and role.id != user.role_id:
        changes["role_id"] = {"old": user.role_id, "new": role.id}
        user.role = role
    first_name = clean_str(payload.get("firstName"))
    if first_name and first_name != user.first_name:
        changes["first_name"] = {"old": user.first_name, "new": first_name}
        user.first_name = first_name
    last_name = clean_str(payload.get("lastName"))
    if last_name and last_name != user.last_name:
        changes["last_name"] = {"old": user.last_name, "new": last_name}
        user.last_name = last_name

    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "changes": changes},
    )
    return []


def delete_user(s: "Session", user: User, actor: User) -> None:
    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.delete(user)


def projects_for_user(s: "Session", user: User) -> list["Project"]:
    """Distinct projects reachable through the user's team memberships, first-seen order."""
    from app.worklog.modules.teams.models import Team, TeamMember

    teams = (
        s.query(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.user_id == user.id)
        .order_by(Team.id.asc())
        .all()
    )
    seen: dict[int, "Project"] = {}
    for team in teams:
        for project in team.projects:
            seen.setdefault(project.id, project)
    return list(seen.values())


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "companyId": user.company_id,
        "isActive": user.is_active,
        "mustChangePassword": user.must_change_password,
        "profileCompleted": user.profile_completed,
        "createdAt": iso(user.created_at),
        "role": {"id": user.role.id, "name": user.role.name} if user.role else None,
    }
