from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.worklog.audit import record_event
from app.worklog.models import Permission, Role, User
from app.worklog.permissions import (
    DEFAULT_ROLE_DESCRIPTIONS,
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_CATALOG,
    unknown_permissions,
)
from app.worklog.utils import clean_str, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.models import Company


def ensure_permission_catalog(s: "Session") -> dict[str, Permission]:
    """
    Upsert every catalog permission (idempotent). Existing descriptions are left alone.
    Returns name -> Permission.
    """
    existing = {p.name: p for p in s.query(Permission).all()}
    for name, description in PERMISSION_CATALOG.items():
        if name not in existing:
            p = Permission(name=name, description=description)
            s.add(p)
            existing[name] = p
    s.flush()
    return {name: existing[name] for name in PERMISSION_CATALOG}


def create_default_roles(s: "Session", company: "Company") -> dict[str, Role]:
    perms = ensure_permission_catalog(s)
    roles: dict[str, Role] = {}
    for role_name, granted in DEFAULT_ROLE_PERMISSIONS.items():
        role = Role(
            company_id=company.id,
            name=role_name,
            description=DEFAULT_ROLE_DESCRIPTIONS.get(role_name),
            is_default=True,
        )
        role.permissions = [perms[n] for n in sorted(granted)]
        s.add(role)
        roles[role_name] = role
    s.flush()
    return roles


def _resolve_permissions(s: "Session", names: list[str]) -> list[Permission]:
    perms = ensure_permission_catalog(s)
    return [perms[n] for n in sorted(set(names))]


def validate_role_payload(payload: dict[str, Any], *, creating: bool) -> list[str]:
    errors: list[str] = []
    name = clean_str(payload.get("name"))
    if creating and not name:
        errors.append("Role name is required.")
    permissions = payload.get("permissions")
    if permissions is not None:
        if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
            errors.append("permissions must be a list of permission names.")
        else:
            unknown = unknown_permissions(permissions)
            if unknown:
                errors.append(f"Unknown permissions: {', '.join(unknown)}")
    return errors


def role_name_taken(s: "Session", company_id: int, name: str, *, exclude_role_id: int | None = None) -> bool:
    q = s.query(Role).filter(Role.company_id == company_id, func.lower(Role.name) == name.lower())
    if exclude_role_id is not None:
        q = q.filter(Role.id != exclude_role_id)
    return s.query(q.exists()).scalar()


def create_role(s: "Session", payload: dict[str, Any], user: User) -> Role:
    role = Role(
        company_id=user.company_id,
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
        is_default=False,
    )
    role.permissions = _resolve_permissions(s, payload.get("permissions") or [])
    s.add(role)
    s.flush()

    record_event(
        s,
        actor=user,
        action="role.create",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"name": role.name, "permissions": role.permission_names},
    )
    return role


def update_role(s: "Session", role: Role, payload: dict[str, Any], user: User) -> Role:
    """
    Default roles keep their name. Only keys present in the payload are touched;
    the permission set is replaced when a list is supplied.
    """
    changes: dict[str, Any] = {}

    new_name = clean_str(payload.get("name"))
    if new_name and not role.is_default and new_name != role.name:
        changes["name"] = {"old": role.name, "new": new_name}
        role.name = new_name

    new_description = clean_str(payload.get("description"))
    if "description" in payload and new_description != role.description:
        changes["description"] = {"old": role.description, "new": new_description}
        role.description = new_description

    if isinstance(payload.get("permissions"), list):
        old = role.permission_names
        role.permissions = _resolve_permissions(s, payload["permissions"])
        if role.permission_names != old:
            changes["permissions"] = {"old": old, "new": role.permission_names}

    record_event(
        s,
        actor=user,
        action="role.update",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"name": role.name, "changes": changes},
    )
    return role


def role_delete_error(role: Role) -> str | None:
    if role.is_default:
        return "Cannot delete default roles."
    if role.users:
        return "Cannot delete role with assigned users."
    return None


def delete_role(s: "Session", role: Role, user: User) -> None:
    record_event(
        s,
        actor=user,
        action="role.delete",
        entity_type="Role",
        entity_id=str(role.id),
        metadata={"name": role.name},
    )
    s.delete(role)


def serialize_permission(p: Permission) -> dict[str, Any]:
    return {"id": p.id, "name": p.name, "description": p.description}


def serialize_role(role: Role) -> dict[str, Any]:
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "isDefault": role.is_default,
        "companyId": role.company_id,
        "createdAt": iso(role.created_at),
        "permissions": [serialize_permission(p) for p in sorted(role.permissions, key=lambda p: p.name)],
        "userCount": len(role.users),
    }
