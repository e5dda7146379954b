from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.worklog.db import db_session
from app.worklog.models import Permission, Role
from app.worklog.modules.roles.service import (
    create_role,
    delete_role,
    role_delete_error,
    role_name_taken,
    serialize_permission,
    serialize_role,
    update_role,
    validate_role_payload,
)
from app.worklog.permissions import MANAGE_ROLES
from app.worklog.rbac import require_login, require_permission
from app.worklog.utils import clean_str, current_user, errors_response, json_body

bp = Blueprint("roles", __name__)


def _get_company_role(role_id: int) -> Role:
    s = db_session()
    role = s.get(Role, role_id)
    if not role or role.company_id != current_user().company_id:
        abort(404, description="Role not found")
    return role


@bp.get("/permissions")
@require_permission(MANAGE_ROLES)
def permissions_list():
    s = db_session()
    perms = s.query(Permission).order_by(Permission.name.asc()).all()
    return jsonify([serialize_permission(p) for p in perms])


@bp.get("/roles")
@require_login
def roles_list():
    s = db_session()
    roles = (
        s.query(Role)
        .filter(Role.company_id == current_user().company_id)
        .order_by(Role.created_at.desc(), Role.id.desc())
        .all()
    )
    return jsonify([serialize_role(r) for r in roles])


@bp.post("/roles")
@require_permission(MANAGE_ROLES)
def roles_create():
    s = db_session()
    u = current_user()
    payload = json_body()

    errors = validate_role_payload(payload, creating=True)
    if not errors and role_name_taken(s, u.company_id, clean_str(payload.get("name")) or ""):
        errors.append("A role with this name already exists.")
    if errors:
        return errors_response(errors)

    role = create_role(s, payload, u)
    s.commit()
    return jsonify(serialize_role(role)), 201


@bp.patch("/roles/<int:role_id>")
@require_permission(MANAGE_ROLES)
def roles_update(role_id: int):
    s = db_session()
    u = current_user()
    role = _get_company_role(role_id)
    payload = json_body()

    errors = validate_role_payload(payload, creating=False)
    new_name = clean_str(payload.get("name"))
    if not errors and new_name and not role.is_default and role_name_taken(s, u.company_id, new_name, exclude_role_id=role.id):
        errors.append("A role with this name already exists.")
    if errors:
        return errors_response(errors)

    update_role(s, role, payload, u)
    s.commit()
    return jsonify(serialize_role(role))


@bp.delete("/roles/<int:role_id>")
@require_permission(MANAGE_ROLES)
def roles_delete(role_id: int):
    s = db_session()
    role = _get_company_role(role_id)

    err = role_delete_error(role)
    if err:
        return errors_response([err])

    delete_role(s, role, current_user())
    s.commit()
    return jsonify({"message": "Role deleted successfully"})
