from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.worklog.audit import record_event
from app.worklog.db import db_session
from app.worklog.models import User
from app.worklog.modules.users.service import (
    create_user,
    delete_user,
    projects_for_user,
    serialize_user,
    update_user,
    validate_user_payload,
)
from app.worklog.permissions import DELETE_USERS, MANAGE_USERS
from app.worklog.rbac import current_user_can, require_login, require_permission
from app.worklog.utils import clean_str, current_user, errors_response, json_body

bp = Blueprint("users", __name__)


def _get_company_user(user_id: int) -> User:
    s = db_session()
    user = s.get(User, user_id)
    if not user or user.company_id != current_user().company_id:
        abort(404, description="User not found")
    return user


@bp.get("/users")
@require_permission(MANAGE_USERS)
def users_list():
    s = db_session()
    users = (
        s.query(User)
        .filter(User.company_id == current_user().company_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return jsonify([serialize_user(u) for u in users])


@bp.post("/users")
@require_permission(MANAGE_USERS)
def users_create():
    s = db_session()
    u = current_user()
    payload = json_body()

    errors = validate_user_payload(s, payload, u.company_id)
    if errors:
        return errors_response(errors)

    user = create_user(s, payload, u)
    s.commit()
    return jsonify(serialize_user(user)), 201


@bp.get("/users/<int:user_id>")
@require_permission(MANAGE_USERS)
def users_detail(user_id: int):
    return jsonify(serialize_user(_get_company_user(user_id)))


@bp.patch("/users/<int:user_id>")
@require_permission(MANAGE_USERS)
def users_update(user_id: int):
    s = db_session()
    user = _get_company_user(user_id)

    errors = update_user(s, user, json_body(), current_user())
    if errors:
        return errors_response(errors)
    s.commit()
    return jsonify(serialize_user(user))


@bp.delete("/users/<int:user_id>")
@require_permission(DELETE_USERS)
def users_delete(user_id: int):
    s = db_session()
    u = current_user()
    user = _get_company_user(user_id)
    if user.id == u.id:
        return errors_response(["You cannot delete your own account."])

    delete_user(s, user, u)
    s.commit()
    return jsonify({"message": "User deleted successfully"})


@bp.get("/users/<int:user_id>/projects")
@require_login
def users_projects(user_id: int):
    u = current_user()
    # Users may list their own projects; anyone else's needs user management rights.
    if user_id != u.id and not current_user_can(MANAGE_USERS):
        abort(403)
    user = _get_company_user(user_id)
    projects = projects_for_user(db_session(), user)
    return jsonify(
        [
            {"project": {"id": p.id, "name": p.name, "description": p.description, "isActive": p.is_active}}
            for p in projects
        ]
    )


@bp.get("/profile")
@require_login
def profile_get():
    u = current_user()
    return jsonify(
        {
            "id": u.id,
            "email": u.email,
            "firstName": u.first_name,
            "lastName": u.last_name,
            "createdAt": u.created_at.isoformat(),
            "role": {
                "name": u.role.name,
                "permissions": [
                    {"name": p.name, "description": p.description}
                    for p in sorted(u.role.permissions, key=lambda p: p.name)
                ],
            },
            "company": {"name": u.company.name},
        }
    )


@bp.patch("/profile")
@require_login
def profile_update():
    s = db_session()
    u = current_user()
    payload = json_body()

    first_name = clean_str(payload.get("firstName"))
    last_name = clean_str(payload.get("lastName"))
    if not first_name or not last_name:
        return errors_response(["First name and last name are required."])

    u.first_name = first_name
    u.last_name = last_name
    record_event(s, actor=u, action="user.update_profile", entity_type="User", entity_id=str(u.id))
    s.commit()
    return jsonify({"firstName": u.first_name, "lastName": u.last_name})
