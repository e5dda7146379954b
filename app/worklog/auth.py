from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, abort, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.worklog.audit import record_event
from app.worklog.db import db_session
from app.worklog.models import Company, User
from app.worklog.modules.roles.service import create_default_roles
from app.worklog.modules.users.service import (
    EMAIL_RE,
    email_taken,
    normalize_email,
    serialize_user,
    validate_password,
)
from app.worklog.permissions import OWNER_ROLE
from app.worklog.rbac import current_permissions, permission_snapshot, require_login
from app.worklog.security import ensure_csrf_token, rotate_csrf_token
from app.worklog.utils import clean_str, current_user, errors_response, json_body

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)


def _check_rate_limit(ip: str) -> bool:
    limit = int(current_app.config.get("LOGIN_RATE_LIMIT", 5))
    window = int(current_app.config.get("LOGIN_RATE_WINDOW", 300))
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=window)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= limit


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie and g.permissions from the
    permission snapshot taken at login. Also assigns a per-request request_id.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.permissions = []
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    user_id = session.get("user_id")
    if not user_id:
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        _clear_login()
        return

    if not user or not user.is_active:
        _clear_login()
        return
    g.current_user = user
    g.permissions = list(session.get("permissions") or [])


def _start_session(user: User) -> None:
    session["user_id"] = user.id
    session["company_id"] = user.company_id
    session["role_name"] = user.role.name if user.role else None
    session["permissions"] = permission_snapshot(user)
    rotate_csrf_token()
    g.current_user = user
    g.permissions = session["permissions"]


def _clear_login() -> None:
    for key in ("user_id", "company_id", "role_name", "permissions"):
        session.pop(key, None)
    g.current_user = None
    g.permissions = []


def _session_payload() -> dict:
    user = getattr(g, "current_user", None)
    return {
        "authenticated": user is not None,
        "user": serialize_user(user) if user else None,
        "roleName": session.get("role_name") if user else None,
        "permissions": current_permissions(),
        "csrf_token": ensure_csrf_token(),
    }


@bp.post("/signup")
def signup():
    """
    Create a company, its default Owner/Employee roles and the owner account.
    The permission catalog is seeded on the way if it is missing.
    """
    s = db_session()
    payload = json_body()

    company_name = clean_str(payload.get("companyName"))
    email = normalize_email(payload.get("email"))
    errors: list[str] = []
    if not company_name:
        errors.append("Company name is required.")
    if not clean_str(payload.get("firstName")) or not clean_str(payload.get("lastName")):
        errors.append("First name and last name are required.")
    if not EMAIL_RE.match(email):
        errors.append("A valid email is required.")
    elif email_taken(s, email):
        errors.append("User with this email already exists.")
    errors.extend(validate_password(payload.get("password")))
    if errors:
        return errors_response(errors)

    company = Company(name=company_name)
    s.add(company)
    s.flush()
    roles = create_default_roles(s, company)
    owner = User(
        company_id=company.id,
        role=roles[OWNER_ROLE],
        email=email,
        password_hash=generate_password_hash(payload["password"]),
        first_name=clean_str(payload.get("firstName")) or "",
        last_name=clean_str(payload.get("lastName")) or "",
        is_active=True,
        must_change_password=False,
        profile_completed=True,
    )
    s.add(owner)
    s.flush()
    record_event(
        s,
        actor=owner,
        action="company.signup",
        entity_type="Company",
        entity_id=str(company.id),
        metadata={"company": company.name, "owner_email": owner.email},
    )
    s.commit()
    current_app.logger.info("Company created company_id=%s owner_id=%s", company.id, owner.id)
    return jsonify({"message": "Company and owner account created successfully", "companyId": company.id}), 201


@bp.post("/login")
def login():
    payload = json_body()
    email = normalize_email(payload.get("email"))
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit ip=%s", ip)
        minutes = max(1, int(current_app.config.get("LOGIN_RATE_WINDOW", 300)) // 60)
        abort(429, description=f"Too many login attempts. Please wait {minutes} minutes.")

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, str(password)):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
            company_id=user.company_id if user else None,
        )
        s.commit()
        current_app.logger.info("Login failed email=%s request_id=%s", email, getattr(g, "request_id", None))
        abort(401, description="Invalid credentials")

    _start_session(user)
    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return jsonify(_session_payload())


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    _clear_login()
    return jsonify({"message": "Logged out"})


@bp.get("/session")
def session_info():
    return jsonify(_session_payload())


@bp.post("/change-password")
@require_login
def change_password():
    s = db_session()
    u = current_user()
    payload = json_body()

    if not check_password_hash(u.password_hash, str(payload.get("currentPassword") or "")):
        return errors_response(["Current password is incorrect."])
    new_password = payload.get("newPassword")
    errors = validate_password(new_password)
    if not errors and new_password == payload.get("currentPassword"):
        errors.append("New password must be different from the current password.")
    if errors:
        return errors_response(errors)

    u.password_hash = generate_password_hash(new_password)
    u.must_change_password = False
    record_event(s, actor=u, action="auth.change_password", entity_type="User", entity_id=str(u.id))
    s.commit()
    return jsonify({"message": "Password changed successfully", "profileCompleted": u.profile_completed})


@bp.post("/complete-profile")
@require_login
def complete_profile():
    s = db_session()
    u = current_user()
    payload = json_body()

    first_name = clean_str(payload.get("firstName"))
    last_name = clean_str(payload.get("lastName"))
    if not first_name or not last_name:
        return errors_response(["First name and last name are required."])

    u.first_name = first_name
    u.last_name = last_name
    u.profile_completed = True
    record_event(s, actor=u, action="user.complete_profile", entity_type="User", entity_id=str(u.id))
    s.commit()
    return jsonify({"message": "Profile completed successfully"})
