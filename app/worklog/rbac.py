from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.worklog.models import User
from app.worklog.permissions import can_manage_team, has_permission


def permission_snapshot(user: User | None) -> list[str]:
    """
    Permission names granted by the user's role right now.
    Stored in the session at login; later role edits are not seen until the next login.
    """
    if not user or not user.is_active or not user.role:
        return []
    return sorted({p.name for p in user.role.permissions})


def current_permissions() -> list[str]:
    return list(getattr(g, "permissions", None) or [])


def current_user_can(permission_key: str) -> bool:
    user: User | None = getattr(g, "current_user", None)
    if not user:
        return False
    return has_permission(current_permissions(), permission_key)


def current_user_can_manage_team(member_ids: list[int]) -> bool:
    user: User | None = getattr(g, "current_user", None)
    if not user:
        return False
    return can_manage_team(current_permissions(), user.id, member_ids)


def _deny(permission_key: str) -> None:
    g.missing_permission = permission_key
    abort(403)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401
            if not user or not user.is_active:
                abort(401)
            # Authenticated but unauthorized -> 403
            if not has_permission(current_permissions(), permission_key):
                _deny(permission_key)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_any_permission(*permission_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                abort(401)
            granted = current_permissions()
            if not any(has_permission(granted, k) for k in permission_keys):
                _deny(" | ".join(permission_keys))
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_team_access(member_ids: list[int]) -> None:
    """Abort with 403 unless the caller may manage a team with these members."""
    if not current_user_can_manage_team(member_ids):
        _deny("manage_teams | manage_assigned_teams")
