"""
Permission catalog and the two authorization predicates built on it.

Everything here is pure: callers pass the granted permission names explicitly
(the snapshot stored in the session at login), so role edits only take effect
after the affected user logs in again.
"""
from __future__ import annotations

from collections.abc import Collection, Hashable, Iterable
from types import MappingProxyType

MANAGE_USERS = "manage_users"
MANAGE_ROLES = "manage_roles"
VIEW_ANALYTICS = "view_analytics"
DELETE_USERS = "delete_users"
EDIT_SETTINGS = "edit_settings"
MANAGE_PROJECTS = "manage_projects"
MANAGE_TEAMS = "manage_teams"
MANAGE_ASSIGNED_TEAMS = "manage_assigned_teams"  # only teams the caller is a member of
VIEW_ALL_TIMESHEETS = "view_all_timesheets"
EDIT_ALL_TIMESHEETS = "edit_all_timesheets"
MANAGE_TIMESHEETS = "manage_timesheets"
GENERATE_REPORTS = "generate_reports"

# name -> description, seeded into the permissions table
PERMISSION_CATALOG: MappingProxyType[str, str] = MappingProxyType(
    {
        MANAGE_USERS: "Create, edit, and manage user accounts",
        MANAGE_ROLES: "Create and edit roles and permissions",
        VIEW_ANALYTICS: "Access dashboard analytics and reports",
        DELETE_USERS: "Delete user accounts permanently",
        EDIT_SETTINGS: "Modify system and company settings",
        MANAGE_PROJECTS: "Create and manage projects",
        MANAGE_TEAMS: "Create and manage all teams",
        MANAGE_ASSIGNED_TEAMS: "Manage only assigned teams (for team leads)",
        VIEW_ALL_TIMESHEETS: "View timesheets for all users",
        EDIT_ALL_TIMESHEETS: "Edit timesheets for all users",
        MANAGE_TIMESHEETS: "Full timesheet management including creating entries for others",
        GENERATE_REPORTS: "Access and generate reports",
    }
)

ALL_PERMISSIONS = frozenset(PERMISSION_CATALOG)

OWNER_ROLE = "Owner"
EMPLOYEE_ROLE = "Employee"

DEFAULT_ROLE_PERMISSIONS: MappingProxyType[str, frozenset[str]] = MappingProxyType(
    {
        OWNER_ROLE: frozenset(
            {
                MANAGE_USERS,
                MANAGE_ROLES,
                VIEW_ANALYTICS,
                DELETE_USERS,
                EDIT_SETTINGS,
                MANAGE_PROJECTS,
                MANAGE_TEAMS,
                VIEW_ALL_TIMESHEETS,
                EDIT_ALL_TIMESHEETS,
                MANAGE_TIMESHEETS,
                GENERATE_REPORTS,
            }
        ),
        EMPLOYEE_ROLE: frozenset(),
    }
)

DEFAULT_ROLE_DESCRIPTIONS = {
    OWNER_ROLE: "Company owner with full access",
    EMPLOYEE_ROLE: "Basic employee access",
}


def is_known_permission(name: str | None) -> bool:
    return bool(name) and name in ALL_PERMISSIONS


def unknown_permissions(names: Iterable[str]) -> list[str]:
    """Names that are not part of the catalog, in input order, without duplicates."""
    seen: list[str] = []
    for n in names:
        if n not in ALL_PERMISSIONS and n not in seen:
            seen.append(n)
    return seen


def has_permission(granted: Collection[str] | None, requested: str | None) -> bool:
    """Flat membership test. No wildcards, no hierarchy."""
    # a bare string is not a grant set; `in` would do a substring match
    if not granted or not requested or isinstance(granted, (str, bytes)):
        return False
    return requested in granted


def can_manage_team(
    granted: Collection[str] | None,
    user_id: Hashable,
    team_member_ids: Collection[Hashable] | None,
) -> bool:
    # Global team admins never need membership.
    if has_permission(granted, MANAGE_TEAMS):
        return True
    if has_permission(granted, MANAGE_ASSIGNED_TEAMS):
        if not team_member_ids or isinstance(team_member_ids, (str, bytes)):
            return False
        return user_id in team_member_ids
    return False
