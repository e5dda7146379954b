from __future__ import annotations

from typing import Any

from flask import Blueprint, abort, jsonify

from app.worklog.audit import record_event
from app.worklog.db import db_session
from app.worklog.models import Company
from app.worklog.permissions import EDIT_SETTINGS
from app.worklog.rbac import require_permission
from app.worklog.utils import clean_str, current_user, errors_response, json_body

bp = Blueprint("settings", __name__)

VALID_THEMES = ("light", "dark", "system")


def _serialize_company(company: Company) -> dict[str, Any]:
    return {"id": company.id, "name": company.name, "theme": company.theme}


def _get_company() -> Company:
    company = db_session().get(Company, current_user().company_id)
    if not company:
        abort(404, description="Company not found")
    return company


@bp.get("/settings")
@require_permission(EDIT_SETTINGS)
def settings_get():
    return jsonify(_serialize_company(_get_company()))


@bp.patch("/settings")
@require_permission(EDIT_SETTINGS)
def settings_update():
    s = db_session()
    company = _get_company()
    payload = json_body()

    errors: list[str] = []
    if "name" in payload and not clean_str(payload.get("name")):
        errors.append("Company name is required.")
    if "theme" in payload and payload.get("theme") not in VALID_THEMES:
        errors.append("Invalid theme value.")
    if errors:
        return errors_response(errors)

    changes: dict[str, Any] = {}
    if "name" in payload:
        new_name = clean_str(payload["name"])
        if new_name != company.name:
            changes["name"] = {"old": company.name, "new": new_name}
            company.name = new_name
    if "theme" in payload and payload["theme"] != company.theme:
        changes["theme"] = {"old": company.theme, "new": payload["theme"]}
        company.theme = payload["theme"]

    record_event(
        s,
        actor=current_user(),
        action="company.settings_update",
        entity_type="Company",
        entity_id=str(company.id),
        metadata={"changes": changes},
    )
    s.commit()
    return jsonify(_serialize_company(company))
