from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.worklog.db import db_session
from app.worklog.models import User
from app.worklog.modules.dashboard.service import compute_company_stats, compute_user_stats
from app.worklog.modules.reports.service import ReportFilters, parse_report_filters
from app.worklog.permissions import VIEW_ALL_TIMESHEETS, VIEW_ANALYTICS
from app.worklog.rbac import current_user_can, require_login, require_permission
from app.worklog.utils import current_user, errors_response, parse_date, parse_id

bp = Blueprint("dashboard", __name__)


@bp.get("/dashboard/stats")
@require_permission(VIEW_ANALYTICS)
def dashboard_stats():
    filters, errors = parse_report_filters(request.args)
    if errors:
        return errors_response(errors)
    # Team filter is not offered on the dashboard.
    filters = ReportFilters(
        date_from=filters.date_from,
        date_to=filters.date_to,
        user_id=filters.user_id,
        project_id=filters.project_id,
    )
    return jsonify(compute_company_stats(db_session(), current_user().company_id, filters))


@bp.get("/dashboard/user-stats")
@require_login
def dashboard_user_stats():
    s = db_session()
    u = current_user()
    try:
        date_from = parse_date(request.args.get("from"))
        date_to = parse_date(request.args.get("to"))
    except ValueError:
        return errors_response(["from/to must be YYYY-MM-DD"])

    user_id = parse_id(request.args.get("userId")) or u.id
    if user_id != u.id:
        if not current_user_can(VIEW_ALL_TIMESHEETS):
            abort(403)
        other = s.get(User, user_id)
        if not other or other.company_id != u.company_id:
            abort(404, description="User not found")

    return jsonify(compute_user_stats(s, user_id, date_from=date_from, date_to=date_to))
