from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from app.worklog.db import db_session
from app.worklog.modules.reports.service import (
    EXPORT_FORMATS,
    build_report,
    export_csv,
    export_html,
    parse_report_filters,
    query_entries,
)
from app.worklog.permissions import GENERATE_REPORTS
from app.worklog.rbac import require_permission
from app.worklog.utils import current_user, errors_response

bp = Blueprint("reports", __name__)


@bp.get("/reports")
@require_permission(GENERATE_REPORTS)
def reports_summary():
    filters, errors = parse_report_filters(request.args)
    if errors:
        return errors_response(errors)
    return jsonify(build_report(db_session(), current_user().company_id, filters))


@bp.get("/reports/export")
@require_permission(GENERATE_REPORTS)
def reports_export():
    fmt = (request.args.get("format") or "").strip().lower()
    if fmt not in EXPORT_FORMATS:
        return errors_response(["Invalid format. Use 'csv' or 'pdf'"])
    filters, errors = parse_report_filters(request.args)
    if errors:
        return errors_response(errors)

    u = current_user()
    entries = query_entries(db_session(), u.company_id, filters)
    current_app.logger.info("Report export format=%s rows=%s company_id=%s", fmt, len(entries), u.company_id)

    if fmt == "csv":
        return Response(
            export_csv(entries),
            mimetype="text/csv",
            headers={"Content-Disposition": 'attachment; filename="timesheet-report.csv"'},
        )
    # "pdf" is served as a printable HTML document.
    return Response(
        export_html(entries, filters),
        mimetype="text/html",
        headers={"Content-Disposition": 'attachment; filename="timesheet-report.html"'},
    )
