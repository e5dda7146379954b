import logging
import os
from datetime import timedelta

from flask import Flask, g, jsonify, request, session
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.worklog.config import load_config
from app.worklog.db import init_db, teardown_db_session
from app.worklog.routes import bp as routes_bp
from app.worklog.auth import bp as auth_bp, load_current_user
from app.worklog.modules.roles.api import bp as roles_bp
from app.worklog.modules.users.api import bp as users_bp
from app.worklog.modules.teams.api import bp as teams_bp
from app.worklog.modules.projects.api import bp as projects_bp
from app.worklog.modules.timesheets.api import bp as timesheets_bp
from app.worklog.modules.reports.api import bp as reports_bp
from app.worklog.modules.dashboard.api import bp as dashboard_bp
from app.worklog.modules.settings.api import bp as settings_bp
from app.worklog.modules.training.api import bp as training_bp

logger = logging.getLogger(__name__)

_ERROR_LABELS = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    413: "Request too large",
    429: "Too many requests",
}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=app.config["SESSION_LIFETIME_HOURS"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.worklog.security import ensure_csrf_token, validate_csrf

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Signup/login/logout run before a client can hold a token.
            if (request.endpoint or "").startswith("auth."):
                return None
            # Anonymous writes are rejected with 401 by the permission layer.
            if not session.get("user_id"):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    for api_bp in (
        roles_bp,
        users_bp,
        teams_bp,
        projects_bp,
        timesheets_bp,
        reports_bp,
        dashboard_bp,
        settings_bp,
        training_bp,
    ):
        app.register_blueprint(api_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        code = e.code or 500
        if code >= 500:
            return _err_500(e)
        body = {"error": _ERROR_LABELS.get(code, e.name)}
        # werkzeug fills in a generic description; only surface ones we set.
        if e.description and e.description != type(e).description:
            body["error"] = e.description
        missing = getattr(g, "missing_permission", None)
        if code == 403 and missing:
            body["missing_permission"] = missing
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return jsonify(body), code

    @app.errorhandler(Exception)
    def _err_500(e):  # type: ignore[no-redef]
        if isinstance(e, HTTPException) and (e.code or 500) < 500:
            return _err_http(e)
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500

    logger.info("create_app() complete; app ready to serve")

    return app
