from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import abort, g, jsonify, request

from app.worklog.models import User


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def json_body() -> dict[str, Any]:
    """Request JSON as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object.")
    return data


def errors_response(errors: list[str], status: int = 400):
    return jsonify({"error": errors[0], "errors": errors}), status


def clean_str(value: Any) -> str | None:
    """Trimmed string or None for blank/missing values."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD, or a full ISO timestamp cut to its date part."""
    if s is None:
        return None
    s = str(s).strip()
    if not s:
        return None
    day, sep, _ = s.partition("T")
    if sep:
        # the time part must be valid too
        datetime.fromisoformat(s[:-1] + "+00:00" if s.endswith("Z") else s)
    return date.fromisoformat(day)


def parse_decimal(value: Any) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError("not a number")
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError("not a number") from e
    # finite values only (rejects NaN, sNaN, Infinity)
    if not d.is_finite():
        raise ValueError("not a number")
    return d


def parse_id(value: Any) -> int | None:
    """Integer id from query/body values; None for blank, 'all', or junk."""
    if value is None:
        return None
    s = str(value).strip()
    if not s or s == "all":
        return None
    try:
        return int(s)
    except ValueError:
        return None


def money(value: Decimal | float | int | None) -> float:
    return float(value or 0)


def iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None
