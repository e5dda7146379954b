from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.worklog.utils import clean_str, iso, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.worklog.models import User
    from app.worklog.modules.training.models import Training

VALID_LEVELS = ("beginner", "intermediate", "advanced")
VALID_STATUSES = ("started", "in_progress", "completed", "others")
VALID_OUTCOMES = ("certificate", "demo", "others")

REQUIRED_FIELDS = (
    "courseName",
    "courseCategory",
    "organizationName",
    "certificateTitle",
    "level",
    "startDate",
    "status",
    "outcome",
)

# payload key -> model attribute
_TEXT_FIELDS = {
    "courseName": "course_name",
    "courseLink": "course_link",
    "courseCategory": "course_category",
    "organizationName": "organization_name",
    "certificateTitle": "certificate_title",
    "notes": "notes",
}
_DATE_FIELDS = {
    "startDate": "start_date",
    "endDate": "end_date",
    "expectedEndDate": "expected_end_date",
}


def validate_training_payload(payload: dict[str, Any]) -> list[str]:
    missing = [k for k in REQUIRED_FIELDS if not clean_str(payload.get(k))]
    if missing:
        return [f"Missing required fields: {', '.join(missing)}"]

    errors: list[str] = []
    if payload.get("level") not in VALID_LEVELS:
        errors.append("Invalid level.")
    if payload.get("status") not in VALID_STATUSES:
        errors.append("Invalid status.")
    if payload.get("outcome") not in VALID_OUTCOMES:
        errors.append("Invalid outcome.")
    for key in _DATE_FIELDS:
        try:
            parse_date(payload.get(key))
        except ValueError:
            errors.append(f"{key} must be YYYY-MM-DD.")
    return errors


def apply_training_payload(training: "Training", payload: dict[str, Any]) -> None:
    for key, attr in _TEXT_FIELDS.items():
        setattr(training, attr, clean_str(payload.get(key)))
    for key, attr in _DATE_FIELDS.items():
        setattr(training, attr, parse_date(payload.get(key)))
    training.level = payload["level"]
    training.status = payload["status"]
    training.outcome = payload["outcome"]
    training.updated_at = datetime.utcnow()


def create_training(s: "Session", payload: dict[str, Any], user: "User") -> "Training":
    from app.worklog.modules.training.models import Training

    training = Training(user_id=user.id)
    apply_training_payload(training, payload)
    s.add(training)
    s.flush()
    return training


def search_trainings(s: "Session", user: "User", *, search: str = "", status: str = "", level: str = ""):
    from app.worklog.modules.training.models import Training

    q = s.query(Training).filter(Training.user_id == user.id)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(
            or_(
                func.lower(Training.course_name).like(like),
                func.lower(Training.organization_name).like(like),
                func.lower(Training.course_category).like(like),
            )
        )
    if status and status != "all":
        q = q.filter(Training.status == status)
    if level and level != "all":
        q = q.filter(Training.level == level)
    return q.order_by(Training.created_at.desc(), Training.id.desc()).all()


def serialize_training(t: "Training") -> dict[str, Any]:
    return {
        "id": t.id,
        "userId": t.user_id,
        "courseName": t.course_name,
        "courseLink": t.course_link,
        "courseCategory": t.course_category,
        "organizationName": t.organization_name,
        "certificateTitle": t.certificate_title,
        "level": t.level,
        "status": t.status,
        "outcome": t.outcome,
        "startDate": iso(t.start_date),
        "endDate": iso(t.end_date),
        "expectedEndDate": iso(t.expected_end_date),
        "notes": t.notes,
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }
