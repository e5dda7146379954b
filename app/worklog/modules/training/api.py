from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.worklog.db import db_session
from app.worklog.modules.training.models import Training
from app.worklog.modules.training.service import (
    apply_training_payload,
    create_training,
    search_trainings,
    serialize_training,
    validate_training_payload,
)
from app.worklog.rbac import require_login
from app.worklog.utils import current_user, errors_response, json_body

bp = Blueprint("training", __name__)


def _get_own_training(training_id: int) -> Training:
    t = db_session().get(Training, training_id)
    if not t or t.user_id != current_user().id:
        abort(404, description="Training not found")
    return t


@bp.get("/training")
@require_login
def training_list():
    trainings = search_trainings(
        db_session(),
        current_user(),
        search=(request.args.get("search") or "").strip(),
        status=(request.args.get("status") or "").strip(),
        level=(request.args.get("level") or "").strip(),
    )
    return jsonify([serialize_training(t) for t in trainings])


@bp.post("/training")
@require_login
def training_create():
    s = db_session()
    payload = json_body()
    errors = validate_training_payload(payload)
    if errors:
        return errors_response(errors)
    t = create_training(s, payload, current_user())
    s.commit()
    return jsonify(serialize_training(t)), 201


@bp.get("/training/<int:training_id>")
@require_login
def training_detail(training_id: int):
    return jsonify(serialize_training(_get_own_training(training_id)))


@bp.put("/training/<int:training_id>")
@require_login
def training_update(training_id: int):
    s = db_session()
    t = _get_own_training(training_id)
    payload = json_body()
    errors = validate_training_payload(payload)
    if errors:
        return errors_response(errors)
    apply_training_payload(t, payload)
    s.commit()
    return jsonify(serialize_training(t))


@bp.delete("/training/<int:training_id>")
@require_login
def training_delete(training_id: int):
    s = db_session()
    s.delete(_get_own_training(training_id))
    s.commit()
    return jsonify({"message": "Training deleted successfully"})
