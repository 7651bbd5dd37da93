"""User lookup endpoints for other services.

- GET  /api/v1/users/{id}                 - Public view by ID
- GET  /api/v1/users/by-email?email=      - Public view by email
- POST /api/v1/users/batch/public         - Minimal views of active, verified users
"""

from flask import Blueprint, jsonify, request

from ...accounts import service
from ...accounts.schemas import BatchUserRequest
from ...db import get_core
from ...exceptions import ValidationError
from ..validation import validate_request

users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.get("/by-email")
def get_user_by_email():
    email = request.args.get("email", "").strip()
    if not email:
        raise ValidationError("Query parameter 'email' is required")

    core = get_core()
    return jsonify(service.get_user_by_email(core, email).model_dump(mode="json"))


@users_bp.get("/<user_id>")
def get_user(user_id: str):
    core = get_core()
    return jsonify(service.get_user(core, user_id).model_dump(mode="json"))


@users_bp.post("/batch/public")
@validate_request
def get_public_batch(data: BatchUserRequest):
    """
    Fetch public fields for many users at once.

    Unknown, deleted, inactive and unverified users are silently left out.

    Returns:
        200: Array of {id, full_name, whatsapp_number, email, code_number}
    """
    core = get_core()
    users = service.get_public_batch(core, [str(user_id) for user_id in data.user_ids])

    return jsonify([u.model_dump(mode="json") for u in users])
