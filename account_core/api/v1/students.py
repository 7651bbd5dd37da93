"""Student endpoints for account-core API.

This module implements the student lifecycle endpoints:
- POST  /api/v1/students/registrations             - Register a student
- POST  /api/v1/students/verify-code               - Verify registration code
- POST  /api/v1/students/resend-verification-code  - New code number and code
- GET   /api/v1/students                           - Paginated, filtered listing
- GET   /api/v1/students/{id}                      - Get a student
- PATCH /api/v1/students/{id}                      - Partial profile update

State changes run in one atomic Core per request. Verification failures
are raised only after the Core has committed, so a wrong attempt still
counts against the code.
"""

import logging

from flask import Blueprint, jsonify, request

from ...accounts import service
from ...accounts.schemas import (
    AccountPublicView,
    ResendVerificationCodeRequest,
    StudentRegistrationRequest,
    StudentUpdateRequest,
    VerifyCodeRequest,
)
from ...db import get_core
from ...exceptions import ValidationError
from ...schema.types import AccountStatus
from ..validation import validate_request

logger = logging.getLogger(__name__)

students_bp = Blueprint("students", __name__, url_prefix="/students")

MAX_PAGE_SIZE = 100


@students_bp.post("/registrations")
@validate_request
def register_student(data: StudentRegistrationRequest):
    """
    Register a new, unverified student.

    Returns:
        201: {user, verification_code_generated}
        409: Email or NIC already registered
        503: No code number available
    """
    with get_core(atomic=True) as core:
        response = service.register_student(core, data)

    return jsonify(response.model_dump(mode="json")), 201


@students_bp.post("/verify-code")
@validate_request
def verify_code(data: VerifyCodeRequest):
    """
    Verify a student's registration code.

    Returns:
        200: Public view of the (now verified) student
        400: INVALID_CODE, RETRIES_EXHAUSTED or NO_ACTIVE_CODE
        404: Unknown email
    """
    with get_core(atomic=True) as core:
        result = service.verify_student_code(core, data.email, data.code)
    # Committed: retry counts and burns persist even when the attempt failed
    result.raise_for_failure()

    return jsonify(AccountPublicView.from_account(result.account).model_dump(mode="json"))


@students_bp.post("/resend-verification-code")
@validate_request
def resend_verification_code(data: ResendVerificationCodeRequest):
    """
    Issue a new code number and verification code to an unverified student.

    Returns:
        200: {success, message, code}; success is false if already verified
        400: Account is not a student
        404: Unknown email
    """
    with get_core(atomic=True) as core:
        response = service.resend_verification_code(core, data.email)

    return jsonify(response.model_dump(mode="json"))


def _parse_bool(value: str | None, name: str) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValidationError(f"Invalid boolean for {name}", {name: value})


def _parse_positive_int(value: str | None, name: str, default: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f"Invalid integer for {name}", {name: value})
    if number < 1:
        raise ValidationError(f"{name} must be at least 1", {name: value})
    return number


@students_bp.get("")
def list_students():
    """
    List students newest first.

    Query Parameters:
        - page: int - 1-based page number (default: 1)
        - page_size: int - Page size, at most 100 (default: 20)
        - email: str - Case-insensitive substring
        - name: str - Case-insensitive substring of the full name
        - whatsapp_number: str - Substring
        - code_number: str - Substring
        - is_verified: bool
        - status: ACTIVE | INACTIVE | BLOCKED (unknown values are ignored)

    Returns:
        200: {items, total}
    """
    page = _parse_positive_int(request.args.get("page"), "page", 1)
    page_size = min(_parse_positive_int(request.args.get("page_size"), "page_size", 20), MAX_PAGE_SIZE)

    status = None
    raw_status = request.args.get("status", "").strip().upper()
    if raw_status:
        try:
            status = AccountStatus(raw_status)
        except ValueError:
            logger.warning(f"Ignoring invalid status filter: {raw_status}")

    filters = {
        "email": request.args.get("email"),
        "name": request.args.get("name"),
        "whatsapp_number": request.args.get("whatsapp_number"),
        "code_number": request.args.get("code_number"),
        "is_verified": _parse_bool(request.args.get("is_verified"), "is_verified"),
        "status": status,
    }

    core = get_core()
    response = service.list_students(core, page=page, page_size=page_size, filters=filters)

    return jsonify(response.model_dump(mode="json"))


@students_bp.get("/<student_id>")
def get_student(student_id: str):
    """
    Get a student by ID.

    Returns:
        200: Public view of the student
        404: No such student
    """
    core = get_core()
    return jsonify(service.get_student(core, student_id).model_dump(mode="json"))


@students_bp.patch("/<student_id>")
@validate_request
def update_student(student_id: str, data: StudentUpdateRequest):
    """
    Update a student's profile. Only provided fields change.

    Returns:
        200: Public view of the updated student
        404: No such student
    """
    with get_core(atomic=True) as core:
        response = service.update_student(core, student_id, data)

    return jsonify(response.model_dump(mode="json"))
