"""Admin endpoints for account-core API.

- POST   /api/v1/admins          - Create an ADMIN or MAIN_ADMIN
- GET    /api/v1/admins          - List admins (?role=&status=)
- GET    /api/v1/admins/{id}     - Get an admin
- PATCH  /api/v1/admins/{id}     - Update an admin's name
- DELETE /api/v1/admins/{id}     - Soft delete an admin
"""

from flask import Blueprint, jsonify, request

from ...accounts import service
from ...accounts.schemas import AdminCreateRequest, AdminUpdateRequest
from ...db import get_core
from ...exceptions import InvalidArgument
from ...schema.types import AccountStatus, Role
from ..validation import validate_request

admins_bp = Blueprint("admins", __name__, url_prefix="/admins")


def _parse_enum(enum_cls, value: str | None, name: str):
    if not value:
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        raise InvalidArgument(f"Invalid {name}: {value}")


@admins_bp.post("")
@validate_request
def create_admin(data: AdminCreateRequest):
    """
    Create a verified admin account.

    Returns:
        201: Public view of the admin
        400: Role is not an admin role
        409: Email already registered
    """
    with get_core(atomic=True) as core:
        response = service.create_admin(core, data)

    return jsonify(response.model_dump(mode="json")), 201


@admins_bp.get("")
def list_admins():
    """
    List admins.

    Query Parameters:
        - role: ADMIN | MAIN_ADMIN (default: both)
        - status: ACTIVE | INACTIVE | BLOCKED (default: any)

    Returns:
        200: Array of admin public views
        400: Role or status not recognised, or role is STUDENT
    """
    role = _parse_enum(Role, request.args.get("role"), "role")
    status = _parse_enum(AccountStatus, request.args.get("status"), "status")

    core = get_core()
    admins = service.list_admins(core, role=role, status=status)

    return jsonify([a.model_dump(mode="json") for a in admins])


@admins_bp.get("/<admin_id>")
def get_admin(admin_id: str):
    core = get_core()
    return jsonify(service.get_admin(core, admin_id).model_dump(mode="json"))


@admins_bp.patch("/<admin_id>")
@validate_request
def update_admin(admin_id: str, data: AdminUpdateRequest):
    with get_core(atomic=True) as core:
        response = service.update_admin(core, admin_id, data)

    return jsonify(response.model_dump(mode="json"))


@admins_bp.delete("/<admin_id>")
def delete_admin(admin_id: str):
    """
    Soft delete an admin.

    Returns:
        204: No content
        404: No such admin
    """
    with get_core(atomic=True) as core:
        service.delete_admin(core, admin_id)

    return "", 204
