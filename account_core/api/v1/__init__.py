"""API v1 endpoints for account-core.

This module provides the ApiV1 blueprint that aggregates all v1 resources:
- Students (registration, verification, profile, listing)
- Admins
- Users (lookups for other services)
- Internal auth (credential validation, password and email reset)

The ApiV1 blueprint is registered in main.py and provides a central point
for applying the service-to-service token check to all v1 endpoints.

Every API v1 endpoint requires the caller to present the shared service
token in the configured header (X-Service-Token by default).
"""

import hmac
import logging

from flask import Blueprint, request

from ...config import settings
from ...exceptions import AuthenticationError
from . import admins, internal_auth, students, users

logger = logging.getLogger(__name__)

# Create the ApiV1 blueprint
api_v1_bp = Blueprint("api_v1", __name__, url_prefix=settings.api_v1_prefix)


# ============================================================================
# Service Token Middleware (ApiV1-level)
# ============================================================================


def _service_token_matches(presented: str) -> bool:
    expected = settings.internal_service_token
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


@api_v1_bp.before_request
def authenticate_service():
    """
    Require the internal service token on every API v1 endpoint.

    An empty configured token rejects every request.

    Raises:
        AuthenticationError: If the header is missing or does not match
    """
    presented = request.headers.get(settings.service_token_header, "")
    if not _service_token_matches(presented):
        logger.warning(f"Rejected service token for {request.method} {request.path}")
        raise AuthenticationError("Invalid or missing service token")


api_v1_bp.register_blueprint(students.students_bp)
api_v1_bp.register_blueprint(admins.admins_bp)
api_v1_bp.register_blueprint(users.users_bp)
api_v1_bp.register_blueprint(internal_auth.internal_auth_bp)

__all__ = ["api_v1_bp"]
