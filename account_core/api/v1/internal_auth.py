"""Internal authentication endpoints, called by the BFF.

- POST /api/v1/internal/auth/validate-credentials
- POST /api/v1/internal/auth/password-reset/request
- POST /api/v1/internal/auth/password-reset/confirm
- POST /api/v1/internal/auth/email-reset/request
- POST /api/v1/internal/auth/email-reset/confirm

Reset tokens are returned to the BFF, which delivers them to the user. This
service issues no sessions; the BFF does that after validate-credentials
succeeds.
"""

from flask import Blueprint, jsonify

from ...accounts import credentials, reset_tokens
from ...accounts.schemas import (
    AccountPublicView,
    CredentialsValidationRequest,
    CredentialsValidationResponse,
    EmailResetConfirmRequest,
    EmailResetConfirmResponse,
    EmailResetRequest,
    EmailResetResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    PasswordResetResponse,
)
from ...db import get_core
from ..validation import validate_request

internal_auth_bp = Blueprint("internal_auth", __name__, url_prefix="/internal/auth")


@internal_auth_bp.post("/validate-credentials")
@validate_request
def validate_credentials(data: CredentialsValidationRequest):
    """
    Check an email and password and stamp the login time.

    Returns:
        200: {valid: true, user}
        401: INVALID_CREDENTIALS
        403: NOT_VERIFIED (students only)
    """
    with get_core(atomic=True) as core:
        account = credentials.validate(core, data.email, data.password)

    response = CredentialsValidationResponse(valid=True, user=AccountPublicView.from_account(account))
    return jsonify(response.model_dump(mode="json"))


@internal_auth_bp.post("/password-reset/request")
@validate_request
def request_password_reset(data: PasswordResetRequest):
    """
    Start a password reset.

    The message is the same whether or not the email is registered; a
    token is included only when it is.

    Returns:
        200: {message, token?}
    """
    with get_core(atomic=True) as core:
        response = PasswordResetResponse(**reset_tokens.request_password_reset(core, data.email))

    return jsonify(response.model_dump(mode="json", exclude_none=True))


@internal_auth_bp.post("/password-reset/confirm")
@validate_request
def confirm_password_reset(data: PasswordResetConfirmRequest):
    """
    Set a new password with a reset token.

    Returns:
        204: Password changed
        400: INVALID_TOKEN
    """
    with get_core(atomic=True) as core:
        reset_tokens.confirm_password_reset(core, data.token, data.new_password)

    return "", 204


@internal_auth_bp.post("/email-reset/request")
@validate_request
def request_email_reset(data: EmailResetRequest):
    """
    Start an email change for an authenticated account.

    Returns:
        200: {token}
        404: Unknown account or old email mismatch
        409: New email already in use
    """
    with get_core(atomic=True) as core:
        token = reset_tokens.request_email_reset(
            core, str(data.user_id), data.old_email, data.new_email
        )

    return jsonify(EmailResetResponse(token=token).model_dump(mode="json"))


@internal_auth_bp.post("/email-reset/confirm")
@validate_request
def confirm_email_reset(data: EmailResetConfirmRequest):
    """
    Apply an email change with an email reset token.

    Returns:
        200: {new_email}
        400: INVALID_TOKEN
        409: New email taken in the meantime
    """
    with get_core(atomic=True) as core:
        new_email = reset_tokens.confirm_email_reset(core, data.token)

    return jsonify(EmailResetConfirmResponse(new_email=new_email).model_dump(mode="json"))
