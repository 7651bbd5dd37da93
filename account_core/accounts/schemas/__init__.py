"""Account Pydantic schemas for API validation."""

from .accounts import (
    AccountBatchView,
    AccountPublicView,
    AdminCreateRequest,
    AdminUpdateRequest,
    BatchUserRequest,
    CredentialsValidationRequest,
    CredentialsValidationResponse,
    EmailResetConfirmRequest,
    EmailResetConfirmResponse,
    EmailResetRequest,
    EmailResetResponse,
    PaginatedStudentsResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    PasswordResetResponse,
    ResendVerificationCodeRequest,
    ResendVerificationCodeResponse,
    StudentListItem,
    StudentRegistrationRequest,
    StudentRegistrationResponse,
    StudentUpdateRequest,
    VerifyCodeRequest,
)

__all__ = [
    "AccountBatchView",
    "AccountPublicView",
    "AdminCreateRequest",
    "AdminUpdateRequest",
    "BatchUserRequest",
    "CredentialsValidationRequest",
    "CredentialsValidationResponse",
    "EmailResetConfirmRequest",
    "EmailResetConfirmResponse",
    "EmailResetRequest",
    "EmailResetResponse",
    "PaginatedStudentsResponse",
    "PasswordResetConfirmRequest",
    "PasswordResetRequest",
    "PasswordResetResponse",
    "ResendVerificationCodeRequest",
    "ResendVerificationCodeResponse",
    "StudentListItem",
    "StudentRegistrationRequest",
    "StudentRegistrationResponse",
    "StudentUpdateRequest",
    "VerifyCodeRequest",
]
