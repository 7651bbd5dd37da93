"""Custom exceptions for account-core.

Every exception carries a stable ``kind`` (what went wrong, as reported to
callers) and the HTTP status code the API layer maps it to. Expected
outcomes (wrong code, wrong password, bad token) are raised as these types
and rendered by the error handlers in main.py.
"""


class AccountCoreError(Exception):
    """Base exception for all account-core errors."""

    kind = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AlreadyExists(AccountCoreError):
    """An account with the same unique key (email, NIC) already exists."""

    kind = "ALREADY_EXISTS"
    status_code = 409


class ResourceNotFound(AccountCoreError):
    """Requested account does not exist (or is soft-deleted)."""

    kind = "NOT_FOUND"
    status_code = 404


class InvalidCode(AccountCoreError):
    """Supplied verification code does not match; retries remain."""

    kind = "INVALID_CODE"
    status_code = 400


class RetriesExhausted(AccountCoreError):
    """Verification code was burned after too many wrong attempts."""

    kind = "RETRIES_EXHAUSTED"
    status_code = 400


class NoActiveCode(AccountCoreError):
    """No usable verification code exists for the account."""

    kind = "NO_ACTIVE_CODE"
    status_code = 400


class InvalidCredentials(AccountCoreError):
    """Login rejected: unknown email, wrong password or inactive account."""

    kind = "INVALID_CREDENTIALS"
    status_code = 401


class NotVerified(AccountCoreError):
    """Student account has not completed verification."""

    kind = "NOT_VERIFIED"
    status_code = 403


class InvalidToken(AccountCoreError):
    """Reset token is malformed, unknown, expired, used or has a wrong secret."""

    kind = "INVALID_TOKEN"
    status_code = 400


class CapacityExhausted(AccountCoreError):
    """No code partition yielded a free slot within the retry budget."""

    kind = "CAPACITY_EXHAUSTED"
    status_code = 503


class InvalidArgument(AccountCoreError):
    """Operation called with a role or purpose it does not support."""

    kind = "INVALID_ARGUMENT"
    status_code = 400


class ValidationError(AccountCoreError):
    """Request data failed schema validation."""

    kind = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(AccountCoreError):
    """Caller failed the service-to-service token check."""

    kind = "UNAUTHORIZED"
    status_code = 401


class DatabaseError(AccountCoreError):
    """Unexpected persistence failure."""

    kind = "DATABASE_ERROR"
    status_code = 500
