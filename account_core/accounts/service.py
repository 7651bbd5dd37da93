"""Account service: registration, verification and account management.

Every function takes the Core whose transaction it runs in. State-changing
functions expect an atomic Core; the caller's ``with get_core(atomic=True)``
block commits the whole operation at once. Notifications are scheduled with
``core.on_commit`` and go out only after that commit.

Functions return response schemas ready for the API layer, or raise
account-core exceptions for expected failures.
"""

import logging
import sqlite3
from typing import Any

from ..config import settings
from ..db import Core
from ..exceptions import AlreadyExists, InvalidArgument, ResourceNotFound
from ..schema.types import Account, AccountStatus, Role
from ..utils import isodatetime
from . import allocator, verification
from .notifications import NotificationPurpose, get_notifier
from .passwords import hash_password
from .schemas import (
    AccountBatchView,
    AccountPublicView,
    AdminCreateRequest,
    AdminUpdateRequest,
    PaginatedStudentsResponse,
    ResendVerificationCodeResponse,
    StudentListItem,
    StudentRegistrationRequest,
    StudentRegistrationResponse,
    StudentUpdateRequest,
)

logger = logging.getLogger(__name__)


def _notify_after_commit(
    core: Core,
    account: Account,
    purpose: NotificationPurpose,
    **payload: Any
) -> None:
    account_id = account.id
    payload.setdefault("email", account.email)
    payload.setdefault("ttl_minutes", settings.verification_code_ttl_minutes)
    core.on_commit(lambda: get_notifier().notify(account_id, purpose, payload))


# Unique constraint named in the SQLite error -> (field, message)
UNIQUE_VIOLATIONS = {
    "idx_users_email_unique": ("email", "User with this email already exists"),
    "users.nic": ("nic", "User with this NIC already exists"),
    "users.code_number": ("code_number", "Code number is already assigned"),
}


def _create_account(core: Core, **fields: Any) -> Account:
    try:
        return core.account.create(**fields)
    except sqlite3.IntegrityError as e:
        # Unique index caught a concurrent insert the pre-checks missed
        logger.warning(f"Account insert rejected by constraint: {e}")
        for constraint, (field, message) in UNIQUE_VIOLATIONS.items():
            if constraint in str(e):
                raise AlreadyExists(message, {field: fields.get(field)}) from e
        raise


# ============================================================================
# Student registration and verification
# ============================================================================


def register_student(core: Core, data: StudentRegistrationRequest) -> StudentRegistrationResponse:
    """
    Register an unverified student and issue the first verification code.

    The verification code equals the student's newly allocated code number.

    Raises:
        AlreadyExists: If the email or NIC is already registered
        CapacityExhausted: If no code number could be allocated
    """
    logger.info("Registering new student")

    if core.account.exists_by_email(data.email):
        logger.warning("Registration rejected: email already registered")
        raise AlreadyExists(f"User with email {data.email} already exists", {"email": data.email})

    if core.account.exists_by_nic(data.nic):
        logger.warning("Registration rejected: NIC already registered")
        raise AlreadyExists("User with this NIC already exists", {"nic": data.nic})

    code_number = allocator.allocate(core)

    account = _create_account(
        core,
        full_name=data.full_name,
        email=data.email,
        role=Role.STUDENT,
        password_hash=hash_password(data.password),
        is_verified=False,
        code_number=code_number,
        whatsapp_number=data.whatsapp_number,
        school=data.school,
        address=data.address,
        nic=data.nic,
    )
    verification.issue(core, account.id, code_number)

    _notify_after_commit(core, account, NotificationPurpose.STUDENT_REGISTERED, code=code_number)
    logger.info(f"Registered student {account.id} with code number {code_number}")

    return StudentRegistrationResponse(
        user=AccountPublicView.from_account(account),
        verification_code_generated=True,
    )


def verify_student_code(core: Core, email: str, code: str) -> verification.VerificationResult:
    """
    Verify a student's registration code.

    The result is returned rather than raised so that retry counting is
    committed; the caller raises ``result.raise_for_failure()`` afterwards.

    Raises:
        ResourceNotFound: If no live account has this email
    """
    account = core.account.get_by_email(email)
    if account is None:
        raise ResourceNotFound(f"User not found with email: {email}")

    result = verification.verify(core, account, code)
    if result.outcome == verification.VerificationOutcome.VERIFIED:
        _notify_after_commit(
            core, result.account, NotificationPurpose.STUDENT_VERIFIED,
            code=result.account.code_number
        )
    return result


def resend_verification_code(core: Core, email: str) -> ResendVerificationCodeResponse:
    """
    Give a student a new code number and a matching verification code.

    Raises:
        ResourceNotFound: If no live account has this email
        InvalidArgument: If the account is not a student
    """
    account = core.account.get_by_email(email)
    if account is None:
        raise ResourceNotFound(f"User not found with email: {email}")

    if account.is_verified:
        logger.info(f"Account {account.id} is already verified, no code resent")
        return ResendVerificationCodeResponse(success=False, message="User is already verified")

    account, code = verification.resend(core, account)

    _notify_after_commit(core, account, NotificationPurpose.VERIFICATION_CODE_RESENT, code=code.code)
    return ResendVerificationCodeResponse(
        success=True,
        message="Verification code has been resent",
        code=code.code,
    )


# ============================================================================
# Students
# ============================================================================


def _get_student(core: Core, student_id: str) -> Account:
    account = core.account.get_by_id(student_id)
    if account is None:
        raise ResourceNotFound(f"Student not found with ID: {student_id}")
    if not account.is_student:
        raise ResourceNotFound(f"User with ID {student_id} is not a student")
    return account


def get_student(core: Core, student_id: str) -> AccountPublicView:
    return AccountPublicView.from_account(_get_student(core, student_id))


def update_student(core: Core, student_id: str, data: StudentUpdateRequest) -> AccountPublicView:
    """Apply the provided profile fields to a student."""
    account = _get_student(core, student_id)
    account = core.account.save(account.update_profile(**data.model_dump(exclude_unset=True)))
    logger.info(f"Updated student {student_id}")
    return AccountPublicView.from_account(account)


def list_students(
    core: Core,
    page: int = 1,
    page_size: int = 20,
    filters: dict[str, Any] | None = None
) -> PaginatedStudentsResponse:
    """
    List students newest first, one page at a time.

    Args:
        page: 1-based page number
        page_size: Students per page
        filters: See AccountOperations.search_students
    """
    filters = filters or {}
    offset = (page - 1) * page_size
    accounts = core.account.search_students(filters, limit=page_size, offset=offset)
    total = core.account.count_students(filters)

    return PaginatedStudentsResponse(
        items=[StudentListItem.from_account(a) for a in accounts],
        total=total,
    )


# ============================================================================
# Admins
# ============================================================================


def _get_admin(core: Core, admin_id: str) -> Account:
    account = core.account.get_by_id(admin_id)
    if account is None or not account.is_admin:
        raise ResourceNotFound(f"Admin not found with ID: {admin_id}")
    return account


def create_admin(core: Core, data: AdminCreateRequest) -> AccountPublicView:
    """
    Create a verified ADMIN or MAIN_ADMIN account (no code number).

    Raises:
        InvalidArgument: If the requested role is not an admin role
        AlreadyExists: If the email is already registered
    """
    if not data.role.is_admin:
        raise InvalidArgument(f"Invalid role for admin creation: {data.role.value}")

    if core.account.exists_by_email(data.email):
        raise AlreadyExists(f"User with email {data.email} already exists", {"email": data.email})

    account = _create_account(
        core,
        full_name=data.full_name,
        email=data.email,
        role=data.role,
        password_hash=hash_password(data.password),
        is_verified=True,
        whatsapp_number=data.whatsapp_number,
    )
    logger.info(f"Created admin {account.id} with role {account.role.value}")
    return AccountPublicView.from_account(account)


def get_admin(core: Core, admin_id: str) -> AccountPublicView:
    return AccountPublicView.from_account(_get_admin(core, admin_id))


def update_admin(core: Core, admin_id: str, data: AdminUpdateRequest) -> AccountPublicView:
    account = _get_admin(core, admin_id)
    account = core.account.save(account.update_profile(**data.model_dump(exclude_unset=True)))
    logger.info(f"Updated admin {admin_id}")
    return AccountPublicView.from_account(account)


def list_admins(
    core: Core,
    role: Role | None = None,
    status: AccountStatus | None = None
) -> list[AccountPublicView]:
    """
    List admins, optionally narrowed to one admin role and one status.

    Raises:
        InvalidArgument: If role is not an admin role
    """
    if role is not None and not role.is_admin:
        raise InvalidArgument(f"Invalid admin role: {role.value}")

    roles = [role] if role is not None else [Role.MAIN_ADMIN, Role.ADMIN]
    accounts = []
    for r in roles:
        accounts.extend(core.account.list_by_role(r, status))
    return [AccountPublicView.from_account(a) for a in accounts]


def delete_admin(core: Core, admin_id: str) -> None:
    """Soft-delete an admin. The row stays but disappears from every read."""
    account = _get_admin(core, admin_id)
    core.account.save(account.soft_delete(isodatetime.now()))
    logger.info(f"Soft deleted admin {admin_id}")


# ============================================================================
# Users
# ============================================================================


def get_user(core: Core, user_id: str) -> AccountPublicView:
    account = core.account.get_by_id(user_id)
    if account is None:
        raise ResourceNotFound(f"User not found with ID: {user_id}")
    return AccountPublicView.from_account(account)


def get_user_by_email(core: Core, email: str) -> AccountPublicView:
    account = core.account.get_by_email(email)
    if account is None:
        raise ResourceNotFound(f"User not found with email: {email}")
    return AccountPublicView.from_account(account)


def get_public_batch(core: Core, user_ids: list[str]) -> list[AccountBatchView]:
    """Public fields of the ACTIVE, verified accounts among ``user_ids``."""
    if not user_ids:
        return []
    accounts = core.account.get_public_batch(user_ids)
    logger.info(f"Found {len(accounts)} active verified users out of {len(user_ids)} requested")
    return [AccountBatchView.from_account(a) for a in accounts]
