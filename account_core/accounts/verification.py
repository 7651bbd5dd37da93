"""Verification code engine.

A code is usable while it is unconsumed, unexpired and has fewer than
three wrong attempts. Verification always targets the most recently
issued usable code, so issuing a new code needs no cleanup of old ones.

    ACTIVE --wrong code, retries left--> ACTIVE
    ACTIVE --third wrong code----------> CONSUMED (burned)
    ACTIVE --correct code--------------> CONSUMED (verified)
    ACTIVE --now >= expires_at---------> expired (computed on read)

verify() returns a VerificationResult instead of raising, so that the
retry count and burn it writes are committed along with everything else
in the transaction. Callers raise with result.raise_for_failure() once
the Core has committed.
"""

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..config import settings
from ..db import Core
from ..exceptions import (
    AccountCoreError,
    InvalidArgument,
    InvalidCode,
    NoActiveCode,
    RetriesExhausted,
)
from ..schema.types import (
    MAX_VERIFICATION_RETRIES,
    Account,
    VerificationCode,
    VerificationPurpose,
)
from ..utils import isodatetime
from . import allocator

logger = logging.getLogger(__name__)


class VerificationOutcome(str, Enum):
    VERIFIED = "VERIFIED"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    INVALID_CODE = "INVALID_CODE"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    NO_ACTIVE_CODE = "NO_ACTIVE_CODE"


class VerificationResult(BaseModel):
    """Outcome of one verification attempt."""

    model_config = ConfigDict(frozen=True)

    outcome: VerificationOutcome
    account: Account
    attempts_remaining: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome in (VerificationOutcome.VERIFIED, VerificationOutcome.ALREADY_VERIFIED)

    def to_error(self) -> AccountCoreError | None:
        """The exception describing a failed outcome, or None on success."""
        if self.outcome == VerificationOutcome.INVALID_CODE:
            return InvalidCode(
                "Invalid verification code",
                {"attempts_remaining": self.attempts_remaining}
            )
        if self.outcome == VerificationOutcome.RETRIES_EXHAUSTED:
            return RetriesExhausted(
                "Too many incorrect attempts. Please request a new verification code"
            )
        if self.outcome == VerificationOutcome.NO_ACTIVE_CODE:
            return NoActiveCode(
                "No active verification code. Please request a new verification code"
            )
        return None

    def raise_for_failure(self) -> None:
        error = self.to_error()
        if error is not None:
            raise error


def issue(
    core: Core,
    account_id: str,
    code: str,
    purpose: VerificationPurpose = VerificationPurpose.REGISTRATION,
    ttl_minutes: int | None = None,
) -> VerificationCode:
    """Store a fresh verification code for an account.

    Args:
        core: Core whose transaction the insert joins
        account_id: Account the code is bound to
        code: Code value delivered to the user
        purpose: What a successful verification unlocks
        ttl_minutes: Lifetime; defaults to settings.verification_code_ttl_minutes
    """
    if ttl_minutes is None:
        ttl_minutes = settings.verification_code_ttl_minutes

    created = core.verification.create(
        user_id=account_id,
        code=code,
        purpose=purpose,
        expires_at=isodatetime.minutes_from_now(ttl_minutes),
        created_at=isodatetime.now(),
    )
    logger.info(f"Issued {purpose.value} verification code for account {account_id}")
    return created


def _no_usable_code(core: Core, account: Account, purpose: VerificationPurpose) -> VerificationResult:
    latest = core.verification.find_latest(account.id, purpose)
    if latest is not None and latest.retries_exhausted:
        outcome = VerificationOutcome.RETRIES_EXHAUSTED
    else:
        outcome = VerificationOutcome.NO_ACTIVE_CODE
    logger.warning(f"Verification for account {account.id} found no usable code ({outcome.value})")
    return VerificationResult(outcome=outcome, account=account)


def verify(
    core: Core,
    account: Account,
    supplied_code: str,
    purpose: VerificationPurpose = VerificationPurpose.REGISTRATION,
) -> VerificationResult:
    """Check a supplied code against the account's latest usable code.

    An already verified account succeeds without reading or writing any
    code. A match consumes the code and, for registration, marks the
    account verified. A mismatch counts a retry, and the third one burns
    the code.
    """
    registration = purpose == VerificationPurpose.REGISTRATION
    if registration and account.is_verified:
        return VerificationResult(outcome=VerificationOutcome.ALREADY_VERIFIED, account=account)

    now = isodatetime.now()
    code = core.verification.find_latest_active(account.id, purpose, now)
    if code is None:
        return _no_usable_code(core, account, purpose)

    if not code.matches(supplied_code):
        code = core.verification.record_failed_attempt(code.id, now)
        if code is None:
            return _no_usable_code(core, account, purpose)
        if code.retries_exhausted:
            logger.warning(f"Verification code burned for account {account.id}")
            return VerificationResult(outcome=VerificationOutcome.RETRIES_EXHAUSTED, account=account)

        remaining = MAX_VERIFICATION_RETRIES - code.retry_count
        logger.warning(f"Wrong verification code for account {account.id}, {remaining} attempts left")
        return VerificationResult(
            outcome=VerificationOutcome.INVALID_CODE,
            account=account,
            attempts_remaining=remaining,
        )

    if not core.verification.consume(code.id, now):
        return _no_usable_code(core, account, purpose)
    if registration:
        account = core.account.save(account.mark_verified())

    logger.info(f"Account {account.id} verified ({purpose.value})")
    return VerificationResult(outcome=VerificationOutcome.VERIFIED, account=account)


def resend(core: Core, account: Account) -> tuple[Account, VerificationCode]:
    """Replace a student's code number and registration code.

    Consumes any usable registration code, draws a new code number from the
    allocator, stores it on the account and issues a verification code with
    the same value. The previous code number is abandoned, never reissued.

    Returns:
        Tuple of (updated account, new verification code)

    Raises:
        InvalidArgument: If the account is not a student
        CapacityExhausted: If no code number could be allocated
    """
    if not account.is_student:
        raise InvalidArgument(
            "Verification codes can only be resent to students",
            {"role": account.role.value}
        )

    now = isodatetime.now()
    core.verification.consume_active(account.id, VerificationPurpose.REGISTRATION, now)

    code_number = allocator.allocate(core)
    account = core.account.save(account.assign_code_number(code_number))
    code = issue(core, account.id, code_number)

    logger.info(f"Resent verification code for account {account.id}")
    return account, code
