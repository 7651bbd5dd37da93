"""Credential validation for login.

Checks run in a fixed order: account lookup, password, status, then
verification (students only). Unknown email and wrong password give the
same error; an inactive account gets the same error kind with its own
message.
"""

import logging

from ..db import Core
from ..exceptions import InvalidCredentials, NotVerified
from ..schema.types import Account, AccountStatus
from ..utils import isodatetime
from .passwords import verify_password

logger = logging.getLogger(__name__)


def validate(core: Core, email: str, password: str) -> Account:
    """
    Validate login credentials and stamp the login time.

    Args:
        core: Core whose transaction the login stamp joins
        email: Login email (case-insensitive)
        password: Plain text password

    Returns:
        The account with last_login_at updated

    Raises:
        InvalidCredentials: Unknown email, wrong password or non-ACTIVE account
        NotVerified: Student that has not completed verification
    """
    account = core.account.get_by_email(email)
    if account is None:
        logger.warning("Login attempt for unknown email")
        raise InvalidCredentials("Invalid credentials")

    if not verify_password(password, account.password_hash):
        logger.warning(f"Invalid password attempt for account {account.id}")
        raise InvalidCredentials("Invalid credentials")

    if account.status != AccountStatus.ACTIVE:
        logger.warning(f"Login attempt for account {account.id} with status {account.status.value}")
        raise InvalidCredentials("User account is not active")

    if account.is_student and not account.is_verified:
        logger.warning(f"Login attempt for unverified student {account.id}")
        raise NotVerified("Student account is not verified")

    account = core.account.record_login(account.id, isodatetime.now())
    logger.info(f"Validated credentials for account {account.id}")
    return account
