"""Secret token engine for password reset and email reset.

A reset token handed to the caller has the form ``{token_id}.{secret}``:

- token_id: random UUID, stored in clear and used to find the row
- secret: 32 random bytes, URL-safe base64; only its bcrypt hash is stored

Bcrypt hashes are salted per call, so the hash can never serve as a lookup
key. Confirmation looks the row up by token_id and then checks the secret
against the hash. A malformed token, an unknown id, an expired or used
token and a wrong secret all fail with the same InvalidToken message.

Issuing a token for an account first invalidates any outstanding token of
the same purpose, leaving at most one reset in progress per account and
purpose.
"""

import logging

from ..config import settings
from ..db import Core
from ..exceptions import AlreadyExists, InvalidToken, ResourceNotFound
from ..schema.types import Account, SecretToken, TokenPurpose
from ..utils import isodatetime, secret, uid
from .passwords import hash_password, verify_password

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "."

PASSWORD_RESET_MESSAGE = "If the email exists, password reset instructions have been sent"

INVALID_TOKEN_MESSAGES = {
    TokenPurpose.PASSWORD_RESET: "Invalid or expired password reset token",
    TokenPurpose.EMAIL_RESET: "Invalid or expired email reset token",
}

TTL_SETTINGS = {
    TokenPurpose.PASSWORD_RESET: "password_reset_ttl_minutes",
    TokenPurpose.EMAIL_RESET: "email_reset_ttl_minutes",
}


def format_token(token_id: str, token_secret: str) -> str:
    return f"{token_id}{TOKEN_SEPARATOR}{token_secret}"


def parse_token(external_token: str | None) -> tuple[str, str] | None:
    """Split an external token into (token_id, secret).

    Returns:
        None if the token is malformed
    """
    if not external_token:
        return None
    token_id, separator, token_secret = external_token.partition(TOKEN_SEPARATOR)
    if not separator or not token_secret:
        return None
    token_id = uid.parse_uuid(token_id)
    if token_id is None:
        return None
    return token_id, token_secret


def issue(
    core: Core,
    account: Account,
    purpose: TokenPurpose,
    old_email: str | None = None,
    new_email: str | None = None,
) -> str:
    """Create a token for an account and return the external token string.

    The plain secret exists only in the returned string.
    """
    now = isodatetime.now()
    invalidated = core.token.invalidate_outstanding(account.id, purpose, now)
    if invalidated:
        logger.info(f"Invalidated {invalidated} outstanding {purpose.value} token(s) for account {account.id}")

    token_id = uid.generate_uuid()
    token_secret = secret.generate_token_secret()
    ttl_minutes = getattr(settings, TTL_SETTINGS[purpose])

    core.token.create(
        user_id=account.id,
        purpose=purpose,
        token_id=token_id,
        token_hash=hash_password(token_secret),
        expires_at=isodatetime.minutes_from_now(ttl_minutes),
        created_at=now,
        old_email=old_email,
        new_email=new_email,
    )
    logger.info(f"Issued {purpose.value} token for account {account.id}")
    return format_token(token_id, token_secret)


def redeem(core: Core, external_token: str | None, purpose: TokenPurpose) -> SecretToken:
    """Validate an external token and return its unused, unexpired row.

    The row is not marked used here; callers apply the token's effect and
    then call spend() in the same transaction.

    Raises:
        InvalidToken: Malformed, unknown, expired or used token, or wrong secret
    """
    message = INVALID_TOKEN_MESSAGES[purpose]

    parsed = parse_token(external_token)
    if parsed is None:
        logger.warning(f"Malformed {purpose.value} token")
        raise InvalidToken(message)
    token_id, token_secret = parsed

    token = core.token.find_valid_by_token_id(token_id, purpose, isodatetime.now())
    if token is None:
        logger.warning(f"No valid {purpose.value} token for id {token_id}")
        raise InvalidToken(message)

    if not verify_password(token_secret, token.token_hash):
        logger.warning(f"Invalid {purpose.value} token secret attempt")
        raise InvalidToken(message)

    return token


def spend(core: Core, token: SecretToken) -> None:
    """Mark a redeemed token used.

    Raises:
        InvalidToken: If the token was used since it was redeemed
    """
    if not core.token.mark_used(token.id, isodatetime.now()):
        logger.warning(f"{token.purpose.value} token {token.token_id} was already used")
        raise InvalidToken(INVALID_TOKEN_MESSAGES[token.purpose])


# ============================================================================
# Password reset
# ============================================================================


def request_password_reset(core: Core, email: str) -> dict:
    """Start a password reset for the account with this email.

    The response carries the same message whether or not the account
    exists; only an existing account gets a ``token`` for the caller to
    deliver.
    """
    response = {"message": PASSWORD_RESET_MESSAGE}

    account = core.account.get_by_email(email)
    if account is None:
        logger.info("Password reset requested for unknown email")
        return response

    response["token"] = issue(core, account, TokenPurpose.PASSWORD_RESET)
    return response


def confirm_password_reset(core: Core, external_token: str, new_password: str) -> Account:
    """Set a new password using a password reset token.

    Raises:
        InvalidToken: If the token does not redeem
        ResourceNotFound: If the account was deleted after the token was issued
    """
    token = redeem(core, external_token, TokenPurpose.PASSWORD_RESET)

    account = core.account.get_by_id(token.user_id)
    if account is None:
        raise ResourceNotFound("User not found")

    account = core.account.save(account.change_password_hash(hash_password(new_password)))
    spend(core, token)

    logger.info(f"Password reset for account {account.id}")
    return account


# ============================================================================
# Email reset
# ============================================================================


def _ensure_email_available(core: Core, email: str, account_id: str) -> None:
    existing = core.account.get_by_email(email)
    if existing is not None and existing.id != account_id:
        raise AlreadyExists("Email already in use")


def request_email_reset(core: Core, account_id: str, old_email: str, new_email: str) -> str:
    """Start an email change for an account.

    The caller has already authenticated the account. An unknown account
    and a stale ``old_email`` report the same not-found error.

    Returns:
        External token to be delivered to the new address

    Raises:
        ResourceNotFound: Unknown account or old email mismatch
        AlreadyExists: New email belongs to another live account
    """
    account = core.account.get_by_id(account_id)
    if account is None or account.email.lower() != old_email.lower():
        logger.warning(f"Email reset rejected for account {account_id}: account or old email mismatch")
        raise ResourceNotFound("User not found")

    _ensure_email_available(core, new_email, account.id)

    return issue(
        core,
        account,
        TokenPurpose.EMAIL_RESET,
        old_email=old_email.lower(),
        new_email=new_email.lower(),
    )


def confirm_email_reset(core: Core, external_token: str) -> str:
    """Apply an email change using an email reset token.

    Returns:
        The account's new (lower-cased) email

    Raises:
        InvalidToken: If the token does not redeem or the account's email
            changed since the token was issued
        AlreadyExists: If the new email was taken in the meantime
        ResourceNotFound: If the account was deleted
    """
    token = redeem(core, external_token, TokenPurpose.EMAIL_RESET)

    _ensure_email_available(core, token.new_email, token.user_id)

    account = core.account.get_by_id(token.user_id)
    if account is None:
        raise ResourceNotFound("User not found")

    if account.email.lower() != token.old_email.lower():
        logger.warning(f"Stale email reset token for account {account.id}")
        raise InvalidToken(INVALID_TOKEN_MESSAGES[TokenPurpose.EMAIL_RESET])

    account = core.account.save(account.change_email(token.new_email))
    spend(core, token)

    logger.info(f"Email changed for account {account.id}")
    return account.email
