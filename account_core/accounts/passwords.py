"""Password and secret hashing with bcrypt.

Used for account passwords and for the secret half of reset tokens.
"""

import bcrypt

from ..config import settings

# bcrypt rejects longer inputs
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash a password (or token secret) using bcrypt.

    Args:
        password: Plain text value to hash

    Returns:
        Bcrypt hash string (60 characters, salt embedded)
    """
    salt = bcrypt.gensalt(rounds=settings.bcrypt_work_factor)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a plain text value against a bcrypt hash.

    Comparison runs in constant time inside bcrypt. A malformed hash
    counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
