"""Utility functions for account-core.

This package provides centralized utilities for common operations.
Import convention: use module-level imports for clarity.

    from account_core.utils import isodatetime, uid, secret
    timestamp = isodatetime.now()
    deadline = isodatetime.minutes_from_now(30)
    uuid = uid.generate_uuid()
    token_secret = secret.generate_token_secret()
"""

from . import isodatetime, secret, uid

__all__ = ["isodatetime", "secret", "uid"]
