"""Secret token operations (password reset, email reset).

Only the bcrypt hash of a token's secret is stored. Lookup goes through
the public ``token_id``; the secret is checked against the hash by the
caller.
"""

import sqlite3

from ..schema.types import SecretToken, TokenPurpose
from ..utils import uid


class SecretTokenOperations:
    """Secret token store operations."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def create(
        self,
        user_id: str,
        purpose: TokenPurpose,
        token_id: str,
        token_hash: str,
        expires_at: str,
        created_at: str,
        old_email: str | None = None,
        new_email: str | None = None,
    ) -> SecretToken:
        """Insert an unused token.

        Raises:
            sqlite3.IntegrityError: If another token for this account and
                purpose is still outstanding, or token_id collides
        """
        row_id = uid.generate_uuid()
        self._conn.execute(
            """INSERT INTO secret_tokens
               (id, user_id, purpose, token_id, token_hash, old_email, new_email,
                expires_at, used, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (
                row_id, user_id, purpose.value, token_id, token_hash,
                old_email, new_email, expires_at, created_at,
            )
        )
        return self.get_by_token_id(token_id)

    def get_by_token_id(self, token_id: str) -> SecretToken | None:
        row = self._conn.execute(
            "SELECT * FROM secret_tokens WHERE token_id = ?",
            (token_id,)
        ).fetchone()
        return SecretToken.from_row(row) if row else None

    def find_valid_by_token_id(
        self,
        token_id: str,
        purpose: TokenPurpose,
        now: str
    ) -> SecretToken | None:
        """Unused, unexpired token with the given id and purpose."""
        row = self._conn.execute(
            """SELECT * FROM secret_tokens
               WHERE token_id = ? AND purpose = ? AND used = 0 AND expires_at > ?""",
            (token_id, purpose.value, now)
        ).fetchone()
        return SecretToken.from_row(row) if row else None

    def invalidate_outstanding(self, user_id: str, purpose: TokenPurpose, now: str) -> int:
        """Mark every unused token for the account and purpose as used.

        Returns:
            Number of tokens invalidated
        """
        cursor = self._conn.execute(
            """UPDATE secret_tokens SET used = 1, used_at = ?
               WHERE user_id = ? AND purpose = ? AND used = 0""",
            (now, user_id, purpose.value)
        )
        return cursor.rowcount

    def mark_used(self, row_id: str, now: str) -> bool:
        """Mark one token used unless it already is.

        Returns:
            False if the token had already been used
        """
        cursor = self._conn.execute(
            "UPDATE secret_tokens SET used = 1, used_at = ? WHERE id = ? AND used = 0",
            (now, row_id)
        )
        return cursor.rowcount == 1
