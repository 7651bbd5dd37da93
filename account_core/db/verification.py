"""Verification code operations."""

import sqlite3

from ..schema.types import MAX_VERIFICATION_RETRIES, VerificationCode, VerificationPurpose
from ..utils import uid


class VerificationCodeOperations:
    """Verification code store operations."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def create(
        self,
        user_id: str,
        code: str,
        purpose: VerificationPurpose,
        expires_at: str,
        created_at: str,
    ) -> VerificationCode:
        code_id = uid.generate_uuid()
        self._conn.execute(
            """INSERT INTO verification_codes
               (id, user_id, code, purpose, expires_at, retry_count, created_at)
               VALUES (?, ?, ?, ?, ?, 0, ?)""",
            (code_id, user_id, code, purpose.value, expires_at, created_at)
        )
        return self.get_by_id(code_id)

    def get_by_id(self, code_id: str) -> VerificationCode | None:
        row = self._conn.execute(
            "SELECT * FROM verification_codes WHERE id = ?",
            (code_id,)
        ).fetchone()
        return VerificationCode.from_row(row) if row else None

    def find_latest_active(
        self,
        user_id: str,
        purpose: VerificationPurpose,
        now: str
    ) -> VerificationCode | None:
        """Most recently created code that is unconsumed, unexpired and has retries left."""
        row = self._conn.execute(
            """SELECT * FROM verification_codes
               WHERE user_id = ? AND purpose = ?
                 AND consumed_at IS NULL
                 AND expires_at > ?
                 AND retry_count < ?
               ORDER BY created_at DESC, rowid DESC
               LIMIT 1""",
            (user_id, purpose.value, now, MAX_VERIFICATION_RETRIES)
        ).fetchone()
        return VerificationCode.from_row(row) if row else None

    def find_latest(self, user_id: str, purpose: VerificationPurpose) -> VerificationCode | None:
        """Most recently created code regardless of state."""
        row = self._conn.execute(
            """SELECT * FROM verification_codes
               WHERE user_id = ? AND purpose = ?
               ORDER BY created_at DESC, rowid DESC
               LIMIT 1""",
            (user_id, purpose.value)
        ).fetchone()
        return VerificationCode.from_row(row) if row else None

    def consume_active(self, user_id: str, purpose: VerificationPurpose, now: str) -> int:
        """Mark every still-usable code for the account and purpose consumed.

        Returns:
            Number of codes consumed
        """
        cursor = self._conn.execute(
            """UPDATE verification_codes SET consumed_at = ?
               WHERE user_id = ? AND purpose = ?
                 AND consumed_at IS NULL
                 AND expires_at > ?
                 AND retry_count < ?""",
            (now, user_id, purpose.value, now, MAX_VERIFICATION_RETRIES)
        )
        return cursor.rowcount

    def record_failed_attempt(self, code_id: str, now: str) -> VerificationCode | None:
        """Count a wrong attempt in place; the last allowed one also consumes the code.

        Returns:
            The updated code, or None if the code was no longer usable
        """
        cursor = self._conn.execute(
            """UPDATE verification_codes
               SET retry_count = retry_count + 1,
                   consumed_at = CASE WHEN retry_count + 1 >= ? THEN ? ELSE consumed_at END
               WHERE id = ? AND consumed_at IS NULL AND retry_count < ?""",
            (MAX_VERIFICATION_RETRIES, now, code_id, MAX_VERIFICATION_RETRIES)
        )
        if cursor.rowcount == 0:
            return None
        return self.get_by_id(code_id)

    def consume(self, code_id: str, now: str) -> bool:
        """Consume a code that is still unconsumed with retries left.

        Returns:
            False if the code was already consumed or burned
        """
        cursor = self._conn.execute(
            """UPDATE verification_codes SET consumed_at = ?
               WHERE id = ? AND consumed_at IS NULL AND retry_count < ?""",
            (now, code_id, MAX_VERIFICATION_RETRIES)
        )
        return cursor.rowcount == 1
