"""Account store operations.

IMPORT CONVENTION:
- Core accesses these through core.account property
- NO direct import needed when using Core API

SOFT DELETE:
Every read in this class filters ``deleted_at IS NULL``. A soft-deleted
account is invisible to lookups, uniqueness checks and listings; rows are
never hard-deleted.
"""

import sqlite3
from typing import Any

from . import query
from ..schema.types import Account, AccountStatus, Role
from ..utils import isodatetime, uid

_LIVE = "deleted_at IS NULL"

STUDENT_FILTERS = {
    "email": "LOWER(email) LIKE '%' || LOWER(?) || '%'",
    "name": "LOWER(full_name) LIKE '%' || LOWER(?) || '%'",
    "whatsapp_number": "whatsapp_number LIKE '%' || ? || '%'",
    "code_number": "code_number LIKE '%' || ? || '%'",
    "is_verified": "is_verified = ?",
    "status": "status = ?",
}


class AccountOperations:
    """Account store operations."""

    def __init__(self, conn: sqlite3.Connection):
        """Initialize account operations with a database connection.

        Args:
            conn: SQLite connection with row_factory set to sqlite3.Row
        """
        self._conn = conn

    def create(
        self,
        full_name: str,
        email: str,
        role: Role,
        password_hash: str,
        is_verified: bool,
        code_number: str | None = None,
        whatsapp_number: str | None = None,
        school: str | None = None,
        address: str | None = None,
        nic: str | None = None,
    ) -> Account:
        """Insert a new ACTIVE account with an auto-generated UUID.

        Email is stored lower-cased.

        Raises:
            sqlite3.IntegrityError: If email, code number or NIC collides
        """
        account_id = uid.generate_uuid()
        now = isodatetime.now()

        self._conn.execute(
            """INSERT INTO users
               (id, full_name, email, whatsapp_number, school, address, nic,
                role, status, code_number, is_verified, password_hash,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                account_id, full_name, email.lower(), whatsapp_number, school,
                address, nic, role.value, AccountStatus.ACTIVE.value, code_number,
                int(is_verified), password_hash, now, now,
            )
        )

        return self.get_by_id(account_id)

    def get_by_id(self, account_id: str) -> Account | None:
        row = self._conn.execute(
            f"SELECT * FROM users WHERE id = ? AND {_LIVE}",
            (account_id,)
        ).fetchone()
        return Account.from_row(row) if row else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up a live account by email, ignoring case."""
        row = self._conn.execute(
            f"SELECT * FROM users WHERE LOWER(email) = LOWER(?) AND {_LIVE}",
            (email,)
        ).fetchone()
        return Account.from_row(row) if row else None

    def exists_by_email(self, email: str) -> bool:
        row = self._conn.execute(
            f"SELECT 1 FROM users WHERE LOWER(email) = LOWER(?) AND {_LIVE} LIMIT 1",
            (email,)
        ).fetchone()
        return row is not None

    def get_by_code_number(self, code_number: str) -> Account | None:
        row = self._conn.execute(
            f"SELECT * FROM users WHERE code_number = ? AND {_LIVE}",
            (code_number,)
        ).fetchone()
        return Account.from_row(row) if row else None

    def exists_by_nic(self, nic: str) -> bool:
        """Check NIC usage across all rows; the unique index spans deleted accounts too."""
        row = self._conn.execute(
            "SELECT 1 FROM users WHERE nic = ? LIMIT 1",
            (nic,)
        ).fetchone()
        return row is not None

    def save(self, account: Account) -> Account:
        """Persist an account record produced by a transition method.

        Fields are only ever set, never cleared, so None values are skipped.
        updated_at is stamped on every save.

        Returns:
            The stored record as read back from the database
        """
        data: dict[str, Any] = account.model_dump(exclude={"id", "created_at", "updated_at"})
        data["role"] = account.role.value
        data["status"] = account.status.value
        data["is_verified"] = int(account.is_verified)
        data["updated_at"] = isodatetime.now()

        update_clause, params = query.build_update_clause(data)
        params.append(account.id)

        self._conn.execute(
            f"UPDATE users SET {update_clause} WHERE id = ? AND {_LIVE}",
            params
        )

        # Soft-deleted records are no longer readable through the store
        return self.get_by_id(account.id) or account

    def record_login(self, account_id: str, now: str) -> Account | None:
        """Stamp last_login_at without touching any other column."""
        self._conn.execute(
            f"UPDATE users SET last_login_at = ?, updated_at = ? WHERE id = ? AND {_LIVE}",
            (now, now, account_id)
        )
        return self.get_by_id(account_id)

    def list_by_role(self, role: Role, status: AccountStatus | None = None) -> list[Account]:
        where_clause, params = query.build_where_clause(
            {"role": role.value, "status": status.value if status else None}
        )
        rows = self._conn.execute(
            f"SELECT * FROM users WHERE {where_clause} AND {_LIVE} ORDER BY created_at",
            params
        ).fetchall()
        return [Account.from_row(row) for row in rows]

    def _student_where(self, filters: dict[str, Any]) -> tuple[str, list[Any]]:
        conditions = {
            key: value for key, value in filters.items()
            if key in STUDENT_FILTERS and value not in (None, "")
        }
        if "is_verified" in conditions:
            conditions["is_verified"] = int(conditions["is_verified"])
        if isinstance(conditions.get("status"), AccountStatus):
            conditions["status"] = conditions["status"].value

        where_clause, params = query.build_where_clause(conditions, STUDENT_FILTERS)
        return f"role = 'STUDENT' AND {_LIVE} AND {where_clause}", params

    def search_students(
        self,
        filters: dict[str, Any],
        limit: int = 20,
        offset: int = 0
    ) -> list[Account]:
        """Search live students, newest first.

        Args:
            filters: Any of:
                - email: case-insensitive substring
                - name: case-insensitive substring of full name
                - whatsapp_number: substring
                - code_number: substring
                - is_verified: bool
                - status: AccountStatus or its string value
                Empty and None values are ignored.
            limit: Page size
            offset: Rows to skip
        """
        where_clause, params = self._student_where(filters)
        params.extend([limit, offset])
        rows = self._conn.execute(
            f"""SELECT * FROM users WHERE {where_clause}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?""",
            params
        ).fetchall()
        return [Account.from_row(row) for row in rows]

    def count_students(self, filters: dict[str, Any]) -> int:
        where_clause, params = self._student_where(filters)
        row = self._conn.execute(
            f"SELECT COUNT(*) FROM users WHERE {where_clause}",
            params
        ).fetchone()
        return row[0]

    def get_public_batch(self, account_ids: list[str]) -> list[Account]:
        """Fetch live accounts by id that are ACTIVE and verified."""
        if not account_ids:
            return []
        placeholders = ", ".join("?" for _ in account_ids)
        rows = self._conn.execute(
            f"""SELECT * FROM users
                WHERE id IN ({placeholders})
                  AND status = 'ACTIVE' AND is_verified = 1 AND {_LIVE}
                ORDER BY created_at""",
            list(account_ids)
        ).fetchall()
        return [Account.from_row(row) for row in rows]
