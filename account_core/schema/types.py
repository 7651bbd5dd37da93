"""Domain types for account-core.

Records are immutable pydantic models built from database rows. State
changes are expressed as transition methods that return an updated copy;
the owning db operations class persists the returned record. Counters and
single-use flags are instead updated in place by conditional SQL. Validity
checks take ``now`` as an ISO 8601 timestamp string so they match
the comparisons the SQL queries make.
"""

import sqlite3
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"
    MAIN_ADMIN = "MAIN_ADMIN"

    @property
    def is_admin(self) -> bool:
        return self in (Role.ADMIN, Role.MAIN_ADMIN)


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"


class VerificationPurpose(str, Enum):
    REGISTRATION = "REGISTRATION"
    EMAIL_CHANGE = "EMAIL_CHANGE"


class TokenPurpose(str, Enum):
    PASSWORD_RESET = "PASSWORD_RESET"
    EMAIL_RESET = "EMAIL_RESET"


# Wrong attempts allowed before a verification code is burned
MAX_VERIFICATION_RETRIES = 3

# Codes issued per partition: base+1 .. base+PARTITION_SIZE
PARTITION_SIZE = 9999


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Self:
        return cls(**{key: row[key] for key in row.keys()})


class Account(_Record):
    """A user account. ``deleted_at`` set means soft-deleted."""

    id: str
    full_name: str
    email: str
    whatsapp_number: str | None = None
    school: str | None = None
    address: str | None = None
    nic: str | None = None
    role: Role
    status: AccountStatus = AccountStatus.ACTIVE
    code_number: str | None = None
    is_verified: bool = False
    password_hash: str
    created_at: str
    updated_at: str
    last_login_at: str | None = None
    deleted_at: str | None = None

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin

    def mark_verified(self) -> "Account":
        return self.model_copy(update={"is_verified": True})

    def assign_code_number(self, code_number: str) -> "Account":
        if not self.is_student:
            raise ValueError("Only students carry a code number")
        return self.model_copy(update={"code_number": code_number})

    def change_password_hash(self, password_hash: str) -> "Account":
        return self.model_copy(update={"password_hash": password_hash})

    def change_email(self, email: str) -> "Account":
        return self.model_copy(update={"email": email.lower()})

    def soft_delete(self, now: str) -> "Account":
        return self.model_copy(update={"deleted_at": now})

    def update_profile(self, **fields) -> "Account":
        """Apply the non-None profile fields (full name, contact details)."""
        allowed = {"full_name", "whatsapp_number", "school", "address"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)}")
        changes = {k: v for k, v in fields.items() if v is not None}
        return self.model_copy(update=changes)


class VerificationCode(_Record):
    """A short-lived code bound to an account.

    valid <=> consumed_at is None and now < expires_at and retry_count < 3.
    Expiry is evaluated on read, never written.
    """

    id: str
    user_id: str
    code: str
    purpose: VerificationPurpose
    expires_at: str
    retry_count: int = 0
    created_at: str
    consumed_at: str | None = None

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= MAX_VERIFICATION_RETRIES

    def is_expired(self, now: str) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: str) -> bool:
        return not self.is_consumed and not self.is_expired(now) and not self.retries_exhausted

    def matches(self, supplied: str) -> bool:
        return self.code == supplied


class SecretToken(_Record):
    """A hashed single-use secret, looked up by its public ``token_id``.

    valid <=> not used and now < expires_at.
    """

    id: str
    user_id: str
    purpose: TokenPurpose
    token_id: str
    token_hash: str
    old_email: str | None = None
    new_email: str | None = None
    expires_at: str
    used: bool = False
    used_at: str | None = None
    created_at: str

    def is_valid(self, now: str) -> bool:
        return not self.used and now < self.expires_at


class PillarTracker(_Record):
    """Sequence state of one code partition."""

    sub_pillar_base: int
    last_issued_number: int
    created_at: str
    updated_at: str

    @property
    def limit(self) -> int:
        return self.sub_pillar_base + PARTITION_SIZE

    @property
    def is_at_limit(self) -> bool:
        return self.last_issued_number >= self.limit

    def issue_next(self) -> "PillarTracker":
        if self.is_at_limit:
            raise ValueError(f"Partition {self.sub_pillar_base} is exhausted")
        return self.model_copy(update={"last_issued_number": self.last_issued_number + 1})
