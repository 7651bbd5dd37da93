"""Account Pydantic schemas for API validation.

Request models validate incoming JSON; response models define the public
shape of an account. Password hashes never appear in any response model.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...schema.types import Account, AccountStatus, Role
from ..passwords import MAX_PASSWORD_BYTES

# E.164: optional +, no leading zero, up to 15 digits
WHATSAPP_PATTERN = r"^\+?[1-9]\d{1,14}$"


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ============================================================================
# Request schemas
# ============================================================================


class StudentRegistrationRequest(BaseModel):
    """Schema for student self-registration."""

    full_name: str = Field(..., max_length=255, description="Full name")
    email: EmailStr = Field(..., description="Login email, stored lower-cased")
    whatsapp_number: str = Field(..., max_length=20, pattern=WHATSAPP_PATTERN)
    school: str | None = Field(default=None, max_length=255)
    address: str | None = None
    password: str = Field(..., min_length=8, max_length=MAX_PASSWORD_BYTES)
    nic: str = Field(..., description="National identity card number")

    @field_validator("full_name", "nic")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=1, max_length=20)


class ResendVerificationCodeRequest(BaseModel):
    email: EmailStr


class StudentUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    full_name: str | None = Field(default=None, max_length=255)
    whatsapp_number: str | None = Field(default=None, max_length=20, pattern=WHATSAPP_PATTERN)
    school: str | None = Field(default=None, max_length=255)
    address: str | None = None


class AdminCreateRequest(BaseModel):
    """Schema for creating an ADMIN or MAIN_ADMIN account."""

    full_name: str = Field(..., max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=MAX_PASSWORD_BYTES)
    role: Role
    whatsapp_number: str | None = Field(default=None, max_length=20, pattern=WHATSAPP_PATTERN)

    @field_validator("full_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class AdminUpdateRequest(BaseModel):
    full_name: str | None = Field(default=None, max_length=255)


class BatchUserRequest(BaseModel):
    user_ids: list[UUID] = Field(..., min_length=1, max_length=1000)


class CredentialsValidationRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=MAX_PASSWORD_BYTES)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class EmailResetRequest(BaseModel):
    user_id: UUID
    old_email: EmailStr
    new_email: EmailStr


class EmailResetConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)


# ============================================================================
# Response schemas
# ============================================================================


class AccountPublicView(BaseModel):
    """Public view of an account (no password hash, no deletion marker)."""

    id: str
    full_name: str
    email: str
    whatsapp_number: str | None = None
    school: str | None = None
    address: str | None = None
    nic: str | None = None
    role: Role
    status: AccountStatus
    code_number: str | None = None
    is_verified: bool
    created_at: str
    updated_at: str
    last_login_at: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountPublicView":
        return cls(**account.model_dump(exclude={"password_hash", "deleted_at"}))


class StudentListItem(BaseModel):
    """Row of the paginated student listing."""

    id: str
    full_name: str
    email: str
    whatsapp_number: str | None = None
    code_number: str | None = None
    role: Role
    is_verified: bool
    # Numeric value of the code number, None if it is not numeric
    registration_number: int | None = None
    created_at: str
    nic: str | None = None
    school: str | None = None
    address: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "StudentListItem":
        registration_number = None
        if account.code_number is not None and account.code_number.isdigit():
            registration_number = int(account.code_number)
        return cls(
            **account.model_dump(include=set(cls.model_fields) - {"registration_number"}),
            registration_number=registration_number,
        )


class PaginatedStudentsResponse(BaseModel):
    items: list[StudentListItem]
    total: int


class AccountBatchView(BaseModel):
    """Minimal public fields returned by the batch lookup."""

    id: str
    full_name: str
    whatsapp_number: str | None = None
    email: str
    code_number: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountBatchView":
        return cls(**account.model_dump(include=set(cls.model_fields)))


class StudentRegistrationResponse(BaseModel):
    user: AccountPublicView
    verification_code_generated: bool


class ResendVerificationCodeResponse(BaseModel):
    success: bool
    message: str
    code: str | None = None


class CredentialsValidationResponse(BaseModel):
    valid: bool
    user: AccountPublicView


class PasswordResetResponse(BaseModel):
    message: str
    token: str | None = None


class EmailResetResponse(BaseModel):
    token: str


class EmailResetConfirmResponse(BaseModel):
    new_email: str
