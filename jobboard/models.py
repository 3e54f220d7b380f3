from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72

_email_adapter = TypeAdapter(EmailStr)


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    try:
        _email_adapter.validate_python(email)
    except PydanticValidationError:
        return False
    return True


def password_policy_error(password: Optional[str], label: str = "Password") -> Optional[str]:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"{label} must be at least {MIN_PASSWORD_LENGTH} characters"
    # bcrypt rejects longer input
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        return f"{label} must be at most {MAX_PASSWORD_BYTES} bytes"
    return None


class Role(str, Enum):
    user = "USER"
    recruiter = "RECRUITER"
    admin = "ADMIN"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# stored record

class UserRecord(BaseModel):
    id: str
    email: str
    username: Optional[str] = None
    name: Optional[str] = None
    password_hash: str
    role: Role = Role.user
    is_active: bool = True
    refresh_token: Optional[str] = None
    reset_token: Optional[str] = None
    reset_token_expiry: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_public(self) -> "UserPublic":
        return UserPublic(
            id=self.id,
            email=self.email,
            username=self.username,
            name=self.name,
            role=self.role,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_identity(self) -> "Identity":
        return Identity(
            id=self.id,
            email=self.email,
            username=self.username,
            name=self.name,
            role=self.role,
            is_active=self.is_active,
        )


# outward views

class UserPublic(CamelModel):
    id: str
    email: EmailStr
    username: Optional[str] = None
    name: Optional[str] = None
    role: Role
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Identity(CamelModel):
    """Caller resolved from an access token, passed explicitly to handlers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    email: str
    username: Optional[str] = None
    name: Optional[str] = None
    role: Role
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class AuthResult(CamelModel):
    user: UserPublic
    access_token: str
    refresh_token: str

    @property
    def tokens(self) -> TokenPair:
        return TokenPair(access_token=self.access_token, refresh_token=self.refresh_token)


class ResetTicket(CamelModel):
    user_id: str
    email: str
    token: str
    expires_at: datetime


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None


# request bodies; presence and format checks happen in the services so the
# messages match across HTTP and direct callers

class RegisterRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class UserUpdate(CamelModel):
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
