"""
API request and response models for the user accounts REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Services map between the two.

JSON keys are camelCase (uuid, isAdmin, createdAt, updatedAt) for
compatibility with existing clients; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User

# bcrypt only hashes the first 72 bytes of a password. The limit is in UTF-8
# bytes, not characters, so the length check is done on the encoded value.
_PASSWORD_MAX_BYTES = 72
_AGE_MAX = 150


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > _PASSWORD_MAX_BYTES:
        raise ValueError(f"password must be at most {_PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /users."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_BYTES)
    age: Optional[int] = Field(default=None, ge=0, le=_AGE_MAX)
    is_admin: bool = Field(default=False, alias="isAdmin")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserPatch(BaseModel):
    """Request body for PATCH /users/{id}.

    Unknown keys are kept (extra="allow") instead of dropped so the service
    can refuse them explicitly -- an isAdmin key must produce a 400, not be
    ignored.
    """

    model_config = ConfigDict(extra="allow")

    email: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=_PASSWORD_MAX_BYTES)
    age: Optional[int] = Field(default=None, ge=0, le=_AGE_MAX)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Has no password field by construction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="uuid")
    email: str
    age: Optional[int] = None
    is_admin: bool = Field(alias="isAdmin")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view of a domain User, dropping hashed_password."""
        return cls(
            id=user.id,
            email=user.email,
            age=user.age,
            is_admin=user.is_admin,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class LoginResponse(BaseModel):
    """Response for POST /login."""

    model_config = ConfigDict(frozen=True)

    token: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
