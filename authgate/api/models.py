"""
Pydantic Models for AUTHGATE API.

Request and response models for all API endpoints. Request fields default to
empty strings so that missing values reach the service, which reports them
as 400 "<field> is required" errors.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..auth.types import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PHONE_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    LoginResult,
    User,
)
from ..utils.pagination import Meta


# ============================================
# User Models
# ============================================

class UserCreate(BaseModel):
    """
    User registration request.

    first_name, last_name, username and password are required. Lengths
    are capped at the users table column sizes.
    """
    first_name: str = Field("", max_length=NAME_MAX_LENGTH)
    last_name: str = Field("", max_length=NAME_MAX_LENGTH)
    email: str = Field("", max_length=EMAIL_MAX_LENGTH)
    phone: str = Field("", max_length=PHONE_MAX_LENGTH)
    username: str = Field("", max_length=USERNAME_MAX_LENGTH)
    password: str = ""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "first_name": "Alice",
                "last_name": "Liddell",
                "email": "alice@example.com",
                "phone": "+41 79 000 00 00",
                "username": "alice",
                "password": "secret1"
            }
        }
    )


class UserUpdate(BaseModel):
    """Partial profile update. Omitted fields are left untouched."""
    first_name: Optional[str] = Field(None, max_length=NAME_MAX_LENGTH)
    last_name: Optional[str] = Field(None, max_length=NAME_MAX_LENGTH)
    email: Optional[str] = Field(None, max_length=EMAIL_MAX_LENGTH)
    phone: Optional[str] = Field(None, max_length=PHONE_MAX_LENGTH)


class UserResponse(BaseModel):
    """User profile. The password hash is never part of it."""
    id: str
    username: str
    first_name: str
    last_name: str
    email: str
    phone: str
    twofa_status: str
    twofa_active: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone=user.phone,
            twofa_status=user.twofa_status.value,
            twofa_active=user.twofa_active,
        )


class MetaResponse(BaseModel):
    page: int
    per_page: int
    page_count: int
    total_count: int

    @classmethod
    def from_meta(cls, meta: Meta) -> "MetaResponse":
        return cls(**meta.to_dict())


class UserListResponse(BaseModel):
    data: List[UserResponse]
    meta: MetaResponse


class StatusResponse(BaseModel):
    status: str = "ok"


# ============================================
# Authentication Models
# ============================================

class UserLogin(BaseModel):
    """Password login request."""
    username: str = ""
    password: str = ""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "password": "secret1"
            }
        }
    )


class Login2FARequest(BaseModel):
    """Second-factor code for the pending login or enrollment."""
    code: str = ""


class LoginResponse(BaseModel):
    """
    Login result.

    token is a full session token; two_factor_hash is the partial token to
    send back to /users/login/2fa. Only one of them is present.
    """
    status: str = "ok"
    two_factor: bool
    two_factor_hash: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            status=result.status,
            two_factor=result.two_factor,
            two_factor_hash=result.two_factor_hash or None,
            token=result.token or None,
        )


class Create2FAResponse(BaseModel):
    """Location of the rendered enrollment QR code."""
    qr: str


# ============================================
# Health Models
# ============================================

class HealthStatus(BaseModel):
    """Health check response."""
    status: str = Field(..., description="healthy or unhealthy")
    version: str
    services: Dict[str, str]
    timestamp: datetime


# ============================================
# Error Models
# ============================================

class ErrorResponse(BaseModel):
    """
    Body of every 4xx/5xx response.

    code is stable across releases; detail is the human-readable message.
    """
    error: str = Field(..., description="HTTP status summary")
    detail: Optional[str] = Field(None, description="Detailed error message")
    code: Optional[str] = Field(None, description="Error code for programmatic handling")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Unauthorized",
                "detail": "invalid username or password",
                "code": "INVALID_CREDENTIALS"
            }
        }
    )
