"""
API request and response models for the SonicGate web API (/api/v1).

These Pydantic v2 models define the HTTP transport contract of the JSON web
API. They are separate from the dataclasses in auth/models.py, which own the
internal domain representation, and from subsonic/payloads.py, which owns
the /rest wire shapes. Route handlers map between them.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    is_admin: bool


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    is_admin: bool

    @classmethod
    def from_identity(cls, identity: Identity) -> "MeResponse":
        return cls(user_id=identity.id, username=identity.username, is_admin=identity.is_admin)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses of the web API."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
