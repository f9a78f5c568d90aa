"""
API request and response models for the auth service REST endpoints.

These Pydantic v2 models define the HTTP transport contract only. They check
payload SHAPE (field present, right JSON type); a missing or mistyped field
fails here and becomes a 422. Domain CONTENT rules (email has an @, password
length, 6-digit code) live in core/models.py and fail inside the service as
a 400 -- the two layers are kept apart on purpose so the status codes differ.

Field names follow the public JSON contract (requires2FA, loginAttemptId,
2FACode) via aliases; Python code uses snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(repr=False)
    requires_2fa: bool = Field(alias="requires2FA")


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str
    password: str = Field(repr=False)


class Verify2FARequest(BaseModel):
    """Request body for POST /verify-2fa."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    login_attempt_id: str = Field(alias="loginAttemptId")
    two_fa_code: str = Field(alias="2FACode", repr=False)


class VerifyTokenRequest(BaseModel):
    """Request body for POST /verify-token."""

    token: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class TwoFactorAuthResponse(BaseModel):
    """206 body for a login that still needs the emailed code."""

    model_config = ConfigDict(frozen=True)

    message: str = "2FA required"
    login_attempt_id: str = Field(serialization_alias="loginAttemptId")


class ErrorResponse(BaseModel):
    """Uniform error envelope: {"error": "<human readable message>"}."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
