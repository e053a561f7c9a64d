"""
API request and response models for the Login App REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from auth.models import Session, UserProfile

# ---------------------------------------------------------------------------
# Constrained types
# ---------------------------------------------------------------------------

# Six characters minimum for passwords and codes. The upper bounds only cap
# payload size; bcrypt still reads just the first 72 bytes of a password.
_Password = Annotated[str, Field(min_length=6, max_length=255)]
_TotpCode = Annotated[str, Field(min_length=6, max_length=10)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    email: EmailStr
    password: _Password


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    two_factor_code is only required once 2FA is enabled on the account.
    """

    email: EmailStr
    password: _Password
    two_factor_code: Optional[_TotpCode] = None


class CredentialsRequest(BaseModel):
    """Request body for DELETE /api/v1/auth/delete and POST /api/v1/auth/2fa/enable."""

    email: EmailStr
    password: _Password


class AccountUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/auth/account. Omitted fields are left unchanged."""

    email: Optional[EmailStr] = None
    password: Optional[_Password] = None


class CredentialsUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/auth/update.

    current_email / current_password authenticate the call; new_email and
    new_password are optional and default to "unchanged".
    """

    current_email: EmailStr
    current_password: _Password
    new_email: Optional[EmailStr] = None
    new_password: Optional[_Password] = None


class TwoFactorVerifyRequest(BaseModel):
    """Request body for POST /api/v1/auth/2fa/verify."""

    email: EmailStr
    code: _TotpCode


class TwoFactorDisableRequest(BaseModel):
    """Request body for POST /api/v1/auth/2fa/disable."""

    email: EmailStr
    password: _Password
    code: _TotpCode


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never carries credential material."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    two_factor_enabled: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            two_factor_enabled=profile.two_factor_enabled,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class SessionResponse(BaseModel):
    """Response for signup and login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password
    expires_in: int
    user: UserResponse

    @classmethod
    def from_session(cls, session: Session, expires_in: int) -> "SessionResponse":
        return cls(
            access_token=session.access_token,
            token_type=session.token_type,
            expires_in=expires_in,
            user=UserResponse.from_profile(session.user),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AccountDeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    email: str


class AccountUpdatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class TwoFactorSetupResponse(BaseModel):
    """Response for POST /api/v1/auth/2fa/enable.

    The only response that ever carries the TOTP secret. qr_code is a
    data:image/png;base64 URI ready for an <img src>.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    secret: str
    qr_code: str
    otpauth_url: str


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
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
