"""
api/routes/v1/auth.py -- Account, session and two-factor REST endpoints.

Routes:
  POST   /api/v1/auth/signup            -- create account; returns a session
  POST   /api/v1/auth/login             -- password (+ 2FA code) login; returns a session
  GET    /api/v1/auth/me                -- current account (requires auth)
  GET    /api/v1/auth/users             -- list all accounts (requires auth)
  DELETE /api/v1/auth/account           -- delete own account (requires auth)
  DELETE /api/v1/auth/account/{id}      -- delete account by id (requires auth)
  DELETE /api/v1/auth/delete            -- delete account by email + password
  PUT    /api/v1/auth/account           -- update own email/password (requires auth)
  PUT    /api/v1/auth/update            -- update email/password by current credentials
  POST   /api/v1/auth/2fa/enable        -- start TOTP enrollment; returns secret + QR
  POST   /api/v1/auth/2fa/verify        -- confirm enrollment with a code
  POST   /api/v1/auth/2fa/disable       -- turn 2FA off (password + code)

Threading: every handler here is a plain `def`. AuthService runs bcrypt,
which is CPU-bound; Starlette executes sync handlers in its threadpool so
the event loop keeps serving other requests.

Errors: handlers let AuthError propagate. api/main.py maps it to the
ErrorResponse envelope with the exception's own status code.

Security:
  [C1] InvalidCredentials is returned for both unknown email and wrong
       password. Handlers never add detail that tells them apart.
  [M5] Cache-Control: no-store on every response that carries a token or
       a TOTP secret.
  No rate limiting on any route.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    AccountDeletedResponse,
    AccountUpdatedResponse,
    AccountUpdateRequest,
    CredentialsRequest,
    CredentialsUpdateRequest,
    LoginRequest,
    MessageResponse,
    SessionResponse,
    SignupRequest,
    TwoFactorDisableRequest,
    TwoFactorSetupResponse,
    TwoFactorVerifyRequest,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.models import AccountUpdate, UserProfile
from auth.service import AuthService

# Auth policy:
# - POST   /auth/signup, /auth/login:          public
# - POST   /auth/2fa/enable|verify|disable:     public -- credentials in body
# - DELETE /auth/delete, PUT /auth/update:      public -- credentials in body
# - GET    /auth/me, /auth/users:               requires auth (get_current_user)
# - DELETE /auth/account, /auth/account/{id}:   requires auth (get_current_user)
# - PUT    /auth/account:                       requires auth (get_current_user)
router = APIRouter()


def _expires_in(request: Request) -> int:
    return request.app.state.settings.token_expire_seconds


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SessionResponse, status_code=201)
def signup(
    request: Request,
    response: Response,
    body: SignupRequest,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Register a new account and return a bearer token for it."""
    session = service.signup(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return SessionResponse.from_session(session, _expires_in(request))


@router.post("/auth/login", response_model=SessionResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Authenticate with email and password, plus a TOTP code once 2FA is enabled.

    Returns 401 two_factor_required when the account has 2FA and no code was
    sent; clients should prompt for the code and retry with two_factor_code.
    """
    session = service.login(body.email, body.password, body.two_factor_code)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return SessionResponse.from_session(session, _expires_in(request))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: UserProfile = Depends(get_current_user)) -> UserResponse:
    """Return the account behind the bearer token."""
    return UserResponse.from_profile(current_user)


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    current_user: UserProfile = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> list[UserResponse]:
    """List every account. Passwords and TOTP secrets are never included."""
    return [UserResponse.from_profile(p) for p in service.list_users()]


@router.delete("/auth/account", response_model=MessageResponse)
def delete_own_account(
    current_user: UserProfile = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.delete_account(current_user.id)
    return MessageResponse(message="Account deleted successfully")


@router.delete("/auth/account/{user_id}", response_model=MessageResponse)
def delete_account_by_id(
    user_id: str,
    current_user: UserProfile = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Delete any account by id. Any authenticated caller may use it; there are no roles."""
    service.delete_account(user_id)
    return MessageResponse(message=f"Account {user_id} deleted successfully")


@router.put("/auth/account", response_model=AccountUpdatedResponse)
def update_own_account(
    body: AccountUpdateRequest,
    current_user: UserProfile = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> AccountUpdatedResponse:
    profile = service.update_account(
        current_user.id,
        AccountUpdate(email=body.email, password=body.password),
    )
    return AccountUpdatedResponse(message="Account updated successfully", user=UserResponse.from_profile(profile))


# ---------------------------------------------------------------------------
# Credential-based account management
# ---------------------------------------------------------------------------


@router.delete("/auth/delete", response_model=AccountDeletedResponse)
def delete_by_credentials(
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> AccountDeletedResponse:
    removed = service.delete_account_by_credentials(body.email, body.password)
    return AccountDeletedResponse(message="Account deleted successfully", email=removed.email)


@router.put("/auth/update", response_model=AccountUpdatedResponse)
def update_by_credentials(
    body: CredentialsUpdateRequest,
    service: AuthService = Depends(get_auth_service),
) -> AccountUpdatedResponse:
    profile = service.update_account_by_credentials(
        body.current_email,
        body.current_password,
        AccountUpdate(email=body.new_email, password=body.new_password),
    )
    return AccountUpdatedResponse(message="Account updated successfully", user=UserResponse.from_profile(profile))


# ---------------------------------------------------------------------------
# Two-factor authentication
# ---------------------------------------------------------------------------


@router.post("/auth/2fa/enable", response_model=TwoFactorSetupResponse)
def enable_two_factor(
    response: Response,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> TwoFactorSetupResponse:
    """Generate a TOTP secret and QR code. 2FA stays off until /2fa/verify succeeds."""
    enrollment = service.enable_2fa(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TwoFactorSetupResponse(
        message="2FA secret generated. Scan QR code with Google Authenticator",
        secret=enrollment.secret,
        qr_code=enrollment.qr_code,
        otpauth_url=enrollment.otpauth_url,
    )


@router.post("/auth/2fa/verify", response_model=MessageResponse)
def verify_two_factor(
    body: TwoFactorVerifyRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.verify_2fa(body.email, body.code)
    return MessageResponse(message="2FA enabled successfully")


@router.post("/auth/2fa/disable", response_model=MessageResponse)
def disable_two_factor(
    body: TwoFactorDisableRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.disable_2fa(body.email, body.password, body.code)
    return MessageResponse(message="2FA disabled successfully")
