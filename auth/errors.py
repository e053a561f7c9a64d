"""
auth/errors.py -- Typed failures raised by the authentication core.

Every failure the service can produce is an AuthError subclass carrying a
stable machine-readable code and the HTTP status the transport maps it to.
The API layer registers one exception handler for AuthError; nothing in
auth/ knows about HTTP beyond that integer.

Enumeration rule: InvalidCredentials is raised for both "no such email" and
"wrong password" with the same message. Never add a subclass or a detail
string that tells the two apart.

All failures are final. Nothing in auth/ retries.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication failures."""

    code: str = "auth_error"
    status_code: int = 400
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 401
    message = "Invalid credentials."


class EmailInUse(AuthError):
    code = "email_in_use"
    status_code = 409
    message = "Email already in use."


class TwoFactorRequired(AuthError):
    code = "two_factor_required"
    status_code = 401
    message = "2FA code required."


class InvalidTwoFactorCode(AuthError):
    code = "invalid_two_factor_code"
    status_code = 401
    message = "Invalid 2FA code."


class NotSetUp(AuthError):
    code = "two_factor_not_set_up"
    status_code = 400
    message = "2FA not set up for this account."


class NotEnabled(AuthError):
    code = "two_factor_not_enabled"
    status_code = 400
    message = "2FA is not enabled."


class NotFound(AuthError):
    code = "not_found"
    status_code = 404
    message = "User not found."


class InvalidToken(AuthError):
    code = "invalid_token"
    status_code = 401
    message = "Invalid session token."


class ExpiredToken(AuthError):
    code = "expired_token"
    status_code = 401
    message = "Session token has expired."
