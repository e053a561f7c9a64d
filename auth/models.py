"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projection).
Dataclasses own domain shape; the store and the service do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A stored identity record.

    password_hash and two_factor_secret never leave auth/. Anything handed to
    a caller outside the package goes through to_profile() first.

    Two-factor state is encoded by the pair of 2FA fields:
      secret None,     enabled False -> disabled
      secret present,  enabled False -> pending verification
      secret present,  enabled True  -> enabled
    """

    id: str
    email: str
    password_hash: str
    two_factor_secret: str | None = None
    two_factor_enabled: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    def to_profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            email=self.email,
            two_factor_enabled=self.two_factor_enabled,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class UserProfile:
    """Read-facing projection of a User. Carries no credential material."""

    id: str
    email: str
    two_factor_enabled: bool = False
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class AccountUpdate:
    """Partial update for an account.

    One option per mutable attribute. None (or an empty string) means
    "leave unchanged". password is plaintext; the service hashes it.
    """

    email: str | None = None
    password: str | None = None

    def is_empty(self) -> bool:
        return not self.email and not self.password


@dataclass(frozen=True)
class TokenClaims:
    """Identity recovered from a verified session token."""

    user_id: str
    email: str


@dataclass(frozen=True)
class Session:
    """Result of a successful signup or login."""

    access_token: str
    user: UserProfile
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password


@dataclass(frozen=True)
class Enrollment:
    """Material handed to the user when 2FA enrollment starts.

    secret is shown once so it can be typed in manually; qr_code is a
    data:image/png;base64 URI of otpauth_url for scanning.
    """

    secret: str
    qr_code: str
    otpauth_url: str
