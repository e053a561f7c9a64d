"""
auth/service.py -- Account and two-factor operations.

AuthService is the only caller of PasswordHasher, TotpEngine and TokenIssuer,
and the only code that writes to UserStore. Route handlers call it with
plain scalars and get back dataclasses from auth.models or an AuthError.

Two authorization styles coexist on purpose:
  token-based       -- user_id comes from a verified session token
                       (delete_account, update_account, authenticate).
  credential-based  -- email + password are re-presented on every call
                       (delete_account_by_credentials,
                       update_account_by_credentials, the 2FA operations).
The credential-based entry points let account changes happen without a live
session. Both are public API.

Security:
  [C1] Unknown email and wrong password both raise InvalidCredentials and
       both cost one bcrypt verify (the unknown-email path burns a dummy
       verify) so neither the error nor the timing tells them apart.

  Email uniqueness is pre-checked before every write so the caller sees
  EmailInUse. An IntegrityError from a concurrent writer is mapped to the
  same error.

  There is no rate limiting, lockout or attempt counter on password or
  TOTP guesses.

Every logical change is exactly one store write.

Threading: bcrypt makes most operations take tens of milliseconds of CPU.
Call them from a worker thread, never directly from an event loop.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    EmailInUse,
    InvalidCredentials,
    InvalidTwoFactorCode,
    NotEnabled,
    NotFound,
    NotSetUp,
    TwoFactorRequired,
)
from auth.models import AccountUpdate, Enrollment, Session, User, UserProfile
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from auth.totp import TotpEngine, TwoFactorState

logger = logging.getLogger("loginapp.auth")


class AuthService:
    """Signup, login, account management and the 2FA state machine."""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        totp: TotpEngine,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.totp = totp

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str) -> Session:
        """Create an account and return a session for it.

        Raises:
            EmailInUse: the email is already registered.
        """
        if self.store.find_by_email(email) is not None:
            raise EmailInUse()
        try:
            user = self.store.create(email, self.hasher.hash(password))
        except IntegrityError as exc:
            raise EmailInUse() from exc
        logger.info("Account created (user_id=%s)", user.id)
        return self._issue_session(user)

    def login(self, email: str, password: str, totp_code: str | None = None) -> Session:
        """Check credentials (and the TOTP code when 2FA is on) and open a session.

        Raises:
            InvalidCredentials: unknown email or wrong password.
            TwoFactorRequired: 2FA is enabled and no code was given.
            InvalidTwoFactorCode: 2FA is enabled and the code is wrong.
        """
        user = self._authenticate_credentials(email, password)
        if user.two_factor_enabled:
            if not totp_code:
                raise TwoFactorRequired()
            if not self.totp.verify_code(totp_code, user.two_factor_secret).is_valid:
                logger.info("Login rejected: bad 2FA code (user_id=%s)", user.id)
                raise InvalidTwoFactorCode()
        logger.info("Login succeeded (user_id=%s)", user.id)
        return self._issue_session(user)

    def authenticate(self, token: str) -> UserProfile:
        """Resolve a bearer token to the current account.

        Raises:
            InvalidToken / ExpiredToken: from TokenIssuer.verify().
            NotFound: the token is valid but the account has been deleted.
        """
        claims = self.tokens.verify(token)
        user = self.store.find_by_id(claims.user_id)
        if user is None:
            raise NotFound()
        return user.to_profile()

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserProfile]:
        return self.store.list_all()

    def delete_account(self, user_id: str) -> None:
        """Delete the account behind an authenticated session."""
        if not self.store.delete(user_id):
            raise NotFound()
        logger.info("Account deleted (user_id=%s)", user_id)

    def delete_account_by_credentials(self, email: str, password: str) -> UserProfile:
        """Delete an account after re-checking its password. Returns what was removed.

        Raises:
            InvalidCredentials: unknown email or wrong password.
            NotFound: the row was deleted concurrently after the check.
        """
        user = self._authenticate_credentials(email, password)
        if not self.store.delete(user.id):
            raise NotFound()
        logger.info("Account deleted by credentials (user_id=%s)", user.id)
        return user.to_profile()

    def update_account(self, user_id: str, update: AccountUpdate) -> UserProfile:
        """Change email and/or password for an authenticated session's account.

        Raises:
            EmailInUse: the new email belongs to a different account.
            NotFound: the account no longer exists.
        """
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound()
        return self._apply_update(user, update)

    def update_account_by_credentials(
        self,
        current_email: str,
        current_password: str,
        update: AccountUpdate,
    ) -> UserProfile:
        """Change email and/or password after re-checking the current password.

        Raises:
            InvalidCredentials: current_email/current_password do not match.
            EmailInUse: the new email belongs to a different account.
        """
        user = self._authenticate_credentials(current_email, current_password)
        return self._apply_update(user, update)

    # ------------------------------------------------------------------
    # Two-factor state machine
    # ------------------------------------------------------------------

    def enable_2fa(self, email: str, password: str) -> Enrollment:
        """Start enrollment: DISABLED/PENDING/ENABLED -> PENDING_VERIFICATION.

        A fresh secret replaces any previous one and two_factor_enabled is
        reset to False until verify_2fa() confirms the new secret.
        """
        user = self._authenticate_credentials(email, password)
        secret = self.totp.generate_secret()
        enrollment = Enrollment(
            secret=secret,
            qr_code=self.totp.generate_enrollment_code(user.email, secret),
            otpauth_url=self.totp.provisioning_uri(user.email, secret),
        )
        self._require(self.store.update_two_factor(user.id, secret, False))
        logger.info("2FA enrollment started (user_id=%s)", user.id)
        return enrollment

    def verify_2fa(self, email: str, code: str) -> UserProfile:
        """Confirm enrollment: PENDING_VERIFICATION -> ENABLED.

        Calling it again while already ENABLED re-confirms the same secret.

        Raises:
            NotSetUp: unknown email, or no secret has been generated.
            InvalidTwoFactorCode: the code does not match; nothing is written.
        """
        user = self.store.find_by_email(email)
        if user is None or TwoFactorState.of(user) is TwoFactorState.DISABLED:
            raise NotSetUp()
        if not self.totp.verify_code(code, user.two_factor_secret).is_valid:
            logger.info("2FA verification rejected (user_id=%s)", user.id)
            raise InvalidTwoFactorCode()
        updated = self._require(self.store.update_two_factor(user.id, user.two_factor_secret, True))
        logger.info("2FA enabled (user_id=%s)", user.id)
        return updated.to_profile()

    def disable_2fa(self, email: str, password: str, code: str) -> UserProfile:
        """Turn 2FA off: ENABLED -> DISABLED.

        Needs the password AND a current code, so a stolen session token is
        never enough to strip 2FA.

        Raises:
            InvalidCredentials: unknown email or wrong password.
            NotEnabled: 2FA is not in the ENABLED state.
            InvalidTwoFactorCode: the code does not match; nothing is written.
        """
        user = self._authenticate_credentials(email, password)
        if TwoFactorState.of(user) is not TwoFactorState.ENABLED:
            raise NotEnabled()
        if not self.totp.verify_code(code, user.two_factor_secret).is_valid:
            logger.info("2FA disable rejected: bad code (user_id=%s)", user.id)
            raise InvalidTwoFactorCode()
        updated = self._require(self.store.update_two_factor(user.id, None, False))
        logger.info("2FA disabled (user_id=%s)", user.id)
        return updated.to_profile()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _authenticate_credentials(self, email: str, password: str) -> User:
        """Return the user for email/password or raise InvalidCredentials [C1]."""
        user = self.store.find_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            self.hasher.verify_dummy(password)
            logger.info("Credential check failed")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Credential check failed")
            raise InvalidCredentials()
        return user

    def _apply_update(self, user: User, update: AccountUpdate) -> UserProfile:
        new_email: str | None = None
        if update.email:
            existing = self.store.find_by_email(update.email)
            if existing is not None and existing.id != user.id:
                raise EmailInUse()
            new_email = update.email

        new_hash = self.hasher.hash(update.password) if update.password else None

        try:
            updated = self.store.update(user.id, email=new_email, password_hash=new_hash)
        except IntegrityError as exc:
            raise EmailInUse() from exc
        updated = self._require(updated)
        if not update.is_empty():
            logger.info("Account updated (user_id=%s)", user.id)
        return updated.to_profile()

    def _issue_session(self, user: User) -> Session:
        return Session(
            access_token=self.tokens.issue(user.id, user.email),
            user=user.to_profile(),
        )

    @staticmethod
    def _require(user: User | None) -> User:
        # The row vanished between lookup and write (concurrent delete).
        if user is None:
            raise NotFound()
        return user
