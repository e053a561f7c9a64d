"""
auth/tokens.py -- Signed session tokens (JWT).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), email, iat and
       exp. Expiry is Settings.token_expire_seconds, seven days by default.

  Signing key: taken from the Settings instance handed to TokenIssuer at
       construction. The key is read once and never mutated; there is no
       rotation.

  Revocation: none. Logout is the client discarding its token. A token for
       a deleted account still verifies here -- AuthService.authenticate()
       turns that into NotFound when the user lookup misses.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.models import TokenClaims
from core.config import Settings

logger = logging.getLogger("loginapp.auth.tokens")

_ALGORITHM = "HS256"


class TokenIssuer:
    """Mints and verifies bearer tokens binding a user identity."""

    def __init__(self, settings: Settings) -> None:
        self._secret_key = settings.secret_key
        self._expire_seconds = settings.token_expire_seconds

    def issue(self, user_id: str, email: str) -> str:
        """Encode a signed JWT for the given identity."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "email": email,
            "iat": now,
            "exp": now + timedelta(seconds=self._expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT.

        Raises:
            ExpiredToken: the signature is fine but exp is in the past.
            InvalidToken: bad signature, malformed token, or missing claims.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        user_id = payload.get("sub")
        email = payload.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str):
            logger.warning("Rejected signed token with missing identity claims")
            raise InvalidToken()
        return TokenClaims(user_id=user_id, email=email)
