"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The cost factor comes from Settings.bcrypt_rounds (default 10). The digest
embeds salt and cost, so verification needs nothing but the digest itself
and old hashes keep verifying after the cost factor changes.

hash() and verify() are CPU-bound and deliberately slow. Never call them
from a coroutine on the event loop; the API routes that reach them are
plain `def` handlers, which Starlette runs in its threadpool.
"""

from __future__ import annotations

import logging

import bcrypt

from core.config import Settings

logger = logging.getLogger("loginapp.auth.passwords")

# bcrypt only looks at the first 72 bytes. Truncating explicitly keeps
# bcrypt 4.x from raising on longer inputs.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted one-way password hashing with a fixed work factor."""

    def __init__(self, settings: Settings) -> None:
        self._rounds = settings.bcrypt_rounds
        # Timing equalization dummy hash [C1]. Computed once so an unknown
        # email costs the same bcrypt work as a wrong password.
        self._dummy_hash = self.hash("loginapp_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest (salt and cost embedded) of the plaintext."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext matches the digest.

        Never raises: a missing or malformed digest is simply a mismatch.
        bcrypt.checkpw compares in constant time.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            logger.warning("Malformed password digest encountered during verification")
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one verify against the dummy digest. Result is always ignored."""
        self.verify(plain, self._dummy_hash)
