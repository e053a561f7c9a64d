"""
auth/totp.py -- TOTP (RFC 6238) secrets, enrollment QR codes and verification.

The per-user 2FA state machine lives in the pair of User fields
(two_factor_secret, two_factor_enabled):

    DISABLED --enable_2fa--> PENDING_VERIFICATION --verify_2fa--> ENABLED
        ^                                                            |
        +-------------------------disable_2fa------------------------+

TotpEngine holds no per-user state. It generates secrets, renders the
enrollment QR code and checks codes; AuthService applies the transitions
against the store.

Compatibility surface: the provisioning URI always spells out
algorithm=SHA1, digits=6 and period=30 along with the issuer and the email
account label. Authenticator apps already enrolled depend on these values,
so none of them may change.

Fail-closed: verify_code() never raises. A malformed code, a corrupt
secret or any pyotp error is CodeCheck.INVALID.
"""

from __future__ import annotations

import base64
import io
import logging
import secrets
from datetime import datetime
from enum import Enum
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import pyotp
import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.image.pil import PilImage

from auth.models import User
from core.config import Settings

logger = logging.getLogger("loginapp.auth.totp")

TOTP_DIGITS = 6
TOTP_PERIOD = 30  # seconds per step
TOTP_ALGORITHM = "SHA1"
SECRET_BYTES = 32


class CodeCheck(Enum):
    """Outcome of checking a submitted TOTP code."""

    VALID = "valid"
    INVALID = "invalid"

    @property
    def is_valid(self) -> bool:
        return self is CodeCheck.VALID


class TwoFactorState(Enum):
    DISABLED = "disabled"
    PENDING_VERIFICATION = "pending_verification"
    ENABLED = "enabled"

    @classmethod
    def of(cls, user: User) -> "TwoFactorState":
        if not user.two_factor_secret:
            return cls.DISABLED
        if user.two_factor_enabled:
            return cls.ENABLED
        return cls.PENDING_VERIFICATION


class TotpEngine:
    """Stateless TOTP helper configured from Settings."""

    def __init__(self, settings: Settings) -> None:
        self._issuer = settings.totp_issuer
        self._valid_window = settings.totp_valid_window

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    def generate_secret(self) -> str:
        """Return 32 random bytes as unpadded base32.

        Padding is stripped because authenticator apps reject '=' in the
        secret parameter. pyotp restores it when decoding.
        """
        return base64.b32encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii").rstrip("=")

    def provisioning_uri(self, email: str, secret: str) -> str:
        """Build the otpauth://totp/ URI for an account.

        pyotp leaves out parameters that equal the Key URI defaults. They are
        added back here so the URI carries every parameter explicitly.
        """
        uri = self._totp(secret).provisioning_uri(name=email, issuer_name=self._issuer)
        parts = urlsplit(uri)
        params = dict(parse_qsl(parts.query))
        params.setdefault("algorithm", TOTP_ALGORITHM)
        params.setdefault("digits", str(TOTP_DIGITS))
        params.setdefault("period", str(TOTP_PERIOD))
        return urlunsplit(parts._replace(query=urlencode(params, quote_via=quote)))

    def generate_enrollment_code(self, email: str, secret: str) -> str:
        """Render the provisioning URI as a PNG QR code data URI."""
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_M,
            box_size=6,
            border=4,
            image_factory=PilImage,
        )
        qr.add_data(self.provisioning_uri(email, secret))
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf)
        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_code(self, code: str | None, secret: str | None, for_time: datetime | None = None) -> CodeCheck:
        """Check a 6-digit code against the secret.

        Accepts codes from valid_window steps either side of for_time
        (default now). With the default window of 2 that is +-60 seconds.
        """
        if not secret or not code:
            return CodeCheck.INVALID
        code = code.strip()
        if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
            return CodeCheck.INVALID
        try:
            ok = self._totp(secret).verify(code, for_time=for_time, valid_window=self._valid_window)
        except (ValueError, TypeError):
            # binascii.Error (corrupt base32) is a ValueError subclass.
            logger.warning("TOTP verification failed on a malformed secret")
            return CodeCheck.INVALID
        return CodeCheck.VALID if ok else CodeCheck.INVALID

    def current_code(self, secret: str, for_time: datetime | None = None) -> str:
        """Return the code an authenticator app would show at for_time."""
        totp = self._totp(secret)
        return totp.at(for_time) if for_time is not None else totp.now()

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD, issuer=self._issuer)
