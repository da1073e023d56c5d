# stratosafe/services/totp.py
import base64
import logging
import re
from io import BytesIO

import pyotp
import qrcode
from qrcode.exceptions import DataOverflowError

from stratosafe.core.config import Settings
from stratosafe.core.errors import QrCodeError

logger = logging.getLogger(__name__)


class TotpEngine:
    """RFC 6238 codes (6 digits, 30 s) plus the otpauth:// URI and its QR code."""

    def __init__(self, issuer: str, valid_window: int = 1, digits: int = 6, interval: int = 30):
        self.issuer = issuer
        self.valid_window = valid_window
        self.digits = digits
        self.interval = interval
        self._code_re = re.compile(rf"[0-9]{{{digits}}}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TotpEngine":
        return cls(settings.MFA_ISSUER, settings.MFA_VALID_WINDOW)

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval)

    def provisioning_uri(self, account_label: str, secret: str) -> str:
        return self._totp(secret).provisioning_uri(name=account_label, issuer_name=self.issuer)

    def render_scannable(self, uri: str) -> str:
        """PNG of the URI as a data: URI, ready for an <img src>."""
        try:
            qr = qrcode.QRCode(
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=8,
                border=4,
            )
            qr.add_data(uri)
            qr.make(fit=True)
            img = qr.make_image(fill_color="black", back_color="white")
            buf = BytesIO()
            img.save(buf, "PNG")
        except (DataOverflowError, ValueError, OSError) as e:
            raise QrCodeError("Failed to generate QR code") from e
        return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")

    def current_code(self, secret: str) -> str:
        # admin/test tooling only
        return self._totp(secret).now()

    def verify(self, candidate: str, secret: str | None) -> bool:
        """
        Current window +/- valid_window. Malformed input is just False.
        No secret is also just False, on purpose: it must look like a wrong code.
        """
        if not secret or not isinstance(candidate, str):
            return False
        code = candidate.replace(" ", "")
        if not self._code_re.fullmatch(code):
            return False
        return self._totp(secret).verify(code, valid_window=self.valid_window)
