"""
TOTP and QR code utilities for AUTHGATE.

Implements TOTP (Time-based One-Time Password) using RFC 6238, compatible
with Google Authenticator, Authy and other TOTP apps, plus the QR rendering
of enrollment URLs and the factor store used by the local 2FA provider.
"""
import io
import json
import secrets
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import pyotp
import qrcode
import redis

logger = logging.getLogger(__name__)


def generate_totp_secret() -> str:
    """
    Random secret for a new local factor.

    Returns:
        Base32-encoded secret (32 characters).
    """
    return pyotp.random_base32()


def get_totp_provisioning_uri(secret: str, account: str, issuer: str = "AUTHGATE") -> str:
    """
    Generate an otpauth:// provisioning URI for TOTP apps.

    Args:
        secret: Base32-encoded TOTP secret.
        account: Account label displayed in the authenticator app.
        issuer: Application name displayed in the authenticator app.
    """
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=account, issuer_name=issuer)


def verify_totp(secret: str, code: str, window: int = 1) -> bool:
    """
    Verify a TOTP code against the secret.

    Args:
        secret: Base32-encoded TOTP secret.
        code: 6-digit code; spaces and dashes are ignored.
        window: Accepted clock drift in 30-second steps.

    Returns:
        True if code is valid, False otherwise.
    """
    if not secret or not code:
        return False

    code = ''.join(filter(str.isdigit, code))
    if len(code) != 6:
        return False

    totp = pyotp.TOTP(secret)
    return totp.verify(code, valid_window=window)


def generate_qr_code(uri: str) -> bytes:
    """
    Generate a QR code image for a provisioning URI.

    Returns:
        PNG image bytes.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


class QRWriter(Protocol):
    def write(self, user_id: str, url: str) -> str:
        ...


class QRCodeWriter:
    """Renders enrollment URLs as PNG files named after the user id."""

    def __init__(self, directory: str = "./files"):
        self.directory = directory

    def path_for(self, user_id: str) -> str:
        return f"{self.directory.rstrip('/')}/{user_id}.png"

    def write(self, user_id: str, url: str) -> str:
        """
        Render the URL and write it to <directory>/<user_id>.png.

        Returns:
            Path of the written image.

        Raises:
            OSError: If the image cannot be written.
        """
        path = Path(self.path_for(user_id))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(generate_qr_code(url))
        logger.debug(f"QR code written to {path}")
        return str(path)


def new_factor_handle() -> str:
    """Opaque factor id: "YF" followed by 32 hex characters."""
    return "YF" + secrets.token_hex(16)


class FactorStore:
    """
    Storage for TOTP factors created by the local provider.

    Uses Redis when a client is given, with an in-memory fallback when Redis
    is missing or failing.
    """

    KEY_PREFIX = "authgate:factor:"

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        self._memory: Dict[str, Tuple[str, str]] = {}

    def save(self, handle: str, user_id: str, secret: str) -> None:
        if self.redis is not None:
            try:
                self.redis.set(
                    f"{self.KEY_PREFIX}{handle}",
                    json.dumps({"user_id": user_id, "secret": secret}),
                )
                return
            except redis.RedisError as e:
                logger.warning(f"Redis error storing factor: {e}")

        self._memory[handle] = (user_id, secret)

    def load(self, handle: str) -> Optional[Tuple[str, str]]:
        """
        Returns:
            (user_id, secret) for the handle, or None if unknown.
        """
        if self.redis is not None:
            try:
                raw = self.redis.get(f"{self.KEY_PREFIX}{handle}")
                if raw:
                    data = json.loads(raw)
                    return data["user_id"], data["secret"]
            except redis.RedisError as e:
                logger.warning(f"Redis error loading factor: {e}")

        return self._memory.get(handle)
