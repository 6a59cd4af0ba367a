"""
Authentication and two-factor support for AUTHGATE.

This package provides:
- Password hashing (bcrypt)
- Bearer tokens (JWT)
- TOTP factors and QR rendering
- 2FA providers (Twilio Verify, local)
- The user service (authgate.auth.service)
"""
from .passwords import hash_password, verify_password
from .mfa import (
    generate_totp_secret,
    get_totp_provisioning_uri,
    verify_totp,
    generate_qr_code,
    QRCodeWriter,
)

__all__ = [
    "hash_password",
    "verify_password",
    "generate_totp_secret",
    "get_totp_provisioning_uri",
    "verify_totp",
    "generate_qr_code",
    "QRCodeWriter",
]
