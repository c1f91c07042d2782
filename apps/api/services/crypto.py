"""
Fernet helpers for values kept in cookies.
"""

import base64
import secrets
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings


ADMIN_MARKER_PREFIX = "g360-admin:"


def _get_fernet() -> Fernet:
    """Get Fernet instance from encryption key."""
    key = settings.ENCRYPTION_KEY

    # If key is not 32 bytes, derive a key using PBKDF2
    if len(key) != 32:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"gumruk360_cookie_salt",
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(key.encode()))
    else:
        key = base64.urlsafe_b64encode(key.encode())

    return Fernet(key)


def encrypt_token(token: str) -> str:
    """Encrypt a short value; the result is URL-safe."""
    return _get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str, max_age_seconds: Optional[int] = None) -> str:
    """
    Decrypt a value produced by encrypt_token.

    Raises ValueError when the value was tampered with or is older than
    max_age_seconds.
    """
    try:
        decrypted = _get_fernet().decrypt(encrypted_token.encode(), ttl=max_age_seconds)
    except InvalidToken as exc:
        raise ValueError("Invalid or expired encrypted value.") from exc
    return decrypted.decode()


def issue_admin_marker() -> str:
    """Opaque admin cookie value; never contains the admin secret itself."""
    return encrypt_token(ADMIN_MARKER_PREFIX + secrets.token_hex(8))


def verify_admin_marker(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        plain = decrypt_token(value, max_age_seconds=int(settings.ADMIN_COOKIE_HOURS) * 3600)
    except ValueError:
        return False
    return plain.startswith(ADMIN_MARKER_PREFIX)
