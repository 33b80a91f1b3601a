"""
EdgeGate Backend — Password Hashing
===================================

PBKDF2-HMAC-SHA256 with a random 16-byte salt.

Stored format: "{salt_hex}:{hash_hex}". The iteration count comes from
PASSWORD_HASH_ITERATIONS; changing it invalidates existing hashes, so it is
a deploy-once setting.
"""

import hashlib
import hmac
import secrets

from app.config import settings

_SALT_BYTES = 16


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, settings.password_hash_iterations
    )


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(_SALT_BYTES)
    return f"{salt.hex()}:{_derive(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Constant-time check of `password` against a stored hash."""
    try:
        salt_hex, hash_hex = stored.split(":", 1)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    return hmac.compare_digest(_derive(password, salt), expected)
