"""
Password hashing utilities.

Passwords are stretched with scrypt (``cryptography``'s KDF) under a random
16-byte salt. Stored form: ``scrypt$<salt hex>$<key hex>``.
"""

import logging
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

SCHEME = "scrypt"
SALT_BYTES = 16
KEY_LENGTH = 64

# Interactive-login cost parameters
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _kdf(salt: bytes) -> Scrypt:
    return Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)


def hash_password(password: str) -> str:
    """Hash a plaintext password for storage."""
    salt = os.urandom(SALT_BYTES)
    key = _kdf(salt).derive(password.encode("utf-8"))
    return f"{SCHEME}${salt.hex()}${key.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    """
    Check a plaintext password against a stored hash.

    Returns False for a wrong password or a malformed stored value.
    """
    try:
        scheme, salt_hex, key_hex = stored_hash.split("$")
        if scheme != SCHEME:
            logger.warning(f"Unsupported password hash scheme: {scheme}")
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(key_hex)
    except ValueError:
        logger.warning("Malformed password hash")
        return False

    try:
        _kdf(salt).verify(password.encode("utf-8"), expected)
        return True
    except InvalidKey:
        return False
