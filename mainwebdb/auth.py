"""Credential utilities for MainWebDB.

This module provides stateless functions for password hashing and API key
generation. Storage of users and keys in the document graph is handled by
identity.py and keys.py.

Key format: {api_key_prefix}{random_hex}
    Example: gfx_3f9a0c...  (24 random bytes = 48 hex chars by default)

Password credentials are bcrypt hashes with a per-credential salt. The
password is first reduced with SHA-256 so inputs longer than bcrypt's
72-byte limit, unicode text and the empty string all hash safely.
"""

import base64
import hashlib
import secrets

import bcrypt
import structlog

from mainwebdb.config import settings

logger = structlog.get_logger(__name__)


def _prehash(password: str) -> bytes:
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: The plaintext password (any string, including empty)

    Returns:
        A bcrypt credential string ($2b$...)

    Example:
        >>> hashed = hash_password("s3cret")
        >>> hashed.startswith("$2b$")
        True
    """
    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(_prehash(password), salt).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored credential.

    Malformed stored credentials never verify.

    Example:
        >>> verify_password("s3cret", hash_password("s3cret"))
        True
        >>> verify_password("wrong", hash_password("s3cret"))
        False
    """
    try:
        return bcrypt.checkpw(_prehash(password), hashed.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        logger.warning("password_hash_malformed")
        return False


def generate_api_key() -> str:
    """
    Generate a new database API key.

    The key carries settings.api_key_prefix so it is recognizable as a
    MainWebDB credential, followed by settings.api_key_bytes of
    cryptographic randomness in hex.

    Example:
        >>> key = generate_api_key()
        >>> key.startswith("gfx_")
        True
    """
    api_key = settings.api_key_prefix + secrets.token_hex(settings.api_key_bytes)

    logger.info("generated_api_key", key_prefix=get_key_prefix(api_key))
    return api_key


def get_key_prefix(key: str) -> str:
    """
    Extract a safe prefix from an API key for logging and display.

    Example:
        >>> get_key_prefix("gfx_a1b2c3d4e5f6a7b8c9d0")
        'gfx_a1b2...'
    """
    visible = len(settings.api_key_prefix) + 4
    if len(key) <= visible:
        return key[:4] + "..."
    return key[:visible] + "..."
