"""
Secret Encryption Utilities.

Encrypts app secrets and OAuth tokens before they are written to the
credential store, using Fernet (AES-128 CBC + HMAC).

- Key derived from JWT_SECRET using PBKDF2-HMAC-SHA256, 100,000 iterations
- Fixed salt dedicated to credential encryption
"""

import base64
import hashlib
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from qctoken.core.config import settings

logger = logging.getLogger(__name__)

# Salt for PBKDF2 key derivation (constant, not a secret)
_CREDENTIAL_SALT = b"qctoken_credential_encryption_v1"


@lru_cache(maxsize=4)
def _derive_key(secret: str) -> bytes:
    derived_key = hashlib.pbkdf2_hmac(
        "sha256",
        secret.encode("utf-8"),
        _CREDENTIAL_SALT,
        100000,
        dklen=32,
    )
    # Fernet requires base64-encoded key
    return base64.urlsafe_b64encode(derived_key)


def _get_fernet() -> Fernet:
    """
    Build a Fernet instance from the configured JWT_SECRET.

    Raises:
        ValueError: If JWT_SECRET is not configured
    """
    if not is_encryption_configured():
        raise ValueError("JWT_SECRET must be configured for token encryption")
    return Fernet(_derive_key(settings.JWT_SECRET))


def encrypt_token(token: str) -> str:
    """
    Encrypt a secret for storage.

    Args:
        token: Plain value to encrypt

    Returns:
        Base64-encoded encrypted value

    Raises:
        ValueError: If token is empty or JWT_SECRET not configured
    """
    if not token:
        raise ValueError("Cannot encrypt empty token")

    encrypted_bytes = _get_fernet().encrypt(token.encode("utf-8"))
    return encrypted_bytes.decode("utf-8")


def decrypt_token(encrypted_token: str) -> str:
    """
    Decrypt a secret read from storage.

    Raises:
        ValueError: If the value is empty, corrupted or was encrypted with another key
    """
    if not encrypted_token:
        raise ValueError("Cannot decrypt empty token")

    try:
        decrypted_bytes = _get_fernet().decrypt(encrypted_token.encode("utf-8"))
    except InvalidToken as e:
        logger.warning("Token decryption failed: invalid token or wrong key")
        raise ValueError("Failed to decrypt token") from e
    return decrypted_bytes.decode("utf-8")


def is_encryption_configured() -> bool:
    """True if JWT_SECRET is set and not using the default placeholder."""
    return bool(
        settings.JWT_SECRET
        and settings.JWT_SECRET != "change_me"
    )
