"""
Encryption service for carrier credentials

Carrier API keys and secrets are encrypted before the shipping settings
record is written to the database, and masked whenever settings are shown
to administrators.

Uses Fernet (symmetric encryption) with key derived from SECRET_KEY.
"""
import base64
import logging
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from storefront.core.config import settings

logger = logging.getLogger(__name__)

# Salt for key derivation
_ENCRYPTION_SALT = b"storefront_carrier_credentials_v1"

MASK = "***"

# Cached Fernet instance
_fernet: Optional[Fernet] = None


def _get_fernet() -> Fernet:
    """Get or create Fernet instance with derived key."""
    global _fernet

    if _fernet is None:
        # Derive a proper 32-byte key from SECRET_KEY
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=_ENCRYPTION_SALT,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))
        _fernet = Fernet(key)

    return _fernet


def encrypt_secret(plaintext: str) -> str:
    """
    Encrypt a credential string.

    Args:
        plaintext: The sensitive value to encrypt

    Returns:
        Base64-encoded encrypted string
    """
    if not plaintext:
        return ""

    try:
        return _get_fernet().encrypt(plaintext.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError("Failed to encrypt sensitive data")


def decrypt_secret(ciphertext: str) -> str:
    """
    Decrypt a credential string.

    Args:
        ciphertext: Base64-encoded encrypted string

    Returns:
        Decrypted plaintext
    """
    if not ciphertext:
        return ""

    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.error("Decryption failed: Invalid token (wrong key or corrupted data)")
        raise ValueError("Failed to decrypt data - invalid token")


def encrypt_credentials(credentials: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if credentials is None:
        return None
    return {key: encrypt_secret(value) for key, value in credentials.items()}


def decrypt_credentials(credentials: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if credentials is None:
        return None
    return {key: decrypt_secret(value) for key, value in credentials.items()}


def mask_credentials(credentials: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    """Replace every non-empty credential value with a fixed mask."""
    if credentials is None:
        return None
    return {key: MASK if value else "" for key, value in credentials.items()}
