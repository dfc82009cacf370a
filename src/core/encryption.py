"""Symmetric encryption for secrets stored at rest.

OAuth tokens, Yahoo app passwords and per-tent OAuth client secrets are
encrypted with AES-256-CBC before they are written. The key is the SHA-256
digest of ``SECURITY_CONFIG__ENCRYPTION_KEY``; each value gets a fresh random
IV and is serialized as ``<iv hex>:<ciphertext hex>``.
"""

import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from loguru import logger

from src.core.config import get_settings
from src.core.exceptions import EncryptionError

IV_LENGTH = 16
BLOCK_SIZE_BITS = 128


def _derive_key(secret: str | None) -> bytes:
    if secret is None:
        secret = get_settings().security_config.encryption_key
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt(text: str, secret: str | None = None) -> str:
    """Encrypt text with AES-256-CBC.

    Args:
        text: Plaintext to protect.
        secret: Overrides the configured encryption key (used in tests).

    Returns:
        str: ``iv_hex:ciphertext_hex``.

    Raises:
        EncryptionError: If the value cannot be encrypted.
    """
    try:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(text.encode("utf-8")) + padder.finalize()
        cipher = Cipher(algorithms.AES(_derive_key(secret)), modes.CBC(iv))
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
    except (TypeError, ValueError, AttributeError) as e:
        logger.error("Encryption error: {}", type(e).__name__)
        raise EncryptionError("Failed to encrypt data", cause=e) from e
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(encrypted: str, secret: str | None = None) -> str:
    """Decrypt a value produced by ``encrypt``.

    Raises:
        EncryptionError: If the value is malformed or was encrypted with a
            different key.
    """
    try:
        iv_hex, sep, ciphertext_hex = encrypted.partition(":")
        if not sep:
            raise ValueError("missing IV separator")
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
        cipher = Cipher(algorithms.AES(_derive_key(secret)), modes.CBC(iv))
        decryptor = cipher.decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (TypeError, ValueError, AttributeError) as e:
        logger.error("Decryption error: {}", type(e).__name__)
        raise EncryptionError("Failed to decrypt data", cause=e) from e
