"""
AES-GCM encryption and decryption utilities for stored credentials.
"""
import base64
import binascii
import secrets
import logging
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

# Standard nonce size for GCM is 12 bytes (96 bits)
NONCE_SIZE = 12
# AES-256 requires 32-byte keys
KEY_SIZE = 32


def generate_key() -> str:
    """Generate a new urlsafe-base64 encoded AES-256 key, suitable for TIMESHEET_CREDENTIALS_KEY."""
    return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=KEY_SIZE * 8)).decode("ascii")


def decode_key(encoded_key: str) -> bytes:
    """
    Decode a urlsafe-base64 key and check its length.

    Raises:
        ValueError: If the key is not valid base64 or not 32 bytes
    """
    try:
        key = base64.urlsafe_b64decode(encoded_key.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Credentials key is not valid base64: {e}") from e
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes for AES-256, got {len(key)} bytes")
    return key


def encrypt_aes_gcm(plaintext: str, key: bytes, associated_data: Optional[bytes] = None) -> tuple[bytes, bytes]:
    """
    Encrypt plaintext using AES-GCM.

    Args:
        plaintext: The plaintext string to encrypt
        key: The encryption key (must be 32 bytes for AES-256)
        associated_data: Optional authenticated-but-unencrypted context (e.g. service name)

    Returns:
        Tuple of (ciphertext, nonce)

    Raises:
        ValueError: If key size is incorrect
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes for AES-256, got {len(key)} bytes")

    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), associated_data)
    return ciphertext, nonce


def decrypt_aes_gcm(
    ciphertext: bytes,
    nonce: bytes,
    key: bytes,
    associated_data: Optional[bytes] = None,
) -> str:
    """
    Decrypt ciphertext using AES-GCM.

    Args:
        ciphertext: The encrypted data
        nonce: The nonce used during encryption
        key: The decryption key (must be 32 bytes for AES-256)
        associated_data: The associated data given at encryption time

    Returns:
        The decrypted plaintext string

    Raises:
        ValueError: If key or nonce size is incorrect
        cryptography.exceptions.InvalidTag: If decryption fails (wrong key, corrupted data, etc.)
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes for AES-256, got {len(key)} bytes")

    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)} bytes")

    plaintext_bytes = AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    return plaintext_bytes.decode("utf-8")
