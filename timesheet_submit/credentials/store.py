"""
Encrypted credential storage.

Passwords are encrypted with AES-GCM under a key taken from
``TIMESHEET_CREDENTIALS_KEY``; the service name is bound in as associated
data so a ciphertext cannot be moved between services.
"""
import os
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from sqlalchemy import select
from sqlalchemy.orm import Session

from timesheet_submit.db.models import Credential
from timesheet_submit.submit_models import SubmitCredentials
from .crypto import decode_key, decrypt_aes_gcm, encrypt_aes_gcm

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "smartsheet"
KEY_ENV_VAR = "TIMESHEET_CREDENTIALS_KEY"


class CredentialsNotFoundError(LookupError):
    """No stored credentials for the requested service."""


def get_encryption_key(encoded_key: Optional[str] = None) -> bytes:
    """
    Resolve the credentials encryption key.

    Raises:
        ValueError: If no key is configured or it is malformed
    """
    encoded_key = encoded_key or os.getenv(KEY_ENV_VAR)
    if not encoded_key:
        raise ValueError(f"{KEY_ENV_VAR} is not set")
    return decode_key(encoded_key)


def store_credentials(
    db: Session,
    email: str,
    password: str,
    service: str = DEFAULT_SERVICE,
    key: Optional[bytes] = None,
) -> Credential:
    """Encrypt and upsert the credentials for ``service``."""
    key = key or get_encryption_key()
    enc_password, nonce = encrypt_aes_gcm(password, key, service.encode("utf-8"))

    credential = db.scalars(select(Credential).where(Credential.service == service)).first()
    if credential is None:
        credential = Credential(service=service, email=email, enc_password=enc_password, nonce_password=nonce)
        db.add(credential)
    else:
        credential.email = email
        credential.enc_password = enc_password
        credential.nonce_password = nonce

    db.flush()
    logger.info(f"Stored credentials for {service} ({email})")
    return credential


def get_credentials(
    db: Session,
    service: str = DEFAULT_SERVICE,
    key: Optional[bytes] = None,
) -> SubmitCredentials:
    """
    Load and decrypt the credentials for ``service``.

    Raises:
        CredentialsNotFoundError: If nothing is stored for ``service``
        ValueError: If the stored password cannot be decrypted with the key
    """
    credential = db.scalars(select(Credential).where(Credential.service == service)).first()
    if credential is None:
        raise CredentialsNotFoundError(f"No credentials stored for {service}")

    key = key or get_encryption_key()
    try:
        password = decrypt_aes_gcm(
            credential.enc_password, credential.nonce_password, key, service.encode("utf-8")
        )
    except InvalidTag as e:
        logger.error(f"Failed to decrypt credentials for {service}")
        raise ValueError(f"Stored credentials for {service} could not be decrypted") from e

    return SubmitCredentials(email=credential.email, password=password)


def delete_credentials(db: Session, service: str = DEFAULT_SERVICE) -> bool:
    """Remove stored credentials. Returns True if something was deleted."""
    credential = db.scalars(select(Credential).where(Credential.service == service)).first()
    if credential is None:
        return False
    db.delete(credential)
    logger.info(f"Deleted credentials for {service}")
    return True
