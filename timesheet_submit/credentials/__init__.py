"""Encrypted credential storage."""
from .store import (
    CredentialsNotFoundError,
    delete_credentials,
    get_credentials,
    store_credentials,
)

__all__ = [
    "CredentialsNotFoundError",
    "delete_credentials",
    "get_credentials",
    "store_credentials",
]
