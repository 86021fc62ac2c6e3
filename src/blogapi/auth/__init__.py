"""
Authentication module for the blog site client.

This module handles credential persistence: the access/refresh token pair,
its expiry, and the key-value backends it is stored in.
"""
from blogapi.auth.store import (
    CredentialRecord,
    CredentialStore,
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
)
from blogapi.auth.exceptions import (
    AuthError,
    CredentialStorageError,
    InvalidCredentialError,
)

__all__ = [
    "CredentialRecord",
    "CredentialStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "AuthError",
    "CredentialStorageError",
    "InvalidCredentialError",
]
