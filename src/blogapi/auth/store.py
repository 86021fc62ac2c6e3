"""
Credential storage module for the blog site client.

This module keeps the current access/refresh credential pair and its expiry
instant in a persistent key-value backend. Two backends are provided: an
in-memory one and a SQLite one whose slots are scoped to an origin (the API
base URL), so credentials for one API host are never sent to another.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from blogapi.auth.exceptions import CredentialStorageError, InvalidCredentialError
from blogapi.utils.paths import ensure_parent_dir

# Configure logger
logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"
TOKEN_EXPIRY_KEY = "token_expiry"

CREDENTIAL_KEYS = (TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _first(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


@dataclass
class CredentialRecord:
    """
    Access/refresh credential pair plus expiry instant.

    A record without ``expires_at`` never expires locally; the server stays
    authoritative.
    """
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_token_data(
        cls, data: Mapping[str, Any], now: Optional[datetime] = None
    ) -> "CredentialRecord":
        """
        Build a record from wire-shaped token data.

        Accepts ``accessToken``/``refreshToken``/``expiresIn`` (camelCase, as the
        API returns them) or their snake_case equivalents. ``expiresIn`` is a
        number of seconds from ``now``.

        Raises:
            InvalidCredentialError: If no access token is present or expiresIn
                is not a number
        """
        access_token = _first(data, "accessToken", "access_token")
        if not access_token:
            raise InvalidCredentialError("Token data has no access token")

        expires_at = None
        expires_in = _first(data, "expiresIn", "expires_in")
        if expires_in:
            try:
                seconds = float(expires_in)
            except (TypeError, ValueError) as e:
                raise InvalidCredentialError(f"Invalid expiresIn value: {expires_in!r}", e)
            expires_at = (now or utc_now()) + timedelta(seconds=seconds)

        return cls(
            access_token=str(access_token),
            refresh_token=_first(data, "refreshToken", "refresh_token"),
            expires_at=expires_at,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) >= self.expires_at


def _encode_expiry(expires_at: datetime) -> str:
    """Expiry is stored as epoch milliseconds."""
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return str(int(expires_at.timestamp() * 1000))


def _decode_expiry(value: str) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class KeyValueStore(ABC):
    """Persistent string key-value backend."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a slot.

        Returns:
            The stored value, or None if the slot is empty

        Raises:
            CredentialStorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, items: Mapping[str, Optional[str]]) -> None:
        """
        Apply several slot updates atomically.

        A value of None removes the slot.

        Raises:
            CredentialStorageError: If the backend cannot be written; no
                update is applied in that case
        """
        pass

    def delete(self, keys: Iterable[str]) -> None:
        self.write({key: None for key in keys})


class MemoryKeyValueStore(KeyValueStore):
    """
    In-memory key-value backend.

    Values are lost when the process exits.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, items: Mapping[str, Optional[str]]) -> None:
        updated = dict(self._data)
        for key, value in items.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        self._data = updated


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-backed key-value storage scoped to an origin.

    Every slot is keyed by ``(origin, key)``; the origin is normally the API
    base URL.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        origin: str,
        auto_create: bool = True,
    ):
        """
        Initialize the key-value store.

        Args:
            db_path: Path to the SQLite database file
            origin: Scope of the stored slots
            auto_create: Whether to create the database if it doesn't exist

        Raises:
            CredentialStorageError: If the database cannot be created
        """
        self.db_path = Path(db_path)
        self.origin = origin.rstrip("/")

        if auto_create and (not self.db_path.exists() or self.db_path.stat().st_size == 0):
            self._create_database()

    def _get_connection(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise CredentialStorageError(f"Error connecting to credential database: {e}", e)

    def _create_database(self) -> None:
        try:
            ensure_parent_dir(self.db_path)
            conn = self._get_connection()
            try:
                with conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS kv (
                            origin TEXT NOT NULL,
                            key TEXT NOT NULL,
                            value TEXT NOT NULL,
                            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                            PRIMARY KEY (origin, key)
                        )
                        """
                    )
            finally:
                conn.close()

            logger.info(f"Created credential database at {self.db_path}")
        except CredentialStorageError:
            raise
        except Exception as e:
            raise CredentialStorageError(f"Error creating credential database: {e}", e)

    def get(self, key: str) -> Optional[str]:
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT value FROM kv WHERE origin = ? AND key = ?",
                    (self.origin, key),
                ).fetchone()
            finally:
                conn.close()
        except CredentialStorageError:
            raise
        except sqlite3.Error as e:
            raise CredentialStorageError(f"Error reading '{key}': {e}", e)

        return row[0] if row else None

    def write(self, items: Mapping[str, Optional[str]]) -> None:
        try:
            conn = self._get_connection()
            try:
                # One transaction: either every slot changes or none does
                with conn:
                    for key, value in items.items():
                        if value is None:
                            conn.execute(
                                "DELETE FROM kv WHERE origin = ? AND key = ?",
                                (self.origin, key),
                            )
                        else:
                            conn.execute(
                                """
                                INSERT OR REPLACE INTO kv (origin, key, value, updated_at)
                                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                                """,
                                (self.origin, key, value),
                            )
            finally:
                conn.close()
        except CredentialStorageError:
            raise
        except sqlite3.Error as e:
            raise CredentialStorageError(f"Error writing credentials: {e}", e)


class CredentialStore:
    """
    Holds the current credential record.

    Storage failures never propagate out of this class: writes are logged and
    leave the previous state untouched, reads are logged and report absence.
    """

    def __init__(self, backend: Optional[KeyValueStore] = None, clock: Optional[Clock] = None):
        """
        Initialize the credential store.

        Args:
            backend: Key-value backend (defaults to an in-memory one)
            clock: Callable returning the current aware UTC time
        """
        self.backend = backend if backend is not None else MemoryKeyValueStore()
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def save(self, record: Union[CredentialRecord, Mapping[str, Any]]) -> bool:
        """
        Persist a credential record, replacing all three slots at once.

        Args:
            record: A CredentialRecord or wire-shaped token data
                (``accessToken``, ``refreshToken``, ``expiresIn``)

        Returns:
            True if stored, False if the backend rejected the write

        Raises:
            InvalidCredentialError: If token data has no access token
        """
        if not isinstance(record, CredentialRecord):
            record = CredentialRecord.from_token_data(record, now=self.now())

        items = {
            TOKEN_KEY: record.access_token,
            REFRESH_TOKEN_KEY: record.refresh_token,
            TOKEN_EXPIRY_KEY: _encode_expiry(record.expires_at) if record.expires_at else None,
        }
        try:
            self.backend.write(items)
        except CredentialStorageError as e:
            logger.error(f"Failed to store tokens: {e.message}")
            return False

        logger.debug("Stored credentials")
        return True

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.backend.get(key)
        except CredentialStorageError as e:
            logger.error(f"Failed to retrieve {key}: {e.message}")
            return None

    def get_access(self) -> Optional[str]:
        return self._read(TOKEN_KEY)

    def get_refresh(self) -> Optional[str]:
        return self._read(REFRESH_TOKEN_KEY)

    def get_expiry(self) -> Optional[datetime]:
        """Stored expiry instant, or None if absent or unreadable."""
        value = self._read(TOKEN_EXPIRY_KEY)
        if not value:
            return None
        try:
            return _decode_expiry(value)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning(f"Ignoring malformed token expiry: {value!r}")
            return None

    def is_expired(self) -> bool:
        """
        Check whether the stored credential has expired.

        Returns False when no expiry is stored. A backend or parse failure is
        reported as expired.
        """
        try:
            value = self.backend.get(TOKEN_EXPIRY_KEY)
        except CredentialStorageError as e:
            logger.error(f"Failed to check token expiry: {e.message}")
            return True

        if not value:
            return False

        try:
            expires_at = _decode_expiry(value)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.error(f"Failed to check token expiry: malformed value {value!r}")
            return True

        return self.now() >= expires_at

    def get_record(self) -> Optional[CredentialRecord]:
        access_token = self.get_access()
        if not access_token:
            return None
        return CredentialRecord(
            access_token=access_token,
            refresh_token=self.get_refresh(),
            expires_at=self.get_expiry(),
        )

    def clear(self) -> None:
        """Remove all stored credentials. Safe to call repeatedly."""
        try:
            self.backend.delete(CREDENTIAL_KEYS)
        except CredentialStorageError as e:
            logger.error(f"Failed to clear tokens: {e.message}")
            return
        logger.debug("Cleared credentials")

    def is_authenticated(self) -> bool:
        return bool(self.get_access()) and not self.is_expired()

    def status(self) -> Dict[str, Any]:
        """Summary of the stored credential, without token values."""
        expires_at = self.get_expiry()
        return {
            "has_token": bool(self.get_access()),
            "has_refresh_token": bool(self.get_refresh()),
            "expires_at": expires_at,
            "is_expired": self.is_expired(),
            "authenticated": self.is_authenticated(),
        }
