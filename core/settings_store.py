"""
Settings Store - durable key-value persistence for the favorites app

Values are JSON-compatible (lists of strings in practice). Every backend
replaces a key's value atomically: a reader sees either the previous value
or the new one, never a partial write.
"""

import copy
import json
import logging
import os
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from contextlib import closing
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Union

from .config_manager import AppConfiguration, ConfigurationError

logger = logging.getLogger('favorites.core.settings_store')

class SettingsStoreError(Exception):
    """Base error for settings persistence"""
    pass

class SettingsWriteError(SettingsStoreError):
    """Raised when a value could not be written"""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to write setting '{key}': {reason}")
        self.key = key
        self.reason = reason

class SettingsStore(ABC):
    """Key-value settings collaborator"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Replace the value stored under key.

        Raises:
            SettingsWriteError: If the value could not be persisted
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it existed."""

    def close(self) -> None:
        """Release backend resources."""

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

class InMemorySettingsStore(SettingsStore):
    """Dictionary-backed store; values are copied in and out"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._values.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._values.pop(key, None) is not None

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._values)

class JsonFileSettingsStore(SettingsStore):
    """
    Settings kept as one JSON object in a file.

    Writes go to a temporary file in the same directory which is then
    moved over the original with os.replace.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = Lock()
        self._cache: Optional[Dict[str, Any]] = None
        logger.debug(f"JsonFileSettingsStore using {self.path}")

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._read().get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            updated = dict(self._read())
            updated[key] = copy.deepcopy(value)
            self._write(key, updated)

    def delete(self, key: str) -> bool:
        with self._lock:
            current = self._read()
            if key not in current:
                return False
            updated = {k: v for k, v in current.items() if k != key}
            self._write(key, updated)
            return True

    def _read(self) -> Dict[str, Any]:
        if self._cache is not None:
            return self._cache

        if not self.path.exists():
            self._cache = {}
            return self._cache

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read settings file {self.path}: {e}")
            data = {}

        if not isinstance(data, dict):
            logger.error(f"Settings file {self.path} does not hold a JSON object, ignoring it")
            data = {}

        self._cache = data
        return self._cache

    def _write(self, key: str, data: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(data, indent=2)
        except (TypeError, ValueError) as e:
            raise SettingsWriteError(key, str(e)) from e

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise SettingsWriteError(key, str(e)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        self._cache = data
        logger.debug(f"Wrote setting '{key}' to {self.path}")

class SqliteSettingsStore(SettingsStore):
    """Settings kept in a SQLite table, one JSON-encoded value per key"""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self._lock = Lock()
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self):
        """Initialize the settings table"""
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS settings (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
            logger.debug(f"Initialized SQLite settings at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize settings database: {e}")
            raise SettingsStoreError(f"Failed to initialize settings database: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()

        if row is None:
            return None

        try:
            return json.loads(row[0])
        except ValueError as e:
            logger.error(f"Stored value for '{key}' is not valid JSON: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise SettingsWriteError(key, str(e)) from e

        # One transaction per write; the connection context commits or rolls back
        try:
            with self._lock, closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, payload)
                )
        except sqlite3.Error as e:
            raise SettingsWriteError(key, str(e)) from e

    def delete(self, key: str) -> bool:
        with self._lock, closing(self._connect()) as conn, conn:
            cursor = conn.execute("DELETE FROM settings WHERE key = ?", (key,))
            return cursor.rowcount > 0

def create_settings_store(config: AppConfiguration) -> SettingsStore:
    """Build the settings backend selected by configuration"""
    backend = config.settings_backend

    if backend == 'memory':
        store: SettingsStore = InMemorySettingsStore()
    elif backend == 'json':
        store = JsonFileSettingsStore(config.settings_path)
    elif backend == 'sqlite':
        store = SqliteSettingsStore(config.settings_path)
    else:
        raise ConfigurationError(f"Unknown settings backend: {backend}")

    logger.info(f"Using {backend} settings store")
    return store
