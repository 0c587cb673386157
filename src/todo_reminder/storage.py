from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, Optional

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

TODOS_KEY = "todos"
GROUPING_CONFIG_KEY = "groupingConfig"
FILTER_CONFIG_KEY = "filterConfig"


# PUBLIC_INTERFACE
class KeyValueStore(ABC):
    """
    Abstract blob store keyed by fixed string names.

    Values are JSON-compatible structures (dicts, lists, scalars). Backends
    raise ``StorageError`` when the underlying medium fails.
    """

    @abstractmethod
    def load(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default if nothing is stored."""

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""


class InMemoryKeyValueStore(KeyValueStore):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._values: Dict[str, Any] = {}

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._values:
                return default
            # Return copies to avoid external mutation
            return copy.deepcopy(self._values[key])

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = copy.deepcopy(value)


# PUBLIC_INTERFACE
def get_key_value_store(settings: Optional[Settings] = None) -> KeyValueStore:
    """
    Factory to return the configured storage backend.
    - memory: InMemoryKeyValueStore
    - sqlite: SQLiteKeyValueStore at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteKeyValueStore

        logger.info(f"Using SQLite storage at {settings.sqlite_db_path}")
        return SQLiteKeyValueStore(settings.sqlite_db_path)
    logger.info("Using in-memory storage")
    return InMemoryKeyValueStore()
