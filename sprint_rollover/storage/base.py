from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog

from sprint_rollover.infra.errors import PersistenceError

logger = structlog.get_logger()

# JSON-serializable payload: the cycle record is an object, the history log an array.
JsonBlob = dict[str, Any] | list[Any]


class RecordStore(ABC):
    """Synchronous key-value slot holding one JSON-serializable blob.

    Each store instance is bound to a single key. Implementations raise
    their own exceptions on I/O failure; callers wrap them as PersistenceError.
    """

    @property
    @abstractmethod
    def key(self) -> str:
        """Storage key this store reads and writes."""
        ...

    @abstractmethod
    def load(self) -> JsonBlob | None:
        """Return the stored blob, or None if nothing has been written."""
        ...

    @abstractmethod
    def save(self, value: JsonBlob) -> None:
        """Overwrite the stored blob."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored blob. No-op if absent."""
        ...


def read_blob(store: RecordStore) -> JsonBlob | None:
    """Load from a store, surfacing any backend failure as PersistenceError."""
    try:
        return store.load()
    except Exception as exc:
        logger.exception("record_load_failed", key=store.key)
        raise PersistenceError(f"Failed to load '{store.key}': {exc}") from exc


def write_blob(store: RecordStore, value: JsonBlob) -> None:
    """Save to a store, surfacing any backend failure as PersistenceError."""
    try:
        store.save(value)
    except Exception as exc:
        logger.exception("record_save_failed", key=store.key)
        raise PersistenceError(f"Failed to save '{store.key}': {exc}") from exc
