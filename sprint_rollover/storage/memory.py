from __future__ import annotations

import copy

from sprint_rollover.storage.base import JsonBlob, RecordStore


class InMemoryRecordStore(RecordStore):
    """Process-local store. Deep-copies on both read and write."""

    def __init__(self, key: str, initial: JsonBlob | None = None) -> None:
        self._key = key
        self._value: JsonBlob | None = copy.deepcopy(initial)

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> JsonBlob | None:
        return copy.deepcopy(self._value)

    def save(self, value: JsonBlob) -> None:
        self._value = copy.deepcopy(value)

    def clear(self) -> None:
        self._value = None
