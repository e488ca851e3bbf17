"""Storage module: key-value record stores for the cycle record and history log."""

from sprint_rollover.storage.base import JsonBlob, RecordStore, read_blob, write_blob
from sprint_rollover.storage.factory import build_stores
from sprint_rollover.storage.json_file import JsonFileRecordStore
from sprint_rollover.storage.memory import InMemoryRecordStore
from sprint_rollover.storage.sql import SqlRecordStore, StoredRecord

__all__ = [
    "InMemoryRecordStore",
    "JsonBlob",
    "JsonFileRecordStore",
    "RecordStore",
    "SqlRecordStore",
    "StoredRecord",
    "build_stores",
    "read_blob",
    "write_blob",
]
