from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.orm import sessionmaker

from sprint_rollover.storage.json_file import JsonFileRecordStore
from sprint_rollover.storage.memory import InMemoryRecordStore
from sprint_rollover.storage.sql import SqlRecordStore, create_record_engine, ensure_schema

if TYPE_CHECKING:
    from sprint_rollover.config.settings import StorageSettings
    from sprint_rollover.storage.base import RecordStore

logger = structlog.get_logger()


def build_stores(settings: StorageSettings) -> tuple[RecordStore, RecordStore]:
    """Build the (cycle record, history log) store pair for the configured backend."""
    if settings.backend == "memory":
        stores: tuple[RecordStore, RecordStore] = (
            InMemoryRecordStore(settings.cycle_key),
            InMemoryRecordStore(settings.history_key),
        )
    elif settings.backend == "json":
        stores = (
            JsonFileRecordStore(settings.json_dir, settings.cycle_key),
            JsonFileRecordStore(settings.json_dir, settings.history_key),
        )
    else:
        engine = create_record_engine(settings)
        ensure_schema(engine)
        factory = sessionmaker(engine, expire_on_commit=False)
        stores = (
            SqlRecordStore(factory, settings.cycle_key),
            SqlRecordStore(factory, settings.history_key),
        )

    logger.info("record_stores_built", backend=settings.backend)
    return stores
