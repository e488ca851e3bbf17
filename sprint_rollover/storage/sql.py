"""SQLAlchemy 2.0 record store: both blobs live in one keyed table."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import JSON, DateTime, Engine, String, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from sprint_rollover.constants import RECORDS_TABLE
from sprint_rollover.storage.base import JsonBlob, RecordStore

if TYPE_CHECKING:
    from sprint_rollover.config.settings import StorageSettings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class StoredRecord(Base):
    __tablename__ = RECORDS_TABLE

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def create_record_engine(settings: StorageSettings) -> Engine:
    """Create a synchronous SQLAlchemy engine from StorageSettings."""
    engine = create_engine(settings.database_url)
    logger.info("record_engine_created", url=engine.url.render_as_string(hide_password=True))
    return engine


def ensure_schema(engine: Engine) -> None:
    """Create the records table if it does not exist."""
    Base.metadata.create_all(engine)


class SqlRecordStore(RecordStore):
    """Record store backed by the ``sprint_records`` table.

    Every call opens its own short session and commits before returning,
    so the cycle record and history log are written independently.
    """

    def __init__(self, session_factory: sessionmaker[Session], key: str) -> None:
        self._db = session_factory
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> JsonBlob | None:
        with self._db() as db:
            return db.execute(
                select(StoredRecord.payload).where(StoredRecord.key == self._key)
            ).scalar_one_or_none()

    def save(self, value: JsonBlob) -> None:
        with self._db() as db:
            row = db.get(StoredRecord, self._key)
            if row is None:
                db.add(StoredRecord(key=self._key, payload=value))
            else:
                row.payload = value
            db.commit()

    def clear(self) -> None:
        with self._db() as db:
            db.execute(delete(StoredRecord).where(StoredRecord.key == self._key))
            db.commit()
