"""History archiver: append-only log of completed sprint cycles.

The log is stored newest-first by insertion. Archival caps it by array
position (FIFO eviction of the oldest inserted entry), which is a separate
ordering from the timestamp sort applied by merge-import and display.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from sprint_rollover.cycle.models import CycleRecord, HistoryEntry, format_instant
from sprint_rollover.infra.errors import PersistenceError
from sprint_rollover.storage.base import read_blob, write_blob

if TYPE_CHECKING:
    from sprint_rollover.storage.base import RecordStore

logger = structlog.get_logger()

DEFAULT_HISTORY_CAP = 10


class HistoryArchiver:
    """Owns the History Log store. Every mutation is written through immediately."""

    def __init__(
        self,
        store: RecordStore,
        *,
        cap: int = DEFAULT_HISTORY_CAP,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if cap <= 0:
            raise ValueError(f"History cap must be > 0, got {cap}")
        self._store = store
        self._cap = cap
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def cap(self) -> int:
        return self._cap

    def entries(self) -> list[HistoryEntry]:
        """All entries in stored (insertion) order."""
        blob = read_blob(self._store)
        if blob is None:
            return []
        if not isinstance(blob, list):
            raise PersistenceError(
                f"History log '{self._store.key}' is not a list (got {type(blob).__name__})"
            )
        try:
            return [HistoryEntry.model_validate(item) for item in blob]
        except ValidationError as exc:
            raise PersistenceError(f"History log '{self._store.key}' is malformed: {exc}") from exc

    def replace_all(self, entries: Iterable[HistoryEntry]) -> None:
        write_blob(self._store, [entry.to_blob() for entry in entries])

    def clear(self) -> None:
        self.replace_all([])

    def archive(
        self,
        record: CycleRecord,
        *,
        user_distributions: dict[str, Any] | None = None,
    ) -> HistoryEntry:
        """Prepend a frozen copy of the record and trim to the cap."""
        entry = HistoryEntry.from_record(
            record,
            user_distributions=user_distributions,
            completed_at=format_instant(self._clock()),
        )
        log = [entry, *self.entries()]
        evicted = log[self._cap:]
        self.replace_all(log[: self._cap])

        logger.info(
            "history_archived",
            entry_id=entry.id,
            milestone=entry.milestone_name,
            size=min(len(log), self._cap),
            evicted=[e.id for e in evicted],
        )
        return entry

    def find(self, entry_id: str | None) -> HistoryEntry | None:
        """First entry with the given id, or None."""
        if entry_id is None:
            return None
        return next((e for e in self.entries() if e.id == entry_id), None)

    def find_all(self, entry_id: str | None) -> list[HistoryEntry]:
        if entry_id is None:
            return []
        return [e for e in self.entries() if e.id == entry_id]

    def remove(self, entry_id: str | None) -> int:
        """Remove every entry with the given id. Returns the number removed."""
        if entry_id is None:
            return 0
        log = self.entries()
        kept = [e for e in log if e.id != entry_id]
        removed = len(log) - len(kept)
        if removed:
            self.replace_all(kept)
            logger.info("history_entry_removed", entry_id=entry_id, removed=removed)
        return removed

    def update(self, entry_id: str | None, **fields: Any) -> int:
        """Replace matching entries in place with updated copies.

        Field names are the snake_case model attributes. Returns the number
        of entries updated.
        """
        if entry_id is None:
            return 0
        log = self.entries()
        updated = 0
        for index, entry in enumerate(log):
            if entry.id == entry_id:
                log[index] = HistoryEntry.model_validate({**entry.model_dump(), **fields})
                updated += 1
        if updated:
            self.replace_all(log)
            logger.info("history_entry_updated", entry_id=entry_id, fields=sorted(fields))
        return updated
