"""Snapshot interchange: export/import of the cycle record and history log.

Wire format: UTF-8 text holding base64 of a zlib (DEFLATE) compressed JSON
document ``{cycleRecord, historyLog, exportedAt, version}``.

Import is two-phase: decode_snapshot() validates everything and touches
nothing; apply_import() then reconciles with an explicit strategy.
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, ValidationError

from sprint_rollover.cycle.models import (
    CamelModel,
    CycleRecord,
    HistoryEntry,
    format_instant,
    parse_instant,
)
from sprint_rollover.infra.errors import ImportFormatError

if TYPE_CHECKING:
    from sprint_rollover.cycle.state_machine import CycleStateMachine

logger = structlog.get_logger()

REQUIRED_KEYS = ("cycleRecord", "historyLog")
_OLDEST = datetime.min.replace(tzinfo=UTC)


class ReconcileStrategy(StrEnum):
    merge = "merge"
    replace = "replace"


class SnapshotDocument(CamelModel):
    cycle_record: CycleRecord
    history_log: list[HistoryEntry] = Field(default_factory=list)
    exported_at: str | None = None
    version: str | None = None


@dataclass(frozen=True)
class ImportOutcome:
    strategy: ReconcileStrategy
    added: int
    updated: int
    history_size: int


def encode_document(document: dict[str, Any]) -> str:
    payload = json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(zlib.compress(payload)).decode("ascii")


def _inflate(raw: bytes) -> bytes:
    try:
        return zlib.decompress(raw)
    except zlib.error:
        pass
    # Raw DEFLATE without the zlib header.
    try:
        return zlib.decompress(raw, -zlib.MAX_WBITS)
    except zlib.error as exc:
        raise ImportFormatError(f"Snapshot is not DEFLATE-compressed: {exc}") from exc


def decode_document(text: str) -> dict[str, Any]:
    """Reverse of encode_document. Raises ImportFormatError on any failure."""
    compact = "".join(text.split())
    if not compact:
        raise ImportFormatError("Snapshot is empty")
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImportFormatError(f"Snapshot is not valid base64: {exc}") from exc

    try:
        data = json.loads(_inflate(raw).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ImportFormatError(f"Snapshot does not contain JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ImportFormatError("Snapshot root must be an object")
    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise ImportFormatError(f"Snapshot is missing required keys: {', '.join(missing)}")
    return data


def chronological(entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
    """Newest first by ``timestamp``, falling back to ``completedAt``.

    Entries without either sort last; ties keep their incoming order.
    """

    def _key(entry: HistoryEntry) -> datetime:
        return parse_instant(entry.timestamp) or parse_instant(entry.completed_at) or _OLDEST

    return sorted(entries, key=_key, reverse=True)


def merge_history(
    local: list[HistoryEntry], imported: Iterable[HistoryEntry]
) -> tuple[list[HistoryEntry], int, int]:
    """Union by id, imported entries winning. Returns (merged, added, updated)."""
    merged = list(local)
    added = updated = 0
    for entry in imported:
        positions = (
            [i for i, existing in enumerate(merged) if existing.id == entry.id]
            if entry.id is not None
            else []
        )
        if not positions:
            merged.append(entry)
            added += 1
            continue
        merged[positions[0]] = entry
        for index in reversed(positions[1:]):
            del merged[index]
        updated += 1
    return chronological(merged), added, updated


class SnapshotInterchange:
    """Export and import of the state machine's two records."""

    def __init__(self, machine: CycleStateMachine) -> None:
        self._machine = machine
        self._settings = machine.context.settings

    def build_document(self) -> dict[str, Any]:
        return {
            "cycleRecord": self._machine.record.to_blob(),
            "historyLog": [entry.to_blob() for entry in self._machine.archiver.entries()],
            "exportedAt": format_instant(self._machine.context.clock()),
            "version": self._settings.export_version,
        }

    def export_snapshot(self) -> str:
        document = self.build_document()
        text = encode_document(document)
        logger.info(
            "snapshot_exported",
            history_size=len(document["historyLog"]),
            chars=len(text),
        )
        return text

    def export_to_file(self, directory: Path) -> Path:
        """Write the export text to ``sprint-data-<date>.txt`` in ``directory``."""
        directory.mkdir(parents=True, exist_ok=True)
        stamp = self._machine.context.clock().date().isoformat()
        path = directory / f"sprint-data-{stamp}.txt"
        path.write_text(self.export_snapshot(), encoding="utf-8")
        return path

    def decode_snapshot(self, text: str) -> SnapshotDocument:
        data = decode_document(text)
        try:
            document = SnapshotDocument.model_validate(data)
        except ValidationError as exc:
            raise ImportFormatError(f"Snapshot records are malformed: {exc}") from exc

        if document.version and document.version != self._settings.export_version:
            logger.warning(
                "snapshot_version_mismatch",
                imported=document.version,
                current=self._settings.export_version,
            )
        return document

    def apply_import(
        self, document: SnapshotDocument, strategy: ReconcileStrategy
    ) -> ImportOutcome:
        archiver = self._machine.archiver

        if strategy == ReconcileStrategy.replace:
            self._machine.replace_record(document.cycle_record)
            archiver.replace_all(document.history_log)
            outcome = ImportOutcome(
                strategy=strategy,
                added=len(document.history_log),
                updated=0,
                history_size=len(document.history_log),
            )
        elif strategy == ReconcileStrategy.merge:
            merged, added, updated = merge_history(archiver.entries(), document.history_log)
            if self._settings.merge_applies_cap:
                merged = merged[: archiver.cap]
            archiver.replace_all(merged)
            outcome = ImportOutcome(
                strategy=strategy, added=added, updated=updated, history_size=len(merged)
            )
        else:
            raise ValueError(f"Unknown reconcile strategy: {strategy}")

        logger.info(
            "snapshot_imported",
            strategy=strategy.value,
            added=outcome.added,
            updated=outcome.updated,
            history_size=outcome.history_size,
        )
        return outcome

    def import_snapshot(self, text: str, *, strategy: ReconcileStrategy) -> ImportOutcome:
        """Decode and apply in one call; nothing is written if decoding fails."""
        return self.apply_import(self.decode_snapshot(text), strategy)
