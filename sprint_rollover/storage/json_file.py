"""File-backed record store: one UTF-8 JSON document per key."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import structlog

from sprint_rollover.storage.base import JsonBlob, RecordStore

logger = structlog.get_logger()


class JsonFileRecordStore(RecordStore):
    """Store a blob as ``<directory>/<key>.json``.

    Writes go to a sibling temp file first and are moved into place, so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, directory: Path, key: str) -> None:
        self._directory = directory
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def path(self) -> Path:
        return self._directory / f"{self._key}.json"

    def load(self) -> JsonBlob | None:
        if not self.path.is_file():
            return None
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        return json.loads(raw)

    def save(self, value: JsonBlob) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory, prefix=f".{self._key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("json_record_saved", key=self._key, path=str(self.path))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
