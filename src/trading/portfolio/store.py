"""File-backed snapshot storage for the ledger."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import PersistenceError
from ..models import LedgerSnapshot

logger = logging.getLogger(__name__)


class JsonSnapshotStore:
    """Reads and writes one `LedgerSnapshot` as JSON at a fixed path.

    Writes go to a temporary sibling file first and are moved into place with
    `os.replace`, so a crash mid-write never leaves a truncated snapshot.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: LedgerSnapshot) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to save snapshot to {self._path}: {exc}") from exc

    def load(self, default: LedgerSnapshot) -> LedgerSnapshot:
        """Return the stored snapshot, or `default` when none exists yet.

        Raises `PersistenceError` when the file exists but cannot be read or parsed.
        """
        if not self._path.exists():
            logger.info("Snapshot %s not found, using default value", self._path)
            return default
        try:
            raw = self._path.read_text(encoding="utf-8")
            return LedgerSnapshot.model_validate_json(raw)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to load snapshot from {self._path}: {exc}") from exc
