"""Position/receipt ledger.

The ledger owns the only mutable shared state of a strategy: positions and
receipts keyed by id. It is written only through `commit_success` /
`commit_failure`, each of which applies all of its changes under one lock, so
readers never observe half of a position/receipt pair.

The ledger lives for the whole process: `hydrate()` on start, `flush()` after
significant mutations and on shutdown.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from ..errors import PersistenceError
from ..models import LedgerSnapshot, Position, PositionId, Receipt, ReceiptId

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def save(self, snapshot: LedgerSnapshot) -> None:
        """Persist a full snapshot."""

    def load(self, default: LedgerSnapshot) -> LedgerSnapshot:
        """Return the stored snapshot, or `default` when none exists."""


class Ledger:
    """In-memory store of positions and receipts with snapshot persistence."""

    def __init__(self, *, store: SnapshotStore | None = None) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._positions: dict[PositionId, Position] = {}
        self._receipts: dict[ReceiptId, Receipt] = {}

    # --- reads ---

    def get_position(self, position_id: PositionId) -> Position | None:
        with self._lock:
            return self._positions.get(position_id)

    def get_positions(self) -> list[Position]:
        with self._lock:
            return list(self._positions.values())

    def get_receipt(self, receipt_id: ReceiptId) -> Receipt | None:
        with self._lock:
            return self._receipts.get(receipt_id)

    def get_receipts(self) -> list[Receipt]:
        with self._lock:
            return list(self._receipts.values())

    def snapshot(self) -> LedgerSnapshot:
        """Point-in-time copy of the full ledger."""
        with self._lock:
            return LedgerSnapshot(positions=dict(self._positions), receipts=dict(self._receipts))

    # --- writes ---

    def commit_success(self, receipt: Receipt, position: Position, *, closes: PositionId | None = None) -> None:
        """Record a successful execution: the new position and its receipt together.

        `closes` names an existing position that this execution closed.
        """
        if receipt.status != "success":
            raise ValueError(f"commit_success needs a success receipt, got {receipt.status!r}")
        if position.id not in {p.id for p in receipt.positions}:
            raise ValueError(f"receipt {receipt.id} does not reference position {position.id}")

        with self._lock:
            self._check_new_ids(receipt.id, position.id)
            if closes is not None and closes not in self._positions:
                raise ValueError(f"cannot close unknown position {closes}")

            self._positions[position.id] = position
            if closes is not None:
                self._positions[closes] = _closed(self._positions[closes])
            self._receipts[receipt.id] = receipt

    def commit_failure(self, receipt: Receipt) -> None:
        """Record a failed execution attempt (receipt only, no positions)."""
        if receipt.status != "failed":
            raise ValueError(f"commit_failure needs a failed receipt, got {receipt.status!r}")
        with self._lock:
            self._check_new_ids(receipt.id, None)
            self._receipts[receipt.id] = receipt

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """Replace the ledger contents with `snapshot`."""
        with self._lock:
            self._positions = dict(snapshot.positions)
            self._receipts = dict(snapshot.receipts)

    def _check_new_ids(self, receipt_id: ReceiptId, position_id: PositionId | None) -> None:
        if receipt_id in self._receipts:
            raise ValueError(f"receipt id {receipt_id} already recorded")
        if position_id is not None and position_id in self._positions:
            raise ValueError(f"position id {position_id} already recorded")

    # --- persistence ---

    def hydrate(self) -> None:
        """Load the latest snapshot; a missing or corrupt one leaves the ledger empty."""
        if self._store is None:
            return
        try:
            snapshot = self._store.load(LedgerSnapshot())
        except PersistenceError:
            logger.error("Ledger snapshot is corrupt or unreadable; starting empty", exc_info=True)
            snapshot = LedgerSnapshot()
        self.restore(snapshot)
        logger.info("Loaded %d positions and %d receipts", len(snapshot.positions), len(snapshot.receipts))

    def flush(self) -> bool:
        """Save a snapshot. Returns False (and logs) if the save failed."""
        if self._store is None:
            return True
        try:
            self._store.save(self.snapshot())
        except PersistenceError:
            logger.error("Failed to save ledger snapshot; in-memory ledger stays authoritative", exc_info=True)
            return False
        return True


def _closed(position: Position) -> Position:
    internal = [ip.model_copy(update={"status": "closed"}) for ip in position.internal_positions]
    return position.model_copy(update={"status": "closed", "internal_positions": internal})
