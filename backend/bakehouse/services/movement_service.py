# Overview: Service-layer operations for the stock movement journal; append-only audit of every ledger application.

from __future__ import annotations

from datetime import datetime

from ..models import STOCK_MOVEMENTS, EntityType, StockDelta
from ..time_utils import as_utc_naive, now_z, parse_iso_datetime
"""
Stock Movement Journal Invariants

- Append-only: rows are never updated or deleted by the engine.
- No domain logic here; the ledger decides what moved, this only records it.
- Rows are written inside the same store transaction as the stock change they
  record, so a rolled-back coordinator call leaves no movement behind.
- `requested` vs `applied` differ only when a debit hit the zero floor.
"""


class MovementJournal:
    def __init__(self, store):
        self.store = store

    def append(
        self,
        delta: StockDelta,
        *,
        source_type: str | None = None,
        source_id: int | None = None,
        note: str | None = None,
    ) -> dict:
        movements = self.store.get_all(STOCK_MOVEMENTS)
        row = {
            "id": self.store.next_id(STOCK_MOVEMENTS),
            **delta.to_dict(),
            "source_type": source_type,
            "source_id": source_id,
            "note": note,
            "occurred_at": now_z(),
        }
        movements.append(row)
        self.store.set_all(STOCK_MOVEMENTS, movements)
        return row

    def list_for(
        self,
        entity_type: EntityType,
        entity_id: int,
        *,
        since: str | datetime | None = None,
        limit: int = 200,
    ) -> list[dict]:
        """Most recent first, optionally bounded by occurred_at >= since."""
        if isinstance(since, str):
            since = parse_iso_datetime(since)
        elif since is not None:
            since = as_utc_naive(since)

        rows = [
            m for m in self.store.get_all(STOCK_MOVEMENTS)
            if m.get("entity_type") == entity_type.value and m.get("entity_id") == entity_id
        ]
        if since is not None:
            rows = [m for m in rows if parse_iso_datetime(m.get("occurred_at")) >= since]

        rows.sort(key=lambda m: m["id"], reverse=True)
        return rows[:limit]
