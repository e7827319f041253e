# Overview: Service-layer operations for stock reductions; one-way manual write-offs with a recorded reason.

"""
Stock Reduction Journal

- record_reduction debits the ledger first, then appends an immutable entry.
- Entries are never edited.
- An unknown product raises NotFoundError in strict mode; compat mode skips
  it and returns None. A package with an empty bill-of-materials still gets
  an entry, with no stock moved.
- Deleting an entry does NOT restore stock. A write-off is one-way, unlike
  delivery/return/production records whose effects are reversed on delete.
"""

from __future__ import annotations

import logging

from ..models import PRODUCTS, STOCK_REDUCTIONS, StockDirection, StockReduction
from ..time_utils import now_z
from ..validation import require_quantity
from .errors import NotFoundError
from .package_service import PackageExpander
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)

REASON_DAMAGED = "damaged"
REASON_EXPIRED = "expired"
REASON_LOST = "lost"
REASON_OTHER = "other"


class ReductionJournal:
    def __init__(self, store, ledger: StockLedger, expander: PackageExpander):
        self.store = store
        self.ledger = ledger
        self.expander = expander

    def record_reduction(self, product_id: int, amount, reason: str, notes: str = "") -> StockReduction | None:
        amount = require_quantity(amount, "amount", integer=True, allow_zero=False)

        if self.ledger.find_product(product_id) is None:
            self.ledger.missing(PRODUCTS, product_id)
            return None

        # an empty package expands to no deltas; the entry is still journaled
        deltas = self.expander.deltas_for(product_id, amount, StockDirection.DEBIT)

        rows = self.store.get_all(STOCK_REDUCTIONS)
        entry = StockReduction(
            id=self.store.next_id(STOCK_REDUCTIONS),
            product_id=product_id,
            amount=amount,
            reason=reason or REASON_OTHER,
            notes=notes or "",
            date=now_z(),
        )

        for delta in deltas:
            self.ledger.apply(delta, source_type="stock_reduction", source_id=entry.id)

        rows.append(entry.to_dict())
        self.store.set_all(STOCK_REDUCTIONS, rows)
        logger.info("wrote off %s of product %s (%s)", amount, product_id, entry.reason)
        return entry

    def get_reductions(self, product_id: int) -> list[StockReduction]:
        return [
            StockReduction.from_dict(r) for r in self.store.get_all(STOCK_REDUCTIONS)
            if r.get("product_id") == product_id
        ]

    def delete_reduction(self, reduction_id: int) -> StockReduction:
        """Remove the journal entry only; stock stays written off."""
        rows = self.store.get_all(STOCK_REDUCTIONS)
        index = next((i for i, r in enumerate(rows) if r.get("id") == reduction_id), None)
        if index is None:
            raise NotFoundError(STOCK_REDUCTIONS, reduction_id)
        removed = StockReduction.from_dict(rows.pop(index))
        self.store.set_all(STOCK_REDUCTIONS, rows)
        return removed
