# Overview: Error taxonomy shared by the stock, recipe, costing and journal services.

from __future__ import annotations


class StockError(Exception):
    """Base class for stock-accounting and costing errors."""
    pass


class NotFoundError(StockError):
    """Referenced product, raw material, record or recipe line is absent."""

    def __init__(self, collection: str, entity_id, message: str | None = None):
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(message or f"{collection} {entity_id} not found")


class InvalidQuantityError(StockError, ValueError):
    """Negative, non-numeric or non-integral amount where one is not allowed."""
    pass


class InsufficientComponentStockError(StockError):
    """
    Raised by the sufficiency checks, never by the ledger itself.

    `shortages` is a list of dicts with product_id, required and available
    (all in pieces).
    """

    def __init__(self, shortages: list[dict], message: str | None = None):
        self.shortages = shortages
        if message is None:
            parts = [
                f"product {s['product_id']}: need {s['required']}, have {s['available']}"
                for s in shortages
            ]
            message = "insufficient stock (" + "; ".join(parts) + ")"
        super().__init__(message)


class InconsistentStateError(StockError):
    """A stored record's stock effect cannot be reconstructed for reversal."""
    pass
