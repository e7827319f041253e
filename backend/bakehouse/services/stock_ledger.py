# Overview: Service-layer operations for the stock ledger; the only writer of product and raw-material stock fields.

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum

from ..models import (
    PRODUCTS,
    RAW_MATERIALS,
    EntityType,
    Product,
    RawMaterial,
    StockDelta,
    StockDirection,
)
from ..validation import require_quantity
from .errors import InconsistentStateError, NotFoundError
from .movement_service import MovementJournal
from .quantity import from_pieces, to_decimal, to_float, to_pieces
"""
Stock Ledger Invariants

Finished goods (single products):
- Stock is stored as stock_dozen + stock_pcs with 0 <= stock_pcs < 12.
- All arithmetic happens in total-pieces space, then is re-split.
- A debit larger than the current stock clamps at zero. This is documented
  floor behavior, not an error; callers that must refuse a short debit use the
  sufficiency checks first.
- Package products never hold stock of their own; the ledger refuses them.

Raw materials:
- Stock is one continuous non-negative quantity with the same zero floor.

Unknown ids:
- LookupMode.STRICT (default) logs and raises NotFoundError.
- LookupMode.COMPAT silently skips the mutation (debug log only).
"""

logger = logging.getLogger(__name__)


class LookupMode(str, Enum):
    STRICT = "strict"
    COMPAT = "compat"


class StockLedger:
    def __init__(self, store, *, lookup_mode: LookupMode = LookupMode.STRICT, journal: MovementJournal | None = None):
        self.store = store
        self.lookup_mode = LookupMode(lookup_mode)
        self.journal = journal or MovementJournal(store)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def find_product(self, product_id: int) -> Product | None:
        for record in self.store.get_all(PRODUCTS):
            if record.get("id") == product_id:
                return Product.from_dict(record)
        return None

    def find_material(self, material_id: int) -> RawMaterial | None:
        for record in self.store.get_all(RAW_MATERIALS):
            if record.get("id") == material_id:
                return RawMaterial.from_dict(record)
        return None

    def missing(self, collection: str, entity_id) -> None:
        """Apply the lookup-mode policy to an absent entity."""
        if self.lookup_mode is LookupMode.STRICT:
            logger.warning("%s %s not found during stock mutation", collection, entity_id)
            raise NotFoundError(collection, entity_id)
        logger.debug("%s %s not found; skipping (compat mode)", collection, entity_id)

    def require_product(self, product_id: int) -> Product:
        product = self.find_product(product_id)
        if product is None:
            raise NotFoundError(PRODUCTS, product_id)
        return product

    def piece_stock(self, product_id: int) -> int:
        product = self.require_product(product_id)
        if product.is_package:
            raise InconsistentStateError(f"product {product_id} is a package; use available_packages")
        return to_pieces(product.stock_dozen, product.stock_pcs)

    # =========================================================================
    # FINISHED GOODS
    # =========================================================================

    def _write_product_stock(self, product_id: int, delta_pieces: int, direction: StockDirection):
        products = self.store.get_all(PRODUCTS)
        index = next((i for i, p in enumerate(products) if p.get("id") == product_id), None)
        if index is None:
            self.missing(PRODUCTS, product_id)
            return None, 0

        product = Product.from_dict(products[index])
        if product.is_package:
            raise InconsistentStateError(
                f"product {product_id} is a package; its stock is derived from its components"
            )

        current = to_pieces(product.stock_dozen, product.stock_pcs)
        if current < 0:
            raise InconsistentStateError(f"product {product_id} has negative stored stock")

        if direction is StockDirection.CREDIT:
            applied = delta_pieces
            new_total = current + delta_pieces
        else:
            applied = min(current, delta_pieces)
            new_total = current - applied
            if applied < delta_pieces:
                logger.info(
                    "debit of %s pieces on product %s clamped to %s (stock floor)",
                    delta_pieces, product_id, applied,
                )

        product.stock_dozen, product.stock_pcs = from_pieces(new_total)
        products[index] = product.to_dict()
        self.store.set_all(PRODUCTS, products)
        return product, applied

    def apply_delta(
        self,
        product_id: int,
        delta_pieces: int,
        direction: StockDirection,
        *,
        source_type: str | None = None,
        source_id: int | None = None,
    ) -> Product | None:
        """
        Credit or debit a single product by a number of pieces.

        Returns the updated product, or None when the id is unknown in
        compat mode.
        """
        delta = StockDelta(
            entity_type=EntityType.PRODUCT,
            entity_id=product_id,
            direction=StockDirection(direction),
            requested=require_quantity(delta_pieces, "delta_pieces", integer=True),
        )
        product, _ = self._apply_product(delta, source_type=source_type, source_id=source_id)
        return product

    def apply_dozen_pcs(
        self,
        product_id: int,
        dozen: int,
        pcs: int,
        direction: StockDirection,
        **source,
    ) -> Product | None:
        """Same as apply_delta with the quantity given as dozen + pieces."""
        dozen = require_quantity(dozen, "dozen", integer=True)
        pcs = require_quantity(pcs, "pcs", integer=True)
        return self.apply_delta(product_id, to_pieces(dozen, pcs), direction, **source)

    def _apply_product(self, delta: StockDelta, *, source_type=None, source_id=None):
        product, applied = self._write_product_stock(delta.entity_id, int(delta.requested), delta.direction)
        if product is None:
            return None, None
        delta.applied = applied
        self.journal.append(delta, source_type=source_type, source_id=source_id)
        return product, delta

    # =========================================================================
    # RAW MATERIALS
    # =========================================================================

    def apply_material_delta(
        self,
        material_id: int,
        amount,
        direction: StockDirection,
        *,
        source_type: str | None = None,
        source_id: int | None = None,
    ) -> RawMaterial | None:
        delta = StockDelta(
            entity_type=EntityType.RAW_MATERIAL,
            entity_id=material_id,
            direction=StockDirection(direction),
            requested=require_quantity(amount, "amount"),
        )
        material, _ = self._apply_material(delta, source_type=source_type, source_id=source_id)
        return material

    def _apply_material(self, delta: StockDelta, *, source_type=None, source_id=None):
        materials = self.store.get_all(RAW_MATERIALS)
        index = next((i for i, m in enumerate(materials) if m.get("id") == delta.entity_id), None)
        if index is None:
            self.missing(RAW_MATERIALS, delta.entity_id)
            return None, None

        material = RawMaterial.from_dict(materials[index])
        current = to_decimal(material.stock_quantity)
        amount = to_decimal(delta.requested)

        if delta.direction is StockDirection.CREDIT:
            applied = amount
            new_quantity = current + amount
        else:
            applied = min(current, amount)
            new_quantity = current - applied
            if applied < amount:
                logger.info(
                    "debit of %s on raw material %s clamped to %s (stock floor)",
                    amount, delta.entity_id, applied,
                )

        material.stock_quantity = to_float(max(new_quantity, Decimal(0)))
        materials[index] = material.to_dict()
        self.store.set_all(RAW_MATERIALS, materials)

        delta.applied = to_float(applied)
        self.journal.append(delta, source_type=source_type, source_id=source_id)
        return material, delta

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def apply(self, delta: StockDelta, *, source_type: str | None = None, source_id: int | None = None) -> StockDelta | None:
        """
        Apply an already-expanded delta and return it with `applied` filled in.

        None means the entity was missing and compat mode skipped it.
        """
        if delta.entity_type is EntityType.PRODUCT:
            _, applied = self._apply_product(delta, source_type=source_type, source_id=source_id)
            return applied
        if delta.entity_type is EntityType.RAW_MATERIAL:
            _, applied = self._apply_material(delta, source_type=source_type, source_id=source_id)
            return applied
        raise InconsistentStateError(f"unknown entity type {delta.entity_type!r}")
