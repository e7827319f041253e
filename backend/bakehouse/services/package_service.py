# Overview: Service-layer operations for package (composite) products; bill-of-materials expansion and availability.

from __future__ import annotations

import math

from ..models import PRODUCTS, EntityType, Product, StockDelta, StockDirection
from ..validation import require_quantity
from .errors import InconsistentStateError, InsufficientComponentStockError
from .quantity import to_pieces
from .stock_ledger import StockLedger


class PackageExpander:
    """
    Turns operations on package products into component-product deltas.

    A package's available quantity is never stored; it is recomputed from
    the current stock of its components every time it is asked for.
    """

    def __init__(self, ledger: StockLedger):
        self.ledger = ledger

    def _load_package(self, package_id: int) -> Product | None:
        product = self.ledger.find_product(package_id)
        if product is None:
            self.ledger.missing(PRODUCTS, package_id)
            return None
        if not product.is_package:
            raise InconsistentStateError(f"product {package_id} is not a package")
        return product

    def _component_pieces(self, component_id: int) -> int | None:
        component = self.ledger.find_product(component_id)
        if component is None:
            return None
        if component.is_package:
            raise InconsistentStateError(
                f"package component {component_id} is itself a package; nested packages are not supported"
            )
        return to_pieces(component.stock_dozen, component.stock_pcs)

    # =========================================================================
    # EXPANSION
    # =========================================================================

    def expand(self, package: Product, units: int, direction: StockDirection) -> list[StockDelta]:
        """One delta per bill-of-materials line: qty_per_unit * units, same direction."""
        return [
            StockDelta(
                entity_type=EntityType.PRODUCT,
                entity_id=item.product_id,
                direction=direction,
                requested=item.quantity * units,
            )
            for item in package.package_items
        ]

    def expand_package_operation(self, package_id: int, units: int, direction: StockDirection) -> list[StockDelta]:
        units = require_quantity(units, "units", integer=True)
        package = self._load_package(package_id)
        if package is None:
            return []
        return self.expand(package, units, StockDirection(direction))

    def deltas_for(self, product_id: int, quantity: int, direction: StockDirection) -> list[StockDelta]:
        """
        Single/package dispatch for one record line.

        Singles yield one delta on themselves; packages yield their expansion.
        An unknown product yields nothing in compat mode.
        """
        product = self.ledger.find_product(product_id)
        if product is None:
            self.ledger.missing(PRODUCTS, product_id)
            return []
        if product.is_package:
            return self.expand(product, quantity, direction)
        return [
            StockDelta(
                entity_type=EntityType.PRODUCT,
                entity_id=product_id,
                direction=direction,
                requested=quantity,
            )
        ]

    # =========================================================================
    # AVAILABILITY
    # =========================================================================

    def available_packages(self, package_id: int) -> int:
        """
        Complete packages the current component stock can make.

        Minimum over lines of floor(component_pieces / qty_per_unit). Lines
        with a zero per-unit quantity do not constrain; an empty (or fully
        unconstrained) bill-of-materials yields 0. A missing component yields 0.
        """
        package = self._load_package(package_id)
        if package is None:
            return 0

        best = math.inf
        for item in package.package_items:
            if item.quantity <= 0:
                continue
            pieces = self._component_pieces(item.product_id)
            if pieces is None:
                return 0
            best = min(best, pieces // item.quantity)

        if best is math.inf:
            return 0
        return int(best)

    def shortages(self, package_id: int, requested_units: int) -> list[dict]:
        requested_units = require_quantity(requested_units, "requested_units", integer=True)
        package = self._load_package(package_id)
        if package is None:
            return []

        short = []
        for item in package.package_items:
            required = item.quantity * requested_units
            pieces = self._component_pieces(item.product_id)
            available = pieces if pieces is not None else 0
            if available < required:
                short.append({
                    "product_id": item.product_id,
                    "package_id": package_id,
                    "required": required,
                    "available": available,
                })
        return short

    def has_stock(self, package_id: int, requested_units: int) -> bool:
        """True iff every component has at least qty_per_unit * requested_units pieces."""
        if self._load_package(package_id) is None:
            return False
        return not self.shortages(package_id, requested_units)

    def require_stock(self, package_id: int, requested_units: int) -> None:
        short = self.shortages(package_id, requested_units)
        if short:
            raise InsufficientComponentStockError(short)

    def line_shortages(self, items: list[dict]) -> list[dict]:
        """
        Pre-check for a whole delivery: requirements are summed per single
        product across all lines (packages expanded) before comparing, so two
        lines drawing on the same component are checked together.
        """
        required: dict[int, int] = {}
        for index, item in enumerate(items):
            quantity = require_quantity(item.get("quantity", 0), f"items[{index}].quantity", integer=True)
            for delta in self.deltas_for(int(item["product_id"]), quantity, StockDirection.DEBIT):
                required[delta.entity_id] = required.get(delta.entity_id, 0) + int(delta.requested)

        short = []
        for product_id, needed in sorted(required.items()):
            pieces = self._component_pieces(product_id)
            available = pieces if pieces is not None else 0
            if available < needed:
                short.append({"product_id": product_id, "required": needed, "available": available})
        return short

    def require_line_stock(self, items: list[dict]) -> None:
        short = self.line_shortages(items)
        if short:
            raise InsufficientComponentStockError(short)
