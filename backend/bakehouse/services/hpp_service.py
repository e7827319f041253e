# Overview: Service-layer operations for HPP (cost-of-production pricing); compute, store and fetch per-product results.

"""
HPP pipeline (no rounding inside; rounding is a presentation concern applied
by pricing_service according to each product's rounding_enabled flag):

    material_cost            = sum(unit_cost * quantity_needed) over the recipe
    total_cost               = material_cost + overhead_cost
    minimum_selling_price    = total_cost
    suggested_selling_price  = total_cost * (1 + target_margin_pct / 100)
    final_selling_price      = suggested_selling_price * (1 + tax_pct / 100)

All arithmetic is Decimal. Stored rows are upserted by product_id: one HPP
row per product, a recompute replaces the previous one.
"""

from __future__ import annotations

from decimal import Decimal

from ..models import HPP, HPPResult
from ..time_utils import now_z
from ..validation import require_percentage, require_quantity
from .errors import NotFoundError
from .quantity import to_decimal
from .recipe_service import RecipeResolver

HUNDRED = Decimal(100)


def price_from_cost(product_id: int, material_cost, overhead_cost, target_margin_pct, tax_pct) -> HPPResult:
    """Pure arithmetic step; never fails on well-typed input."""
    material = to_decimal(material_cost)
    overhead = to_decimal(overhead_cost)
    margin = to_decimal(target_margin_pct)
    tax = to_decimal(tax_pct)

    total = material + overhead
    suggested = total * (1 + margin / HUNDRED)
    final = suggested * (1 + tax / HUNDRED)

    return HPPResult(
        product_id=product_id,
        material_cost=material,
        total_cost=total,
        minimum_selling_price=total,
        suggested_selling_price=suggested,
        final_selling_price=final,
        overhead_cost=overhead,
        target_margin_pct=margin,
        tax_pct=tax,
    )


class HPPCalculator:
    def __init__(self, store, recipes: RecipeResolver):
        self.store = store
        self.recipes = recipes

    def compute_hpp(self, product_id: int, overhead_cost, target_margin_pct, tax_pct) -> HPPResult:
        """Preview only; nothing is stored."""
        overhead_cost = require_quantity(overhead_cost, "overhead_cost")
        target_margin_pct = require_percentage(target_margin_pct, "target_margin_pct")
        tax_pct = require_percentage(tax_pct, "tax_pct")
        self.recipes.require_product(product_id)

        cost = self.recipes.material_cost(product_id)
        result = price_from_cost(product_id, cost.total, overhead_cost, target_margin_pct, tax_pct)
        result.missing_material_ids = cost.missing_material_ids
        return result

    def save_hpp(self, result: HPPResult) -> dict:
        rows = self.store.get_all(HPP)
        payload = result.to_dict()
        for index, row in enumerate(rows):
            if row.get("product_id") == result.product_id:
                rows[index] = {**row, **payload, "updated_at": now_z()}
                self.store.set_all(HPP, rows)
                return rows[index]

        row = {"id": self.store.next_id(HPP), **payload, "created_at": now_z()}
        rows.append(row)
        self.store.set_all(HPP, rows)
        return row

    def compute_and_store(self, product_id: int, overhead_cost, target_margin_pct, tax_pct) -> dict:
        return self.save_hpp(self.compute_hpp(product_id, overhead_cost, target_margin_pct, tax_pct))

    def get_hpp(self, product_id: int) -> dict | None:
        return next((r for r in self.store.get_all(HPP) if r.get("product_id") == product_id), None)

    def list_hpp(self) -> list[dict]:
        return self.store.get_all(HPP)

    def delete_hpp(self, product_id: int) -> dict:
        rows = self.store.get_all(HPP)
        index = next((i for i, r in enumerate(rows) if r.get("product_id") == product_id), None)
        if index is None:
            raise NotFoundError(HPP, product_id)
        removed = rows.pop(index)
        self.store.set_all(HPP, rows)
        return removed
