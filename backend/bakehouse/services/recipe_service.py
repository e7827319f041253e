# Overview: Service-layer operations for recipes (bill-of-materials); raw-material requirements and material cost.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ..models import PRODUCTS, RAW_MATERIALS, RECIPES, RawMaterial, RecipeLine
from ..time_utils import now_z
from ..validation import require_quantity
from .errors import NotFoundError
from .quantity import to_decimal

logger = logging.getLogger(__name__)


@dataclass
class ResolvedLine:
    """A recipe line joined with its raw material; line_cost = unit_cost * quantity_needed."""
    id: int
    product_id: int
    raw_material_id: int
    quantity_needed: float
    material_name: str
    material_unit: str
    unit_cost: Decimal
    line_cost: Decimal
    stock_available: float
    material_missing: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "raw_material_id": self.raw_material_id,
            "quantity_needed": self.quantity_needed,
            "material_name": self.material_name,
            "material_unit": self.material_unit,
            "unit_cost": float(self.unit_cost),
            "line_cost": float(self.line_cost),
            "stock_available": self.stock_available,
            "material_missing": self.material_missing,
        }


@dataclass
class MaterialCost:
    total: Decimal
    missing_material_ids: list[int] = field(default_factory=list)


class RecipeResolver:
    def __init__(self, store):
        self.store = store

    def _materials_by_id(self) -> dict[int, RawMaterial]:
        return {m["id"]: RawMaterial.from_dict(m) for m in self.store.get_all(RAW_MATERIALS)}

    def require_product(self, product_id: int) -> None:
        if not any(p.get("id") == product_id for p in self.store.get_all(PRODUCTS)):
            raise NotFoundError(PRODUCTS, product_id)

    def _lines(self, product_id: int) -> list[RecipeLine]:
        return [
            RecipeLine.from_dict(r) for r in self.store.get_all(RECIPES)
            if r.get("product_id") == product_id
        ]

    def get_recipe_lines(self, product_id: int) -> list[ResolvedLine]:
        """
        Lines for a product with material details and per-line cost.

        A line whose raw material no longer exists costs zero and is flagged
        with material_missing=True rather than dropped.
        """
        materials = self._materials_by_id()
        resolved = []
        for line in self._lines(product_id):
            material = materials.get(line.raw_material_id)
            if material is None:
                logger.warning(
                    "recipe line %s of product %s references missing raw material %s",
                    line.id, product_id, line.raw_material_id,
                )
                resolved.append(ResolvedLine(
                    id=line.id,
                    product_id=product_id,
                    raw_material_id=line.raw_material_id,
                    quantity_needed=line.quantity_needed,
                    material_name="Unknown Material",
                    material_unit="",
                    unit_cost=Decimal(0),
                    line_cost=Decimal(0),
                    stock_available=0,
                    material_missing=True,
                ))
                continue

            unit_cost = to_decimal(material.unit_cost)
            resolved.append(ResolvedLine(
                id=line.id,
                product_id=product_id,
                raw_material_id=line.raw_material_id,
                quantity_needed=line.quantity_needed,
                material_name=material.name,
                material_unit=material.unit,
                unit_cost=unit_cost,
                line_cost=unit_cost * to_decimal(line.quantity_needed),
                stock_available=material.stock_quantity,
            ))
        return resolved

    def material_cost(self, product_id: int) -> MaterialCost:
        lines = self.get_recipe_lines(product_id)
        return MaterialCost(
            total=sum((line.line_cost for line in lines), Decimal(0)),
            missing_material_ids=[line.raw_material_id for line in lines if line.material_missing],
        )

    def upsert_recipe_line(self, product_id: int, material_id: int, quantity_needed) -> dict:
        """At most one line per (product, material): an existing pair is updated in place."""
        quantity_needed = require_quantity(quantity_needed, "quantity_needed")
        self.require_product(product_id)
        recipes = self.store.get_all(RECIPES)

        for recipe in recipes:
            if recipe.get("product_id") == product_id and recipe.get("raw_material_id") == material_id:
                recipe["quantity_needed"] = quantity_needed
                self.store.set_all(RECIPES, recipes)
                return recipe

        line = RecipeLine(
            id=self.store.next_id(RECIPES),
            product_id=product_id,
            raw_material_id=material_id,
            quantity_needed=quantity_needed,
            created_at=now_z(),
        ).to_dict()
        recipes.append(line)
        self.store.set_all(RECIPES, recipes)
        return line

    def replace_all_lines(self, product_id: int, new_lines: list[dict]) -> list[dict]:
        """
        Bulk replace a product's bill-of-materials.

        Accepts quantity as quantity_needed or recipe_quantity. Duplicate
        materials in new_lines collapse to the last occurrence.
        """
        by_material: dict[int, float] = {}
        for index, item in enumerate(new_lines):
            quantity = item.get("quantity_needed", item.get("recipe_quantity", 0))
            by_material[int(item["raw_material_id"])] = require_quantity(
                quantity, f"lines[{index}].quantity_needed"
            )
        self.require_product(product_id)

        kept = [r for r in self.store.get_all(RECIPES) if r.get("product_id") != product_id]
        next_id = self.store.next_id(RECIPES)
        created_at = now_z()
        added = [
            RecipeLine(
                id=next_id + offset,
                product_id=product_id,
                raw_material_id=material_id,
                quantity_needed=quantity,
                created_at=created_at,
            ).to_dict()
            for offset, (material_id, quantity) in enumerate(by_material.items())
        ]
        self.store.set_all(RECIPES, kept + added)
        return added

    def delete_recipe_line(self, line_id: int) -> dict:
        recipes = self.store.get_all(RECIPES)
        index = next((i for i, r in enumerate(recipes) if r.get("id") == line_id), None)
        if index is None:
            raise NotFoundError(RECIPES, line_id)
        removed = recipes.pop(index)
        self.store.set_all(RECIPES, recipes)
        return removed
