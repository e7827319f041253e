# Overview: Service-layer operations for delivery, return and production records; reverses and reapplies their stock effects.

"""
Transaction Reversal Coordinator

Every mutating call leaves stock exactly as if the old record never existed
and only the new one does:

- create: apply the new record's effect.
- update: (a) reverse the old record's effect in full, (b) persist the new
  payload, (c) apply the new effect. Reversing first keeps the zero floor from
  clamping a transient negative when old and new lines share a product. When
  a reversal debit clamps (the credited stock was consumed since), the
  shortfall is taken off the new effect's credits on the same entity, so an
  unchanged edit nets to zero instead of crediting the consumed stock again.
- delete: reverse the old record's effect, then remove the record.

EFFECT DIRECTION PER RECORD TYPE:
- Delivery (store or individual): debit on apply, credit on reverse, whatever
  the status. Status only matters to revenue reporting.
- Return: credit on apply only when status == completed; a pending return
  never touches stock. Editing pending -> completed credits once, at the
  transition; completed -> pending debits it back.
- Production: credit the finished product, debit each raw material; reversal
  does the opposite.

Package lines are expanded into component deltas before they reach the
ledger. The deltas actually applied (after the zero floor) are persisted on
the record as `stock_effect`; reversal replays exactly those, so a later
bill-of-materials edit or a clamped debit cannot skew the net result.

The caller (InventoryEngine) wraps each public method in the entity locks and
one store transaction; a failure anywhere rolls back every mutation of the
call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable

from ..models import (
    PRODUCTIONS,
    RETURNS,
    DeliveryChannel,
    DeliveryRecord,
    EntityType,
    ProductionRecord,
    RecordStatus,
    ReturnRecord,
    StockDelta,
    StockDirection,
)
from ..time_utils import now_z
from ..validation import require_quantity
from .errors import InconsistentStateError
from .package_service import PackageExpander
from .quantity import to_decimal, to_float
from .stock_ledger import LookupMode, StockLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordType:
    collection: str
    source_type: str
    parse: Callable[[dict], object]


DELIVERY_TYPES = {
    DeliveryChannel.STORE: RecordType(DeliveryChannel.STORE.collection, "store_delivery", DeliveryRecord.from_dict),
    DeliveryChannel.INDIVIDUAL: RecordType(
        DeliveryChannel.INDIVIDUAL.collection, "individual_delivery", DeliveryRecord.from_dict
    ),
}
RETURN_TYPE = RecordType(RETURNS, "return", ReturnRecord.from_dict)
PRODUCTION_TYPE = RecordType(PRODUCTIONS, "production", ProductionRecord.from_dict)


def _clean_items(items, *, priced: bool) -> list[dict]:
    if items is None:
        return []
    cleaned = []
    for index, item in enumerate(items):
        if "product_id" not in item:
            raise InconsistentStateError(f"item {index} has no product_id")
        row = dict(item)
        row["product_id"] = int(item["product_id"])
        row["quantity"] = require_quantity(item.get("quantity", 0), f"items[{index}].quantity", integer=True)
        if priced and item.get("unit_price") is not None:
            row["unit_price"] = require_quantity(item["unit_price"], f"items[{index}].unit_price")
        cleaned.append(row)
    return cleaned


def _clean_materials(materials) -> list[dict]:
    cleaned = []
    for index, usage in enumerate(materials or []):
        if "raw_material_id" not in usage:
            raise InconsistentStateError(f"material {index} has no raw_material_id")
        cleaned.append({
            "raw_material_id": int(usage["raw_material_id"]),
            "quantity_used": require_quantity(usage.get("quantity_used", 0), f"materials[{index}].quantity_used"),
        })
    return cleaned


class RecordCoordinator:
    def __init__(self, store, ledger: StockLedger, expander: PackageExpander):
        self.store = store
        self.ledger = ledger
        self.expander = expander

    # =========================================================================
    # EFFECTS
    # =========================================================================

    def _line_deltas(self, items, direction: StockDirection) -> list[StockDelta]:
        deltas: list[StockDelta] = []
        for item in items or []:
            deltas.extend(self.expander.deltas_for(item.product_id, item.quantity, direction))
        return deltas

    def effect_of(self, record) -> list[StockDelta]:
        """Requested (not yet applied) deltas implied by a record's contents."""
        if isinstance(record, DeliveryRecord):
            return self._line_deltas(record.items, StockDirection.DEBIT)

        if isinstance(record, ReturnRecord):
            if record.status is RecordStatus.COMPLETED:
                return self._line_deltas(record.items, StockDirection.CREDIT)
            return []

        if isinstance(record, ProductionRecord):
            deltas = self.expander.deltas_for(record.product_id, record.quantity_produced, StockDirection.CREDIT)
            for usage in record.materials_used or []:
                deltas.append(StockDelta(
                    entity_type=EntityType.RAW_MATERIAL,
                    entity_id=usage.raw_material_id,
                    direction=StockDirection.DEBIT,
                    requested=usage.quantity_used,
                ))
            return deltas

        raise InconsistentStateError(f"unsupported record type {type(record).__name__}")

    def _apply_all(self, deltas: list[StockDelta], rtype: RecordType, record_id: int) -> list[StockDelta]:
        applied = []
        for delta in deltas:
            result = self.ledger.apply(delta, source_type=rtype.source_type, source_id=record_id)
            if result is not None:
                applied.append(result)
        return applied

    def _reversal_of(self, record) -> list[StockDelta]:
        if record.stock_effect is not None:
            return [d.reversed() for d in record.stock_effect]

        # Legacy row written before stock_effect existed: recompute from contents.
        lines = record.materials_used if isinstance(record, ProductionRecord) else record.items
        if lines is None:
            if self.ledger.lookup_mode is LookupMode.STRICT:
                raise InconsistentStateError(
                    f"{type(record).__name__} {record.id} has no stored items; its stock effect cannot be reversed"
                )
            logger.warning("%s %s has no stored items; reversing as empty", type(record).__name__, record.id)
            if isinstance(record, ProductionRecord):
                record.materials_used = []
            else:
                record.items = []
        return [d.reversed() for d in self.effect_of(record)]

    @staticmethod
    def _net_of_shortfall(reversal: list[StockDelta], effect: list[StockDelta]) -> list[StockDelta]:
        """
        Take clamped reversal debits off the new effect's credits.

        A reversal debit that hit the zero floor removed less than the old
        record credited; crediting the new effect in full would hand that
        consumed stock back. Fully absorbed credits are dropped.
        """
        owed: dict[tuple[EntityType, int], Decimal] = {}
        for delta in reversal:
            if delta.direction is not StockDirection.DEBIT or delta.applied is None:
                continue
            short = to_decimal(delta.requested) - to_decimal(delta.applied)
            if short > 0:
                key = (delta.entity_type, delta.entity_id)
                owed[key] = owed.get(key, Decimal(0)) + short
        if not owed:
            return effect

        adjusted = []
        for delta in effect:
            key = (delta.entity_type, delta.entity_id)
            if delta.direction is StockDirection.CREDIT and owed.get(key):
                amount = to_decimal(delta.requested)
                taken = min(amount, owed[key])
                owed[key] -= taken
                if taken == amount:
                    continue
                delta = replace(delta, requested=to_float(amount - taken))
            adjusted.append(delta)
        return adjusted

    # =========================================================================
    # RECORD STORAGE
    # =========================================================================

    def _find(self, rtype: RecordType, record_id: int) -> tuple[list[dict], int | None]:
        rows = self.store.get_all(rtype.collection)
        index = next((i for i, r in enumerate(rows) if r.get("id") == record_id), None)
        return rows, index

    def get(self, rtype: RecordType, record_id: int) -> dict | None:
        rows, index = self._find(rtype, record_id)
        return rows[index] if index is not None else None

    def _write_effect(self, rtype: RecordType, record_id: int, effect: list[StockDelta]) -> dict:
        rows, index = self._find(rtype, record_id)
        rows[index]["stock_effect"] = [d.to_dict() for d in effect]
        self.store.set_all(rtype.collection, rows)
        return rows[index]

    # =========================================================================
    # LIFECYCLE (generic)
    # =========================================================================

    def _create(self, rtype: RecordType, row: dict) -> dict:
        record = rtype.parse(row)
        rows = self.store.get_all(rtype.collection)
        row = {**row, "id": self.store.next_id(rtype.collection), "created_at": now_z(), "stock_effect": []}
        rows.append(row)
        self.store.set_all(rtype.collection, rows)

        record.id = row["id"]
        effect = self._apply_all(self.effect_of(record), rtype, row["id"])
        logger.debug("%s %s created with %d stock deltas", rtype.source_type, row["id"], len(effect))
        return self._write_effect(rtype, row["id"], effect)

    def _update(self, rtype: RecordType, record_id: int, patch: dict) -> dict | None:
        rows, index = self._find(rtype, record_id)
        if index is None:
            self.ledger.missing(rtype.collection, record_id)
            return None

        old = rtype.parse(rows[index])
        # (a) reverse the old effect in full
        reversal = self._apply_all(self._reversal_of(old), rtype, record_id)

        # (b) persist the new payload
        rows = self.store.get_all(rtype.collection)
        merged = {**rows[index], **patch, "id": record_id, "updated_at": now_z(), "stock_effect": []}
        rows[index] = merged
        self.store.set_all(rtype.collection, rows)

        # (c) apply the new effect
        new = rtype.parse(merged)
        effect = self._apply_all(self._net_of_shortfall(reversal, self.effect_of(new)), rtype, record_id)
        return self._write_effect(rtype, record_id, effect)

    def _delete(self, rtype: RecordType, record_id: int) -> dict | None:
        rows, index = self._find(rtype, record_id)
        if index is None:
            self.ledger.missing(rtype.collection, record_id)
            return None

        old = rtype.parse(rows[index])
        self._apply_all(self._reversal_of(old), rtype, record_id)

        rows = self.store.get_all(rtype.collection)
        removed = rows.pop(index)
        self.store.set_all(rtype.collection, rows)
        return removed

    # =========================================================================
    # DELIVERIES
    # =========================================================================

    def create_delivery(self, channel: DeliveryChannel, data: dict, items: list[dict]) -> dict:
        items = _clean_items(items, priced=True)
        row = {**data, "items": items}
        if "total_amount" not in row:
            row["total_amount"] = sum(i["quantity"] * (i.get("unit_price") or 0) for i in items)
        row.setdefault("status", RecordStatus.PENDING.value)
        return self._create(DELIVERY_TYPES[DeliveryChannel(channel)], row)

    def update_delivery(self, channel: DeliveryChannel, delivery_id: int, data: dict, items: list[dict]) -> dict | None:
        items = _clean_items(items, priced=True)
        return self._update(DELIVERY_TYPES[DeliveryChannel(channel)], delivery_id, {**data, "items": items})

    def delete_delivery(self, channel: DeliveryChannel, delivery_id: int) -> dict | None:
        return self._delete(DELIVERY_TYPES[DeliveryChannel(channel)], delivery_id)

    # =========================================================================
    # RETURNS
    # =========================================================================

    def create_return(self, data: dict, items: list[dict]) -> dict:
        row = {**data, "items": _clean_items(items, priced=False)}
        row.setdefault("status", RecordStatus.PENDING.value)
        return self._create(RETURN_TYPE, row)

    def update_return(self, return_id: int, data: dict, items: list[dict]) -> dict | None:
        return self._update(RETURN_TYPE, return_id, {**data, "items": _clean_items(items, priced=False)})

    def delete_return(self, return_id: int) -> dict | None:
        return self._delete(RETURN_TYPE, return_id)

    # =========================================================================
    # PRODUCTION
    # =========================================================================

    def _production_row(self, data: dict, materials: list[dict]) -> dict:
        if "product_id" not in data:
            raise InconsistentStateError("production requires product_id")
        return {
            **data,
            "product_id": int(data["product_id"]),
            "quantity_produced": require_quantity(
                data.get("quantity_produced", 0), "quantity_produced", integer=True
            ),
            "materials": _clean_materials(materials),
        }

    def create_production(self, data: dict, materials: list[dict]) -> dict:
        return self._create(PRODUCTION_TYPE, self._production_row(data, materials))

    def update_production(self, production_id: int, data: dict, materials: list[dict]) -> dict | None:
        return self._update(PRODUCTION_TYPE, production_id, self._production_row(data, materials))

    def delete_production(self, production_id: int) -> dict | None:
        return self._delete(PRODUCTION_TYPE, production_id)

    # =========================================================================
    # LOCK PLANNING
    # =========================================================================

    def entity_keys(
        self,
        rtype: RecordType,
        record_id: int | None = None,
        *,
        product_ids=(),
        material_ids=(),
    ) -> set[tuple[str, int]]:
        """
        Every (collection, id) a coordinator call may touch: the record itself,
        products and materials of the old record and of the new payload, and
        the components of any package among them.
        """
        keys: set[tuple[str, int]] = set()
        products = set(product_ids)
        materials = set(material_ids)

        if record_id is not None:
            keys.add((rtype.collection, record_id))
            row = self.get(rtype, record_id)
            if row is not None:
                for delta in row.get("stock_effect") or []:
                    target = products if delta.get("entity_type") == EntityType.PRODUCT.value else materials
                    target.add(int(delta["entity_id"]))
                for item in row.get("items") or []:
                    products.add(int(item["product_id"]))
                for usage in row.get("materials") or []:
                    materials.add(int(usage["raw_material_id"]))
                if row.get("product_id") is not None:
                    products.add(int(row["product_id"]))

        for product_id in list(products):
            product = self.ledger.find_product(product_id)
            if product is not None and product.is_package:
                products.update(item.product_id for item in product.package_items)

        keys.update((EntityType.PRODUCT.collection, pid) for pid in products)
        keys.update((EntityType.RAW_MATERIAL.collection, mid) for mid in materials)
        return keys
