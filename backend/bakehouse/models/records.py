"""
Typed views over the JSON-like records held in the collection store.

Every collection row is a plain dict on disk; services convert to these
dataclasses at the boundary (from_dict) and back (to_dict) so that `kind`,
`status` and `direction` are enums with exhaustive handling instead of
free-form strings.

Unknown fields on a stored record are preserved in `extra` and written back
unchanged, so catalog screens can keep fields this engine does not model
(packaging, size, supplier, customer details, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..services.errors import InconsistentStateError


# =============================================================================
# COLLECTION NAMES
# =============================================================================

PRODUCTS = "products"
RAW_MATERIALS = "raw_materials"
RECIPES = "recipes"
STORE_DELIVERIES = "store_deliveries"
INDIVIDUAL_DELIVERIES = "individual_deliveries"
RETURNS = "returns"
PRODUCTIONS = "factory_productions"
STOCK_REDUCTIONS = "stock_reductions"
HPP = "hpp"
STOCK_MOVEMENTS = "stock_movements"


# =============================================================================
# ENUMS
# =============================================================================

class ProductKind(str, Enum):
    SINGLE = "single"
    PACKAGE = "package"


class RecordStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class StockDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"

    def inverse(self) -> "StockDirection":
        if self is StockDirection.CREDIT:
            return StockDirection.DEBIT
        return StockDirection.CREDIT


class DeliveryChannel(str, Enum):
    STORE = "store"
    INDIVIDUAL = "individual"

    @property
    def collection(self) -> str:
        if self is DeliveryChannel.STORE:
            return STORE_DELIVERIES
        return INDIVIDUAL_DELIVERIES


class EntityType(str, Enum):
    PRODUCT = "product"
    RAW_MATERIAL = "raw_material"

    @property
    def collection(self) -> str:
        if self is EntityType.PRODUCT:
            return PRODUCTS
        return RAW_MATERIALS


def parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InconsistentStateError(f"unknown {field_name} {value!r}")


def _split(record: dict, known: set[str]) -> dict:
    return {k: v for k, v in record.items() if k not in known}


# =============================================================================
# CATALOG
# =============================================================================

@dataclass
class AreaPrice:
    area_id: int
    price: float

    @classmethod
    def from_dict(cls, data: dict) -> "AreaPrice":
        # Catalog screens store the area key as price_area_id
        area_id = data.get("area_id", data.get("price_area_id"))
        return cls(area_id=int(area_id), price=float(data.get("price", 0)))

    def to_dict(self) -> dict:
        return {"price_area_id": self.area_id, "price": self.price}


@dataclass
class PackageItem:
    """One bill-of-materials line of a package product."""
    product_id: int
    quantity: int

    @classmethod
    def from_dict(cls, data: dict) -> "PackageItem":
        return cls(product_id=int(data["product_id"]), quantity=int(data.get("quantity", 0)))

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "quantity": self.quantity}


_PRODUCT_FIELDS = {
    "id", "name", "product_type", "stock_dozen", "stock_pcs", "minimum_stock",
    "base_price", "rounding_enabled", "area_prices", "package_items",
}


@dataclass
class Product:
    id: int
    name: str
    kind: ProductKind = ProductKind.SINGLE
    stock_dozen: int = 0
    stock_pcs: int = 0
    minimum_stock: int = 0
    base_price: float = 0
    rounding_enabled: bool = False
    area_prices: list[AreaPrice] = field(default_factory=list)
    package_items: list[PackageItem] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    @property
    def is_package(self) -> bool:
        return self.kind is ProductKind.PACKAGE

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            kind=parse_enum(ProductKind, data.get("product_type", "single"), "product_type"),
            stock_dozen=int(data.get("stock_dozen") or 0),
            stock_pcs=int(data.get("stock_pcs") or 0),
            minimum_stock=int(data.get("minimum_stock") or 0),
            base_price=float(data.get("base_price") or 0),
            rounding_enabled=bool(data.get("rounding_enabled", False)),
            area_prices=[AreaPrice.from_dict(a) for a in data.get("area_prices") or []],
            package_items=[PackageItem.from_dict(i) for i in data.get("package_items") or []],
            extra=_split(data, _PRODUCT_FIELDS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "product_type": self.kind.value,
            "stock_dozen": self.stock_dozen,
            "stock_pcs": self.stock_pcs,
            "minimum_stock": self.minimum_stock,
            "base_price": self.base_price,
            "rounding_enabled": self.rounding_enabled,
            "area_prices": [a.to_dict() for a in self.area_prices],
            "package_items": [i.to_dict() for i in self.package_items],
        }


_MATERIAL_FIELDS = {"id", "name", "unit", "stock_quantity", "unit_cost", "minimum_stock"}


@dataclass
class RawMaterial:
    id: int
    name: str
    unit: str = ""
    stock_quantity: float = 0
    unit_cost: float = 0
    minimum_stock: float = 0
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "RawMaterial":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            unit=data.get("unit", ""),
            stock_quantity=float(data.get("stock_quantity") or 0),
            unit_cost=float(data.get("unit_cost") or 0),
            minimum_stock=float(data.get("minimum_stock") or 0),
            extra=_split(data, _MATERIAL_FIELDS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "stock_quantity": self.stock_quantity,
            "unit_cost": self.unit_cost,
            "minimum_stock": self.minimum_stock,
        }


@dataclass
class RecipeLine:
    id: int
    product_id: int
    raw_material_id: int
    quantity_needed: float
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RecipeLine":
        return cls(
            id=int(data["id"]),
            product_id=int(data["product_id"]),
            raw_material_id=int(data["raw_material_id"]),
            quantity_needed=float(data.get("quantity_needed") or 0),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "raw_material_id": self.raw_material_id,
            "quantity_needed": self.quantity_needed,
            "created_at": self.created_at,
        }


# =============================================================================
# STOCK EFFECTS
# =============================================================================

@dataclass
class StockDelta:
    """
    One ledger application.

    `requested` is what the record asked for; `applied` is what actually moved
    after the zero floor. Reversal replays `applied` in the inverse direction.
    """
    entity_type: EntityType
    entity_id: int
    direction: StockDirection
    requested: float
    applied: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "StockDelta":
        return cls(
            entity_type=parse_enum(EntityType, data["entity_type"], "entity_type"),
            entity_id=int(data["entity_id"]),
            direction=parse_enum(StockDirection, data["direction"], "direction"),
            requested=data["requested"],
            applied=data.get("applied"),
        )

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "direction": self.direction.value,
            "requested": self.requested,
            "applied": self.applied,
        }

    def reversed(self) -> "StockDelta":
        amount = self.applied if self.applied is not None else self.requested
        return StockDelta(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            direction=self.direction.inverse(),
            requested=amount,
        )


def _parse_effect(data: dict) -> list[StockDelta] | None:
    raw = data.get("stock_effect")
    if raw is None:
        return None
    return [StockDelta.from_dict(d) for d in raw]


# =============================================================================
# TRANSACTION RECORDS
# =============================================================================

@dataclass
class LineItem:
    """Delivery or return line. unit_price is absent on returns."""
    product_id: int
    quantity: int
    unit_price: float | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        price = data.get("unit_price")
        return cls(
            product_id=int(data["product_id"]),
            quantity=int(data.get("quantity") or 0),
            unit_price=float(price) if price is not None else None,
            extra=_split(data, {"product_id", "quantity", "unit_price"}),
        )

    def to_dict(self) -> dict:
        out = {**self.extra, "product_id": self.product_id, "quantity": self.quantity}
        if self.unit_price is not None:
            out["unit_price"] = self.unit_price
        return out


_DELIVERY_FIELDS = {"id", "status", "items", "total_amount", "stock_effect", "created_at"}


@dataclass
class DeliveryRecord:
    id: int | None
    status: RecordStatus = RecordStatus.PENDING
    items: list[LineItem] | None = field(default_factory=list)
    total_amount: float = 0
    stock_effect: list[StockDelta] | None = None
    created_at: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "DeliveryRecord":
        items = data.get("items")
        return cls(
            id=data.get("id"),
            status=parse_enum(RecordStatus, data.get("status", "pending"), "status"),
            items=[LineItem.from_dict(i) for i in items] if items is not None else None,
            total_amount=float(data.get("total_amount") or 0),
            stock_effect=_parse_effect(data),
            created_at=data.get("created_at"),
            extra=_split(data, _DELIVERY_FIELDS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "status": self.status.value,
            "items": [i.to_dict() for i in self.items or []],
            "total_amount": self.total_amount,
            "stock_effect": [d.to_dict() for d in self.stock_effect or []],
            "created_at": self.created_at,
        }


_RETURN_FIELDS = {"id", "status", "items", "stock_effect", "created_at"}


@dataclass
class ReturnRecord:
    id: int | None
    status: RecordStatus = RecordStatus.PENDING
    items: list[LineItem] | None = field(default_factory=list)
    stock_effect: list[StockDelta] | None = None
    created_at: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ReturnRecord":
        items = data.get("items")
        return cls(
            id=data.get("id"),
            status=parse_enum(RecordStatus, data.get("status", "pending"), "status"),
            items=[LineItem.from_dict(i) for i in items] if items is not None else None,
            stock_effect=_parse_effect(data),
            created_at=data.get("created_at"),
            extra=_split(data, _RETURN_FIELDS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "status": self.status.value,
            "items": [i.to_dict() for i in self.items or []],
            "stock_effect": [d.to_dict() for d in self.stock_effect or []],
            "created_at": self.created_at,
        }


@dataclass
class MaterialUsage:
    raw_material_id: int
    quantity_used: float

    @classmethod
    def from_dict(cls, data: dict) -> "MaterialUsage":
        return cls(
            raw_material_id=int(data["raw_material_id"]),
            quantity_used=float(data.get("quantity_used") or 0),
        )

    def to_dict(self) -> dict:
        return {"raw_material_id": self.raw_material_id, "quantity_used": self.quantity_used}


_PRODUCTION_FIELDS = {
    "id", "product_id", "quantity_produced", "materials", "stock_effect", "created_at",
}


@dataclass
class ProductionRecord:
    id: int | None
    product_id: int
    quantity_produced: int
    materials_used: list[MaterialUsage] | None = field(default_factory=list)
    stock_effect: list[StockDelta] | None = None
    created_at: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ProductionRecord":
        if "product_id" not in data:
            raise InconsistentStateError(f"production {data.get('id')} has no product_id")
        materials = data.get("materials")
        return cls(
            id=data.get("id"),
            product_id=int(data["product_id"]),
            quantity_produced=int(data.get("quantity_produced") or 0),
            materials_used=[MaterialUsage.from_dict(m) for m in materials] if materials is not None else None,
            stock_effect=_parse_effect(data),
            created_at=data.get("created_at"),
            extra=_split(data, _PRODUCTION_FIELDS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "product_id": self.product_id,
            "quantity_produced": self.quantity_produced,
            "materials": [m.to_dict() for m in self.materials_used or []],
            "stock_effect": [d.to_dict() for d in self.stock_effect or []],
            "created_at": self.created_at,
        }


# =============================================================================
# JOURNALS AND RESULTS
# =============================================================================

@dataclass(frozen=True)
class StockReduction:
    id: int
    product_id: int
    amount: int
    reason: str
    notes: str
    date: str

    @classmethod
    def from_dict(cls, data: dict) -> "StockReduction":
        return cls(
            id=int(data["id"]),
            product_id=int(data["product_id"]),
            amount=int(data["amount"]),
            reason=data.get("reason", ""),
            notes=data.get("notes", ""),
            date=data.get("date", ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "amount": self.amount,
            "reason": self.reason,
            "notes": self.notes,
            "date": self.date,
        }


@dataclass
class HPPResult:
    product_id: int
    material_cost: Any
    total_cost: Any
    minimum_selling_price: Any
    suggested_selling_price: Any
    final_selling_price: Any
    overhead_cost: Any = 0
    target_margin_pct: Any = 0
    tax_pct: Any = 0
    missing_material_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "material_cost": float(self.material_cost),
            "total_cost": float(self.total_cost),
            "minimum_selling_price": float(self.minimum_selling_price),
            "suggested_selling_price": float(self.suggested_selling_price),
            "final_selling_price": float(self.final_selling_price),
            "overhead_cost": float(self.overhead_cost),
            "target_margin_pct": float(self.target_margin_pct),
            "tax_pct": float(self.tax_pct),
            "material_cost_flags": list(self.missing_material_ids),
        }
