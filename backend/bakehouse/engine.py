# Overview: Explicitly constructed inventory engine; wires the services around one injected collection store.

"""
InventoryEngine is the entry point callers use (catalog/forms layer, CLI,
tests). It owns no state of its own beyond its collaborators:

- every component receives the same injected CollectionStore
- every mutating entry point holds the entity locks of everything it may
  touch, then runs inside one store transaction (store.atomic)
- key sets read from stored rows are re-checked once the locks are held
- read-only queries run inside store.read_view() and take no entity locks

Lock order is always: entity locks (sorted) -> store lock/transaction.
"""

from __future__ import annotations

from functools import partial
from typing import Callable, Iterable, TypeVar

from .models import (
    PRODUCTS,
    RAW_MATERIALS,
    DeliveryChannel,
    EntityType,
    Product,
    StockDirection,
    StockReduction,
)
from .services.collection_store import CollectionStore
from .services.concurrency import EntityKey, EntityLocks
from .services.hpp_service import HPPCalculator
from .services.movement_service import MovementJournal
from .services.package_service import PackageExpander
from .services.pricing_service import (
    DEFAULT_PRICE_UNIT,
    DEFAULT_TOTAL_UNIT,
    delivery_total,
    product_price,
)
from .services.quantity import DozenPieces, from_pieces
from .services.record_service import (
    DELIVERY_TYPES,
    PRODUCTION_TYPE,
    RETURN_TYPE,
    RecordCoordinator,
)
from .services.recipe_service import MaterialCost, RecipeResolver, ResolvedLine
from .services.reduction_service import ReductionJournal
from .services.reporting_service import StockReporter
from .services.stock_ledger import LookupMode, StockLedger

T = TypeVar("T")


class InventoryEngine:
    def __init__(
        self,
        store: CollectionStore,
        *,
        lookup_mode: LookupMode = LookupMode.STRICT,
        locks: EntityLocks | None = None,
        price_unit: int = DEFAULT_PRICE_UNIT,
        total_unit: int = DEFAULT_TOTAL_UNIT,
    ):
        self.store = store
        self.locks = locks or EntityLocks()
        self.price_unit = price_unit
        self.total_unit = total_unit

        self.journal = MovementJournal(store)
        self.ledger = StockLedger(store, lookup_mode=lookup_mode, journal=self.journal)
        self.expander = PackageExpander(self.ledger)
        self.records = RecordCoordinator(store, self.ledger, self.expander)
        self.recipes = RecipeResolver(store)
        self.hpp = HPPCalculator(store, self.recipes)
        self.reductions = ReductionJournal(store, self.ledger, self.expander)
        self.reporter = StockReporter(store, self.expander)

    @classmethod
    def from_config(cls, store: CollectionStore, config, *, locks: EntityLocks | None = None) -> "InventoryEngine":
        """Build from a Flask config mapping (STOCK_LOOKUP_MODE, *_ROUNDING_UNIT)."""
        return cls(
            store,
            lookup_mode=LookupMode(config.get("STOCK_LOOKUP_MODE", LookupMode.STRICT.value)),
            locks=locks,
            price_unit=int(config.get("PRICE_ROUNDING_UNIT", DEFAULT_PRICE_UNIT)),
            total_unit=int(config.get("TOTAL_ROUNDING_UNIT", DEFAULT_TOTAL_UNIT)),
        )

    @property
    def lookup_mode(self) -> LookupMode:
        return self.ledger.lookup_mode

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _mutate(self, keys: Iterable[EntityKey], func: Callable[[], T]) -> T:
        with self.locks.hold(keys):
            return self.store.atomic(func)

    def _mutate_planned(self, plan: Callable[[], set[EntityKey]], func: Callable[[], T]) -> T:
        """
        Like _mutate, for calls whose key set is read from stored rows (a
        record's old lines, a package's components). The plan is re-read once
        the locks are held; if a concurrent edit widened it, the locks are
        released and the larger set is taken in sorted order.
        """
        keys = plan()
        while True:
            with self.locks.hold(keys):
                current = plan()
                if current <= keys:
                    return self.store.atomic(func)
            keys = keys | current

    def _read(self, func: Callable[[], T]) -> T:
        with self.store.read_view():
            return func()

    def _product_keys(self, product_ids: Iterable[int]) -> set[EntityKey]:
        """Product keys plus the components of any package among them."""
        ids = set(product_ids)
        for product_id in list(ids):
            product = self.ledger.find_product(product_id)
            if product is not None and product.is_package:
                ids.update(item.product_id for item in product.package_items)
        return {(PRODUCTS, pid) for pid in ids}

    @staticmethod
    def _item_product_ids(items) -> list[int]:
        return [int(i["product_id"]) for i in items or [] if "product_id" in i]

    @staticmethod
    def _material_ids(materials) -> list[int]:
        return [int(m["raw_material_id"]) for m in materials or [] if "raw_material_id" in m]

    # =========================================================================
    # STOCK MUTATION
    # =========================================================================

    def adjust_pieces(self, product_id: int, pieces: int, direction: StockDirection) -> Product | None:
        return self._mutate(
            {(PRODUCTS, product_id)},
            lambda: self.ledger.apply_delta(product_id, pieces, direction, source_type="manual_adjustment"),
        )

    def credit_pieces(self, product_id: int, pieces: int) -> Product | None:
        return self.adjust_pieces(product_id, pieces, StockDirection.CREDIT)

    def debit_pieces(self, product_id: int, pieces: int) -> Product | None:
        return self.adjust_pieces(product_id, pieces, StockDirection.DEBIT)

    def adjust_dozen_pcs(self, product_id: int, dozen: int, pcs: int, direction: StockDirection) -> Product | None:
        return self._mutate(
            {(PRODUCTS, product_id)},
            lambda: self.ledger.apply_dozen_pcs(
                product_id, dozen, pcs, direction, source_type="manual_adjustment"
            ),
        )

    def credit_dozen_pcs(self, product_id: int, dozen: int, pcs: int) -> Product | None:
        return self.adjust_dozen_pcs(product_id, dozen, pcs, StockDirection.CREDIT)

    def debit_dozen_pcs(self, product_id: int, dozen: int, pcs: int) -> Product | None:
        return self.adjust_dozen_pcs(product_id, dozen, pcs, StockDirection.DEBIT)

    def adjust_package(self, package_id: int, units: int, direction: StockDirection) -> list[dict]:
        """Apply a package-level operation to its components; returns the applied deltas."""

        def _op():
            applied = []
            for delta in self.expander.expand_package_operation(package_id, units, direction):
                result = self.ledger.apply(delta, source_type="package_adjustment", source_id=package_id)
                if result is not None:
                    applied.append(result.to_dict())
            return applied

        return self._mutate_planned(partial(self._product_keys, [package_id]), _op)

    def credit_package(self, package_id: int, units: int) -> list[dict]:
        return self.adjust_package(package_id, units, StockDirection.CREDIT)

    def debit_package(self, package_id: int, units: int) -> list[dict]:
        return self.adjust_package(package_id, units, StockDirection.DEBIT)

    def adjust_material(self, material_id: int, amount, direction: StockDirection):
        return self._mutate(
            {(RAW_MATERIALS, material_id)},
            lambda: self.ledger.apply_material_delta(
                material_id, amount, direction, source_type="manual_adjustment"
            ),
        )

    # =========================================================================
    # AVAILABILITY
    # =========================================================================

    def piece_stock(self, product_id: int) -> int:
        return self._read(lambda: self.ledger.piece_stock(product_id))

    def stock_split(self, product_id: int) -> DozenPieces:
        return from_pieces(self.piece_stock(product_id))

    def available_packages(self, package_id: int) -> int:
        return self._read(lambda: self.expander.available_packages(package_id))

    def has_stock(self, package_id: int, requested_units: int) -> bool:
        return self._read(lambda: self.expander.has_stock(package_id, requested_units))

    def require_stock(self, package_id: int, requested_units: int) -> None:
        self._read(lambda: self.expander.require_stock(package_id, requested_units))

    def check_delivery_stock(self, items: list[dict]) -> list[dict]:
        """Shortages a delivery with these lines would run into; [] when it fits."""
        return self._read(lambda: self.expander.line_shortages(items))

    def require_delivery_stock(self, items: list[dict]) -> None:
        self._read(lambda: self.expander.require_line_stock(items))

    # =========================================================================
    # DELIVERIES / RETURNS / PRODUCTION
    # =========================================================================

    def _record_keys(self, rtype, record_id=None, *, items=None, materials=None, product_ids=()) -> set[EntityKey]:
        return self.records.entity_keys(
            rtype,
            record_id,
            product_ids=[*self._item_product_ids(items), *product_ids],
            material_ids=self._material_ids(materials),
        )

    def create_delivery(self, channel: DeliveryChannel, data: dict, items: list[dict]) -> dict:
        rtype = DELIVERY_TYPES[DeliveryChannel(channel)]
        plan = partial(self._record_keys, rtype, items=items)
        return self._mutate_planned(plan, lambda: self.records.create_delivery(channel, data, items))

    def update_delivery(self, channel: DeliveryChannel, delivery_id: int, data: dict, items: list[dict]) -> dict | None:
        rtype = DELIVERY_TYPES[DeliveryChannel(channel)]
        plan = partial(self._record_keys, rtype, delivery_id, items=items)
        return self._mutate_planned(plan, lambda: self.records.update_delivery(channel, delivery_id, data, items))

    def delete_delivery(self, channel: DeliveryChannel, delivery_id: int) -> dict | None:
        rtype = DELIVERY_TYPES[DeliveryChannel(channel)]
        plan = partial(self._record_keys, rtype, delivery_id)
        return self._mutate_planned(plan, lambda: self.records.delete_delivery(channel, delivery_id))

    def get_delivery(self, channel: DeliveryChannel, delivery_id: int) -> dict | None:
        return self.records.get(DELIVERY_TYPES[DeliveryChannel(channel)], delivery_id)

    def create_return(self, data: dict, items: list[dict]) -> dict:
        plan = partial(self._record_keys, RETURN_TYPE, items=items)
        return self._mutate_planned(plan, lambda: self.records.create_return(data, items))

    def update_return(self, return_id: int, data: dict, items: list[dict]) -> dict | None:
        plan = partial(self._record_keys, RETURN_TYPE, return_id, items=items)
        return self._mutate_planned(plan, lambda: self.records.update_return(return_id, data, items))

    def delete_return(self, return_id: int) -> dict | None:
        plan = partial(self._record_keys, RETURN_TYPE, return_id)
        return self._mutate_planned(plan, lambda: self.records.delete_return(return_id))

    def get_return(self, return_id: int) -> dict | None:
        return self.records.get(RETURN_TYPE, return_id)

    def create_production(self, data: dict, materials: list[dict]) -> dict:
        product_ids = [int(data["product_id"])] if "product_id" in data else []
        plan = partial(self._record_keys, PRODUCTION_TYPE, materials=materials, product_ids=product_ids)
        return self._mutate_planned(plan, lambda: self.records.create_production(data, materials))

    def update_production(self, production_id: int, data: dict, materials: list[dict]) -> dict | None:
        product_ids = [int(data["product_id"])] if "product_id" in data else []
        plan = partial(self._record_keys, PRODUCTION_TYPE, production_id, materials=materials, product_ids=product_ids)
        return self._mutate_planned(plan, lambda: self.records.update_production(production_id, data, materials))

    def delete_production(self, production_id: int) -> dict | None:
        plan = partial(self._record_keys, PRODUCTION_TYPE, production_id)
        return self._mutate_planned(plan, lambda: self.records.delete_production(production_id))

    def get_production(self, production_id: int) -> dict | None:
        return self.records.get(PRODUCTION_TYPE, production_id)

    # =========================================================================
    # RECIPES
    # =========================================================================

    def get_recipe_lines(self, product_id: int) -> list[ResolvedLine]:
        return self._read(lambda: self.recipes.get_recipe_lines(product_id))

    def material_cost(self, product_id: int) -> MaterialCost:
        return self._read(lambda: self.recipes.material_cost(product_id))

    def upsert_recipe_line(self, product_id: int, material_id: int, quantity_needed) -> dict:
        return self.store.atomic(lambda: self.recipes.upsert_recipe_line(product_id, material_id, quantity_needed))

    def replace_all_lines(self, product_id: int, new_lines: list[dict]) -> list[dict]:
        return self.store.atomic(lambda: self.recipes.replace_all_lines(product_id, new_lines))

    def delete_recipe_line(self, line_id: int) -> dict:
        return self.store.atomic(lambda: self.recipes.delete_recipe_line(line_id))

    # =========================================================================
    # COSTING
    # =========================================================================

    def preview_hpp(self, product_id: int, overhead_cost, target_margin_pct, tax_pct):
        return self._read(lambda: self.hpp.compute_hpp(product_id, overhead_cost, target_margin_pct, tax_pct))

    def compute_and_store_hpp(self, product_id: int, overhead_cost, target_margin_pct, tax_pct) -> dict:
        return self.store.atomic(
            lambda: self.hpp.compute_and_store(product_id, overhead_cost, target_margin_pct, tax_pct)
        )

    def get_hpp(self, product_id: int) -> dict | None:
        return self.hpp.get_hpp(product_id)

    def list_hpp(self) -> list[dict]:
        return self.hpp.list_hpp()

    def delete_hpp(self, product_id: int) -> dict:
        return self.store.atomic(lambda: self.hpp.delete_hpp(product_id))

    # =========================================================================
    # PRICING (presentation)
    # =========================================================================

    def price_for(self, product_id: int, *, price_area_id: int | None = None, markup_pct=0):
        product = self.ledger.require_product(product_id)
        return product_price(product, price_area_id=price_area_id, markup_pct=markup_pct, unit=self.price_unit)

    def delivery_total(self, items: list[dict], discount_pct=0, shipping_cost=0):
        return delivery_total(items, discount_pct, shipping_cost, unit=self.total_unit)

    # =========================================================================
    # REDUCTIONS
    # =========================================================================

    def record_reduction(self, product_id: int, amount, reason: str, notes: str = "") -> StockReduction | None:
        return self._mutate_planned(
            partial(self._product_keys, [product_id]),
            lambda: self.reductions.record_reduction(product_id, amount, reason, notes),
        )

    def get_reductions(self, product_id: int) -> list[StockReduction]:
        return self.reductions.get_reductions(product_id)

    def delete_reduction(self, reduction_id: int) -> StockReduction:
        return self.store.atomic(lambda: self.reductions.delete_reduction(reduction_id))

    # =========================================================================
    # REPORTING
    # =========================================================================

    def stock_overview(self) -> list[dict]:
        return self._read(self.reporter.stock_overview)

    def low_stock_materials(self) -> list[dict]:
        return self.reporter.low_stock_materials()

    def dashboard_stats(self) -> dict:
        return self._read(self.reporter.dashboard_stats)

    def movements_for(self, entity_type: EntityType, entity_id: int, *, since=None, limit: int = 200) -> list[dict]:
        return self.journal.list_for(EntityType(entity_type), entity_id, since=since, limit=limit)
