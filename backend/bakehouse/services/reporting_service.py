# Overview: Service-layer operations for reporting; stock overview, low-stock lists and dashboard figures.

from __future__ import annotations

from ..models import (
    HPP,
    INDIVIDUAL_DELIVERIES,
    PRODUCTS,
    RAW_MATERIALS,
    RETURNS,
    STORE_DELIVERIES,
    Product,
    RawMaterial,
    RecordStatus,
)
from .package_service import PackageExpander
from .quantity import to_pieces


def _is_low(stock: int, minimum: int) -> bool:
    # Out-of-stock products are reported separately from "running low"
    return 0 < stock <= minimum


class StockReporter:
    def __init__(self, store, expander: PackageExpander):
        self.store = store
        self.expander = expander

    def stock_overview(self) -> list[dict]:
        hpp_by_product = {h["product_id"]: h for h in self.store.get_all(HPP)}
        rows = []
        for record in self.store.get_all(PRODUCTS):
            product = Product.from_dict(record)
            hpp = hpp_by_product.get(product.id)
            row = {
                "id": product.id,
                "name": product.name,
                "product_type": product.kind.value,
                "minimum_stock": product.minimum_stock,
                "hpp_price": hpp["final_selling_price"] if hpp else None,
            }
            if product.is_package:
                row.update({
                    "stock": self.expander.available_packages(product.id),
                    "stock_dozen": None,
                    "stock_pcs": None,
                    "low_stock": False,
                })
            else:
                total = to_pieces(product.stock_dozen, product.stock_pcs)
                row.update({
                    "stock": total,
                    "stock_dozen": product.stock_dozen,
                    "stock_pcs": product.stock_pcs,
                    "low_stock": _is_low(total, product.minimum_stock),
                })
            rows.append(row)
        return rows

    def low_stock_materials(self) -> list[dict]:
        materials = [RawMaterial.from_dict(m) for m in self.store.get_all(RAW_MATERIALS)]
        return [m.to_dict() for m in materials if m.stock_quantity <= m.minimum_stock]

    def dashboard_stats(self) -> dict:
        deliveries = self.store.get_all(STORE_DELIVERIES) + self.store.get_all(INDIVIDUAL_DELIVERIES)
        completed = [d for d in deliveries if d.get("status") == RecordStatus.COMPLETED.value]
        pending = [d for d in deliveries if d.get("status") == RecordStatus.PENDING.value]
        low_stock = [r for r in self.stock_overview() if r["product_type"] == "single" and r["low_stock"]]

        return {
            "total_deliveries": len(deliveries),
            "total_revenue": sum(float(d.get("total_amount") or 0) for d in completed),
            "pending_deliveries": len(pending),
            "completed_deliveries": len(completed),
            "total_returns": len(self.store.get_all(RETURNS)),
            "low_stock_products": len(low_stock),
        }
