# Overview: Caller-level price presentation; area prices, markup and rounding to a currency granularity.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..models import Product
from ..validation import require_percentage, require_quantity
from .quantity import to_decimal, to_float

DEFAULT_PRICE_UNIT = 100
DEFAULT_TOTAL_UNIT = 1000


def round_price(amount, unit: int = DEFAULT_PRICE_UNIT, enabled: bool = True):
    """
    Round half-up to the nearest multiple of `unit`.

    Identity when disabled, so callers can pass a product's rounding_enabled
    straight through.
    """
    if not enabled or not unit:
        return amount
    value = to_decimal(amount)
    step = Decimal(unit)
    rounded = (value / step).quantize(Decimal(1), rounding=ROUND_HALF_UP) * step
    return to_float(rounded)


def apply_markup(price, markup_pct) -> float:
    markup = to_decimal(require_percentage(markup_pct, "markup_pct"))
    return to_float(to_decimal(price) * (1 + markup / Decimal(100)))


def resolve_unit_price(product: Product, price_area_id: int | None = None) -> float:
    """Area-specific price when the product lists one for that area, else the base price."""
    if price_area_id is not None:
        for area_price in product.area_prices:
            if area_price.area_id == int(price_area_id):
                return area_price.price
    return product.base_price


def product_price(
    product: Product,
    *,
    price_area_id: int | None = None,
    markup_pct=0,
    unit: int = DEFAULT_PRICE_UNIT,
):
    base = resolve_unit_price(product, price_area_id)
    return round_price(apply_markup(base, markup_pct), unit, enabled=product.rounding_enabled)


def delivery_total(items: list[dict], discount_pct=0, shipping_cost=0, unit: int = DEFAULT_TOTAL_UNIT):
    """
    sum(quantity * unit_price) less discount %, plus shipping, rounded to `unit`.
    """
    subtotal = sum(
        (to_decimal(require_quantity(i.get("quantity", 0), "quantity", integer=True))
         * to_decimal(require_quantity(i.get("unit_price", 0), "unit_price"))
         for i in items),
        Decimal(0),
    )
    discount = subtotal * to_decimal(require_percentage(discount_pct, "discount_pct")) / Decimal(100)
    shipping = to_decimal(require_quantity(shipping_cost, "shipping_cost"))
    return round_price(subtotal - discount + shipping, unit)
