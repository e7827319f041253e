from .stored_collection import StoredCollection
from .records import (
    PRODUCTS, RAW_MATERIALS, RECIPES, STORE_DELIVERIES, INDIVIDUAL_DELIVERIES,
    RETURNS, PRODUCTIONS, STOCK_REDUCTIONS, HPP, STOCK_MOVEMENTS,
    ProductKind, RecordStatus, StockDirection, DeliveryChannel, EntityType,
    AreaPrice, PackageItem, Product, RawMaterial, RecipeLine,
    StockDelta, LineItem, DeliveryRecord, ReturnRecord, MaterialUsage, ProductionRecord,
    StockReduction, HPPResult,
)

__all__ = [
    'StoredCollection',
    'PRODUCTS', 'RAW_MATERIALS', 'RECIPES', 'STORE_DELIVERIES', 'INDIVIDUAL_DELIVERIES',
    'RETURNS', 'PRODUCTIONS', 'STOCK_REDUCTIONS', 'HPP', 'STOCK_MOVEMENTS',
    'ProductKind', 'RecordStatus', 'StockDirection', 'DeliveryChannel', 'EntityType',
    'AreaPrice', 'PackageItem', 'Product', 'RawMaterial', 'RecipeLine',
    'StockDelta', 'LineItem', 'DeliveryRecord', 'ReturnRecord', 'MaterialUsage', 'ProductionRecord',
    'StockReduction', 'HPPResult',
]
