"""
Pytest fixtures for bakehouse backend tests.

Provides a seeded in-memory catalog, engines over the memory store (strict
and compat lookup modes), and a Flask app with in-memory SQLite for the SQL
collection store.
"""

import pytest

from bakehouse import create_app
from bakehouse.engine import InventoryEngine
from bakehouse.extensions import db
from bakehouse.models import PRODUCTS, RAW_MATERIALS, RECIPES
from bakehouse.services.collection_store import MemoryCollectionStore
from bakehouse.services.quantity import to_pieces
from bakehouse.services.stock_ledger import LookupMode


# Product ids used across the suite
ROTI_COKLAT = 1      # single, 10 pcs
ROTI_KEJU = 2        # single, 9 pcs (low: minimum 12)
BOLU_PANDAN = 3      # single, 2 dozen + 6 pcs, area prices, rounding on
PAKET_HEMAT = 4      # package: 2 x ROTI_COKLAT + 3 x ROTI_KEJU
PAKET_KOSONG = 5     # package with an empty bill-of-materials

TEPUNG = 1           # 20 kg @ 12000
GULA = 2             # 3 kg @ 15000 (low: minimum 5)
TELUR = 3            # 100 butir @ 2000


def make_catalog() -> dict:
    """Fresh copy of the seed collections."""
    return {
        PRODUCTS: [
            {
                "id": ROTI_COKLAT, "name": "Roti Coklat", "product_type": "single",
                "stock_dozen": 0, "stock_pcs": 10, "minimum_stock": 4,
                "base_price": 5000, "rounding_enabled": False,
            },
            {
                "id": ROTI_KEJU, "name": "Roti Keju", "product_type": "single",
                "stock_dozen": 0, "stock_pcs": 9, "minimum_stock": 12,
                "base_price": 6000, "rounding_enabled": False,
            },
            {
                "id": BOLU_PANDAN, "name": "Bolu Pandan", "product_type": "single",
                "stock_dozen": 2, "stock_pcs": 6, "minimum_stock": 6,
                "base_price": 30000, "rounding_enabled": True,
                "area_prices": [{"price_area_id": 1, "price": 32500}],
                "packaging": "box",
            },
            {
                "id": PAKET_HEMAT, "name": "Paket Hemat", "product_type": "package",
                "base_price": 25000,
                "package_items": [
                    {"product_id": ROTI_COKLAT, "quantity": 2},
                    {"product_id": ROTI_KEJU, "quantity": 3},
                ],
            },
            {
                "id": PAKET_KOSONG, "name": "Paket Kosong", "product_type": "package",
                "package_items": [],
            },
        ],
        RAW_MATERIALS: [
            {"id": TEPUNG, "name": "Tepung Terigu", "unit": "kg", "stock_quantity": 20,
             "unit_cost": 12000, "minimum_stock": 5},
            {"id": GULA, "name": "Gula Pasir", "unit": "kg", "stock_quantity": 3,
             "unit_cost": 15000, "minimum_stock": 5},
            {"id": TELUR, "name": "Telur", "unit": "butir", "stock_quantity": 100,
             "unit_cost": 2000, "minimum_stock": 30},
        ],
        RECIPES: [
            {"id": 1, "product_id": BOLU_PANDAN, "raw_material_id": TEPUNG, "quantity_needed": 0.5},
            {"id": 2, "product_id": BOLU_PANDAN, "raw_material_id": GULA, "quantity_needed": 0.25},
            {"id": 3, "product_id": BOLU_PANDAN, "raw_material_id": TELUR, "quantity_needed": 4},
        ],
    }


def pieces(engine, product_id: int) -> int:
    """Total pieces straight from the stored record."""
    record = next(p for p in engine.store.get_all(PRODUCTS) if p["id"] == product_id)
    return to_pieces(record["stock_dozen"], record["stock_pcs"])


def material_stock(engine, material_id: int):
    record = next(m for m in engine.store.get_all(RAW_MATERIALS) if m["id"] == material_id)
    return record["stock_quantity"]


@pytest.fixture(scope='function')
def store():
    """Memory collection store seeded with the catalog."""
    return MemoryCollectionStore(make_catalog())


@pytest.fixture(scope='function')
def engine(store):
    """Strict-mode engine (unknown ids raise NotFoundError)."""
    return InventoryEngine(store)


@pytest.fixture(scope='function')
def compat_engine(store):
    """Compat-mode engine (unknown ids are skipped)."""
    return InventoryEngine(store, lookup_mode=LookupMode.COMPAT)


@pytest.fixture(scope='function')
def app():
    """Create application for testing, backed by in-memory SQLite."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
