# Overview: Pytest coverage for the SQL-backed collection store, the app factory and the CLI.

import pytest
from sqlalchemy.orm.exc import StaleDataError

from bakehouse import build_engine, create_app
from bakehouse.extensions import db
from bakehouse.models import PRODUCTS, STORE_DELIVERIES, DeliveryChannel, StoredCollection
from bakehouse.services.collection_store import SqlCollectionStore
from bakehouse.services.stock_ledger import LookupMode

from conftest import BOLU_PANDAN, PAKET_HEMAT, ROTI_COKLAT, ROTI_KEJU, make_catalog, pieces


@pytest.fixture(scope='function')
def sql_store(app):
    store = SqlCollectionStore()
    for name, records in make_catalog().items():
        store.set_all(name, records)
    return store


class TestSqlCollectionStore:
    def test_round_trip(self, app):
        store = SqlCollectionStore()
        assert store.get_all("nothing_here") == []
        store.set_all("things", [{"id": 1, "name": "a"}, {"id": 4, "name": "b"}])
        assert store.get_all("things") == [{"id": 1, "name": "a"}, {"id": 4, "name": "b"}]
        assert store.next_id("things") == 5
        assert store.next_id("nothing_here") == 1

    def test_returned_lists_are_copies(self, app):
        store = SqlCollectionStore()
        store.set_all("things", [{"id": 1}])
        rows = store.get_all("things")
        rows.append({"id": 2})
        assert store.get_all("things") == [{"id": 1}]

    def test_version_increments_on_write(self, app):
        store = SqlCollectionStore()
        store.set_all("things", [])
        store.set_all("things", [{"id": 1}])
        row = db.session.query(StoredCollection).filter_by(name="things").one()
        assert row.version_id == 2
        assert row.to_dict()["record_count"] == 1

    def test_transaction_rolls_back(self, app):
        store = SqlCollectionStore()
        store.set_all("things", [{"id": 1}])

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.set_all("things", [{"id": 1}, {"id": 2}])
                store.set_all("others", [{"id": 9}])
                raise RuntimeError("boom")

        assert store.get_all("things") == [{"id": 1}]
        assert store.get_all("others") == []

    def test_nested_transaction_joins_outer(self, app):
        store = SqlCollectionStore()
        store.set_all("things", [])

        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.set_all("things", [{"id": 1}])
                raise RuntimeError("outer fails after inner finished")

        assert store.get_all("things") == []

    def test_atomic_retries_stale_data(self, app, monkeypatch):
        monkeypatch.setattr("bakehouse.services.concurrency.time.sleep", lambda _: None)
        store = SqlCollectionStore()
        calls = []

        def op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("concurrent update")
            store.set_all("things", [{"id": 1}])
            return "ok"

        assert store.atomic(op) == "ok"
        assert len(calls) == 2
        assert store.get_all("things") == [{"id": 1}]

    def test_collection_names(self, app):
        store = SqlCollectionStore()
        store.set_all("b", [])
        store.set_all("a", [])
        assert store.collection_names() == ["a", "b"]


class TestEngineOverSql:
    def test_delivery_round_trip(self, app, sql_store):
        engine = build_engine(app)
        delivery = engine.create_delivery(DeliveryChannel.STORE, {}, [{"product_id": PAKET_HEMAT, "quantity": 2}])
        assert pieces(engine, ROTI_COKLAT) == 6
        assert pieces(engine, ROTI_KEJU) == 3
        assert len(sql_store.get_all(STORE_DELIVERIES)) == 1

        engine.delete_delivery(DeliveryChannel.STORE, delivery["id"])
        assert pieces(engine, ROTI_COKLAT) == 10
        assert pieces(engine, ROTI_KEJU) == 9

    def test_failed_call_rolls_back(self, app, sql_store):
        engine = build_engine(app)
        with pytest.raises(Exception):
            engine.create_production(
                {"product_id": BOLU_PANDAN, "quantity_produced": 5},
                [{"raw_material_id": 999, "quantity_used": 1}],
            )
        assert pieces(engine, BOLU_PANDAN) == 30
        assert sql_store.get_all("factory_productions") == []

    def test_lookup_mode_from_config(self):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'STOCK_LOOKUP_MODE': 'compat',
        })
        with app.app_context():
            assert build_engine().lookup_mode is LookupMode.COMPAT


class TestCli:
    def test_init_db_is_idempotent(self, app):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["stock", "init-db"])
        assert first.exit_code == 0
        assert "PASS Created collections" in first.output
        assert PRODUCTS in SqlCollectionStore().collection_names()

        second = runner.invoke(args=["stock", "init-db"])
        assert "already present" in second.output

    def test_show_and_reduce(self, app, sql_store):
        runner = app.test_cli_runner()
        shown = runner.invoke(args=["stock", "show", str(ROTI_COKLAT)])
        assert shown.exit_code == 0
        assert "0 dozen + 10 pcs" in shown.output

        reduced = runner.invoke(args=["stock", "reduce", str(ROTI_COKLAT), "4", "--reason", "damaged"])
        assert reduced.exit_code == 0
        assert "PASS Reduction #1" in reduced.output

        shown = runner.invoke(args=["stock", "show", str(ROTI_COKLAT)])
        assert "0 dozen + 6 pcs" in shown.output
        assert "stock_reduction" in shown.output

    def test_show_package(self, app, sql_store):
        result = app.test_cli_runner().invoke(args=["stock", "show", str(PAKET_HEMAT)])
        assert "Available packages: 3" in result.output

    def test_unknown_product_fails(self, app, sql_store):
        result = app.test_cli_runner().invoke(args=["stock", "show", "999"])
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_hpp_compute(self, app, sql_store):
        runner = app.test_cli_runner()
        preview = runner.invoke(args=["hpp", "compute", str(BOLU_PANDAN), "--margin", "20", "--dry-run"])
        assert preview.exit_code == 0
        assert "PREVIEW" in preview.output
        assert build_engine(app).get_hpp(BOLU_PANDAN) is None

        stored = runner.invoke(args=["hpp", "compute", str(BOLU_PANDAN), "--overhead", "2250", "--margin", "20"])
        assert stored.exit_code == 0
        assert "24,000.00" in stored.output
        assert build_engine(app).get_hpp(BOLU_PANDAN)["final_selling_price"] == 24000

    def test_reports(self, app, sql_store):
        runner = app.test_cli_runner()
        dashboard = runner.invoke(args=["report", "dashboard"])
        assert "Low-stock products:  1" in dashboard.output

        low = runner.invoke(args=["report", "low-stock"])
        assert "Roti Keju" in low.output
        assert "Gula Pasir" in low.output
