# Overview: Pytest coverage for recipe (bill-of-materials) resolution and the HPP costing pipeline.

from decimal import Decimal

import pytest

from bakehouse.models import HPP, RECIPES
from bakehouse.services.errors import InvalidQuantityError, NotFoundError
from bakehouse.services.hpp_service import price_from_cost

from conftest import BOLU_PANDAN, GULA, ROTI_COKLAT, TELUR, TEPUNG


class TestRecipeResolver:
    def test_lines_carry_unit_and_line_cost(self, engine):
        lines = {line.raw_material_id: line for line in engine.get_recipe_lines(BOLU_PANDAN)}
        assert set(lines) == {TEPUNG, GULA, TELUR}
        assert lines[TEPUNG].unit_cost == Decimal(12000)
        assert lines[TEPUNG].line_cost == Decimal(6000)
        assert lines[GULA].line_cost == Decimal(3750)
        assert lines[TELUR].line_cost == Decimal(8000)

    def test_material_cost_is_sum_of_lines(self, engine):
        cost = engine.material_cost(BOLU_PANDAN)
        assert cost.total == Decimal(17750)
        assert cost.missing_material_ids == []

    def test_product_without_recipe_costs_nothing(self, engine):
        assert engine.material_cost(ROTI_COKLAT).total == 0

    def test_upsert_existing_pair_updates_in_place(self, engine, store):
        line = engine.upsert_recipe_line(BOLU_PANDAN, TEPUNG, 0.75)
        assert line["id"] == 1
        assert len([r for r in store.get_all(RECIPES) if r["product_id"] == BOLU_PANDAN]) == 3
        assert engine.material_cost(BOLU_PANDAN).total == Decimal(20750)

    def test_upsert_new_pair_inserts(self, engine):
        line = engine.upsert_recipe_line(ROTI_COKLAT, TEPUNG, 0.1)
        assert line["id"] == 4
        assert engine.material_cost(ROTI_COKLAT).total == Decimal(1200)

    def test_replace_all_lines(self, engine, store):
        added = engine.replace_all_lines(BOLU_PANDAN, [
            {"raw_material_id": TEPUNG, "quantity_needed": 1},
            {"raw_material_id": GULA, "recipe_quantity": 2},
        ])
        assert len(added) == 2
        assert len([r for r in store.get_all(RECIPES) if r["product_id"] == BOLU_PANDAN]) == 2
        assert engine.material_cost(BOLU_PANDAN).total == Decimal(42000)

    def test_replace_leaves_other_products_alone(self, engine, store):
        engine.upsert_recipe_line(ROTI_COKLAT, TELUR, 1)
        engine.replace_all_lines(BOLU_PANDAN, [])
        remaining = store.get_all(RECIPES)
        assert [r["product_id"] for r in remaining] == [ROTI_COKLAT]

    def test_missing_material_flagged_not_dropped(self, engine):
        engine.upsert_recipe_line(BOLU_PANDAN, 99, 2)
        lines = engine.get_recipe_lines(BOLU_PANDAN)
        missing = [line for line in lines if line.material_missing]
        assert len(lines) == 4
        assert missing[0].raw_material_id == 99
        assert missing[0].line_cost == 0

        cost = engine.material_cost(BOLU_PANDAN)
        assert cost.total == Decimal(17750)
        assert cost.missing_material_ids == [99]

    def test_delete_line(self, engine):
        removed = engine.delete_recipe_line(3)
        assert removed["raw_material_id"] == TELUR
        assert engine.material_cost(BOLU_PANDAN).total == Decimal(9750)

    def test_delete_unknown_line(self, engine):
        with pytest.raises(NotFoundError):
            engine.delete_recipe_line(999)

    def test_negative_quantity_rejected(self, engine):
        with pytest.raises(InvalidQuantityError):
            engine.upsert_recipe_line(BOLU_PANDAN, TEPUNG, -1)
        with pytest.raises(InvalidQuantityError):
            engine.replace_all_lines(BOLU_PANDAN, [{"raw_material_id": TEPUNG, "quantity_needed": -2}])


    def test_unknown_product_rejected(self, engine, store):
        with pytest.raises(NotFoundError):
            engine.upsert_recipe_line(999, TEPUNG, 1)
        with pytest.raises(NotFoundError):
            engine.replace_all_lines(999, [{"raw_material_id": TEPUNG, "quantity_needed": 1}])
        assert all(r["product_id"] != 999 for r in store.get_all(RECIPES))

class TestHPPPipeline:
    def test_reference_arithmetic(self):
        result = price_from_cost(1, 10000, 2000, 20, 10)
        assert result.total_cost == Decimal(12000)
        assert result.minimum_selling_price == Decimal(12000)
        assert result.suggested_selling_price == Decimal(14400)
        assert result.final_selling_price == Decimal(15840)

    def test_no_rounding_inside_pipeline(self):
        result = price_from_cost(1, Decimal("1234.5"), 0, 10, 0)
        assert result.suggested_selling_price == Decimal("1357.95")

    def test_compute_and_store(self, engine):
        # 5 telur at 2000 each = 10000 material cost
        engine.replace_all_lines(ROTI_COKLAT, [{"raw_material_id": TELUR, "quantity_needed": 5}])

        row = engine.compute_and_store_hpp(ROTI_COKLAT, 2000, 20, 10)
        assert row["material_cost"] == 10000
        assert row["total_cost"] == 12000
        assert row["minimum_selling_price"] == 12000
        assert row["suggested_selling_price"] == 14400
        assert row["final_selling_price"] == 15840
        assert row["overhead_cost"] == 2000
        assert row["created_at"]
        assert engine.get_hpp(ROTI_COKLAT) == row

    def test_recompute_replaces_row(self, engine):
        engine.replace_all_lines(ROTI_COKLAT, [{"raw_material_id": TELUR, "quantity_needed": 5}])
        first = engine.compute_and_store_hpp(ROTI_COKLAT, 2000, 20, 10)
        second = engine.compute_and_store_hpp(ROTI_COKLAT, 0, 0, 0)

        assert len(engine.list_hpp()) == 1
        assert second["id"] == first["id"]
        assert second["total_cost"] == 10000
        assert second["updated_at"]

    def test_preview_stores_nothing(self, engine, store):
        result = engine.preview_hpp(BOLU_PANDAN, 250, 30, 11)
        assert result.material_cost == Decimal(17750)
        assert store.get_all(HPP) == []

    def test_missing_materials_recorded_on_row(self, engine):
        engine.upsert_recipe_line(BOLU_PANDAN, 99, 1)
        row = engine.compute_and_store_hpp(BOLU_PANDAN, 0, 0, 0)
        assert row["material_cost_flags"] == [99]

    def test_delete_hpp(self, engine):
        engine.compute_and_store_hpp(BOLU_PANDAN, 0, 10, 0)
        engine.delete_hpp(BOLU_PANDAN)
        assert engine.get_hpp(BOLU_PANDAN) is None
        with pytest.raises(NotFoundError):
            engine.delete_hpp(BOLU_PANDAN)

    def test_negative_inputs_rejected(self, engine):
        with pytest.raises(InvalidQuantityError):
            engine.compute_and_store_hpp(BOLU_PANDAN, -1, 20, 10)
        with pytest.raises(InvalidQuantityError):
            engine.preview_hpp(BOLU_PANDAN, 0, -20, 10)

    def test_unknown_product_not_costed(self, engine, store):
        with pytest.raises(NotFoundError):
            engine.compute_and_store_hpp(999, 2000, 20, 10)
        with pytest.raises(NotFoundError):
            engine.preview_hpp(999, 0, 0, 0)
        assert store.get_all(HPP) == []
