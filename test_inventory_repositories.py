"""
Pytest Suite for Inventory and Repositories
===========================================

Covers:
- Low stock detection and per-supplier reorder drafts
- Stock adjustments never going below zero
- In-memory ledger and recipe repositories feeding the engine
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add current directory to path
sys.path.insert(0, str(Path(__file__).parent))

import inventory_module as inv
import ledger_module as lm
import menu_engine as me
from costing_module import Ingredient, RecipeCard, recipes_to_menu_frame
from repositories import InMemoryLedgerRepository, InMemoryRecipeRepository


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def stock():
    return [
        inv.InventoryItem("i1", "Paneer", current_stock=2, par_level=10, unit="kg", cost_per_unit=380, supplier="Sharma Dairy"),
        inv.InventoryItem("i2", "Milk", current_stock=40, par_level=30, unit="l", cost_per_unit=62, supplier="Sharma Dairy"),
        inv.InventoryItem("i3", "Tomato", current_stock=5, par_level=5, unit="kg", cost_per_unit=40, supplier="Metro Fresh"),
        inv.InventoryItem("i4", "Onion", current_stock=1, par_level=8, unit="kg", cost_per_unit=35, supplier="Metro Fresh"),
        inv.InventoryItem("i5", "Butter", current_stock=0, par_level=4, unit="kg", cost_per_unit=520, supplier="Sharma Dairy"),
    ]


@pytest.fixture
def ledger_repo():
    return InMemoryLedgerRepository()


@pytest.fixture
def recipe_repo():
    return InMemoryRecipeRepository()


# =============================================================================
# INVENTORY
# =============================================================================

class TestInventory:
    """Stock levels against par"""

    def test_low_stock_is_strictly_below_par(self, stock):
        low = inv.find_low_stock(stock)
        assert [i.name for i in low] == ["Paneer", "Onion", "Butter"]

    def test_low_stock_for_one_supplier(self, stock):
        low = inv.find_low_stock(stock, supplier="Metro Fresh")
        assert [i.name for i in low] == ["Onion"]

    def test_reorder_drafts_per_supplier(self, stock):
        drafts = inv.draft_reorders(stock)
        assert [d.supplier for d in drafts] == ["Metro Fresh", "Sharma Dairy"]
        dairy = drafts[1]
        assert [(line.name, line.qty) for line in dairy.lines] == [("Paneer", 8), ("Butter", 4)]
        assert dairy.total_estimated_cost == pytest.approx(8 * 380 + 4 * 520)
        assert dairy.status == "draft"

    def test_no_draft_when_nothing_low(self, stock):
        assert inv.draft_reorders(stock, supplier="Nobody") == []

    def test_adjust_stock_never_negative(self, stock):
        onion = stock[3]
        assert inv.adjust_stock(onion, -5).current_stock == 0
        assert inv.adjust_stock(onion, 3).current_stock == 4
        # Original is untouched
        assert onion.current_stock == 1

    def test_inventory_from_frame(self):
        df = pd.DataFrame({
            "name": ["Rice", "Sugar"],
            "current_stock": [3, 12],
            "par_level": [10, 5],
            "supplier": ["Metro Fresh", None],
        })
        items = inv.inventory_from_frame(df)
        assert [i.id for i in items] == ["inv_1", "inv_2"]
        assert items[1].supplier == ""
        assert items[0].is_low_stock

    def test_inventory_from_frame_missing_columns(self):
        with pytest.raises(ValueError, match="missing required columns"):
            inv.inventory_from_frame(pd.DataFrame({"name": ["Rice"]}))

    def test_reorders_to_frame(self, stock):
        df = inv.reorders_to_frame(inv.draft_reorders(stock))
        assert len(df) == 3
        assert df["estimated_cost"].sum() == pytest.approx(8 * 380 + 7 * 35 + 4 * 520)

    def test_validate_inventory_item(self):
        issues = inv.validate_inventory_item(inv.InventoryItem("x", "Bad", current_stock=-1, par_level=2))
        assert [i.field for i in issues] == ["current_stock"]


# =============================================================================
# REPOSITORIES
# =============================================================================

class TestLedgerRepository:
    """Per-user ledgers feeding aggregate()"""

    def test_append_and_aggregate(self, ledger_repo):
        ledger_repo.append("u1", lm.SalesEntry("s1", "2024-04-01", 50000.0))
        ledger_repo.append("u1", lm.PurchaseEntry("p1", "2024-04-01", "Metro", 15000.0))
        ledger_repo.append("u2", lm.SalesEntry("s9", "2024-04-01", 999.0))

        snap = lm.aggregate(ledger_repo.all_entries("u1"))
        assert snap.total_inflow == 50000
        assert snap.food_cost_pct == pytest.approx(30)

    def test_newest_first(self, ledger_repo):
        ledger_repo.append("u1", lm.SalesEntry("s1", "2024-04-01", 1.0))
        ledger_repo.append("u1", lm.SalesEntry("s2", "2024-04-02", 2.0))
        assert [e.id for e in ledger_repo.list("u1", "sales")] == ["s2", "s1"]

    def test_delete(self, ledger_repo):
        ledger_repo.append("u1", lm.ExpenseEntry("e1", "2024-04-01", "Rent", 100.0))
        assert ledger_repo.delete("u1", "expense", "e1") is True
        assert ledger_repo.delete("u1", "expense", "e1") is False
        assert ledger_repo.list("u1", "expense") == []

    def test_unknown_kind(self, ledger_repo):
        with pytest.raises(ValueError, match="Unknown ledger kind"):
            ledger_repo.list("u1", "payroll")

    def test_users_are_isolated(self, ledger_repo):
        ledger_repo.append("u1", lm.SalesEntry("s1", "2024-04-01", 1.0))
        assert all(entries == [] for entries in ledger_repo.all_entries("u2").values())


class TestRecipeRepository:
    """Saved recipes and the essential toggle"""

    def test_save_get_list(self, recipe_repo):
        recipe = RecipeCard("SKU-1", "Dal", [Ingredient("Lentils", 0.1, 120.0)], current_price=200)
        recipe_repo.save("u1", recipe)
        assert recipe_repo.get("u1", "SKU-1") is recipe
        assert recipe_repo.get("u2", "SKU-1") is None
        assert recipe_repo.list("u1") == [recipe]

    def test_save_replaces_same_sku(self, recipe_repo):
        recipe_repo.save("u1", RecipeCard("SKU-1", "Dal", current_price=200))
        recipe_repo.save("u1", RecipeCard("SKU-1", "Dal Tadka", current_price=240))
        assert [r.name for r in recipe_repo.list("u1")] == ["Dal Tadka"]

    def test_toggle_essential(self, recipe_repo):
        recipe_repo.save("u1", RecipeCard("SKU-1", "Dal", current_price=200))
        assert recipe_repo.toggle_essential("u1", "SKU-1").is_essential is True
        assert recipe_repo.toggle_essential("u1", "SKU-1").is_essential is False

    def test_toggle_unknown(self, recipe_repo):
        with pytest.raises(KeyError):
            recipe_repo.toggle_essential("u1", "SKU-404")

    def test_recipes_feed_engineering_table(self, recipe_repo):
        recipe_repo.save("u1", RecipeCard("SKU-1", "Dal", [Ingredient("Lentils", 0.1, 120.0)], current_price=200))
        recipe_repo.save("u1", RecipeCard("SKU-2", "Rice", [Ingredient("Rice", 0.15, 110.0)], current_price=90))
        menu = recipes_to_menu_frame(recipe_repo.list("u1"))
        sales = pd.DataFrame({"sku_id": ["SKU-1"] * 100 + ["SKU-2"] * 5, "qty": [1] * 105})
        df = me.build_menu_engineering(menu, sales)
        assert dict(zip(df["sku_id"], df["category_label"])) == {"SKU-1": "STAR", "SKU-2": "PUZZLE"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
