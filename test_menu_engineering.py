"""
Comprehensive Pytest Suite for Menu Engineering
===============================================

Tests cover:
- Popularity / profitability scoring and clamping
- Quadrant classification, including the threshold tie-break
- Vectorised table scoring agreeing with the scalar functions
- Quadrant summaries, filters and scenarios
- Client file loading and validation
"""

import pytest
import dataclasses
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile
import sys

# Add current directory to path
sys.path.insert(0, str(Path(__file__).parent))

import menu_engine as me
from costing_module import Ingredient, RecipeCard
from engine_errors import ErrorKind


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def basic_menu():
    """Four items, one per quadrant at the default config"""
    return pd.DataFrame({
        "sku_id": ["S1", "S2", "S3", "S4"],
        "item_name": ["Butter Chicken", "Masala Chai", "Saffron Biryani", "Veg Cutlet"],
        "category": ["main", "beverage", "main", "snack"],
        "current_price": [400.0, 60.0, 900.0, 120.0],
        "food_cost_per_serving": [100.0, 40.0, 200.0, 90.0],
        "is_essential": [True, False, False, False],
    })


@pytest.fixture
def basic_sales():
    """Butter Chicken 120, Chai 200, Biryani 10, Cutlet 20"""
    skus = ["S1"] * 120 + ["S2"] * 200 + ["S3"] * 10 + ["S4"] * 20
    return pd.DataFrame({
        "sku_id": skus,
        "qty": [1] * len(skus),
        "order_datetime": pd.date_range("2024-04-01", periods=len(skus), freq="h"),
    })


@pytest.fixture
def eng_df(basic_menu, basic_sales):
    return me.build_menu_engineering(basic_menu, basic_sales)


# =============================================================================
# SCORING
# =============================================================================

class TestScoring:
    """Bounded scores against the configured ceilings"""

    @pytest.mark.parametrize("volume,expected", [
        (0, 0),
        (80, 50),
        (160, 100),
        (1000, 100),
    ])
    def test_popularity(self, volume, expected):
        assert me.score_popularity(volume, 160) == expected

    def test_popularity_never_exceeds_100(self):
        for volume in range(0, 5000, 37):
            assert me.score_popularity(volume, 160) <= 100

    def test_profitability(self):
        # margin 160 on price 400 with ratio 0.8 -> 160 / 320
        assert me.score_profitability(160, 400, 0.8) == pytest.approx(50)

    def test_profitability_clamped(self):
        assert me.score_profitability(500, 400, 0.8) == 100

    def test_profitability_negative_margin_not_floored(self):
        assert me.score_profitability(-80, 400, 0.8) == pytest.approx(-25)

    def test_zero_price_degenerate_case_preserved(self):
        """A zero price divides by 1, so any margin >= 1 scores 100"""
        assert me.score_profitability(1, 0, 0.8) == 100
        assert me.score_profitability(0.3, 0, 0.8) == pytest.approx(30)


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TestClassification:
    """Four quadrants with inclusive thresholds"""

    @pytest.mark.parametrize("pop,prof,expected", [
        (50, 50, "STAR"),
        (50, 49.999, "PLOWHORSE"),
        (49.999, 50, "PUZZLE"),
        (49.999, 49.999, "DOG"),
        (100, 100, "STAR"),
        (0, 0, "DOG"),
        (100, 0, "PLOWHORSE"),
        (0, 100, "PUZZLE"),
    ])
    def test_tie_break(self, pop, prof, expected):
        assert me.classify(pop, prof) == expected

    def test_total_and_deterministic(self):
        grid = np.linspace(0, 100, 41)
        for p in grid:
            for q in grid:
                label = me.classify(p, q)
                assert label in me.QUADRANT_LABELS
                assert me.classify(p, q) == label

    def test_custom_threshold(self):
        assert me.classify(60, 60, threshold=70) == "DOG"

    def test_item_label_is_derived(self):
        item = me.MenuEngineeringItem(
            sku_id="S1", name="Dal", current_price=200, food_cost_per_serving=50,
            sales_volume=100, popularity_score=62.5, profitability_score=93.75,
            contribution_margin=150,
        )
        assert item.category_label == "STAR"
        assert item.food_cost_pct == pytest.approx(25)

    def test_item_rejects_label_argument(self):
        with pytest.raises(TypeError):
            me.MenuEngineeringItem(
                sku_id="S1", name="Dal", current_price=200, food_cost_per_serving=50,
                sales_volume=100, popularity_score=62.5, profitability_score=93.75,
                contribution_margin=150, category_label="DOG",
            )

    def test_item_is_frozen(self):
        item = me.MenuEngineeringItem(
            sku_id="S1", name="Dal", current_price=200, food_cost_per_serving=50,
            sales_volume=100, popularity_score=90, profitability_score=90,
            contribution_margin=150,
        )
        with pytest.raises(dataclasses.FrozenInstanceError):
            item.popularity_score = 10
        with pytest.raises(dataclasses.FrozenInstanceError):
            item.category_label = "PUZZLE"
        assert item.category_label == "STAR"

    def test_replaced_item_is_reclassified(self):
        item = me.MenuEngineeringItem(
            sku_id="S1", name="Dal", current_price=200, food_cost_per_serving=50,
            sales_volume=100, popularity_score=90, profitability_score=90,
            contribution_margin=150,
        )
        slower = dataclasses.replace(item, popularity_score=10)
        assert slower.category_label == "PUZZLE"
        assert item.category_label == "STAR"


class TestScoreMenuItem:
    """Scoring one saved recipe"""

    def test_scores_recipe(self):
        recipe = RecipeCard("SKU-1", "Paneer Tikka", [Ingredient("Paneer", 0.2, 400.0)],
                            current_price=320.0, is_essential=True)
        item = me.score_menu_item(recipe, 80, ai_recommendation="Bundle with naan")
        assert item.contribution_margin == pytest.approx(240)
        assert item.popularity_score == 50
        assert item.profitability_score == pytest.approx(240 / 256 * 100)
        assert item.category_label == "STAR"
        assert item.is_essential is True
        assert item.ai_recommendation == "Bundle with naan"
        assert item.issues == []

    def test_default_price_and_missing_ai(self):
        recipe = RecipeCard("SKU-2", "House Special", [Ingredient("Rice", 0.2, 100.0)])
        item = me.score_menu_item(recipe, 10)
        assert item.current_price == 350
        assert item.ai_recommendation == ""
        assert [i.kind for i in item.issues] == [ErrorKind.MISSING_COLLABORATOR_DATA]

    def test_zero_price_flagged(self):
        recipe = RecipeCard("SKU-3", "Free Water", [Ingredient("Water", 1, 0.0)])
        config = me.CONFIG.copy()
        config["default_price"] = 0
        item = me.score_menu_item(recipe, 10, config, ai_recommendation="")
        assert any(i.kind == ErrorKind.DEGENERATE_RATIO for i in item.issues)


# =============================================================================
# ENGINEERING TABLE
# =============================================================================

class TestEngineeringTable:
    """Vectorised table vs scalar functions"""

    def test_one_item_per_quadrant(self, eng_df):
        labels = dict(zip(eng_df["sku_id"], eng_df["category_label"]))
        assert labels == {"S1": "STAR", "S2": "PLOWHORSE", "S3": "PUZZLE", "S4": "DOG"}

    def test_matches_scalar_scoring(self, eng_df):
        cfg = me.CONFIG
        for _, row in eng_df.iterrows():
            margin = row["current_price"] - row["food_cost_per_serving"]
            pop = me.score_popularity(row["sales_volume"], cfg["popularity_volume_ceiling"])
            prof = me.score_profitability(margin, row["current_price"], cfg["profitability_margin_ratio"])
            assert row["popularity_score"] == pytest.approx(pop)
            assert row["profitability_score"] == pytest.approx(prof)
            assert row["category_label"] == me.classify(pop, prof)

    def test_zero_price_matches_scalar(self, basic_menu, basic_sales):
        basic_menu.loc[3, "current_price"] = 0.0
        basic_menu.loc[3, "food_cost_per_serving"] = 0.0
        df = me.build_menu_engineering(basic_menu, basic_sales)
        row = df[df["sku_id"] == "S4"].iloc[0]
        assert row["profitability_score"] == me.score_profitability(0.0, 0.0, 0.8)
        assert row["food_cost_pct"] == 0

    def test_sorted_by_total_margin(self, eng_df):
        assert eng_df["total_margin"].is_monotonic_decreasing

    def test_unsold_items_get_zero_volume(self, basic_menu):
        df = me.build_menu_engineering(basic_menu, pd.DataFrame(columns=["sku_id", "qty"]))
        assert (df["sales_volume"] == 0).all()
        assert (df["popularity_score"] == 0).all()

    def test_empty_menu(self, basic_sales):
        df = me.build_menu_engineering(pd.DataFrame(columns=me.REQUIRED_MENU_COLUMNS), basic_sales)
        assert df.empty
        assert list(df.columns) == me.ENGINEERING_COLUMNS

    def test_items_round_trip_from_frame(self, eng_df):
        items = me.menu_items_from_frame(eng_df)
        assert [i.category_label for i in items] == eng_df["category_label"].tolist()

    def test_essential_flag_does_not_change_label(self, eng_df):
        toggled = me.toggle_essential(eng_df, "S4")
        assert bool(toggled.loc[toggled["sku_id"] == "S4", "is_essential"].iloc[0]) is True
        assert toggled["category_label"].tolist() == eng_df["category_label"].tolist()

    def test_toggle_unknown_sku(self, eng_df):
        with pytest.raises(ValueError, match="Unknown sku_id"):
            me.toggle_essential(eng_df, "NOPE")


class TestSummariesAndFilters:
    """Quadrant summary, filters and low-profit selection"""

    def test_summary_has_all_four_labels(self, eng_df):
        summary = me.summarize_quadrants(eng_df[eng_df["category_label"] == "STAR"])
        assert summary["category_label"].tolist() == me.QUADRANT_LABELS
        assert summary["item_count"].tolist() == [1, 0, 0, 0]
        assert summary.loc[0, "description"] == me.QUADRANT_DESCRIPTIONS["STAR"]

    def test_summary_on_empty_table(self):
        summary = me.summarize_quadrants(pd.DataFrame(columns=me.ENGINEERING_COLUMNS))
        assert len(summary) == 4
        assert summary["item_count"].sum() == 0

    def test_summary_totals(self, eng_df):
        summary = me.summarize_quadrants(eng_df)
        assert summary["revenue"].sum() == pytest.approx(eng_df["revenue"].sum())
        assert summary["essential_count"].sum() == 1

    def test_filter_by_label(self, eng_df):
        assert me.filter_menu_items(eng_df, "PUZZLE")["sku_id"].tolist() == ["S3"]
        assert len(me.filter_menu_items(eng_df, "ALL")) == 4

    def test_filter_essential_only(self, eng_df):
        assert me.filter_menu_items(eng_df, essential_only=True)["sku_id"].tolist() == ["S1"]

    def test_filter_unknown_label(self, eng_df):
        with pytest.raises(ValueError, match="Unknown quadrant"):
            me.filter_menu_items(eng_df, "UNICORN")

    def test_low_profit_items(self, eng_df):
        low = me.select_low_profit_items(eng_df)
        assert set(low["category_label"]) == {"PLOWHORSE", "DOG"}


# =============================================================================
# SCENARIOS
# =============================================================================

class TestScenarios:
    """Price and cost scenarios re-score the whole menu"""

    def test_run_scenarios_keys(self, eng_df):
        scenarios = me.run_scenarios(eng_df)
        assert set(scenarios) == {"A_plowhorses_up", "B_puzzles_down", "C_cost_inflation"}
        for s in scenarios.values():
            assert s["label"]
            assert "reclassified_items" in s

    def test_price_increase_with_unit_elasticity(self, eng_df):
        mask = eng_df["category_label"] == "PLOWHORSE"
        result = me.apply_price_change_scenario(eng_df, mask, 0.10, -1.0)
        detail = result["detail_df"].set_index("sku_id")
        assert detail.loc["S2", "current_price"] == pytest.approx(66.0)
        assert detail.loc["S2", "sales_volume"] == round(200 / 1.1)
        # Untouched items keep their price and volume
        assert detail.loc["S1", "sales_volume"] == 120

    def test_cost_inflation_lowers_margin(self, eng_df):
        result = me.apply_cost_inflation_scenario(eng_df, 0.05)
        assert result["delta_total_margin"] < 0
        assert result["delta_revenue"] == pytest.approx(0)

    def test_large_inflation_reclassifies(self, eng_df):
        result = me.apply_cost_inflation_scenario(eng_df, 3.0)
        assert result["reclassified_items"] >= 1
        assert "S1" in result["reclassified_skus"]

    def test_empty_table_has_no_scenarios(self):
        assert me.run_scenarios(pd.DataFrame(columns=me.ENGINEERING_COLUMNS)) == {}


# =============================================================================
# LOADING + VALIDATION
# =============================================================================

class TestClientLoading:
    """CSV/Excel loading, column maps and structural errors"""

    def _write(self, temp_dir, menu, sales, **kwargs):
        menu_path = temp_dir / "menu.csv"
        sales_path = temp_dir / "sales.csv"
        menu.to_csv(menu_path, index=False, **kwargs)
        sales.to_csv(sales_path, index=False, **kwargs)
        config = me.CONFIG.copy()
        config["client_menu_path"] = str(menu_path)
        config["client_sales_path"] = str(sales_path)
        return config

    def test_utf8_sig_encoding(self, temp_dir, basic_menu, basic_sales):
        config = self._write(temp_dir, basic_menu, basic_sales, encoding="utf-8-sig")
        menu, sales = me.load_client_menu_and_sales(config)
        assert len(menu) == 4
        assert len(sales) == len(basic_sales)

    def test_latin1_encoding(self, temp_dir):
        path = temp_dir / "menu.csv"
        pd.DataFrame({"item_name": ["Café Latte", "Crème Brûlée"], "price": [180, 220]}).to_csv(
            path, index=False, encoding="latin-1"
        )
        df = me._read_any_table(str(path))
        assert len(df) == 2

    def test_column_map_applied(self, temp_dir, basic_sales):
        menu = pd.DataFrame({
            "SKU": ["S1", "S2"],
            "Item Name": ["Dal", "Lassi"],
            "Category": ["Mains", "Drinks"],
            "Selling Price": [220, 90],
            "Plate Cost": [60, 30],
        })
        config = self._write(temp_dir, menu, basic_sales)
        loaded, _ = me.load_client_menu_and_sales(config)
        assert loaded["category"].tolist() == ["main", "beverage"]
        assert loaded["is_essential"].tolist() == [False, False]

    def test_missing_required_columns(self, temp_dir, basic_menu, basic_sales):
        config = self._write(temp_dir, basic_menu.drop(columns=["current_price"]), basic_sales)
        with pytest.raises(ValueError, match="missing required columns"):
            me.load_client_menu_and_sales(config)

    def test_duplicate_skus_rejected(self, temp_dir, basic_menu, basic_sales):
        dup = pd.concat([basic_menu, basic_menu.iloc[[0]]], ignore_index=True)
        config = self._write(temp_dir, dup, basic_sales)
        with pytest.raises(ValueError, match="duplicate sku_id"):
            me.load_client_menu_and_sales(config)

    def test_ledgers_loaded(self, temp_dir):
        path = temp_dir / "purchases.csv"
        pd.DataFrame({"date": ["2024-04-01"], "supplier": ["Metro"], "amount": [900.0]}).to_csv(path, index=False)
        config = me.CONFIG.copy()
        config["client_ledger_paths"] = {"purchase": str(path), "sales": None}
        ledgers = me.load_client_ledgers(config)
        assert len(ledgers["purchase"]) == 1
        assert ledgers["sales"] == []

    def test_missing_ledger_file(self, temp_dir):
        config = me.CONFIG.copy()
        config["client_ledger_paths"] = {"expense": str(temp_dir / "nope.csv")}
        with pytest.raises(FileNotFoundError):
            me.load_client_ledgers(config)

    def test_missing_json_record_is_none(self, temp_dir):
        assert me.load_json_record(None) is None
        assert me.load_json_record(str(temp_dir / "vision.json")) is None

    @pytest.mark.parametrize("raw,expected", [
        ("Starters", "snack"),
        ("  DESSERTS ", "dessert"),
        ("Beverges", "beverage"),
        ("Chef Specials", "chef specials"),
        (None, "uncategorized"),
        ("", "uncategorized"),
    ])
    def test_normalize_category_name(self, raw, expected):
        assert me.normalize_category_name(raw) == expected


class TestValidation:
    """validate_client_data errors vs warnings"""

    def test_clean_data_is_valid(self, basic_menu, basic_sales):
        result = me.validate_client_data(basic_menu, basic_sales, me.CONFIG)
        assert result["valid"] is True
        assert result["errors"] == []
        assert result["summary"]["menu_items"] == 4

    def test_empty_menu_is_error(self, basic_sales):
        result = me.validate_client_data(pd.DataFrame(), basic_sales)
        assert result["valid"] is False

    def test_negative_price_is_error(self, basic_menu, basic_sales):
        basic_menu.loc[0, "current_price"] = -5
        result = me.validate_client_data(basic_menu, basic_sales)
        assert result["valid"] is False

    def test_zero_price_and_orphans_are_warnings(self, basic_menu, basic_sales):
        basic_menu.loc[0, "current_price"] = 0
        sales = pd.concat([basic_sales, pd.DataFrame({"sku_id": ["GHOST"], "qty": [1]})], ignore_index=True)
        result = me.validate_client_data(basic_menu, sales)
        assert result["valid"] is True
        assert any("zero price" in w for w in result["warnings"])
        assert any("not found in menu" in w for w in result["warnings"])

    def test_unknown_menu_section_is_warning(self, basic_menu, basic_sales):
        basic_menu.loc[3, "category"] = "chef specials"
        result = me.validate_client_data(basic_menu, basic_sales)
        assert result["valid"] is True
        assert any("outside the menu sections" in w for w in result["warnings"])

    def test_known_sections_raise_no_warning(self, basic_menu, basic_sales):
        result = me.validate_client_data(basic_menu, basic_sales)
        assert not any("menu sections" in w for w in result["warnings"])

    def test_clean_sales_lines_drops_bad_qty(self):
        sales = pd.DataFrame({"sku_id": ["A", "B", "C"], "qty": [2, -1, np.nan]})
        assert me.clean_sales_lines(sales)["sku_id"].tolist() == ["A"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
