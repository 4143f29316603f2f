# %% [markdown]
# # Menu Engineering & Fiscal Health Engine – v1.0
#
# - Popularity / profitability scoring against configured ceilings
# - Quadrant classification (STAR / PLOWHORSE / PUZZLE / DOG)
# - Recipe costing with waste (see costing_module)
# - Ledger + vision cash aggregation into a fiscal view (see ledger_module)
# - Pricing & cost scenarios with re-classification
# - Charts (matplotlib) and an Excel workbook export
# - An export block for the AI strategy assistant (see insights_module)
#
# Use demo mode for the example report.
# Use client mode when a restaurant sends their menu + sales exports.


# %%
import json
import os
from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import List

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

import insights_module
from costing_module import RecipeCard, build_costing_sheet, food_cost_pct, recipes_to_menu_frame, validate_recipe
from engine_config import CONFIG
from engine_errors import EngineIssue, ErrorKind
from generate_demo_data import generate_demo_inventory, generate_demo_restaurant
from inventory_module import draft_reorders, find_low_stock, inventory_from_frame, reorders_to_frame
from ledger_module import (
    ENTRY_TYPES,
    VisionCashMovement,
    aggregate,
    aggregate_by_period,
    entries_from_records,
    ledger_to_frame,
)

pd.set_option("display.float_format", lambda x: f"{x:,.2f}")

# %% [markdown]
# ## 1. Quadrants


# %%
QUADRANT_LABELS = ["STAR", "PLOWHORSE", "PUZZLE", "DOG"]

QUADRANT_DESCRIPTIONS = {
    "STAR": "High Profit, High Popularity. Your winners. Keep quality high and maintain placement.",
    "PLOWHORSE": "Low Profit, High Popularity. Brand staples. Consider small price hikes or portion tweaks.",
    "PUZZLE": "High Profit, Low Popularity. Potential winners. Needs better marketing or placement.",
    "DOG": "Low Profit, Low Popularity. Candidates for removal or complete re-imagining.",
}

QUADRANT_COLORS = {
    "STAR": "#10b981",
    "PLOWHORSE": "#3b82f6",
    "PUZZLE": "#f59e0b",
    "DOG": "#ef4444",
}

LOW_PROFIT_LABELS = ("PLOWHORSE", "DOG")

MENU_SECTIONS = ["main", "snack", "beverage", "dessert"]


def score_popularity(sales_volume: float, ceiling: float) -> float:
    """Sales volume as % of the ceiling, clamped at 100."""
    return min((sales_volume / ceiling) * 100, 100)


def score_profitability(contribution_margin: float, price: float, margin_ratio: float) -> float:
    """
    Contribution margin as % of (price * margin_ratio), clamped at 100.

    A zero price falls back to a divisor of 1, so the score becomes
    min(margin * 100, 100). That reads a free item with any margin >= 1 as
    fully profitable; it is kept as-is and flagged by score_menu_item().
    """
    return min((contribution_margin / (price * margin_ratio or 1)) * 100, 100)


def classify(popularity_score: float, profitability_score: float, threshold: float = 50) -> str:
    """Quadrant label. A score equal to the threshold counts as high."""
    high_pop = popularity_score >= threshold
    high_prof = profitability_score >= threshold
    if high_pop and high_prof:
        return "STAR"
    elif high_pop and not high_prof:
        return "PLOWHORSE"
    elif (not high_pop) and high_prof:
        return "PUZZLE"
    else:
        return "DOG"


@dataclass(frozen=True)
class MenuEngineeringItem:
    """
    A menu item enriched with its scores and quadrant.

    category_label is derived from the two scores in __post_init__ and is not
    an init argument. Items are frozen; re-score to get a new one.

    Attributes:
        sku_id: Unique within a restaurant
        name: Display name
        current_price: Selling price used for scoring
        food_cost_per_serving: Plate cost
        sales_volume: Units sold over the analysis window
        popularity_score: 0-100
        profitability_score: 0-100
        contribution_margin: price - cost
        is_essential: User-pinned "must keep"; display only
        ai_recommendation: Opaque text from the AI assistant
        category: Menu section (main / snack / beverage / dessert)
    """
    sku_id: str
    name: str
    current_price: float
    food_cost_per_serving: float
    sales_volume: int
    popularity_score: float
    profitability_score: float
    contribution_margin: float
    is_essential: bool = False
    ai_recommendation: str = ""
    category: str = "main"
    classification_threshold: float = field(default=50, repr=False)
    issues: List[EngineIssue] = field(default_factory=list, repr=False)
    category_label: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "category_label", classify(
            self.popularity_score, self.profitability_score, self.classification_threshold
        ))

    @property
    def food_cost_pct(self) -> float:
        return food_cost_pct(self.food_cost_per_serving, self.current_price)


def score_menu_item(recipe: RecipeCard,
                    sales_volume: int,
                    config: dict = CONFIG,
                    ai_recommendation: str | None = None) -> MenuEngineeringItem:
    """
    Score one saved recipe against its sales volume.

    Re-run whenever sales volume or costs change; the result supersedes the
    previous item for the same sku.
    """
    price = recipe.current_price or recipe.suggested_selling_price or config["default_price"]
    cost = recipe.food_cost_per_serving
    margin = price - cost

    issues = validate_recipe(recipe, config)
    if price * config["profitability_margin_ratio"] == 0:
        issues.append(EngineIssue(
            ErrorKind.DEGENERATE_RATIO, recipe.sku_id,
            "zero price; profitability uses a divisor of 1", "current_price",
        ))
    if ai_recommendation is None:
        issues.append(EngineIssue(
            ErrorKind.MISSING_COLLABORATOR_DATA, recipe.sku_id,
            "no AI recommendation; left empty", "ai_recommendation",
        ))

    return MenuEngineeringItem(
        sku_id=recipe.sku_id,
        name=recipe.name,
        current_price=price,
        food_cost_per_serving=cost,
        sales_volume=int(sales_volume),
        popularity_score=score_popularity(sales_volume, config["popularity_volume_ceiling"]),
        profitability_score=score_profitability(margin, price, config["profitability_margin_ratio"]),
        contribution_margin=margin,
        is_essential=bool(recipe.is_essential),
        ai_recommendation=ai_recommendation or "",
        category=recipe.category,
        classification_threshold=config["classification_threshold"],
        issues=issues,
    )


# %% [markdown]
# ## 2. Menu-wide Engineering Table


# %%
ENGINEERING_COLUMNS = [
    "sku_id", "item_name", "category", "current_price", "food_cost_per_serving",
    "food_cost_pct", "contribution_margin", "sales_volume", "revenue", "total_margin",
    "popularity_score", "profitability_score", "category_label", "is_essential",
    "ai_recommendation",
]


def _score_frame(df: pd.DataFrame, config: dict) -> pd.DataFrame:
    """
    Vectorised scoring over a frame with current_price, food_cost_per_serving
    and sales_volume. Produces the same numbers as the scalar functions.
    """
    df = df.copy()
    price = df["current_price"].to_numpy(dtype=float)
    cost = df["food_cost_per_serving"].to_numpy(dtype=float)
    volume = df["sales_volume"].to_numpy(dtype=float)
    threshold = config["classification_threshold"]

    margin = price - cost
    df["contribution_margin"] = margin
    df["revenue"] = price * volume
    df["total_margin"] = margin * volume

    # Zero (or NaN) divisor falls back to 1
    denom = price * config["profitability_margin_ratio"]
    denom = np.where((denom != 0) & ~np.isnan(denom), denom, 1.0)
    df["popularity_score"] = np.minimum((volume / config["popularity_volume_ceiling"]) * 100, 100)
    df["profitability_score"] = np.minimum((margin / denom) * 100, 100)

    safe_price = np.where(price != 0, price, 1.0)
    df["food_cost_pct"] = (cost / safe_price) * 100

    high_pop = df["popularity_score"] >= threshold
    high_prof = df["profitability_score"] >= threshold
    df["category_label"] = np.select(
        [high_pop & high_prof, high_pop & ~high_prof, ~high_pop & high_prof],
        ["STAR", "PLOWHORSE", "PUZZLE"],
        default="DOG",
    )
    return df


def build_menu_engineering(menu_df: pd.DataFrame,
                           sales_df: pd.DataFrame,
                           config: dict = CONFIG) -> pd.DataFrame:
    """
    Score and classify every menu item.

    Args:
        menu_df: sku_id, item_name, category, current_price,
            food_cost_per_serving, optional is_essential / ai_recommendation
        sales_df: Sales lines with sku_id + qty over the analysis window
        config: Engine configuration

    Returns:
        DataFrame with ENGINEERING_COLUMNS, sorted by total margin
    """
    if menu_df.empty:
        return pd.DataFrame(columns=ENGINEERING_COLUMNS)

    # Aggregate sales
    if sales_df is not None and not sales_df.empty:
        volumes = (
            sales_df
            .groupby("sku_id")["qty"]
            .sum()
            .rename("sales_volume")
            .reset_index()
        )
    else:
        volumes = pd.DataFrame(columns=["sku_id", "sales_volume"])

    df = menu_df.drop(columns=["sales_volume"], errors="ignore").merge(volumes, on="sku_id", how="left")
    df["sales_volume"] = pd.to_numeric(df["sales_volume"], errors="coerce").fillna(0).astype(int)

    if "is_essential" not in df.columns:
        df["is_essential"] = False
    df["is_essential"] = df["is_essential"].fillna(False).astype(bool)
    if "ai_recommendation" not in df.columns:
        df["ai_recommendation"] = ""
    df["ai_recommendation"] = df["ai_recommendation"].fillna("").astype(str)

    df = _score_frame(df, config)
    df = df.sort_values("total_margin", ascending=False).reset_index(drop=True)
    return df[ENGINEERING_COLUMNS]


def menu_items_from_frame(df: pd.DataFrame, config: dict = CONFIG) -> list[MenuEngineeringItem]:
    """Turn an engineering table back into MenuEngineeringItem records."""
    items = []
    for _, row in df.iterrows():
        items.append(MenuEngineeringItem(
            sku_id=str(row["sku_id"]),
            name=str(row["item_name"]),
            current_price=float(row["current_price"]),
            food_cost_per_serving=float(row["food_cost_per_serving"]),
            sales_volume=int(row["sales_volume"]),
            popularity_score=float(row["popularity_score"]),
            profitability_score=float(row["profitability_score"]),
            contribution_margin=float(row["contribution_margin"]),
            is_essential=bool(row.get("is_essential", False)),
            ai_recommendation=str(row.get("ai_recommendation", "") or ""),
            category=str(row.get("category", "main")),
            classification_threshold=config["classification_threshold"],
        ))
    return items


def summarize_quadrants(df: pd.DataFrame) -> pd.DataFrame:
    """Per-label counts and totals. All four labels are always present."""
    summary = pd.DataFrame(index=pd.Index(QUADRANT_LABELS, name="category_label"))
    if not df.empty:
        grouped = df.groupby("category_label").agg(
            item_count=("sku_id", "count"),
            essential_count=("is_essential", "sum"),
            units_sold=("sales_volume", "sum"),
            revenue=("revenue", "sum"),
            total_margin=("total_margin", "sum"),
            avg_popularity=("popularity_score", "mean"),
            avg_profitability=("profitability_score", "mean"),
        )
        summary = summary.join(grouped)
    summary = summary.reindex(columns=[
        "item_count", "essential_count", "units_sold", "revenue",
        "total_margin", "avg_popularity", "avg_profitability",
    ]).fillna(0)
    summary["item_count"] = summary["item_count"].astype(int)
    summary["essential_count"] = summary["essential_count"].astype(int)
    summary["units_sold"] = summary["units_sold"].astype(int)
    summary["description"] = [QUADRANT_DESCRIPTIONS[label] for label in summary.index]
    return summary.reset_index()


def filter_menu_items(df: pd.DataFrame, label: str = "ALL", essential_only: bool = False) -> pd.DataFrame:
    result = df
    if label != "ALL":
        if label not in QUADRANT_LABELS:
            raise ValueError(f"Unknown quadrant '{label}'. Expected ALL or one of {QUADRANT_LABELS}")
        result = result[result["category_label"] == label]
    if essential_only:
        result = result[result["is_essential"]]
    return result.reset_index(drop=True)


def select_low_profit_items(df: pd.DataFrame) -> pd.DataFrame:
    """Plowhorses and Dogs, the items a margin strategy should target."""
    return df[df["category_label"].isin(LOW_PROFIT_LABELS)].reset_index(drop=True)


def toggle_essential(df: pd.DataFrame, sku_id: str) -> pd.DataFrame:
    """Flip the essential flag for one sku. Classification is untouched."""
    df = df.copy()
    mask = df["sku_id"] == sku_id
    if not mask.any():
        raise ValueError(f"Unknown sku_id '{sku_id}'")
    df.loc[mask, "is_essential"] = ~df.loc[mask, "is_essential"].astype(bool)
    return df


# %% [markdown]
# ## 3. Pricing & Cost Scenarios


# %%
def _scenario_result(base_df: pd.DataFrame, scen_df: pd.DataFrame) -> dict:
    base_rev = base_df["revenue"].sum()
    base_margin = base_df["total_margin"].sum()
    scen_rev = scen_df["revenue"].sum()
    scen_margin = scen_df["total_margin"].sum()

    detail = scen_df.copy()
    detail["base_category_label"] = base_df["category_label"].to_numpy()
    moved = detail[detail["base_category_label"] != detail["category_label"]]

    return {
        "label": "",
        "base_revenue": base_rev,
        "base_total_margin": base_margin,
        "scenario_revenue": scen_rev,
        "scenario_total_margin": scen_margin,
        "delta_revenue": scen_rev - base_rev,
        "delta_total_margin": scen_margin - base_margin,
        "reclassified_items": int(len(moved)),
        "reclassified_skus": moved["sku_id"].tolist(),
        "detail_df": detail,
    }


def apply_price_change_scenario(eng_df: pd.DataFrame,
                                price_change_filter: pd.Series,
                                price_change_pct: float,
                                elasticity: float,
                                config: dict = CONFIG) -> dict:
    """
    Change prices for the filtered items, move volume by the elasticity
    assumption, then re-score and re-classify the whole menu.
    """
    df = eng_df.copy().reset_index(drop=True)
    mask = pd.Series(price_change_filter).reset_index(drop=True).astype(bool)

    new_price = df["current_price"].where(~mask, df["current_price"] * (1 + price_change_pct))
    # Zero prices keep their volume
    price_ratio = np.where(df["current_price"] > 0, new_price / df["current_price"].where(df["current_price"] > 0, 1), 1.0)
    df["sales_volume"] = (df["sales_volume"] * (price_ratio ** elasticity)).round().astype(int).clip(lower=0)
    df["current_price"] = new_price

    scen_df = _score_frame(df, config)
    return _scenario_result(eng_df.reset_index(drop=True), scen_df)


def apply_cost_inflation_scenario(eng_df: pd.DataFrame,
                                  cost_inflation_pct: float,
                                  config: dict = CONFIG) -> dict:
    """Raise every plate cost by a percentage at unchanged prices and volumes."""
    df = eng_df.copy().reset_index(drop=True)
    df["food_cost_per_serving"] = df["food_cost_per_serving"] * (1 + cost_inflation_pct)
    scen_df = _score_frame(df, config)
    return _scenario_result(eng_df.reset_index(drop=True), scen_df)


def run_scenarios(eng_df: pd.DataFrame, config: dict = CONFIG) -> dict:
    elasticity = config["price_elasticity_assumption"]
    scenarios = {}
    if eng_df.empty:
        return scenarios

    plowhorse_up = config["scenario_price_increase_plowhorses"]
    scenarios["A_plowhorses_up"] = apply_price_change_scenario(
        eng_df,
        price_change_filter=eng_df["category_label"] == "PLOWHORSE",
        price_change_pct=plowhorse_up,
        elasticity=elasticity,
        config=config,
    )
    scenarios["A_plowhorses_up"]["label"] = f"Increase Plowhorse prices by {plowhorse_up * 100:.0f}%"

    puzzle_down = config["scenario_price_decrease_puzzles"]
    scenarios["B_puzzles_down"] = apply_price_change_scenario(
        eng_df,
        price_change_filter=eng_df["category_label"] == "PUZZLE",
        price_change_pct=puzzle_down,
        elasticity=elasticity,
        config=config,
    )
    scenarios["B_puzzles_down"]["label"] = f"Reduce Puzzle prices by {abs(puzzle_down) * 100:.0f}% to stimulate volume"

    inflation = config["scenario_cost_inflation"]
    scenarios["C_cost_inflation"] = apply_cost_inflation_scenario(eng_df, inflation, config)
    scenarios["C_cost_inflation"]["label"] = f"Simulate {inflation * 100:.0f}% ingredient cost inflation (no menu price changes)"

    return scenarios


# %% [markdown]
# ## 4. Client Data Loaders (Menu, Sales, Ledgers)


# %%
REQUIRED_MENU_COLUMNS = ["sku_id", "item_name", "current_price", "food_cost_per_serving"]
REQUIRED_SALES_COLUMNS = ["sku_id", "qty"]

DEFAULT_MENU_COLUMN_MAP = {
    "SKU": "sku_id",
    "sku": "sku_id",
    "Item": "item_name",
    "Item Name": "item_name",
    "name": "item_name",
    "Category": "category",
    "Price": "current_price",
    "price": "current_price",
    "Selling Price": "current_price",
    "Food Cost": "food_cost_per_serving",
    "Plate Cost": "food_cost_per_serving",
    "food_cost": "food_cost_per_serving",
    "Essential": "is_essential",
}

DEFAULT_SALES_COLUMN_MAP = {
    "SKU": "sku_id",
    "sku": "sku_id",
    "Quantity": "qty",
    "quantity": "qty",
    "Qty": "qty",
    "Date": "order_datetime",
    "date": "order_datetime",
}

CATEGORY_NORMALIZATION_MAP = {
    "main": "main",
    "mains": "main",
    "main course": "main",
    "entree": "main",
    "entrees": "main",
    "snack": "snack",
    "snacks": "snack",
    "starter": "snack",
    "starters": "snack",
    "appetizer": "snack",
    "appetizers": "snack",
    "beverage": "beverage",
    "beverages": "beverage",
    "drink": "beverage",
    "drinks": "beverage",
    "dessert": "dessert",
    "desserts": "dessert",
    "sweets": "dessert",
}


def normalize_category_name(category: str) -> str:
    """
    Map free-text menu sections onto main / snack / beverage / dessert.

    Unknown sections are kept (lower-cased) rather than forced into a bucket.
    """
    if category is None or (isinstance(category, float) and np.isnan(category)):
        return "uncategorized"
    key = str(category).strip().lower()
    if not key:
        return "uncategorized"
    if key in CATEGORY_NORMALIZATION_MAP:
        return CATEGORY_NORMALIZATION_MAP[key]

    matches = get_close_matches(key, CATEGORY_NORMALIZATION_MAP.keys(), n=1, cutoff=0.85)
    if matches:
        return CATEGORY_NORMALIZATION_MAP[matches[0]]
    return key


def _read_any_table(path: str) -> pd.DataFrame:
    """Read CSV/Excel with robust encoding handling and error reporting."""
    if str(path).lower().endswith((".xlsx", ".xls")):
        return pd.read_excel(path)
    try:
        return pd.read_csv(path, encoding="utf-8-sig", on_bad_lines="warn")
    except UnicodeDecodeError:
        # Fallback to latin-1 (legacy Windows exports)
        print(f"⚠️  UTF-8 decode failed, trying latin-1 encoding for {path}")
        return pd.read_csv(path, encoding="latin-1", on_bad_lines="warn")
    except Exception as e:
        raise ValueError(f"Failed to read {path}: {str(e)}") from e


def load_client_menu_and_sales(config: dict,
                               menu_column_map: dict = None,
                               sales_column_map: dict = None) -> tuple[pd.DataFrame, pd.DataFrame]:
    menu_path = config.get("client_menu_path")
    sales_path = config.get("client_sales_path")
    if not menu_path or not sales_path:
        raise ValueError("Set CONFIG['client_menu_path'] and CONFIG['client_sales_path'].")

    menu_raw = _read_any_table(menu_path)
    sales_raw = _read_any_table(sales_path)

    menu_map = DEFAULT_MENU_COLUMN_MAP.copy()
    if menu_column_map:
        menu_map.update(menu_column_map)
    sales_map = DEFAULT_SALES_COLUMN_MAP.copy()
    if sales_column_map:
        sales_map.update(sales_column_map)

    menu_df = menu_raw.rename(columns={k: v for k, v in menu_map.items() if k in menu_raw.columns})
    sales_df = sales_raw.rename(columns={k: v for k, v in sales_map.items() if k in sales_raw.columns})

    missing_menu = [c for c in REQUIRED_MENU_COLUMNS if c not in menu_df.columns]
    if missing_menu:
        raise ValueError(
            f"❌ CRITICAL: Menu file missing required columns: {missing_menu}\n"
            f"Available columns: {list(menu_raw.columns)}\n"
            f"Please check column names match exactly or add to DEFAULT_MENU_COLUMN_MAP"
        )
    missing_sales = [c for c in REQUIRED_SALES_COLUMNS if c not in sales_df.columns]
    if missing_sales:
        raise ValueError(
            f"❌ CRITICAL: Sales file missing required columns: {missing_sales}\n"
            f"Available columns: {list(sales_raw.columns)}\n"
            f"Please check column names match exactly or add to DEFAULT_SALES_COLUMN_MAP"
        )

    menu_df["sku_id"] = menu_df["sku_id"].astype(str).str.strip()
    sales_df["sku_id"] = sales_df["sku_id"].astype(str).str.strip()

    duplicates = menu_df["sku_id"].duplicated()
    if duplicates.any():
        dupes = menu_df.loc[duplicates, "sku_id"].unique().tolist()
        raise ValueError(
            f"❌ CRITICAL: Menu file has duplicate sku_id values: {dupes}\n"
            f"Each menu item needs a unique sku_id."
        )

    if "category" not in menu_df.columns:
        menu_df["category"] = "main"
    menu_df["category"] = menu_df["category"].apply(normalize_category_name)

    for col in ("current_price", "food_cost_per_serving"):
        menu_df[col] = pd.to_numeric(menu_df[col], errors="coerce")
    sales_df["qty"] = pd.to_numeric(sales_df["qty"], errors="coerce")

    if "is_essential" in menu_df.columns:
        menu_df["is_essential"] = (
            menu_df["is_essential"].astype(str).str.strip().str.lower().isin(["true", "1", "yes", "y"])
        )
    else:
        menu_df["is_essential"] = False

    return menu_df, sales_df


def load_client_ledgers(config: dict) -> dict[str, list]:
    """Read whichever ledger files are configured; missing kinds come back empty."""
    ledgers = {kind: [] for kind in ENTRY_TYPES}
    paths = config.get("client_ledger_paths") or {}
    for kind, path in paths.items():
        if not path:
            continue
        if kind not in ENTRY_TYPES:
            raise ValueError(f"Unknown ledger kind '{kind}' in client_ledger_paths")
        if not os.path.exists(path):
            raise FileNotFoundError(f"❌ CRITICAL: Ledger file for '{kind}' not found: {path}")
        df = _read_any_table(path)
        ledgers[kind] = entries_from_records(kind, df.to_dict("records"))
    return ledgers


def load_json_record(path: str | None) -> dict | None:
    """Read a collaborator JSON file (vision cash, AI recommendations); None when absent."""
    if not path:
        return None
    if not os.path.exists(path):
        print(f"⚠️  Collaborator file not found, continuing without it: {path}")
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# %% [markdown]
# ## 5. Data Validation


# %%
def validate_client_data(menu_df: pd.DataFrame,
                         sales_df: pd.DataFrame,
                         config: dict = None) -> dict:
    """
    Validates menu + sales data for issues that would break or skew scoring.

    Returns:
        {
            "valid": bool,
            "errors": [critical issues that prevent analysis],
            "warnings": [issues that may affect quality but won't break],
            "summary": {key metrics}
        }
    """
    errors = []
    warnings = []
    summary = {}

    # --- MENU VALIDATION ---
    if menu_df is None or menu_df.empty:
        errors.append("CRITICAL: menu_df is empty or None")
        return {"valid": False, "errors": errors, "warnings": warnings, "summary": summary}

    missing_cols = [c for c in REQUIRED_MENU_COLUMNS if c not in menu_df.columns]
    if missing_cols:
        errors.append(f"CRITICAL: Menu missing required columns: {missing_cols}")
        return {"valid": False, "errors": errors, "warnings": warnings, "summary": summary}

    summary["menu_items"] = len(menu_df)

    bad_price = (~np.isfinite(menu_df["current_price"].astype(float)) | (menu_df["current_price"] < 0)).sum()
    if bad_price > 0:
        errors.append(f"CRITICAL: {bad_price} items have a missing, non-finite or negative price")

    bad_cost = (~np.isfinite(menu_df["food_cost_per_serving"].astype(float)) | (menu_df["food_cost_per_serving"] < 0)).sum()
    if bad_cost > 0:
        errors.append(f"CRITICAL: {bad_cost} items have a missing, non-finite or negative food cost")

    zero_price = (menu_df["current_price"] == 0).sum()
    if zero_price > 0:
        warnings.append(f"WARNING: {zero_price} items have zero price - profitability falls back to a divisor of 1")

    negative_margin = (menu_df["food_cost_per_serving"] > menu_df["current_price"]).sum()
    if negative_margin > 0:
        warnings.append(f"WARNING: {negative_margin} items have cost > price (negative contribution margin)")

    if bad_price == 0:
        summary["avg_price"] = float(menu_df["current_price"].mean())
        summary["price_range"] = f"{menu_df['current_price'].min():.2f} - {menu_df['current_price'].max():.2f}"

    duplicates = menu_df["sku_id"].duplicated().sum()
    if duplicates > 0:
        errors.append(f"CRITICAL: {duplicates} duplicate sku_id values found")

    if "category" in menu_df.columns:
        unknown_section = (~menu_df["category"].isin(MENU_SECTIONS)).sum()
        if unknown_section > 0:
            warnings.append(f"WARNING: {unknown_section} items outside the menu sections {MENU_SECTIONS}")

    # --- SALES VALIDATION ---
    if sales_df is None or sales_df.empty:
        warnings.append("WARNING: No sales lines - every item will score 0 popularity")
        summary["sales_lines"] = 0
    else:
        summary["sales_lines"] = len(sales_df)
        bad_qty = (~np.isfinite(sales_df["qty"].astype(float)) | (sales_df["qty"] < 0)).sum()
        if bad_qty > 0:
            warnings.append(f"WARNING: {bad_qty} sales lines with missing or negative quantity (excluded)")

        orphan = set(sales_df["sku_id"].unique()) - set(menu_df["sku_id"].unique())
        if orphan:
            orphan_lines = sales_df["sku_id"].isin(orphan).sum()
            warnings.append(f"WARNING: {len(orphan)} sku_ids in sales not found in menu ({orphan_lines} sales lines)")

        if "order_datetime" in sales_df.columns:
            dates = pd.to_datetime(sales_df["order_datetime"], errors="coerce")
            if dates.notna().any():
                days_span = (dates.max() - dates.min()).days
                summary["days_of_data"] = days_span
                summary["date_range"] = f"{dates.min()} to {dates.max()}"

    if config:
        summary["popularity_volume_ceiling"] = config["popularity_volume_ceiling"]

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "summary": summary,
    }


def clean_sales_lines(sales_df: pd.DataFrame) -> pd.DataFrame:
    """Drop sales lines with a missing, non-finite or negative quantity."""
    if sales_df is None or sales_df.empty:
        return pd.DataFrame(columns=REQUIRED_SALES_COLUMNS)
    qty = pd.to_numeric(sales_df["qty"], errors="coerce")
    keep = np.isfinite(qty.astype(float)) & (qty >= 0)
    return sales_df[keep].reset_index(drop=True)


# %% [markdown]
# ## 6. Charts + Excel Export


# %%
def plot_menu_engineering(eng_df: pd.DataFrame, config: dict = CONFIG, ax=None):
    """Popularity vs profitability scatter with the quadrant midlines."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 7))
    else:
        fig = ax.figure
    threshold = config["classification_threshold"]

    for label in QUADRANT_LABELS:
        subset = eng_df[eng_df["category_label"] == label]
        if subset.empty:
            continue
        ax.scatter(
            subset["popularity_score"], subset["profitability_score"],
            color=QUADRANT_COLORS[label], label=label, alpha=0.75, edgecolor="white",
        )
    essential = eng_df[eng_df["is_essential"]]
    if not essential.empty:
        ax.scatter(essential["popularity_score"], essential["profitability_score"],
                   facecolors="none", edgecolors="#10b981", s=220, linestyle="--", label="Essential")

    for _, row in eng_df.iterrows():
        ax.annotate(row["item_name"], (row["popularity_score"], row["profitability_score"]),
                    fontsize=7, xytext=(4, 4), textcoords="offset points")

    ax.axvline(threshold, linestyle="--", color="grey")
    ax.axhline(threshold, linestyle="--", color="grey")
    ax.set_xlim(-2, 102)
    ax.set_ylim(min(-2, eng_df["profitability_score"].min() - 5) if not eng_df.empty else -2, 102)
    ax.set_xlabel("Popularity score")
    ax.set_ylabel("Profitability score")
    ax.set_title("Menu Engineering – Popularity vs Profitability")
    ax.legend(loc="lower right", fontsize=8)
    return fig


def save_all_charts(results: dict, output_dir: str, config: dict = CONFIG) -> list[str]:
    """
    Save analysis charts as PNG files in the output directory.

    Returns:
        Paths of the files written
    """
    os.makedirs(output_dir, exist_ok=True)
    written = []
    currency = config["currency"]

    eng_df = results.get("engineering_df")
    if isinstance(eng_df, pd.DataFrame) and not eng_df.empty:
        fig = plot_menu_engineering(eng_df, config)
        path = os.path.join(output_dir, "menu_engineering_matrix.png")
        fig.savefig(path, bbox_inches="tight", dpi=150)
        plt.close(fig)
        written.append(path)

    quad_df = results.get("quadrant_summary_df")
    if isinstance(quad_df, pd.DataFrame) and not quad_df.empty:
        fig, ax = plt.subplots(figsize=(8, 5))
        ax.bar(quad_df["category_label"], quad_df["total_margin"],
               color=[QUADRANT_COLORS[l] for l in quad_df["category_label"]])
        ax.set_ylabel(f"Total contribution margin ({currency})")
        ax.set_title("Contribution Margin by Quadrant")
        plt.tight_layout()
        path = os.path.join(output_dir, "quadrant_margin.png")
        fig.savefig(path, bbox_inches="tight", dpi=150)
        plt.close(fig)
        written.append(path)

    period_df = results.get("period_df")
    if isinstance(period_df, pd.DataFrame) and not period_df.empty:
        fig, ax1 = plt.subplots(figsize=(10, 6))
        x = np.arange(len(period_df))
        labels = pd.to_datetime(period_df["period"]).dt.strftime("%b %Y")
        ax1.bar(x - 0.2, period_df["total_inflow"], width=0.4, label="Inflow", color="#10b981")
        ax1.bar(x + 0.2, period_df["total_outflow"], width=0.4, label="Outflow", color="#ef4444")
        ax1.set_xticks(x)
        ax1.set_xticklabels(labels, rotation=45, ha="right")
        ax1.set_ylabel(f"Amount ({currency})")
        ax1.set_title("Fiscal Flow by Period")
        ax1.legend(loc="upper left")

        ax2 = ax1.twinx()
        ax2.plot(x, period_df["food_cost_pct"], color="#f59e0b", marker="o", label="Food cost %")
        ax2.axhline(config["food_cost_healthy_max"], linestyle=":", color="#10b981")
        ax2.axhline(config["food_cost_warning_max"], linestyle=":", color="#ef4444")
        ax2.set_ylabel("Food cost %")
        plt.tight_layout()
        path = os.path.join(output_dir, "fiscal_periods.png")
        fig.savefig(path, bbox_inches="tight", dpi=150)
        plt.close(fig)
        written.append(path)

    scenarios = results.get("scenarios") or {}
    if scenarios:
        fig, ax = plt.subplots(figsize=(8, 5))
        ax.bar(list(scenarios.keys()), [s["delta_total_margin"] for s in scenarios.values()])
        ax.set_ylabel(f"Margin change ({currency})")
        ax.set_title("Scenario Contribution Margin Change")
        plt.tight_layout()
        path = os.path.join(output_dir, "scenario_margin_changes.png")
        fig.savefig(path, bbox_inches="tight", dpi=150)
        plt.close(fig)
        written.append(path)

    return written


def export_results_to_excel(results: dict, path: str) -> None:
    """
    Write key result tables into a multi-sheet Excel file.

    Args:
        results: Dictionary returned by run_full_analysis().
        path: File path where the Excel workbook will be saved.
    """
    with pd.ExcelWriter(path) as writer:
        def _write_if_df(key: str, sheet_name: str):
            df = results.get(key)
            if isinstance(df, pd.DataFrame) and not df.empty:
                df.to_excel(writer, sheet_name=sheet_name, index=False)

        _write_if_df("engineering_df", "Menu_Engineering")
        _write_if_df("quadrant_summary_df", "Quadrant_Summary")
        _write_if_df("period_df", "Fiscal_Periods")
        _write_if_df("ledger_df", "Ledger")
        _write_if_df("reorder_df", "Reorder_Drafts")

        snapshot = results.get("fiscal_snapshot")
        if snapshot is not None:
            snap = snapshot.to_dict()
            snap.pop("issues", None)
            pd.DataFrame(list(snap.items()), columns=["metric", "value"]).to_excel(
                writer, sheet_name="Fiscal_Snapshot", index=False
            )

        notes = results.get("data_quality_notes")
        if notes:
            pd.DataFrame({"note": list(notes)}).to_excel(writer, sheet_name="Data_Quality_Notes", index=False)


# %% [markdown]
# ## 7. Full Analysis


# %%
def _print_validation(validation_result: dict) -> None:
    print("\n" + "=" * 60)
    print("DATA VALIDATION RESULTS")
    print("=" * 60)
    if not validation_result["valid"]:
        print("\n❌ CRITICAL ERRORS FOUND - Analysis cannot proceed:\n")
        for error in validation_result["errors"]:
            print(f"  • {error}")
        print("\nPlease fix these errors and try again.")
        print("=" * 60 + "\n")
        return
    if validation_result["warnings"]:
        print("\n⚠️  WARNINGS (analysis will proceed but quality may be affected):\n")
        for warning in validation_result["warnings"]:
            print(f"  • {warning}")
    if validation_result["summary"]:
        print("\n📊 DATA SUMMARY:")
        for key, value in validation_result["summary"].items():
            print(f"  • {key}: {value}")
    print("\n✅ Validation passed - proceeding with analysis")
    print("=" * 60 + "\n")


def run_full_analysis(config: dict = CONFIG, data_source: str = "demo") -> dict:
    """
    Run the full menu engineering + fiscal health analysis.

    Args:
        config: Configuration dictionary (defaults to module `CONFIG`).
        data_source: "demo" for the synthetic bistro, "client" for files
            configured in config.

    Returns:
        A dictionary with keys: menu_df, sales_df, engineering_df,
        quadrant_summary_df, ledgers, ledger_df, fiscal_snapshot, period_df,
        scenarios, insight_graph, ai_export_block, strategy_query,
        costing_sheets, data_quality_notes, validation_result, config.
        On failed validation only validation + error are returned.
    """
    costing_sheets = {}
    inventory = []
    ai_recommendations = {}
    if data_source == "demo":
        recipes, sales_df, ledgers, vision_raw = generate_demo_restaurant(config)
        menu_df = recipes_to_menu_frame(recipes, config)
        costing_sheets = {r.sku_id: build_costing_sheet(r, config) for r in recipes}
        inventory = generate_demo_inventory(config)
    elif data_source == "client":
        menu_df, sales_df = load_client_menu_and_sales(config)
        ledgers = load_client_ledgers(config)
        vision_raw = load_json_record(config.get("client_vision_cash_path"))
        ai_recommendations = load_json_record(config.get("client_ai_recommendations_path")) or {}
        if config.get("client_inventory_path"):
            inventory = inventory_from_frame(_read_any_table(config["client_inventory_path"]))
    else:
        raise ValueError(f"data_source must be 'demo' or 'client', got '{data_source}'")

    validation_result = validate_client_data(menu_df, sales_df, config)
    _print_validation(validation_result)
    if not validation_result["valid"]:
        return {
            "validation": validation_result,
            "error": "Data validation failed - see validation results above",
        }

    sales_df = clean_sales_lines(sales_df)

    # Core analyses
    engineering_df = build_menu_engineering(menu_df, sales_df, config)
    engineering_df = insights_module.attach_ai_recommendations(engineering_df, ai_recommendations)
    quadrant_summary_df = summarize_quadrants(engineering_df)
    scenarios = run_scenarios(engineering_df, config)

    vision_cash = VisionCashMovement.from_record(vision_raw)
    fiscal_snapshot = aggregate(ledgers, vision_cash, config)
    period_df = aggregate_by_period(ledgers, config=config)
    ledger_df = ledger_to_frame(ledgers)
    low_stock = find_low_stock(inventory)
    reorder_drafts = draft_reorders(inventory)

    data_quality_notes = [str(issue) for issue in fiscal_snapshot.issues]
    if fiscal_snapshot.rejected_entries:
        print(f"⚠️  {fiscal_snapshot.rejected_entries} ledger entries rejected; aggregated the remaining "
              f"{fiscal_snapshot.accepted_entries}")

    results = {
        "menu_df": menu_df,
        "sales_df": sales_df,
        "engineering_df": engineering_df,
        "quadrant_summary_df": quadrant_summary_df,
        "ledgers": ledgers,
        "ledger_df": ledger_df,
        "fiscal_snapshot": fiscal_snapshot,
        "vision_cash": vision_cash,
        "period_df": period_df,
        "scenarios": scenarios,
        "costing_sheets": costing_sheets,
        "inventory": inventory,
        "low_stock": low_stock,
        "reorder_drafts": reorder_drafts,
        "reorder_df": reorders_to_frame(reorder_drafts),
        "data_quality_notes": data_quality_notes,
        "validation_result": validation_result,
        "config": config,
    }

    results["insight_graph"] = insights_module.build_insight_graph(results)
    results["ai_export_block"] = insights_module.build_ai_export_block(results, results["insight_graph"])
    results["strategy_query"] = insights_module.build_strategy_query(engineering_df)
    return results


if __name__ == "__main__":
    results = run_full_analysis(data_source="demo")
    print(results["quadrant_summary_df"].to_string(index=False))
    print(results["fiscal_snapshot"].to_dict())
