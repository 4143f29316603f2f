"""
Cost/Margin Calculator

Per-serving plate cost with waste, recipe food cost, contribution margin and
the "what if I paid a different price / wasted less" savings projection used
on recipe cards.

Waste is applied as a multiplier on the raw cost:

    cost = qty * rate * 100 / (100 - min(waste_pct, 99.9))

The 99.9 cap keeps the denominator positive when a caller passes 100% waste
or more. It does not raise; validate_recipe() reports it as a
DEGENERATE_RATIO issue so the caller can warn.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import math
import pandas as pd
import numpy as np

from engine_config import CONFIG
from engine_errors import EngineIssue, ErrorKind, check_amount


@dataclass
class Ingredient:
    """
    One line of a recipe card, expressed per serving.

    cost_per_serving is the recorded per-serving cost (from the costing sheet
    or the market-rate lookup). When present it is the basis for savings
    projections; when absent qty * rate is used.
    """
    name: str
    quantity_per_serving: float
    cost_per_unit: float
    unit: str = ""
    waste_pct: float = 0.0
    cost_per_serving: Optional[float] = None
    is_signature: bool = False
    ingredient_id: str = ""

    @property
    def base_cost(self) -> float:
        return self.quantity_per_serving * self.cost_per_unit

    @property
    def recorded_cost(self) -> float:
        if self.cost_per_serving is None:
            return self.base_cost
        return self.cost_per_serving


@dataclass
class RecipeCard:
    sku_id: str
    name: str
    ingredients: List[Ingredient] = field(default_factory=list)
    category: str = "main"
    yield_count: int = 1
    suggested_selling_price: float = 0.0
    current_price: float = 0.0
    is_essential: bool = False
    cuisine: str = ""
    tags: List[str] = field(default_factory=list)

    @property
    def food_cost_per_serving(self) -> float:
        return compute_recipe_cost(self.ingredients)

    @property
    def batch_cost(self) -> float:
        """Cost of one full batch (food cost per serving x yield)."""
        return self.food_cost_per_serving * max(int(self.yield_count), 1)

    @property
    def food_cost_pct(self) -> float:
        return food_cost_pct(self.food_cost_per_serving, self.suggested_selling_price)

    @property
    def signature_components(self) -> List[str]:
        return [i.name for i in self.ingredients if i.is_signature]


@dataclass
class PriceOverride:
    """A hypothetical change to one ingredient line."""
    new_unit_rate: Optional[float] = None
    new_waste_pct: Optional[float] = None

    @classmethod
    def coerce(cls, value) -> "PriceOverride":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        return cls(
            new_unit_rate=value.get("new_unit_rate", value.get("newUnitRate")),
            new_waste_pct=value.get("new_waste_pct", value.get("newWastePct")),
        )


@dataclass
class SavingsProjection:
    original_cost: float
    projected_cost: float
    savings: float
    savings_pct: float
    has_changes: bool
    issues: List[EngineIssue] = field(default_factory=list)


# =============================================================================
# PER-INGREDIENT / PER-RECIPE COST
# =============================================================================

def waste_factor(waste_pct: float, config: dict = CONFIG) -> float:
    """Multiplier 100 / (100 - min(waste, cap)); 1.0 when there is no waste."""
    if not waste_pct or waste_pct <= 0:
        return 1.0
    return 100 / (100 - min(waste_pct, config["waste_pct_cap"]))


def compute_ingredient_cost(ingredient: Ingredient, config: dict = CONFIG) -> float:
    base_cost = ingredient.quantity_per_serving * ingredient.cost_per_unit
    waste = ingredient.waste_pct or 0
    if waste > 0:
        return base_cost * 100 / (100 - min(waste, config["waste_pct_cap"]))
    return base_cost


def compute_recipe_cost(ingredients: List[Ingredient], config: dict = CONFIG) -> float:
    """
    Plate cost of one serving.

    Quantities are already per serving, so there is no division by yield here.
    """
    return sum(compute_ingredient_cost(i, config) for i in ingredients)


def contribution_margin(price: float, cost: float) -> float:
    return price - cost


def food_cost_pct(cost: float, price: float) -> float:
    """Food cost as % of price. A zero price falls back to a divisor of 1."""
    return (cost / (price or 1)) * 100


# =============================================================================
# SAVINGS PROJECTION
# =============================================================================

def project_savings(recipe, overrides: dict | None = None, config: dict = CONFIG) -> SavingsProjection:
    """
    Project plate cost under hypothetical unit rates and/or waste levels.

    A new unit rate scales the recorded per-serving cost proportionally
    (basis / old_rate * new_rate) instead of re-deriving quantity, because the
    exact quantity is not always known.

    Args:
        recipe: RecipeCard or a list of Ingredient
        overrides: {ingredient_index: PriceOverride | {"new_unit_rate", "new_waste_pct"}}
        config: Engine configuration (waste cap)

    Returns:
        SavingsProjection. With no overrides and no stored waste the
        projected cost equals the original cost exactly.
    """
    ingredients = recipe.ingredients if isinstance(recipe, RecipeCard) else list(recipe)
    overrides = {k: PriceOverride.coerce(v) for k, v in (overrides or {}).items()}
    cap = config["waste_pct_cap"]

    issues = []
    original_cost = 0.0
    projected_cost = 0.0
    has_changes = False

    for idx, ing in enumerate(ingredients):
        override = overrides.get(idx, PriceOverride())
        basis = ing.recorded_cost
        original_rate = ing.cost_per_unit

        effective_waste = override.new_waste_pct if override.new_waste_pct is not None else (ing.waste_pct or 0)
        factor = 100 / (100 - min(effective_waste, cap))
        if effective_waste >= 100:
            issues.append(EngineIssue(
                ErrorKind.DEGENERATE_RATIO, ing.name,
                f"waste {effective_waste}% capped at {cap}%", "waste_pct",
            ))

        if override.new_unit_rate is not None:
            has_changes = True
            if original_rate > 0:
                cost_with_waste = (basis / original_rate) * override.new_unit_rate * factor
            else:
                issues.append(EngineIssue(
                    ErrorKind.DEGENERATE_RATIO, ing.name,
                    "original unit rate is zero; rate override cannot be scaled and is ignored",
                    "cost_per_unit",
                ))
                cost_with_waste = basis * factor
        else:
            cost_with_waste = basis * factor

        if effective_waste > 0:
            has_changes = True

        original_cost += basis
        projected_cost += cost_with_waste

    savings = original_cost - projected_cost
    savings_pct = (savings / original_cost) * 100 if original_cost > 0 else 0.0

    return SavingsProjection(
        original_cost=original_cost,
        projected_cost=projected_cost,
        savings=savings,
        savings_pct=savings_pct,
        has_changes=has_changes,
        issues=issues,
    )


# =============================================================================
# VALIDATION + COSTING SHEET
# =============================================================================

def validate_ingredient(ingredient: Ingredient, config: dict = CONFIG, subject: str = "") -> list[EngineIssue]:
    """INVALID_ENTRY for bad numbers, DEGENERATE_RATIO for capped waste."""
    issues = []
    subject = ingredient.name or ingredient.ingredient_id or subject
    for name in ("quantity_per_serving", "cost_per_unit", "waste_pct"):
        issue = check_amount(getattr(ingredient, name), subject, name)
        if issue is not None:
            issues.append(issue)
    qty = ingredient.quantity_per_serving
    if isinstance(qty, (int, float)) and not isinstance(qty, bool) and math.isfinite(qty) and qty == 0:
        issues.append(EngineIssue(ErrorKind.INVALID_ENTRY, subject,
                                  "quantity per serving must be > 0", "quantity_per_serving"))
    waste = ingredient.waste_pct
    if isinstance(waste, (int, float)) and math.isfinite(waste) and waste >= 100:
        issues.append(EngineIssue(ErrorKind.DEGENERATE_RATIO, subject,
                                  f"waste {waste}% capped at {config['waste_pct_cap']}%", "waste_pct"))
    return issues


def validate_recipe(recipe: RecipeCard, config: dict = CONFIG) -> list[EngineIssue]:
    issues = []
    for ing in recipe.ingredients:
        issues.extend(validate_ingredient(ing, config, subject=recipe.sku_id))

    yield_issue = check_amount(recipe.yield_count, recipe.sku_id, "yield_count")
    if yield_issue is not None:
        issues.append(yield_issue)
    elif recipe.yield_count < 1:
        issues.append(EngineIssue(ErrorKind.INVALID_ENTRY, recipe.sku_id,
                                  "yield must be at least 1 serving", "yield_count"))
    return issues


SHEET_COLUMNS = [
    "ingredient", "unit", "quantity_per_serving", "cost_per_unit", "waste_pct",
    "base_cost", "waste_factor", "cost_per_serving", "share_of_plate_pct",
    "waste_capped", "is_signature",
]


def build_costing_sheet(recipe: RecipeCard, config: dict = CONFIG) -> pd.DataFrame:
    """One row per ingredient with base cost, waste multiplier and plate share."""
    if not recipe.ingredients:
        return pd.DataFrame(columns=SHEET_COLUMNS)

    df = pd.DataFrame({
        "ingredient": [i.name for i in recipe.ingredients],
        "unit": [i.unit for i in recipe.ingredients],
        "quantity_per_serving": [i.quantity_per_serving for i in recipe.ingredients],
        "cost_per_unit": [i.cost_per_unit for i in recipe.ingredients],
        "waste_pct": [i.waste_pct or 0 for i in recipe.ingredients],
        "is_signature": [i.is_signature for i in recipe.ingredients],
    })
    df["base_cost"] = df["quantity_per_serving"] * df["cost_per_unit"]
    df["waste_factor"] = df["waste_pct"].apply(lambda w: waste_factor(w, config))
    df["cost_per_serving"] = [compute_ingredient_cost(i, config) for i in recipe.ingredients]
    df["waste_capped"] = df["waste_pct"] >= 100

    plate_cost = df["cost_per_serving"].sum()
    df["share_of_plate_pct"] = np.where(
        plate_cost > 0, df["cost_per_serving"] / (plate_cost if plate_cost > 0 else 1) * 100, 0.0
    )
    return df[SHEET_COLUMNS]


def recipes_to_menu_frame(recipes: List[RecipeCard], config: dict = CONFIG) -> pd.DataFrame:
    """
    Menu table (one row per recipe) in the shape menu_engine expects.

    Price falls back current -> suggested -> config default_price.
    """
    rows = []
    for r in recipes:
        price = r.current_price or r.suggested_selling_price or config["default_price"]
        rows.append({
            "sku_id": r.sku_id,
            "item_name": r.name,
            "category": r.category,
            "current_price": float(price),
            "food_cost_per_serving": r.food_cost_per_serving,
            "is_essential": bool(r.is_essential),
        })
    return pd.DataFrame(rows, columns=[
        "sku_id", "item_name", "category", "current_price", "food_cost_per_serving", "is_essential",
    ])
