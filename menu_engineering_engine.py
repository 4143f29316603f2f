"""
Public entry module so you can `import menu_engineering_engine as mee`.
This exposes the main API from `menu_engine.py`, `costing_module.py` and
`ledger_module.py`.
"""

# Import the implementation modules (same folder)
import menu_engine as _impl
import costing_module as _costing
import ledger_module as _ledger

# Re-expose the commonly used symbols
CONFIG = _impl.CONFIG
run_full_analysis = _impl.run_full_analysis
score_popularity = _impl.score_popularity
score_profitability = _impl.score_profitability
classify = _impl.classify
score_menu_item = _impl.score_menu_item
build_menu_engineering = _impl.build_menu_engineering
MenuEngineeringItem = _impl.MenuEngineeringItem

compute_ingredient_cost = _costing.compute_ingredient_cost
compute_recipe_cost = _costing.compute_recipe_cost
project_savings = _costing.project_savings

aggregate = _ledger.aggregate
classify_food_cost_health = _ledger.classify_food_cost_health

# Convenience: expose the whole implementation module as an attribute
menu_engine = _impl

__all__ = [
    "CONFIG",
    "run_full_analysis",
    "score_popularity",
    "score_profitability",
    "classify",
    "score_menu_item",
    "build_menu_engineering",
    "MenuEngineeringItem",
    "compute_ingredient_cost",
    "compute_recipe_cost",
    "project_savings",
    "aggregate",
    "classify_food_cost_health",
    "menu_engine",
]
