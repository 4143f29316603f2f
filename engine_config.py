"""
Master settings for the menu engineering and fiscal health engine.

Every tunable number the engine uses lives here. Callers copy the dict and
override keys for a single run:

    config = CONFIG.copy()
    config["popularity_volume_ceiling"] = 200
"""

CONFIG = {
    "currency": "₹",
    "random_seed": 42,

    # Popularity: sales volume over the analysis window that counts as "100% popular"
    "popularity_volume_ceiling": 160,

    # Profitability: contribution margin as a fraction of price that counts as "100% profitable"
    "profitability_margin_ratio": 0.8,

    # Quadrant split (inclusive: a score equal to the threshold counts as high)
    "classification_threshold": 50,

    # Food cost % breakpoints (inclusive on the lower bucket)
    # <= 30 healthy, <= 40 warning, above that critical
    "food_cost_healthy_max": 30.0,
    "food_cost_warning_max": 40.0,

    # Waste % is capped here before building the waste multiplier (100 / (100 - waste))
    "waste_pct_cap": 99.9,

    # Price used when a recipe carries neither a current nor a suggested price
    "default_price": 350,

    # Scenario definitions
    # -1.0 = unit elasticity (1% volume drop per 1% price increase)
    "price_elasticity_assumption": -1.0,
    "scenario_price_increase_plowhorses": 0.05,   # +5% on Plowhorses
    "scenario_price_decrease_puzzles": -0.10,     # -10% on Puzzles
    "scenario_cost_inflation": 0.05,              # +5% ingredient costs

    # Demo / report meta
    "period_label": "Apr 2024 – Mar 2025",
    "restaurant_name": "The Copper Kettle Bistro",
    "engine_version": "v1.0",

    # Synthetic demo sizes
    "n_demo_recipes": 26,
    "n_demo_days": 90,

    # Client file paths (fill when running on real data)
    "client_menu_path": "data/client_menu.csv",
    "client_sales_path": "data/client_sales.csv",
    "client_ledger_paths": {
        "sales": None,       # e.g. "data/ledger_sales.csv"
        "purchase": None,
        "expense": None,
        "manpower": None,
    },
    "client_vision_cash_path": None,  # e.g. "data/vision_cash.json"
    "client_ai_recommendations_path": None,  # e.g. "data/ai_recommendations.json" ({sku_id: text})
    "client_inventory_path": None,  # e.g. "data/inventory.csv"
}
