"""
Synthetic demo restaurant for the menu engineering engine.

Creates a realistic Indian bistro:
- Recipe cards with per-serving ingredient lines and waste %
- Sales lines (sku_id, qty, order_datetime) over the analysis window
- Manual ledger entries (sales, purchases, expenses, manpower)
- A vision-derived cash movement record
- An ingredient stock sheet with par levels

Use it for the example report and for smoke-testing the pipeline.
"""

import numpy as np
import pandas as pd

from costing_module import Ingredient, RecipeCard
from inventory_module import InventoryItem
from ledger_module import ExpenseEntry, ManpowerEntry, PurchaseEntry, SalesEntry


# Market rates per unit (₹) and typical prep waste %
INGREDIENT_RATES = {
    "Paneer": ("kg", 380.0, 4),
    "Chicken Thigh": ("kg", 290.0, 8),
    "Mutton": ("kg", 720.0, 10),
    "Basmati Rice": ("kg", 110.0, 2),
    "Butter": ("kg", 520.0, 1),
    "Fresh Cream": ("l", 260.0, 3),
    "Tomato": ("kg", 40.0, 12),
    "Onion": ("kg", 35.0, 10),
    "Spinach": ("kg", 60.0, 25),
    "Whole Spices": ("kg", 900.0, 0),
    "Maida": ("kg", 45.0, 3),
    "Potato": ("kg", 30.0, 8),
    "Chickpeas": ("kg", 95.0, 1),
    "Milk": ("l", 62.0, 2),
    "Sugar": ("kg", 44.0, 0),
    "Tea Leaves": ("kg", 480.0, 0),
    "Mango Pulp": ("kg", 180.0, 5),
    "Yogurt": ("kg", 80.0, 4),
    "Saffron": ("g", 310.0, 0),
    "Prawns": ("kg", 850.0, 15),
}


# (sku_id, name, section, price, [(ingredient, qty_per_serving)])
DEMO_MENU = [
    ("SKU-001", "Butter Chicken", "main", 420, [("Chicken Thigh", 0.22), ("Butter", 0.03), ("Fresh Cream", 0.04), ("Tomato", 0.12), ("Whole Spices", 0.006)]),
    ("SKU-002", "Paneer Tikka Masala", "main", 360, [("Paneer", 0.18), ("Fresh Cream", 0.03), ("Tomato", 0.1), ("Onion", 0.08), ("Whole Spices", 0.006)]),
    ("SKU-003", "Mutton Rogan Josh", "main", 540, [("Mutton", 0.25), ("Yogurt", 0.05), ("Onion", 0.1), ("Whole Spices", 0.008)]),
    ("SKU-004", "Chicken Biryani", "main", 380, [("Chicken Thigh", 0.18), ("Basmati Rice", 0.15), ("Yogurt", 0.04), ("Whole Spices", 0.007), ("Onion", 0.06)]),
    ("SKU-005", "Palak Paneer", "main", 320, [("Spinach", 0.2), ("Paneer", 0.12), ("Fresh Cream", 0.02), ("Whole Spices", 0.004)]),
    ("SKU-006", "Chole Bhature", "main", 220, [("Chickpeas", 0.12), ("Maida", 0.12), ("Onion", 0.05), ("Whole Spices", 0.004)]),
    ("SKU-007", "Dal Makhani", "main", 280, [("Chickpeas", 0.08), ("Butter", 0.025), ("Fresh Cream", 0.03), ("Tomato", 0.06)]),
    ("SKU-008", "Prawn Malai Curry", "main", 560, [("Prawns", 0.2), ("Fresh Cream", 0.05), ("Onion", 0.06), ("Whole Spices", 0.005)]),
    ("SKU-PLOW-01", "Tandoori Prawn Platter", "main", 420, [("Prawns", 0.35), ("Onion", 0.05)]),
    ("SKU-PUZZLE-01", "Saffron Gold Biryani", "main", 650, [("Basmati Rice", 0.18), ("Saffron", 0.08), ("Butter", 0.03), ("Whole Spices", 0.008), ("Mutton", 0.08)]),
    ("SKU-010", "Samosa Chaat", "snack", 140, [("Potato", 0.12), ("Maida", 0.05), ("Chickpeas", 0.04), ("Yogurt", 0.05)]),
    ("SKU-011", "Paneer Pakora", "snack", 180, [("Paneer", 0.1), ("Maida", 0.04), ("Onion", 0.03)]),
    ("SKU-012", "Aloo Tikki", "snack", 120, [("Potato", 0.15), ("Whole Spices", 0.003), ("Yogurt", 0.03)]),
    ("SKU-013", "Chicken 65", "snack", 260, [("Chicken Thigh", 0.16), ("Maida", 0.03), ("Whole Spices", 0.005)]),
    ("SKU-014", "Masala Fries", "snack", 110, [("Potato", 0.2), ("Whole Spices", 0.002)]),
    ("SKU-PLOW-02", "Keema Pav", "snack", 240, [("Mutton", 0.2), ("Maida", 0.05)]),
    ("SKU-DOG-02", "Mutton Seekh Platter", "snack", 300, [("Mutton", 0.3), ("Onion", 0.05)]),
    ("SKU-020", "Masala Chai", "beverage", 60, [("Milk", 0.15), ("Tea Leaves", 0.005), ("Sugar", 0.015)]),
    ("SKU-021", "Mango Lassi", "beverage", 140, [("Yogurt", 0.15), ("Mango Pulp", 0.08), ("Sugar", 0.02)]),
    ("SKU-022", "Sweet Lassi", "beverage", 110, [("Yogurt", 0.2), ("Sugar", 0.025)]),
    ("SKU-023", "Saffron Milk", "beverage", 160, [("Milk", 0.25), ("Saffron", 0.02), ("Sugar", 0.02)]),
    ("SKU-030", "Gulab Jamun", "dessert", 120, [("Milk", 0.1), ("Maida", 0.03), ("Sugar", 0.06)]),
    ("SKU-031", "Rasmalai", "dessert", 160, [("Milk", 0.3), ("Sugar", 0.05), ("Saffron", 0.01)]),
    ("SKU-032", "Mango Kulfi", "dessert", 150, [("Milk", 0.2), ("Mango Pulp", 0.06), ("Sugar", 0.04)]),
    ("SKU-033", "Gajar Halwa", "dessert", 170, [("Milk", 0.15), ("Butter", 0.02), ("Sugar", 0.05)]),
    ("SKU-DOG-01", "Kesar Pista Kulfi", "dessert", 180, [("Milk", 0.2), ("Saffron", 0.35), ("Sugar", 0.03)]),
]

# Relative demand per menu section (high variance to create hits and slow movers)
SECTION_DEMAND = {
    "main": (0.6, 3.0),
    "snack": (0.4, 2.2),
    "beverage": (0.8, 3.2),
    "dessert": (0.2, 1.4),
}

ESSENTIAL_SKUS = {"SKU-001", "SKU-020"}

# Covers held fixed so the quadrant mix does not depend on the random draw.
# The PLOW and DOG plates cost well over 60% of price, so they can never
# reach the profitability threshold: busy ones are Plowhorses, slow ones Dogs.
FIXED_VOLUMES = {
    "SKU-PUZZLE-01": 8,
    "SKU-PLOW-01": 130,
    "SKU-PLOW-02": 110,
    "SKU-DOG-01": 12,
    "SKU-DOG-02": 15,
}


def generate_demo_recipes(config: dict) -> list[RecipeCard]:
    """Recipe cards for DEMO_MENU, trimmed to config['n_demo_recipes'] (at most len(DEMO_MENU))."""
    recipes = []
    for sku_id, name, section, price, lines in DEMO_MENU[: config.get("n_demo_recipes", len(DEMO_MENU))]:
        ingredients = []
        for ing_name, qty in lines:
            unit, rate, waste = INGREDIENT_RATES[ing_name]
            # Saffron is priced per gram; quantities above are in grams for it
            ingredients.append(Ingredient(
                name=ing_name,
                quantity_per_serving=qty,
                cost_per_unit=rate,
                unit=unit,
                waste_pct=float(waste),
                cost_per_serving=round(qty * rate, 2),
                is_signature=ing_name in ("Saffron", "Whole Spices"),
                ingredient_id=f"{sku_id}-{ing_name.lower().replace(' ', '-')}",
            ))
        recipes.append(RecipeCard(
            sku_id=sku_id,
            name=name,
            ingredients=ingredients,
            category=section,
            yield_count=4 if section == "main" else 1,
            suggested_selling_price=float(price),
            current_price=float(price),
            is_essential=sku_id in ESSENTIAL_SKUS,
            cuisine="North Indian",
        ))
    return recipes


def generate_demo_sales(config: dict, recipes: list[RecipeCard]) -> pd.DataFrame:
    """
    Sales lines over the demo window.

    Volumes are spread around the popularity ceiling. Dishes in FIXED_VOLUMES
    keep their set covers: the Saffron Gold Biryani is a clear Puzzle, and the
    high-cost plates give the menu its Plowhorses and Dogs.
    """
    n_days = config.get("n_demo_days", 90)
    ceiling = config["popularity_volume_ceiling"]

    weights = []
    for r in recipes:
        low, high = SECTION_DEMAND.get(r.category, (0.5, 1.5))
        weights.append(np.random.uniform(low, high))
    weights = np.array(weights)

    # Target total volume so the median item sits near half the ceiling
    target_volumes = weights / np.median(weights) * (ceiling * 0.5)
    target_volumes = np.random.poisson(lam=np.maximum(target_volumes, 1.0))

    rows = []
    dates = pd.date_range("2024-04-01", periods=n_days, freq="D")
    for r, volume in zip(recipes, target_volumes):
        volume = FIXED_VOLUMES.get(r.sku_id, volume)
        days = np.random.choice(dates, size=int(volume), replace=True)
        for d in days:
            rows.append({"sku_id": r.sku_id, "qty": 1, "order_datetime": pd.Timestamp(d)})

    sales_df = pd.DataFrame(rows, columns=["sku_id", "qty", "order_datetime"])
    return sales_df.sort_values("order_datetime").reset_index(drop=True)


def generate_demo_ledgers(config: dict) -> dict[str, list]:
    """Daily sales, weekly purchases, monthly overheads and payroll."""
    n_days = config.get("n_demo_days", 90)
    dates = pd.date_range("2024-04-01", periods=n_days, freq="D")
    channels = ["Walk-in", "Online", "Takeaway"]

    sales, purchases, expenses, manpower = [], [], [], []
    for i, d in enumerate(dates, start=1):
        weekend = d.dayofweek >= 4
        orders = int(np.random.poisson(95 if weekend else 70))
        avg_ticket = np.random.uniform(320, 420)
        sales.append(SalesEntry(
            id=f"sale_{i}",
            date=d.strftime("%Y-%m-%d"),
            revenue=round(orders * avg_ticket, 2),
            order_count=orders,
            channel=str(np.random.choice(channels, p=[0.55, 0.3, 0.15])),
        ))

        if d.dayofweek == 0:
            for supplier, category, (low, high) in (
                ("Sharma Dairy", "Dairy", (14000, 19000)),
                ("Metro Fresh", "Produce", (9000, 14000)),
                ("Royal Meats", "Protein", (22000, 30000)),
            ):
                purchases.append(PurchaseEntry(
                    id=f"pur_{len(purchases) + 1}",
                    date=d.strftime("%Y-%m-%d"),
                    supplier=supplier,
                    amount=round(np.random.uniform(low, high), 2),
                    category=category,
                ))

        if d.day == 1:
            month = d.strftime("%Y-%m-%d")
            expenses.append(ExpenseEntry(id=f"exp_{len(expenses) + 1}", date=month, type="Rent",
                                         amount=85000.0, note="Monthly lease"))
            expenses.append(ExpenseEntry(id=f"exp_{len(expenses) + 1}", date=month, type="Utility",
                                         amount=round(np.random.uniform(18000, 26000), 2), note="Power + gas"))
            expenses.append(ExpenseEntry(id=f"exp_{len(expenses) + 1}", date=month, type="Marketing",
                                         amount=round(np.random.uniform(6000, 12000), 2), note="Social ads"))
            staff = 14
            manpower.append(ManpowerEntry(
                id=f"man_{len(manpower) + 1}",
                date=month,
                staff_count=staff,
                total_salaries=float(staff * 19500),
                overtime_hours=float(np.random.randint(10, 60)),
            ))

    return {"sales": sales, "purchase": purchases, "expense": expenses, "manpower": manpower}


def generate_demo_vision_cash(config: dict) -> dict:
    """Raw record shaped like the CCTV analytics collaborator's output."""
    received = round(np.random.uniform(40000, 60000), 2)
    return {
        "total_received": received,
        "total_withdrawals": round(received * np.random.uniform(0.05, 0.12), 2),
        "drawer_discrepancies": round(np.random.uniform(0, 800), 2),
        "transaction_count": int(np.random.randint(120, 220)),
        "performance_scores": {
            "kitchen_efficiency": int(np.random.randint(70, 95)),
            "inventory_health": int(np.random.randint(60, 90)),
            "congestion_score": int(np.random.randint(20, 60)),
        },
    }


SUPPLIER_BY_INGREDIENT = {
    "Paneer": "Sharma Dairy", "Butter": "Sharma Dairy", "Fresh Cream": "Sharma Dairy",
    "Milk": "Sharma Dairy", "Yogurt": "Sharma Dairy",
    "Chicken Thigh": "Royal Meats", "Mutton": "Royal Meats", "Prawns": "Royal Meats",
}


def generate_demo_inventory(config: dict) -> list[InventoryItem]:
    """Stock sheet for every demo ingredient; roughly a third sits below par."""
    items = []
    for i, (name, (unit, rate, _waste)) in enumerate(INGREDIENT_RATES.items(), start=1):
        par = 0.5 if unit == "g" else float(np.random.randint(5, 40))
        items.append(InventoryItem(
            id=f"inv_{i}",
            name=name,
            current_stock=round(par * np.random.uniform(0.2, 1.6), 2),
            par_level=par,
            unit=unit,
            cost_per_unit=rate,
            supplier=SUPPLIER_BY_INGREDIENT.get(name, "Metro Fresh"),
        ))
    return items


def generate_demo_restaurant(config: dict):
    """
    Full synthetic dataset:
    - recipes (list of RecipeCard)
    - sales_df (sku_id, qty, order_datetime)
    - ledgers (dict of entry lists keyed by kind)
    - vision_cash (raw dict)
    """
    np.random.seed(config["random_seed"])
    recipes = generate_demo_recipes(config)
    sales_df = generate_demo_sales(config, recipes)
    ledgers = generate_demo_ledgers(config)
    vision_cash = generate_demo_vision_cash(config)
    return recipes, sales_df, ledgers, vision_cash
