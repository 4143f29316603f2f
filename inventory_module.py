"""
Inventory stock levels and reorder drafts.

An item is low on stock when current_stock < par_level. Reorder drafts are
grouped per supplier and top every low item back up to par.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List
import pandas as pd

from engine_errors import EngineIssue, check_amount


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    current_stock: float
    par_level: float
    unit: str = "kg"
    cost_per_unit: float = 0.0
    supplier: str = ""
    category: str = "General"
    last_updated: str = ""

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock < self.par_level

    @property
    def shortfall(self) -> float:
        return max(self.par_level - self.current_stock, 0)


@dataclass
class ReorderLine:
    name: str
    qty: float
    unit: str
    estimated_cost: float


@dataclass
class ReorderDraft:
    supplier: str
    lines: List[ReorderLine]
    status: str = "draft"
    generated_date: str = ""

    @property
    def total_estimated_cost(self) -> float:
        return sum(line.estimated_cost for line in self.lines)


def validate_inventory_item(item: InventoryItem) -> list[EngineIssue]:
    issues = []
    for name in ("current_stock", "par_level", "cost_per_unit"):
        issue = check_amount(getattr(item, name), item.id or item.name, name)
        if issue is not None:
            issues.append(issue)
    return issues


def find_low_stock(items: List[InventoryItem], supplier: str | None = None) -> List[InventoryItem]:
    """Items below par, optionally for a single supplier."""
    return [
        i for i in items
        if (supplier is None or i.supplier == supplier) and i.is_low_stock
    ]


def draft_reorders(items: List[InventoryItem], supplier: str | None = None) -> List[ReorderDraft]:
    """
    One draft per supplier with every low-stock item topped up to par.

    Suppliers with nothing below par get no draft.
    """
    by_supplier = {}
    for item in find_low_stock(items, supplier):
        by_supplier.setdefault(item.supplier or "Unassigned", []).append(
            ReorderLine(
                name=item.name,
                qty=item.shortfall,
                unit=item.unit,
                estimated_cost=item.shortfall * item.cost_per_unit,
            )
        )

    generated = datetime.now().strftime("%Y-%m-%d")
    return [
        ReorderDraft(supplier=name, lines=lines, generated_date=generated)
        for name, lines in sorted(by_supplier.items())
    ]


def adjust_stock(item: InventoryItem, delta: float) -> InventoryItem:
    """New item with stock moved by delta. Stock never goes below zero."""
    return replace(
        item,
        current_stock=max(0, item.current_stock + delta),
        last_updated=datetime.now().isoformat(timespec="seconds"),
    )


def inventory_from_frame(df: pd.DataFrame) -> List[InventoryItem]:
    """Build items from a stock sheet with at least name, current_stock, par_level."""
    missing = [c for c in ("name", "current_stock", "par_level") if c not in df.columns]
    if missing:
        raise ValueError(f"❌ CRITICAL: Inventory file missing required columns: {missing}")

    items = []
    for i, row in enumerate(df.to_dict("records"), start=1):
        items.append(InventoryItem(
            id=str(row.get("id") or f"inv_{i}"),
            name=str(row["name"]),
            current_stock=float(row["current_stock"]),
            par_level=float(row["par_level"]),
            unit=str(row.get("unit") or "kg"),
            cost_per_unit=float(row.get("cost_per_unit") or 0),
            supplier=str(row.get("supplier") or ""),
            category=str(row.get("category") or "General"),
        ))
    return items


def reorders_to_frame(drafts: List[ReorderDraft]) -> pd.DataFrame:
    rows = [
        {"supplier": d.supplier, "item": line.name, "qty": line.qty,
         "unit": line.unit, "estimated_cost": line.estimated_cost}
        for d in drafts for line in d.lines
    ]
    return pd.DataFrame(rows, columns=["supplier", "item", "qty", "unit", "estimated_cost"])
