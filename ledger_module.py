"""
Financial Ledger Aggregator + Food-Cost Health Evaluator

Reduces manual ledger entries (sales, purchases, expenses, manpower) and the
optional vision-derived cash movement record into a FiscalSnapshot:

    total_inflow   = sales revenue + vision total_received
    total_outflow  = purchases + expenses + salaries + vision total_withdrawals
    fiscal_balance = total_inflow - total_outflow
    food_cost_pct  = purchases / total_inflow * 100   (0 when inflow is 0)

Bad rows are rejected one at a time (ErrorKind.INVALID_ENTRY) and the rest
still aggregate. Nothing here does I/O; the snapshot is recomputed on every
call from the entries passed in.
"""

from dataclasses import MISSING, dataclass, field, fields, asdict
from typing import Any, ClassVar, Iterable, List
import pandas as pd
import numpy as np

from engine_config import CONFIG
from engine_errors import EngineIssue, ErrorKind, InvalidEntryError, check_amount


SALES_CHANNELS = ("Walk-in", "Online", "Takeaway")
EXPENSE_TYPES = ("Rent", "Utility", "Marketing", "Maintenance", "Other")

FOOD_COST_STATUSES = ("healthy", "warning", "critical")


# =============================================================================
# LEDGER RECORDS
# =============================================================================

@dataclass(frozen=True)
class SalesEntry:
    id: str
    date: str
    revenue: float
    order_count: int = 0
    channel: str = "Walk-in"

    kind: ClassVar[str] = "sales"
    numeric_fields: ClassVar[tuple] = ("revenue", "order_count")
    choice_fields: ClassVar[dict] = {"channel": SALES_CHANNELS}


@dataclass(frozen=True)
class PurchaseEntry:
    id: str
    date: str
    supplier: str
    amount: float
    category: str = ""

    kind: ClassVar[str] = "purchase"
    numeric_fields: ClassVar[tuple] = ("amount",)


@dataclass(frozen=True)
class ExpenseEntry:
    id: str
    date: str
    type: str
    amount: float
    note: str = ""

    kind: ClassVar[str] = "expense"
    numeric_fields: ClassVar[tuple] = ("amount",)
    choice_fields: ClassVar[dict] = {"type": EXPENSE_TYPES}


@dataclass(frozen=True)
class ManpowerEntry:
    id: str
    date: str
    staff_count: int
    total_salaries: float
    overtime_hours: float = 0.0

    kind: ClassVar[str] = "manpower"
    numeric_fields: ClassVar[tuple] = ("staff_count", "total_salaries", "overtime_hours")


ENTRY_TYPES = {
    "sales": SalesEntry,
    "purchase": PurchaseEntry,
    "expense": ExpenseEntry,
    "manpower": ManpowerEntry,
}

# Short prefixes used for generated ids ("sale_3", "pur_7", ...)
ENTRY_ID_PREFIXES = {
    "sales": "sale",
    "purchase": "pur",
    "expense": "exp",
    "manpower": "man",
}


@dataclass(frozen=True)
class VisionCashMovement:
    """
    Cash movement inferred by the CCTV analytics collaborator for one run.

    Only total_received and total_withdrawals feed the fiscal view. The other
    fields are carried for reporting.
    """
    total_received: float = 0.0
    total_withdrawals: float = 0.0
    drawer_discrepancies: float = 0.0
    transaction_count: int = 0
    performance_scores: dict = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict | None) -> "VisionCashMovement | None":
        """Build from the collaborator's loose JSON; accepts snake or camel case keys."""
        if not record:
            return None

        def _pick(*keys, default=0.0):
            for k in keys:
                if k in record and record[k] is not None:
                    return record[k]
            return default

        return cls(
            total_received=_pick("total_received", "totalReceived"),
            total_withdrawals=_pick("total_withdrawals", "totalWithdrawals"),
            drawer_discrepancies=_pick("drawer_discrepancies", "drawerDiscrepancies"),
            transaction_count=_pick("transaction_count", "transactionCount", default=0),
            performance_scores=dict(_pick("performance_scores", "performanceScores", default={}) or {}),
        )


@dataclass
class FiscalSnapshot:
    """Single fiscal-health view. Computed, never persisted."""
    total_inflow: float
    total_outflow: float
    fiscal_balance: float
    food_cost_pct: float
    food_cost_status: str
    manual_sales_total: float = 0.0
    manual_purchase_total: float = 0.0
    manual_expense_total: float = 0.0
    manual_salaries_total: float = 0.0
    vision_received: float = 0.0
    vision_withdrawals: float = 0.0
    accepted_entries: int = 0
    rejected_entries: int = 0
    issues: List[EngineIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["issues"] = [str(i) for i in self.issues]
        return data


# =============================================================================
# VALIDATION
# =============================================================================

def validate_entry(entry, strict: bool = False) -> list[EngineIssue]:
    """
    Check every numeric field of a ledger entry is present, finite and >= 0,
    and that channel / expense type is one of the known values.

    With strict=True the issues are raised as InvalidEntryError, which is what
    a data-entry form uses before committing a row.
    """
    issues = []
    subject = getattr(entry, "id", "") or type(entry).__name__
    for name in getattr(entry, "numeric_fields", ()):
        issue = check_amount(getattr(entry, name, None), subject, name)
        if issue is not None:
            issues.append(issue)
    for name, allowed in getattr(entry, "choice_fields", {}).items():
        value = getattr(entry, name, None)
        if value not in allowed:
            issues.append(EngineIssue(
                ErrorKind.INVALID_ENTRY, subject, f"{value!r} is not one of {list(allowed)}", name,
            ))

    if strict and issues:
        raise InvalidEntryError(issues)
    return issues


def _validate_vision_cash(vision_cash: VisionCashMovement) -> list[EngineIssue]:
    issues = []
    for name in ("total_received", "total_withdrawals"):
        issue = check_amount(getattr(vision_cash, name), "vision_cash", name)
        if issue is not None:
            issues.append(issue)
    return issues


def _flatten_entries(entries) -> list:
    if entries is None:
        return []
    if isinstance(entries, dict):
        flat = []
        for group in entries.values():
            flat.extend(group or [])
        return flat
    return list(entries)


# =============================================================================
# FOOD-COST HEALTH
# =============================================================================

def classify_food_cost_health(pct: float, config: dict = CONFIG) -> str:
    """
    Bucket a food cost % into healthy / warning / critical.

    Boundaries are inclusive on the lower bucket: exactly 30.0 is healthy and
    exactly 40.0 is warning.
    """
    healthy, warning, critical = FOOD_COST_STATUSES
    if pct <= config["food_cost_healthy_max"]:
        return healthy
    if pct <= config["food_cost_warning_max"]:
        return warning
    return critical


# =============================================================================
# AGGREGATION
# =============================================================================

def aggregate(entries, vision_cash=None, config: dict = CONFIG) -> FiscalSnapshot:
    """
    Aggregate ledger entries (+ optional vision cash) into a FiscalSnapshot.

    Args:
        entries: Iterable of SalesEntry / PurchaseEntry / ExpenseEntry /
            ManpowerEntry, or a dict of such lists keyed by ledger kind
        vision_cash: VisionCashMovement, a raw collaborator dict, or None
        config: Engine configuration (food cost breakpoints)

    Returns:
        FiscalSnapshot with every invalid entry listed in .issues
    """
    issues: list[EngineIssue] = []
    sales_total = 0.0
    purchase_total = 0.0
    expense_total = 0.0
    salaries_total = 0.0
    accepted = 0
    rejected = 0

    for entry in _flatten_entries(entries):
        if not isinstance(entry, tuple(ENTRY_TYPES.values())):
            issues.append(EngineIssue(
                ErrorKind.INVALID_ENTRY,
                type(entry).__name__,
                "not a ledger entry",
            ))
            rejected += 1
            continue

        entry_issues = validate_entry(entry)
        if entry_issues:
            issues.extend(entry_issues)
            rejected += 1
            continue

        accepted += 1
        if isinstance(entry, SalesEntry):
            sales_total += float(entry.revenue)
        elif isinstance(entry, PurchaseEntry):
            purchase_total += float(entry.amount)
        elif isinstance(entry, ExpenseEntry):
            expense_total += float(entry.amount)
        else:
            salaries_total += float(entry.total_salaries)

    if isinstance(vision_cash, dict):
        vision_cash = VisionCashMovement.from_record(vision_cash)

    vision_received = 0.0
    vision_withdrawals = 0.0
    if vision_cash is None:
        issues.append(EngineIssue(
            ErrorKind.MISSING_COLLABORATOR_DATA,
            "vision_cash",
            "no cash movement record; counted as zero",
        ))
    else:
        vision_issues = _validate_vision_cash(vision_cash)
        if vision_issues:
            issues.extend(vision_issues)
        else:
            vision_received = float(vision_cash.total_received)
            vision_withdrawals = float(vision_cash.total_withdrawals)

    total_inflow = sales_total + vision_received
    total_outflow = purchase_total + expense_total + salaries_total + vision_withdrawals
    food_cost_pct = (purchase_total / total_inflow) * 100 if total_inflow > 0 else 0.0

    return FiscalSnapshot(
        total_inflow=total_inflow,
        total_outflow=total_outflow,
        fiscal_balance=total_inflow - total_outflow,
        food_cost_pct=food_cost_pct,
        food_cost_status=classify_food_cost_health(food_cost_pct, config),
        manual_sales_total=sales_total,
        manual_purchase_total=purchase_total,
        manual_expense_total=expense_total,
        manual_salaries_total=salaries_total,
        vision_received=vision_received,
        vision_withdrawals=vision_withdrawals,
        accepted_entries=accepted,
        rejected_entries=rejected,
        issues=issues,
    )


# =============================================================================
# TABLE VIEWS
# =============================================================================

PERIOD_COLUMNS = [
    "period", "manual_sales_total", "manual_purchase_total", "manual_expense_total",
    "manual_salaries_total", "total_inflow", "total_outflow", "fiscal_balance",
    "food_cost_pct", "food_cost_status", "entry_count",
]


def ledger_to_frame(entries) -> pd.DataFrame:
    """Flatten ledger entries into one DataFrame with a `kind` column."""
    rows = []
    for entry in _flatten_entries(entries):
        row = asdict(entry)
        row["kind"] = entry.kind
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["id", "date", "kind"])
    return pd.DataFrame(rows)


def aggregate_by_period(entries, vision_cash=None, freq: str = "MS",
                        config: dict = CONFIG) -> pd.DataFrame:
    """
    Per-period fiscal rollup (monthly by default) over the valid entries.

    Vision cash movement carries no date, so it is not spread into periods;
    it only appears in the overall aggregate(). Entries with unparseable
    dates are left out of the table.
    """
    valid = [e for e in _flatten_entries(entries)
             if isinstance(e, tuple(ENTRY_TYPES.values())) and not validate_entry(e)]
    if not valid:
        return pd.DataFrame(columns=PERIOD_COLUMNS)

    rows = []
    for e in valid:
        rows.append({
            "date": e.date,
            "manual_sales_total": float(e.revenue) if isinstance(e, SalesEntry) else 0.0,
            "manual_purchase_total": float(e.amount) if isinstance(e, PurchaseEntry) else 0.0,
            "manual_expense_total": float(e.amount) if isinstance(e, ExpenseEntry) else 0.0,
            "manual_salaries_total": float(e.total_salaries) if isinstance(e, ManpowerEntry) else 0.0,
            "entry_count": 1,
        })
    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    dropped = int(df["date"].isna().sum())
    if dropped:
        print(f"⚠️  {dropped} ledger entries have invalid dates and are left out of the period table")
    df = df.dropna(subset=["date"])
    if df.empty:
        return pd.DataFrame(columns=PERIOD_COLUMNS)

    periods = (
        df.groupby(pd.Grouper(key="date", freq=freq))
        .sum(numeric_only=True)
        .reset_index()
        .rename(columns={"date": "period"})
    )
    periods = periods[periods["entry_count"] > 0].reset_index(drop=True)

    periods["total_inflow"] = periods["manual_sales_total"]
    periods["total_outflow"] = (
        periods["manual_purchase_total"]
        + periods["manual_expense_total"]
        + periods["manual_salaries_total"]
    )
    periods["fiscal_balance"] = periods["total_inflow"] - periods["total_outflow"]
    # Division-by-zero protection
    inflow = periods["total_inflow"].to_numpy(dtype=float)
    safe_inflow = np.where(inflow > 0, inflow, 1.0)
    periods["food_cost_pct"] = np.where(
        inflow > 0,
        periods["manual_purchase_total"].to_numpy(dtype=float) / safe_inflow * 100,
        0.0,
    )
    periods["food_cost_status"] = periods["food_cost_pct"].apply(
        lambda p: classify_food_cost_health(p, config)
    )
    periods["entry_count"] = periods["entry_count"].astype(int)
    return periods[PERIOD_COLUMNS]


# =============================================================================
# BUILDING ENTRIES FROM RAW ROWS
# =============================================================================

def entries_from_records(kind: str, records: Iterable[dict]) -> list:
    """
    Build ledger entries of one kind from dict rows (CSV rows, form posts).

    Numeric fields are kept as given so that aggregate() can reject the bad
    rows individually instead of failing the whole file here.
    """
    if kind not in ENTRY_TYPES:
        raise ValueError(f"Unknown ledger kind '{kind}'. Expected one of {list(ENTRY_TYPES)}")

    entry_cls = ENTRY_TYPES[kind]
    prefix = ENTRY_ID_PREFIXES[kind]

    entries = []
    for i, record in enumerate(records, start=1):
        values = {}
        for f in fields(entry_cls):
            if f.name in record:
                value = record[f.name]
                # pandas hands missing cells over as NaN
                if isinstance(value, float) and np.isnan(value) and f.name not in entry_cls.numeric_fields:
                    value = ""
                values[f.name] = value
            elif f.default is not MISSING:
                values[f.name] = f.default
            elif f.name in entry_cls.numeric_fields:
                values[f.name] = None
            else:
                values[f.name] = ""
        if not values.get("id"):
            values["id"] = f"{prefix}_{i}"
        entries.append(entry_cls(**values))
    return entries
