"""
Insights Module - Structured Intelligence Layer

Turns the engineering table and the fiscal snapshot into Insight records,
groups them into an InsightGraph, and renders the text export block that is
handed to the AI strategy assistant.

Architecture:
- L0 (menu_engine / ledger_module) → L1 (detectors) → L2 (InsightGraph) → L3 (AI narrative)

The AI assistant is an external collaborator. Nothing here parses or scores
its text; ai_recommendation is attached to items as an opaque string.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, List
import json
import pandas as pd
import numpy as np


LOW_PROFIT_LABELS = ("PLOWHORSE", "DOG")


@dataclass
class Insight:
    """
    A single finding from the analysis.

    Attributes:
        id: Unique identifier (e.g., "dog_not_essential_sku-014")
        type: "risk" or "opportunity"
        label: Short human-readable label
        summary: One-sentence description of the insight
        impact_low: Lower bound impact estimate over the analysis window
        impact_high: Upper bound impact estimate over the analysis window
        strength: How strong the pattern is (0-100)
        urgency: Priority level ("low", "medium", "high")
        tags: Free-form tags for filtering/grouping
    """
    id: str
    type: str
    label: str
    summary: str
    impact_low: float
    impact_high: float
    strength: int
    urgency: str
    tags: List[str] = field(default_factory=list)


@dataclass
class InsightGraph:
    """
    meta: Restaurant metadata, data reliability and fiscal headline
    opportunities: Profit improvement opportunities, biggest impact first
    risks: Red flags, strongest first
    """
    meta: dict[str, Any] = field(default_factory=dict)
    opportunities: List[Insight] = field(default_factory=list)
    risks: List[Insight] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "meta": self.meta,
            "opportunities": [asdict(o) for o in self.opportunities],
            "risks": [asdict(r) for r in self.risks],
        }


# =============================================================================
# PROBLEM DETECTION - Item Level
# =============================================================================

ISSUE_STRENGTH = {
    "negative_margin": 95,
    "food_cost_critical": 90,
    "negative_fiscal_balance": 90,
    "dog_not_essential": 75,
    "food_cost_warning": 70,
    "plowhorse_margin_squeeze": 70,
    "puzzle_promotion": 65,
    "star_protection": 55,
    "essential_low_performer": 50,
}

HIGH_URGENCY = {"negative_margin", "food_cost_critical", "negative_fiscal_balance"}
MEDIUM_URGENCY = {"dog_not_essential", "plowhorse_margin_squeeze", "food_cost_warning"}


def detect_item_level_problems(menu_df: pd.DataFrame, config: dict | None = None) -> dict[str, list[dict]]:
    """
    Detects item-level risks and opportunities from the engineering table.

    Args:
        menu_df: Output of build_menu_engineering() with columns
            sku_id, item_name, category, current_price, food_cost_per_serving,
            contribution_margin, sales_volume, revenue, total_margin,
            category_label, is_essential
        config: Only "currency" and the scenario percentages are read

    Returns:
        {
            "risks": [list of risk dicts],
            "opportunities": [list of opportunity dicts]
        }
    """
    risks = []
    opportunities = []
    if menu_df is None or menu_df.empty:
        return {"risks": risks, "opportunities": opportunities}

    config = config or {}
    currency = config.get("currency", "₹")
    price_up = config.get("scenario_price_increase_plowhorses", 0.05)

    median_margin = menu_df["contribution_margin"].median()
    if pd.isna(median_margin):
        median_margin = 0

    for _, item in menu_df.iterrows():
        name = item.get("item_name", "Unknown")
        base = {
            "sku_id": item.get("sku_id", ""),
            "item_name": name,
            "category": item.get("category", ""),
            "category_label": item.get("category_label", ""),
        }
        margin = float(item.get("contribution_margin", 0) or 0)
        volume = float(item.get("sales_volume", 0) or 0)
        price = float(item.get("current_price", 0) or 0)
        label = item.get("category_label", "")
        essential = bool(item.get("is_essential", False))

        # Risk 1: sold below plate cost
        if margin < 0:
            risks.append({
                **base,
                "issue": "negative_margin",
                "reason": f"Each plate loses {currency}{abs(margin):.2f}. Re-cost the recipe or reprice immediately.",
                "impact_estimate": abs(margin) * volume,
            })

        # Risk 2: Dogs that nobody pinned as essential
        if label == "DOG" and not essential:
            risks.append({
                **base,
                "issue": "dog_not_essential",
                "reason": f"Low profit and low popularity ({volume:.0f} sold). Candidate for removal or re-imagining.",
                "impact_estimate": max(margin, 0) * volume,
            })
        elif label == "DOG" and essential:
            risks.append({
                **base,
                "issue": "essential_low_performer",
                "reason": "Marked essential but classified DOG. Keep it, but review portion and cost.",
                "impact_estimate": 0.0,
            })

        # Risk 3: Plowhorses with a below-median margin
        if label == "PLOWHORSE" and margin < median_margin:
            risks.append({
                **base,
                "issue": "plowhorse_margin_squeeze",
                "reason": f"Popular but margin {currency}{margin:.2f} is below the menu median "
                          f"({currency}{median_margin:.2f}). Try a small price hike or portion tweak.",
                "impact_estimate": price * price_up * volume,
            })

        # Opportunity 1: Puzzles need visibility
        if label == "PUZZLE":
            opportunities.append({
                **base,
                "issue": "puzzle_promotion",
                "reason": f"Strong margin ({currency}{margin:.2f}) but only {volume:.0f} sold. "
                          "Better placement or staff recommendation could lift volume.",
                "impact_estimate": max(margin, 0) * max(volume, 1),
            })

        # Opportunity 2: keep Stars consistent
        if label == "STAR":
            opportunities.append({
                **base,
                "issue": "star_protection",
                "reason": "High profit and popularity. Keep quality and placement consistent.",
                "impact_estimate": max(margin, 0) * volume * 0.05,
            })

    return {"risks": risks, "opportunities": opportunities}


# =============================================================================
# PROBLEM DETECTION - Fiscal
# =============================================================================

def detect_fiscal_problems(snapshot, config: dict | None = None) -> list[dict]:
    """Risks from the fiscal snapshot: food cost tier and negative balance."""
    risks = []
    if snapshot is None:
        return risks

    config = config or {}
    currency = config.get("currency", "₹")
    healthy_max = config.get("food_cost_healthy_max", 30.0)

    if snapshot.food_cost_status in ("warning", "critical"):
        excess_pct = snapshot.food_cost_pct - healthy_max
        risks.append({
            "item_name": "Restaurant",
            "category": "fiscal",
            "issue": f"food_cost_{snapshot.food_cost_status}",
            "reason": f"Food cost is {snapshot.food_cost_pct:.1f}% of inflow ({snapshot.food_cost_status}). "
                      f"Target is {healthy_max:.0f}% or less.",
            "impact_estimate": snapshot.total_inflow * excess_pct / 100,
        })

    if snapshot.fiscal_balance < 0:
        risks.append({
            "item_name": "Restaurant",
            "category": "fiscal",
            "issue": "negative_fiscal_balance",
            "reason": f"Outflow exceeds inflow by {currency}{abs(snapshot.fiscal_balance):,.0f}.",
            "impact_estimate": abs(snapshot.fiscal_balance),
        })

    return risks


def compute_data_reliability_score(validation_result: dict | None, snapshot=None) -> dict[str, Any]:
    """
    Overall data reliability score (0-100) from validation output and the
    issues recorded on the fiscal snapshot.

    Returns:
        {"score": int, "level": "low" | "medium" | "high", "notes": [...]}
    """
    score = 100
    notes = []
    validation_result = validation_result or {}
    summary = validation_result.get("summary", {})

    warnings = validation_result.get("warnings", [])
    if warnings:
        score -= min(5 * len(warnings), 25)
        notes.extend(warnings)

    sales_lines = summary.get("sales_lines", 0) or 0
    if sales_lines == 0:
        score -= 30
        notes.append("No sales lines. Popularity scores are all zero.")
    elif sales_lines < 500:
        score -= 10
        notes.append(f"Low sales line count ({sales_lines:,}). Popularity may be noisy for slow items.")

    days = summary.get("days_of_data", 0) or 0
    if 0 < days < 28:
        score -= 15
        notes.append(f"Only {days} days of sales. Recommend at least 4 weeks.")

    if snapshot is not None:
        if snapshot.rejected_entries:
            score -= min(2 * snapshot.rejected_entries, 20)
            notes.append(f"{snapshot.rejected_entries} ledger entries rejected (bad amounts or unknown channel / expense type).")
        if snapshot.accepted_entries == 0:
            score -= 20
            notes.append("No ledger entries. Fiscal view is based on vision cash only.")
        if snapshot.vision_received == 0 and snapshot.vision_withdrawals == 0:
            notes.append("No vision cash movement included.")

    score = int(np.clip(score, 0, 100))
    if score >= 75:
        level = "high"
    elif score >= 50:
        level = "medium"
    else:
        level = "low"
    return {"score": score, "level": level, "notes": notes}


# =============================================================================
# INSIGHT GRAPH
# =============================================================================

def _make_id(issue_type: str, subject: str) -> str:
    slug = str(subject).lower().replace(" ", "_").replace("(", "").replace(")", "")[:30]
    return f"{issue_type}_{slug}"


def _urgency(issue_type: str) -> str:
    if issue_type in HIGH_URGENCY:
        return "high"
    if issue_type in MEDIUM_URGENCY:
        return "medium"
    return "low"


def problem_to_insight(problem: dict, is_opportunity: bool) -> Insight:
    issue = problem.get("issue", "unknown")
    impact = float(problem.get("impact_estimate", 0) or 0)
    tags = [issue, str(problem.get("category", "")).lower()]
    if problem.get("category_label"):
        tags.append(problem["category_label"].lower())

    return Insight(
        id=_make_id(issue, problem.get("sku_id") or problem.get("item_name", "")),
        type="opportunity" if is_opportunity else "risk",
        label=f"{problem.get('item_name', 'Unknown')} – {issue.replace('_', ' ').title()}",
        summary=problem.get("reason", ""),
        impact_low=impact * 0.5,
        impact_high=impact * 1.5,
        strength=ISSUE_STRENGTH.get(issue, 50),
        urgency=_urgency(issue),
        tags=tags,
    )


def build_insight_graph(results: dict[str, Any]) -> InsightGraph:
    """
    Builds the Insight Graph from run_full_analysis() results.

    Args:
        results: dict with engineering_df, fiscal_snapshot, validation_result,
            config

    Returns:
        InsightGraph with opportunities sorted by impact and risks by strength
    """
    menu_df = results.get("engineering_df")
    snapshot = results.get("fiscal_snapshot")
    config = results.get("config", {})

    problems = detect_item_level_problems(menu_df, config)
    fiscal_risks = detect_fiscal_problems(snapshot, config)
    reliability = compute_data_reliability_score(results.get("validation_result"), snapshot)

    opportunities = [problem_to_insight(p, is_opportunity=True) for p in problems["opportunities"]]
    risks = [problem_to_insight(p, is_opportunity=False) for p in problems["risks"] + fiscal_risks]

    opportunities.sort(key=lambda x: x.impact_high, reverse=True)
    risks.sort(key=lambda x: x.strength, reverse=True)

    label_counts = {}
    if menu_df is not None and not menu_df.empty:
        label_counts = {k: int(v) for k, v in menu_df["category_label"].value_counts().items()}

    meta = {
        "restaurant_name": config.get("restaurant_name", "Unknown Restaurant"),
        "period_label": config.get("period_label", "Unknown Period"),
        "engine_version": config.get("engine_version", "unknown"),
        "currency": config.get("currency", "₹"),
        "price_elasticity_assumption": config.get("price_elasticity_assumption", -1.0),
        "data_reliability": reliability,
        "menu_items": 0 if menu_df is None else int(len(menu_df)),
        "quadrant_counts": label_counts,
        "total_opportunities_found": len(opportunities),
        "total_risks_found": len(risks),
        "potential_uplift_low": sum(o.impact_low for o in opportunities),
        "potential_uplift_high": sum(o.impact_high for o in opportunities),
    }
    if snapshot is not None:
        meta["food_cost_pct"] = float(snapshot.food_cost_pct)
        meta["food_cost_status"] = snapshot.food_cost_status
        meta["fiscal_balance"] = float(snapshot.fiscal_balance)

    return InsightGraph(meta=meta, opportunities=opportunities, risks=risks)


# =============================================================================
# TABLE FORMATTERS
# =============================================================================

def to_markdown_table(df: pd.DataFrame, cols: list, index: bool = False) -> str:
    if df is None or df.empty:
        return pd.DataFrame(columns=cols).to_markdown(index=index)
    return df[cols].to_markdown(index=index)


def format_menu_class_table(menu_df: pd.DataFrame, label: str, limit: int = 10) -> str:
    """Markdown table of one quadrant, best margin first."""
    if menu_df is None or menu_df.empty:
        return f"No {label} items found."
    items = menu_df[menu_df["category_label"] == label].head(limit)
    if items.empty:
        return f"No {label} items found."
    cols = ["item_name", "category", "current_price", "food_cost_per_serving",
            "contribution_margin", "sales_volume", "total_margin", "is_essential"]
    return to_markdown_table(items, cols, index=False)


# =============================================================================
# AI EXPORT BLOCK
# =============================================================================

def build_ai_export_block(results: dict, insight_graph: InsightGraph, charts: dict | None = None) -> str:
    """
    Text block handed to the AI strategy assistant: meta, fiscal headline,
    quadrant tables, scenarios and the insight graph as JSON.
    """
    lines = []
    meta = insight_graph.meta
    currency = meta.get("currency", "₹")

    def section(title: str):
        lines.append("\n" + "=" * 80)
        lines.append(title)
        lines.append("=" * 80 + "\n")

    def subsection(title: str):
        lines.append(f"\n--- {title} ---\n")

    # SECTION 1
    section("SECTION 1: META & FISCAL HEALTH")
    lines.append(f"RESTAURANT_NAME: {meta.get('restaurant_name')}")
    lines.append(f"PERIOD_ANALYSED: {meta.get('period_label')}")
    lines.append(f"CURRENCY: {currency}")
    lines.append(f"ENGINE_VERSION: {meta.get('engine_version')}")

    reliability = meta.get("data_reliability", {})
    subsection("DATA_RELIABILITY")
    lines.append(f"Score: {reliability.get('score', 0)}/100")
    lines.append(f"Level: {reliability.get('level', 'unknown').upper()}")
    for note in reliability.get("notes", []):
        lines.append(f"  • {note}")

    snapshot = results.get("fiscal_snapshot")
    subsection("FISCAL_SNAPSHOT")
    if snapshot is not None:
        lines.append(f"Total Inflow: {currency}{snapshot.total_inflow:,.0f}")
        lines.append(f"Total Outflow: {currency}{snapshot.total_outflow:,.0f}")
        lines.append(f"Fiscal Balance: {currency}{snapshot.fiscal_balance:,.0f}")
        lines.append(f"Food Cost %: {snapshot.food_cost_pct:.1f}% ({snapshot.food_cost_status.upper()})")
        lines.append(f"Vision Cash Received: {currency}{snapshot.vision_received:,.0f}")
    else:
        lines.append("No fiscal data available.")

    # SECTION 2
    section("SECTION 2: MENU ENGINEERING")
    menu_df = results.get("engineering_df")
    quad_df = results.get("quadrant_summary_df")
    if quad_df is not None and not quad_df.empty:
        subsection("QUADRANT_SUMMARY")
        lines.append(to_markdown_table(
            quad_df, ["category_label", "item_count", "essential_count", "units_sold", "revenue", "total_margin"]
        ))
    for label, heading in (("STAR", "High Profit, High Popularity"),
                           ("PLOWHORSE", "Low Profit, High Popularity"),
                           ("PUZZLE", "High Profit, Low Popularity"),
                           ("DOG", "Low Profit, Low Popularity")):
        subsection(f"MENU_{label}S ({heading})")
        lines.append(format_menu_class_table(menu_df, label))

    scenarios = results.get("scenarios") or {}
    subsection("SCENARIO_ANALYSIS")
    if scenarios:
        elasticity = meta.get("price_elasticity_assumption", -1.0)
        lines.append(f"Price Elasticity Assumption: {elasticity:.1f}\n")
        for name, data in scenarios.items():
            lines.append(f"{name}:")
            lines.append(f"  Label: {data.get('label', 'No label')}")
            lines.append(f"  Margin Impact: {currency}{data.get('delta_total_margin', 0):,.0f}")
            lines.append(f"  Revenue Impact: {currency}{data.get('delta_revenue', 0):,.0f}")
            lines.append(f"  Items Changing Quadrant: {data.get('reclassified_items', 0)}")
    else:
        lines.append("No scenario data available.")

    # SECTION 3
    section("SECTION 3: INSIGHT GRAPH (RAW STRUCTURED INTELLIGENCE)")
    lines.append(json.dumps(insight_graph.to_dict(), indent=2, default=str))

    # SECTION 4
    section("SECTION 4: EXECUTIVE SUMMARIES")
    subsection("TOP 10 PROFIT OPPORTUNITIES")
    if insight_graph.opportunities:
        for i, opp in enumerate(insight_graph.opportunities[:10], 1):
            lines.append(f"{i}. **{opp.label}** (Impact: {currency}{opp.impact_low:,.0f}-{currency}{opp.impact_high:,.0f})")
            lines.append(f"   {opp.summary}")
    else:
        lines.append("No significant opportunities detected.")

    subsection("TOP 10 CRITICAL RISKS")
    if insight_graph.risks:
        for i, risk in enumerate(insight_graph.risks[:10], 1):
            lines.append(f"{i}. **{risk.label}** (Severity: {risk.strength}/100, Urgency: {risk.urgency.upper()})")
            lines.append(f"   {risk.summary}")
    else:
        lines.append("No critical risks detected.")

    if charts:
        section("SECTION 5: CHART REFERENCES")
        for chart_name, filename in charts.items():
            lines.append(f"  {chart_name}: {filename}")

    lines.append("\n" + "=" * 80)
    lines.append("END OF EXPORT BLOCK")
    lines.append("=" * 80)
    return "\n".join(lines)


# =============================================================================
# AI COLLABORATOR BOUNDARY
# =============================================================================

def build_strategy_query(menu_df: pd.DataFrame) -> str | None:
    """
    Prompt asking the AI assistant for a strategy on Plowhorses and Dogs.

    Returns None when there are no low-profit items to strategize.
    """
    if menu_df is None or menu_df.empty:
        return None
    low_profit = menu_df[menu_df["category_label"].isin(LOW_PROFIT_LABELS)]
    if low_profit.empty:
        return None

    names = ", ".join(f"{row.item_name} ({row.category_label})" for row in low_profit.itertuples())
    return (
        f"I have several items categorized as low-profit (Plowhorses or Dogs): {names}.\n"
        "Please generate a comprehensive Strategy Report to improve my profitability.\n"
        "Focus on:\n"
        "1. Actionable steps to increase contribution margin for the Plowhorses without losing volume.\n"
        "2. A decision matrix for which Dogs to discontinue and what to replace them with.\n"
        "3. Marketing tactics to shift customer preference from Plowhorses to high-margin Stars."
    )


def attach_ai_recommendations(menu_df: pd.DataFrame, recommendations: dict | None) -> pd.DataFrame:
    """
    Copy AI recommendation text onto the table by sku_id.

    Values are passed through as strings without inspection. Items with no
    recommendation keep what they had, or "" when they had nothing.
    """
    df = menu_df.copy()
    if "ai_recommendation" not in df.columns:
        df["ai_recommendation"] = ""
    df["ai_recommendation"] = df["ai_recommendation"].fillna("").astype(str)
    if not recommendations or df.empty:
        return df

    mapped = df["sku_id"].map(lambda sku: recommendations.get(sku))
    has_text = mapped.notna()
    df.loc[has_text, "ai_recommendation"] = mapped[has_text].astype(str)
    return df
