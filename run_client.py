import os
import json
import numpy as np
import pandas as pd
import menu_engineering_engine as engine


def configure_client_paths():
    """
    Configure client data paths.

    User must edit the placeholder paths below to match their actual data files:
    - client_menu_path: CSV with menu items (columns: sku_id, item_name, category, current_price, food_cost_per_serving)
    - client_sales_path: CSV with sales lines (columns: sku_id, qty, order_datetime)
    - client_ledger_paths: optional CSVs for sales / purchase / expense / manpower ledgers
    - client_vision_cash_path: optional JSON from the CCTV analytics service
    """
    config = engine.CONFIG.copy()

    # Edit these paths to point to your actual client data files
    config["client_menu_path"] = "data/client_menu.csv"
    config["client_sales_path"] = "data/client_sales.csv"
    # Ledgers you do not have stay None
    config["client_ledger_paths"] = {
        "sales": None,
        "purchase": None,
        "expense": None,
        "manpower": None,
    }
    config["client_vision_cash_path"] = None

    print("Client configuration loaded.")
    print(f"  Menu path: {config['client_menu_path']}")
    print(f"  Sales path: {config['client_sales_path']}")
    for kind, path in config["client_ledger_paths"].items():
        print(f"  {kind.title()} ledger: {path}")
    print(f"  Vision cash: {config['client_vision_cash_path']}")
    print()

    return config


def _to_py(o):
    """Recursive conversion of numpy/pandas values to native Python types for JSON."""
    if isinstance(o, dict):
        return {k: _to_py(v) for k, v in o.items()}
    if isinstance(o, (list, tuple)):
        return [_to_py(v) for v in o]
    if isinstance(o, np.ndarray):
        return _to_py(o.tolist())
    if isinstance(o, np.generic):
        return o.item()
    if isinstance(o, pd.Timestamp):
        return str(o)
    return o


def main(config: dict | None = None, output_dir: str = "output_client"):
    """Run the menu engineering engine on client data and save outputs."""
    config = config or configure_client_paths()
    os.makedirs(output_dir, exist_ok=True)

    # Ensure required client data files exist (menu and sales are required; ledgers are optional)
    missing = []
    for k in ("client_menu_path", "client_sales_path"):
        p = config.get(k)
        if not p or not os.path.exists(p):
            missing.append(p or f"<missing {k}>")
    if missing:
        raise FileNotFoundError(
            "Client-mode data files are missing: " + ", ".join(missing) +
            ".\nPlease provide the files at the configured paths in run_client.py and retry."
        )

    print(f"ℹ️  Running client analysis for {config['restaurant_name']} ({config['period_label']})")
    results = engine.run_full_analysis(config=config, data_source="client")

    validation = results.get("validation_result") or results.get("validation")
    if validation:
        with open(os.path.join(output_dir, "validation_report.json"), "w", encoding="utf-8") as f:
            json.dump(_to_py(validation), f, indent=2)

    if "error" in results:
        print(f"❌ {results['error']}")
        return results

    print(f"ℹ️  Loaded {len(results['menu_df'])} menu items and {len(results['sales_df'])} sales lines")
    print(results["quadrant_summary_df"][["category_label", "item_count", "total_margin"]].to_string(index=False))
    print()

    # Save DataFrames as CSV (only if present in results)
    save_map = {
        "engineering_df": "engineering_df.csv",
        "quadrant_summary_df": "quadrant_summary_df.csv",
        "period_df": "period_df.csv",
        "ledger_df": "ledger_df.csv",
        "reorder_df": "reorder_df.csv",
    }
    for key, fname in save_map.items():
        df = results.get(key)
        if isinstance(df, pd.DataFrame):
            df.to_csv(os.path.join(output_dir, fname), index=False)

    with open(os.path.join(output_dir, "fiscal_snapshot.json"), "w", encoding="utf-8") as f:
        json.dump(_to_py(results["fiscal_snapshot"].to_dict()), f, indent=2)

    # Save AI export block and the low-profit strategy prompt as text
    with open(os.path.join(output_dir, "ai_export_block.txt"), "w", encoding="utf-8") as f:
        f.write(results["ai_export_block"])
    if results.get("strategy_query"):
        with open(os.path.join(output_dir, "strategy_query.txt"), "w", encoding="utf-8") as f:
            f.write(results["strategy_query"])
    else:
        print("ℹ️  No low-profit items detected; no strategy query written.")

    engine.menu_engine.save_all_charts(results, output_dir=output_dir, config=config)

    dq_notes = results.get("data_quality_notes")
    if dq_notes:
        with open(os.path.join(output_dir, "data_quality_notes.txt"), "w", encoding="utf-8") as f:
            for line in dq_notes:
                f.write(line.rstrip() + "\n")

    excel_path = os.path.join(output_dir, "report_data.xlsx")
    try:
        engine.menu_engine.export_results_to_excel(results, excel_path)
    except (OSError, ValueError) as e:
        # Excel is optional; the CSVs above already hold every table
        print(f"⚠️  Excel export skipped: {e}")

    print(
        f"✅ Wrote client outputs (CSVs, charts, export block, fiscal snapshot, Excel workbook) to ./{output_dir}"
    )
    return results


if __name__ == "__main__":
    main()
