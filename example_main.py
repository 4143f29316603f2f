import os
import json
import menu_engineering_engine as engine


def main(output_dir: str = "output"):
    """Run the menu engineering engine on the demo bistro and save outputs."""

    # Run analysis
    results = engine.run_full_analysis(
        config=engine.CONFIG,
        data_source="demo",  # Change to "client" later when you have client data
    )

    # Print summary
    print("Quadrant summary:")
    print(
        results["quadrant_summary_df"][["category_label", "item_count", "units_sold", "total_margin"]]
        .to_string(index=False)
    )

    print("\nTop 5 items by total margin:")
    print(
        results["engineering_df"][["item_name", "category", "sales_volume", "contribution_margin", "category_label"]]
        .head(5)
        .to_string(index=False)
    )

    snapshot = results["fiscal_snapshot"]
    print(f"\nFood cost: {snapshot.food_cost_pct:.1f}% ({snapshot.food_cost_status})")

    # Ensure output directory exists
    os.makedirs(output_dir, exist_ok=True)

    # Save DataFrames as CSV
    results["engineering_df"].to_csv(os.path.join(output_dir, "engineering_df.csv"), index=False)
    results["quadrant_summary_df"].to_csv(os.path.join(output_dir, "quadrant_summary_df.csv"), index=False)
    results["period_df"].to_csv(os.path.join(output_dir, "period_df.csv"), index=False)
    results["ledger_df"].to_csv(os.path.join(output_dir, "ledger_df.csv"), index=False)
    results["reorder_df"].to_csv(os.path.join(output_dir, "reorder_df.csv"), index=False)

    # Save fiscal snapshot as JSON
    with open(os.path.join(output_dir, "fiscal_snapshot.json"), "w") as f:
        json.dump(snapshot.to_dict(), f, indent=2)

    # Save AI export block as text
    with open(os.path.join(output_dir, "ai_export_block.txt"), "w", encoding="utf-8") as f:
        f.write(results["ai_export_block"])

    # Save charts as PNG files
    engine.menu_engine.save_all_charts(results, output_dir=output_dir, config=engine.CONFIG)

    # Save combined Excel workbook
    excel_path = os.path.join(output_dir, "report_data.xlsx")
    engine.menu_engine.export_results_to_excel(results, excel_path)

    print(f"\nWrote outputs to ./{output_dir}")
    print(f"Saved chart images to ./{output_dir}")
    print(f"Saved combined Excel workbook to {excel_path}")
    return results


if __name__ == "__main__":
    main()
