"""
Resort fleet report: fetches records from the hosted store and prints the
dashboard summary for a role and window.

    python main.py --months 12 --role MANAGER
    python main.py --resort <resort-id> --json
"""

import argparse
import json
import logging
import sys
from datetime import date

from core.reporting import ReportBuilder, can_view_financials
from core.settings import get_settings
from loaders.record_store import RecordStoreError, SupabaseRecordStore

log = logging.getLogger("main")


def format_rupiah(amount: float) -> str:
    return f"Rp {amount:,.0f}".replace(",", ".")


def print_dashboard(payload: dict):
    window = payload["window"]
    print(f"\n=== RESORT FLEET DASHBOARD ({window['start']} .. {window['end']}) ===\n")

    ops = payload["operational"]
    print(f"Assets:          {ops['asset_count']} ({ops['active_assets']} active, "
          f"{ops['maintenance_assets']} in maintenance)")
    print(f"Utilization:     {ops['utilization_rate']:.1f}%")

    summary = payload.get("summary")
    if not summary:
        return

    print(f"Resorts:         {summary['resort_count']}")
    print(f"Net revenue:     {format_rupiah(summary['total_revenue'])}")
    print(f"DKU share:       {format_rupiah(summary['total_dku_share'])}")
    print(f"Expenses:        {format_rupiah(summary['total_expenses'])} "
          f"({summary['pending_expenses']} pending)")
    print(f"Net profit:      {format_rupiah(summary['net_profit'])} "
          f"({summary['profit_margin']:.1f}% margin)")
    print(f"Maintenance:     {format_rupiah(summary['total_maintenance_cost'])}")
    if summary["unconfigured_records"]:
        print(f"WARNING: {summary['unconfigured_records']} revenue records have no profit sharing config")

    print("\nMonth         Revenue            DKU share          Expenses")
    for month in payload["monthly"]:
        print(f"{month['label']:<12}  {format_rupiah(month['revenue']):<17}  "
              f"{format_rupiah(month['dku_share']):<17}  {format_rupiah(month['expenses'])}")

    print("\nTop resorts:")
    for bucket in payload["by_resort"][:5]:
        print(f"  {bucket['label']:<30} {format_rupiah(bucket['total_revenue'])}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Resort fleet profit sharing report")
    parser.add_argument("--months", type=int, default=None, help="Window size in months (default from settings)")
    parser.add_argument("--role", default="ADMIN", help="Caller role: ADMIN, MANAGER or ENGINEER")
    parser.add_argument("--resort", default=None, help="Show the detail view for one resort id")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a table")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)
    if args.months is not None and args.months < 1:
        parser.error("--months must be at least 1")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = get_settings()
    builder = ReportBuilder(settings)
    window = builder.engine.window(args.months)

    try:
        store = SupabaseRecordStore.from_settings(settings)
        # Configs, assets and resorts are never windowed; revenue and costs are.
        record_set = store.load_record_set(start=window.start, end=date.today())
    except RecordStoreError as e:
        log.error(f"Could not load records: {e}")
        return 1

    if args.resort:
        if not can_view_financials(args.role, settings):
            log.error(f"Role {args.role} may not view resort analytics")
            return 2
        detail = builder.resort_detail(record_set, args.role, args.resort, months=args.months)
        if detail is None:
            log.error(f"Unknown resort: {args.resort}")
            return 1
        print(json.dumps(detail, indent=2, default=str))
        return 0

    payload = builder.build_dashboard(record_set, args.role, months=args.months)
    if args.json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print_dashboard(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
