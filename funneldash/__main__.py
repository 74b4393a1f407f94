from __future__ import annotations

import argparse
import json
import sys
from datetime import date, timedelta

from funneldash.config import load_settings
from funneldash.daterange import custom_range, product_default_range, resolve_date_range, today_in_tz
from funneldash.db import init_db
from funneldash.logging_config import setup_logging
from funneldash.products import DEFAULT_PRODUCT_ID, load_products
from funneldash.report import ReportInputs, build_dashboard_report
from funneldash.store import build_store
from funneldash.tools.creatives import aggregate_creatives, get_ad_creatives
from funneldash.tools.demo_data import generate_demo_data
from funneldash.tools.leads import get_unattributed_mql_leads
from funneldash.tools.metrics import get_aggregated_metrics, get_latest_daily_summary_date


def _print(obj: object) -> None:
    print(json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False, default=str))


def _resolve(args: argparse.Namespace, tz_name: str):
    if args.start_date or args.end_date:
        if not args.start_date or not args.end_date:
            raise SystemExit("--start-date and --end-date must be given together")
        return custom_range(args.start_date, args.end_date)
    if args.preset:
        return resolve_date_range(args.preset, args.product, tz_name=tz_name)
    return product_default_range(args.product, tz_name=tz_name)


def main(argv: list[str]) -> int:
    settings = load_settings()
    setup_logging(settings.log_level)
    if settings.products_file:
        load_products(settings.products_file)

    parser = argparse.ArgumentParser(prog="funneldash", description="Ad funnel KPIs from daily_summary / ad_creatives.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def _range_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--product", type=str, default=DEFAULT_PRODUCT_ID)
        p.add_argument("--preset", type=str, default="", help="today, yesterday, last7days, last14days, last30days, thisMonth, lastMonth, allTime")
        p.add_argument("--start-date", type=str, default="")
        p.add_argument("--end-date", type=str, default="")

    tool = sub.add_parser("tool", help="Run a single tool (e.g., metrics, creatives).")
    tool.add_argument("name", type=str, help="date_range, metrics, creatives, latest_date, unattributed_leads")
    _range_args(tool)

    report = sub.add_parser("report", help="Build the full dashboard payload.")
    _range_args(report)
    report.add_argument("--sort-by", type=str, default="conversions")
    report.add_argument("--view", type=str, default="")
    report.add_argument("--limit", type=int, default=10)
    report.add_argument("--out", type=str, default="", help="Optional output file path (written as UTF-8).")

    initdb = sub.add_parser("init-db", help="Create an empty SQLite store with the dashboard tables.")
    initdb.add_argument("--sqlite-path", type=str, default=settings.db_path)
    initdb.add_argument("--reset", action="store_true")

    seed = sub.add_parser("seed-demo", help="Fill a SQLite store with synthetic data.")
    seed.add_argument("--sqlite-path", type=str, default=settings.db_path)
    seed.add_argument("--start-date", type=str, default="", help="YYYY-MM-DD (default: 30 days ago)")
    seed.add_argument("--end-date", type=str, default="", help="YYYY-MM-DD (default: today)")
    seed.add_argument("--seed", type=int, default=42)
    seed.add_argument("--summary-lag-days", type=int, default=1)

    args = parser.parse_args(argv)

    if args.cmd == "init-db":
        init_db(args.sqlite_path, reset=args.reset)
        _print({"db_path": args.sqlite_path, "initialized": True})
        return 0

    if args.cmd == "seed-demo":
        today = today_in_tz(settings.timezone)
        start = date.fromisoformat(args.start_date) if args.start_date else today - timedelta(days=30)
        end = date.fromisoformat(args.end_date) if args.end_date else today
        _print(
            generate_demo_data(
                args.sqlite_path,
                start_date=start,
                end_date=end,
                seed=args.seed,
                summary_lag_days=args.summary_lag_days,
            )
        )
        return 0

    store = build_store(settings)
    date_range = _resolve(args, settings.timezone)
    start, end = date_range.start_iso, date_range.end_iso

    if args.cmd == "tool":
        name = args.name.strip().replace(".", "_")

        if name == "date_range":
            _print(date_range.to_dict())
            return 0
        if name == "metrics":
            metrics = get_aggregated_metrics(store, args.product, start, end)
            _print({"metrics": metrics, "date_range": date_range.to_dict()})
            return 0
        if name == "creatives":
            rows = aggregate_creatives(get_ad_creatives(store, args.product, start, end))
            _print({"rows": rows, "row_count": len(rows), "date_range": date_range.to_dict()})
            return 0
        if name == "latest_date":
            _print({"product": args.product, "latest_date": get_latest_daily_summary_date(store, args.product)})
            return 0
        if name == "unattributed_leads":
            rows = get_unattributed_mql_leads(store, args.product, start, end)
            _print({"rows": rows, "row_count": len(rows)})
            return 0

        raise SystemExit(f"Unknown tool: {args.name}")

    if args.cmd == "report":
        inputs = ReportInputs(
            product_id=args.product,
            start_date=start,
            end_date=end,
            preset=date_range.preset,
            sort_by=args.sort_by,
            view=args.view or None,
            limit=args.limit,
        )
        result = build_dashboard_report(store, inputs, tz_name=settings.timezone)
        payload = json.dumps(result, indent=2, ensure_ascii=False)
        if args.out:
            with open(args.out, "w", encoding="utf-8", newline="\n") as f:
                f.write(payload)
        print(payload)
        return 0

    return 1


def _entrypoint() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(_entrypoint())
