from __future__ import annotations

import logging
from typing import Any

from funneldash.store import Filter, Order, Store, StoreError, product_range_filters
from funneldash.util import fsum_field, prefer_positive, ratio, to_float


logger = logging.getLogger(__name__)

# daily_summary column -> totals key
TOTAL_FIELDS: tuple[tuple[str, str], ...] = (
    ("total_spend", "spend"),
    ("total_impressions", "impressions"),
    ("total_link_clicks", "link_clicks"),
    ("total_page_views", "page_views"),
    ("total_leads", "leads"),
    ("total_purchases", "purchases"),
    ("total_revenue", "revenue"),
    ("sheet_sales", "sheet_sales"),
    ("sheet_revenue", "sheet_revenue"),
    ("sheet_leads", "sheet_leads"),
    ("sheet_mqls", "sheet_mqls"),
)


def get_daily_summary(store: Store, product_name: str, start_date: str, end_date: str) -> list[dict[str, Any]]:
    try:
        return store.select(
            "daily_summary",
            filters=product_range_filters(product_name, start_date, end_date),
            order=Order("date", ascending=True),
        )
    except StoreError:
        logger.exception("Error fetching daily summary for %s (%s..%s)", product_name, start_date, end_date)
        return []


def get_latest_daily_summary_date(store: Store, product_name: str) -> str | None:
    try:
        rows = store.select(
            "daily_summary",
            columns="date",
            filters=[Filter("product_name", "eq", product_name)],
            order=Order("date", ascending=False),
            limit=1,
        )
    except StoreError:
        logger.exception("Error fetching latest daily summary date for %s", product_name)
        return None
    if not rows:
        return None
    return str(rows[0].get("date") or "")[:10] or None


def derive_kpis(totals: dict[str, float]) -> dict[str, float]:
    """Derived ratios for a totals dict; every ratio is 0.0 when its denominator is zero."""
    spend = totals["spend"]
    impressions = totals["impressions"]
    link_clicks = totals["link_clicks"]
    page_views = totals["page_views"]
    real_leads = prefer_positive(totals["sheet_leads"], totals["leads"])
    real_purchases = prefer_positive(totals["sheet_sales"], totals["purchases"])

    return {
        "real_leads": real_leads,
        "real_purchases": real_purchases,
        "cpm": ratio(spend, impressions, 1000.0),
        "ctr": ratio(link_clicks, impressions, 100.0),
        "cpl": ratio(spend, real_leads),
        "cpc": ratio(spend, link_clicks),
        "cpa": ratio(spend, real_purchases),
        "roas": ratio(totals["sheet_revenue"], spend),
        "load_rate": ratio(page_views, link_clicks, 100.0),
        "conversion_rate": ratio(real_leads, page_views, 100.0),
        "conversion_rate_clicks": ratio(real_leads, link_clicks, 100.0),
        "mql_rate": ratio(totals["sheet_mqls"], real_leads, 100.0),
        "cost_per_mql": ratio(spend, totals["sheet_mqls"]),
    }


def aggregate_metrics(days: list[dict[str, Any]]) -> dict[str, Any] | None:
    if not days:
        return None

    totals = {key: fsum_field(days, column) for column, key in TOTAL_FIELDS}
    return {
        **totals,
        **derive_kpis(totals),
        "days": len(days),
        "daily_data": days,
    }


def get_aggregated_metrics(store: Store, product_name: str, start_date: str, end_date: str) -> dict[str, Any] | None:
    return aggregate_metrics(get_daily_summary(store, product_name, start_date, end_date))


def summary_day_from_totals(day: str, product_name: str, totals: dict[str, float]) -> dict[str, Any]:
    """Build a daily_summary-shaped row (with per-day ratios) from a totals dict."""
    kpis = derive_kpis(totals)
    row: dict[str, Any] = {"date": day, "product_name": product_name, "account_id": ""}
    for column, key in TOTAL_FIELDS:
        row[column] = to_float(totals.get(key))
    row.update(
        {
            "cpm": kpis["cpm"],
            "ctr": kpis["ctr"],
            "cpl": kpis["cpl"],
            "cpa": kpis["cpa"],
            "roas": kpis["roas"],
            "load_rate": kpis["load_rate"],
            "conversion_rate": kpis["conversion_rate"],
            "mql_rate": kpis["mql_rate"],
        }
    )
    return row
