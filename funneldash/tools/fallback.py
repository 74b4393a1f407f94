"""Rebuild daily totals from ad_creatives when the daily_summary job has not caught up."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Literal

from funneldash.tools.metrics import aggregate_metrics, summary_day_from_totals
from funneldash.util import prefer_positive, ratio, to_float


logger = logging.getLogger(__name__)

DataSource = Literal["daily_summary", "ad_creatives", "mixed"]

# ad_creatives column -> totals key (fields the summary job derives from the sheet stay 0)
_CREATIVE_DAY_FIELDS = (
    ("spend", "spend"),
    ("impressions", "impressions"),
    ("link_clicks", "link_clicks"),
    ("leads", "leads"),
    ("purchases", "purchases"),
    ("sheet_leads_utm", "sheet_leads_utm"),
    ("sheet_mqls", "sheet_mqls"),
)


@dataclass(frozen=True)
class ReconciledMetrics:
    metrics: dict[str, Any]
    data_source: DataSource
    fallback_dates: list[str] = field(default_factory=list)


def _empty_totals() -> dict[str, float]:
    return {
        "spend": 0.0,
        "impressions": 0.0,
        "link_clicks": 0.0,
        "page_views": 0.0,
        "leads": 0.0,
        "purchases": 0.0,
        "revenue": 0.0,
        "sheet_sales": 0.0,
        "sheet_revenue": 0.0,
        "sheet_leads": 0.0,
        "sheet_mqls": 0.0,
    }


def daily_rows_from_creatives(creatives: list[dict[str, Any]], product_name: str) -> list[dict[str, Any]]:
    parts: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    for c in creatives:
        day = str(c.get("date") or "")[:10]
        if not day:
            continue
        for column, key in _CREATIVE_DAY_FIELDS:
            parts[day][key].append(to_float(c.get(column)))

    rows: list[dict[str, Any]] = []
    for day in sorted(parts):
        sums = {key: math.fsum(parts[day][key]) for _, key in _CREATIVE_DAY_FIELDS}
        totals = _empty_totals()
        for key in ("spend", "impressions", "link_clicks", "leads", "purchases", "sheet_mqls"):
            totals[key] = sums[key]

        row = summary_day_from_totals(day, product_name, totals)
        mql_leads = prefer_positive(sums["sheet_leads_utm"], sums["leads"])
        row["mql_rate"] = ratio(sums["sheet_mqls"], mql_leads, 100.0)
        row["source"] = "ad_creatives"
        rows.append(row)
    return rows


def reconcile(
    summary_days: list[dict[str, Any]],
    creatives: list[dict[str, Any]],
    product_name: str,
) -> ReconciledMetrics | None:
    """
    Combine daily_summary rows with days reconstructed from creatives.

    Only days after the last summarised day are reconstructed; a day that the
    summary job wrote is never overridden.
    """
    reconstructed = daily_rows_from_creatives(creatives, product_name)

    if not summary_days:
        if not reconstructed:
            return None
        logger.info("daily_summary empty for %s; using %d day(s) from ad_creatives", product_name, len(reconstructed))
        metrics = aggregate_metrics(reconstructed)
        return ReconciledMetrics(metrics, "ad_creatives", [r["date"] for r in reconstructed])

    last_summary_day = max(str(d.get("date") or "")[:10] for d in summary_days)
    trailing = [r for r in reconstructed if r["date"] > last_summary_day]
    if not trailing:
        return ReconciledMetrics(aggregate_metrics(summary_days), "daily_summary", [])

    logger.info(
        "daily_summary for %s ends at %s; filling %d trailing day(s) from ad_creatives",
        product_name,
        last_summary_day,
        len(trailing),
    )
    merged = sorted(list(summary_days) + trailing, key=lambda d: str(d.get("date") or ""))
    return ReconciledMetrics(aggregate_metrics(merged), "mixed", [r["date"] for r in trailing])
