from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Any

from funneldash.store import Order, Store, StoreError, product_range_filters
from funneldash.util import prefer_positive, ratio, to_float


logger = logging.getLogger(__name__)

SUM_FIELDS = (
    "spend",
    "impressions",
    "link_clicks",
    "leads",
    "purchases",
    "sheet_purchases",
    "sheet_leads_utm",
    "sheet_mqls",
)
IDENTITY_FIELDS = ("ad_name", "campaign_name", "instagram_permalink")


def get_ad_creatives(store: Store, product_name: str, start_date: str, end_date: str) -> list[dict[str, Any]]:
    try:
        return store.select(
            "ad_creatives",
            filters=product_range_filters(product_name, start_date, end_date),
            order=Order("spend", ascending=False),
        )
    except StoreError:
        logger.exception("Error fetching ad creatives for %s (%s..%s)", product_name, start_date, end_date)
        return []


def creative_key(row: dict[str, Any]) -> str:
    return str(row.get("ad_id") or "").strip() or str(row.get("ad_name") or "").strip()


def derive_creative_kpis(c: dict[str, Any]) -> dict[str, float]:
    real_purchases = prefer_positive(c["sheet_purchases"], c["purchases"])
    real_leads = prefer_positive(c["sheet_leads_utm"], c["leads"])
    return {
        "real_purchases": real_purchases,
        "real_leads": real_leads,
        "cpl": ratio(c["spend"], real_leads),
        "cpa": ratio(c["spend"], real_purchases),
        "ctr": ratio(c["link_clicks"], c["impressions"], 100.0),
        "cpc": ratio(c["spend"], c["link_clicks"]),
        "cost_per_mql": ratio(c["spend"], c["sheet_mqls"]),
    }


def aggregate_creatives(creatives: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Group per-day creative rows by ad_id (falling back to ad_name) and recompute
    ratios on the summed counts.

    Sums are exact (math.fsum) and identity fields are taken from the most recent
    dated row that carries a value, so any permutation of the input gives the
    same output.
    """
    parts: dict[str, dict[str, list[float]]] = defaultdict(lambda: {f: [] for f in SUM_FIELDS})
    identity: dict[str, dict[str, tuple[str, str]]] = defaultdict(dict)
    ad_ids: dict[str, str] = {}

    for c in creatives:
        key = creative_key(c)
        if not key:
            continue
        for f in SUM_FIELDS:
            parts[key][f].append(to_float(c.get(f)))

        ad_ids.setdefault(key, str(c.get("ad_id") or "").strip())
        if not ad_ids[key] and c.get("ad_id"):
            ad_ids[key] = str(c["ad_id"]).strip()

        day = str(c.get("date") or "")[:10]
        for f in IDENTITY_FIELDS:
            value = str(c.get(f) or "").strip()
            if not value:
                continue
            candidate = (day, value)
            if f not in identity[key] or candidate > identity[key][f]:
                identity[key][f] = candidate

    result: list[dict[str, Any]] = []
    for key, sums in parts.items():
        row: dict[str, Any] = {"key": key, "ad_id": ad_ids.get(key, "")}
        for f in IDENTITY_FIELDS:
            row[f] = identity[key].get(f, ("", ""))[1]
        if not row["ad_name"]:
            row["ad_name"] = key
        for f in SUM_FIELDS:
            row[f] = math.fsum(sums[f])
        row.update(derive_creative_kpis(row))
        result.append(row)

    result.sort(key=lambda r: (-r["spend"], r["key"]))
    return result


def attributed_totals(creatives: list[dict[str, Any]]) -> dict[str, float]:
    """Sheet conversions matched to a creative (by ad_id / UTM)."""
    return {
        "sales": math.fsum(to_float(c.get("sheet_purchases")) for c in creatives),
        "leads": math.fsum(to_float(c.get("sheet_leads_utm")) for c in creatives),
        "mqls": math.fsum(to_float(c.get("sheet_mqls")) for c in creatives),
    }
