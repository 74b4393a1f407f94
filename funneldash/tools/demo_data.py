from __future__ import annotations

import hashlib
import math
import random
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from funneldash.db import init_db, insert_rows
from funneldash.products import Product, list_products
from funneldash.tools.metrics import summary_day_from_totals
from funneldash.util import iso_date


_FIRST_NAMES = ("Ana", "Bruno", "Carla", "Diego", "Elisa", "Fábio", "Gabriela", "Hugo")
_REASONS = ("sem ad_id", "telefone sem match", "utm ausente")


def _daterange(start: date, end: date) -> Iterable[date]:
    if end < start:
        raise ValueError("end_date must be >= start_date")
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _ad_id(product_id: str, index: int) -> str:
    digest = hashlib.sha256(f"{product_id}:{index}".encode("utf-8")).hexdigest()
    return "12024" + str(int(digest[:12], 16) % 10**12).zfill(12)


def _creative_rows(rng: random.Random, product: Product, day: date, n_ads: int) -> list[dict[str, Any]]:
    rows = []
    for i in range(n_ads):
        impressions = rng.randint(800, 20000)
        link_clicks = int(impressions * rng.uniform(0.005, 0.03))
        spend = round(impressions / 1000.0 * rng.uniform(15.0, 45.0), 2)
        leads = int(link_clicks * rng.uniform(0.05, 0.3))
        purchases = rng.randint(0, 2) if product.is_sales else 0
        sheet_purchases = max(0, purchases - rng.randint(0, 1)) if product.is_sales else 0
        sheet_leads_utm = max(0, leads - rng.randint(0, 2))
        sheet_mqls = int(sheet_leads_utm * rng.uniform(0.1, 0.5))
        ad_id = _ad_id(product.id, i)
        rows.append(
            {
                "date": iso_date(day),
                "account_id": "act_demo",
                "campaign_name": f"{product.name} | Campanha {1 + i % 2}",
                "product_name": product.id,
                "ad_name": f"ADS{i + 1:03d}_{product.id.upper()}",
                "ad_id": ad_id,
                "spend": spend,
                "impressions": impressions,
                "link_clicks": link_clicks,
                "leads": leads,
                "purchases": purchases,
                "sheet_purchases": sheet_purchases,
                "sheet_leads_utm": sheet_leads_utm,
                "sheet_mqls": sheet_mqls,
                "instagram_permalink": f"https://www.instagram.com/p/demo{i + 1}/" if i % 3 else "",
            }
        )
    return rows


def _summary_row(rng: random.Random, product: Product, day: date, creatives: list[dict[str, Any]]) -> dict[str, Any]:
    def total(field: str) -> float:
        return math.fsum(float(c[field]) for c in creatives)

    link_clicks = total("link_clicks")
    # The sheet always knows about a few conversions no creative claimed.
    sheet_sales = total("sheet_purchases") + (rng.randint(0, 2) if product.is_sales else 0)
    sheet_leads = total("sheet_leads_utm") + rng.randint(0, 3)
    totals = {
        "spend": total("spend"),
        "impressions": total("impressions"),
        "link_clicks": link_clicks,
        "page_views": 0.0 if product.native_form else float(int(link_clicks * rng.uniform(0.6, 0.9))),
        "leads": total("leads"),
        "purchases": total("purchases"),
        "revenue": 0.0,
        "sheet_sales": sheet_sales,
        "sheet_revenue": round(sheet_sales * rng.uniform(197.0, 497.0), 2) if product.is_sales else 0.0,
        "sheet_leads": sheet_leads,
        "sheet_mqls": total("sheet_mqls") + rng.randint(0, 1),
    }
    row = summary_day_from_totals(iso_date(day), product.id, totals)
    row["account_id"] = "act_demo"
    return row


def generate_demo_data(
    db_path: str,
    *,
    start_date: date,
    end_date: date,
    seed: int = 42,
    ads_per_product: int = 6,
    summary_lag_days: int = 1,
    reset: bool = True,
) -> dict[str, Any]:
    """
    Fill a SQLite store with synthetic daily_summary / ad_creatives rows.

    The last ``summary_lag_days`` days only get creatives, which mimics the
    summary job running behind the creatives sync.
    """
    rng = random.Random(seed)
    init_db(db_path, reset=reset)

    summary_cutoff = end_date - timedelta(days=max(0, summary_lag_days))
    creatives: list[dict[str, Any]] = []
    summaries: list[dict[str, Any]] = []
    leads: list[dict[str, Any]] = []

    for product in list_products():
        for day in _daterange(start_date, end_date):
            day_creatives = _creative_rows(rng, product, day, ads_per_product)
            creatives.extend(day_creatives)
            if day <= summary_cutoff:
                summaries.append(_summary_row(rng, product, day, day_creatives))
            if not product.is_sales and rng.random() < 0.3:
                leads.append(
                    {
                        "date": iso_date(day),
                        "product_name": product.id,
                        "nome": rng.choice(_FIRST_NAMES),
                        "telefone": f"+55 11 9{rng.randint(1000, 9999)}-{rng.randint(1000, 9999)}",
                        "form_name": f"{product.name} - formulário",
                        "motivo": rng.choice(_REASONS),
                    }
                )

    return {
        "db_path": db_path,
        "date_range": {"start": iso_date(start_date), "end": iso_date(end_date)},
        "row_counts": {
            "ad_creatives": insert_rows(db_path, "ad_creatives", creatives),
            "daily_summary": insert_rows(db_path, "daily_summary", summaries),
            "unattributed_mql_leads": insert_rows(db_path, "unattributed_mql_leads", leads),
        },
        "notes": ["All data is synthetic (dummy) and not business truth."],
    }
