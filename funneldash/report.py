from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from funneldash.daterange import DateRange, custom_range, includes_partial_day, today_in_tz
from funneldash.products import Product, get_product
from funneldash.store import Store
from funneldash.tools.creatives import aggregate_creatives, attributed_totals, get_ad_creatives
from funneldash.tools.fallback import reconcile
from funneldash.tools.leaderboard import DEFAULT_LIMIT, build_leaderboard
from funneldash.tools.metrics import get_daily_summary, get_latest_daily_summary_date
from funneldash.util import (
    format_currency,
    format_number,
    format_percent,
    format_ratio,
    prefer_positive,
    ratio,
    round_money,
    to_float,
)


logger = logging.getLogger(__name__)

UTC = timezone.utc

_FUNNEL_WIDTHS: dict[int, list[int]] = {
    3: [100, 65, 35],
    4: [100, 72, 54, 40],
    5: [100, 80, 66, 52, 40],
}

_FORMATTERS = {
    "money": format_currency,
    "percent": format_percent,
    "ratio": format_ratio,
    "number": format_number,
}


@dataclass(frozen=True)
class ReportInputs:
    product_id: str
    start_date: str
    end_date: str
    preset: str | None = None
    sort_by: str = "conversions"
    view: str | None = None
    limit: int = DEFAULT_LIMIT


def _card(key: str, label: str, value: float | None, value_type: str) -> dict[str, Any]:
    if value is None:
        return {"key": key, "label": label, "value": None, "type": value_type, "display": "—"}
    return {
        "key": key,
        "label": label,
        "value": round(float(value), 4),
        "type": value_type,
        "display": _FORMATTERS[value_type](value),
    }


def _cost_per_mql_card(m: dict[str, Any]) -> dict[str, Any]:
    value = m["cost_per_mql"] if m["sheet_mqls"] > 0 else None
    return _card("cost_per_mql", "Custo/MQL", value, "money")


def build_cards(m: dict[str, Any], product: Product) -> list[dict[str, Any]]:
    cards = [
        _card("spend", "Investimento", m["spend"], "money"),
        _card("cpm", "CPM", m["cpm"], "money"),
        _card("ctr", "CTR", m["ctr"], "percent"),
    ]
    if product.native_form:
        cards.append(_card("cpc", "CPC", m["cpc"], "money"))
    else:
        cards.append(_card("load_rate", "Taxa Carreg.", m["load_rate"], "percent"))

    if product.is_sales:
        cards.append(_card("cpa", "CPA", m["cpa"], "money"))
        cards.append(_card("roas", "ROAS", m["roas"], "ratio"))
    elif product.mql_primary:
        cards.append(_card("mqls", "MQLs", m["sheet_mqls"], "number"))
        cards.append(_cost_per_mql_card(m))
        cards.append(_card("mql_rate", "Taxa MQL", m["mql_rate"], "percent"))
    else:
        cards.append(_cost_per_mql_card(m))
        cards.append(_card("mql_rate", "Taxa MQL", m["mql_rate"], "percent"))
    return cards


def primary_conversions(m: dict[str, Any], product: Product) -> tuple[float, str]:
    if product.is_sales:
        return m["sheet_sales"], "Vendas"
    if product.mql_primary:
        return m["sheet_mqls"], "MQLs"
    return prefer_positive(m["sheet_leads"], m["leads"]), "Leads"


def build_funnel(m: dict[str, Any], product: Product) -> dict[str, Any]:
    conversions, conversion_label = primary_conversions(m, product)
    real_leads = prefer_positive(m["sheet_leads"], m["leads"])
    show_secondary = not product.is_sales and product.mql_primary

    candidates = [
        {"key": "impressions", "label": "Impressões", "value": m["impressions"], "hidden": False},
        {"key": "clicks", "label": "Cliques", "value": m["link_clicks"], "hidden": False},
        {"key": "page_views", "label": "Page Views", "value": m["page_views"], "hidden": product.native_form},
        {"key": "leads", "label": "Leads", "value": real_leads, "hidden": not show_secondary},
        {"key": "conversions", "label": conversion_label, "value": conversions, "hidden": False},
    ]
    steps = [s for s in candidates if not s["hidden"]]
    widths = _FUNNEL_WIDTHS.get(len(steps), _FUNNEL_WIDTHS[4])

    out: list[dict[str, Any]] = []
    for index, step in enumerate(steps):
        prev = steps[index - 1]["value"] if index > 0 else 0
        rate = round(step["value"] / prev * 100.0, 1) if index > 0 and prev > 0 else None
        out.append(
            {
                "key": step["key"],
                "label": step["label"],
                "value": step["value"],
                "display": format_number(step["value"]),
                "step_rate": rate,
                "width_pct": widths[index] if index < len(widths) else widths[-1],
            }
        )
    return {"steps": out, "conversion_label": conversion_label}


def build_sheet_panel(m: dict[str, Any], product: Product) -> dict[str, Any]:
    return {
        "is_sales": product.is_sales,
        "mql_primary": not product.is_sales and product.mql_primary,
        "sales": m["sheet_sales"],
        "revenue": round_money(m["sheet_revenue"]),
        "leads": prefer_positive(m["sheet_leads"], m["leads"]),
        "mqls": m["sheet_mqls"],
        "mql_rate": round(m["mql_rate"], 2),
        "cpa": round_money(m["cpa"]),
        "roas": round(m["roas"], 2),
        "roas_bar_pct": min(m["roas"] * 25.0, 100.0),
        "spend": round_money(m["spend"]),
    }


def build_time_series(daily: list[dict[str, Any]], product: Product) -> list[dict[str, Any]]:
    points = []
    for d in daily:
        if product.is_sales:
            conversions = to_float(d.get("sheet_sales"))
        elif product.mql_primary:
            conversions = to_float(d.get("sheet_mqls"))
        else:
            conversions = to_float(d.get("total_leads"))
        points.append(
            {
                "date": str(d.get("date") or "")[:10],
                "spend": round_money(to_float(d.get("total_spend"))),
                "conversions": conversions,
                "leads": to_float(d.get("total_leads")),
                "impressions": to_float(d.get("total_impressions")),
                "clicks": to_float(d.get("total_link_clicks")),
                "page_views": to_float(d.get("total_page_views")),
                "revenue": round_money(to_float(d.get("sheet_revenue"))),
                "source": d.get("source") or "daily_summary",
            }
        )
    return points


def _summary_totals(m: dict[str, Any]) -> dict[str, Any]:
    skip = {"daily_data"}
    out: dict[str, Any] = {}
    for k, v in m.items():
        if k in skip:
            continue
        out[k] = round(v, 4) if isinstance(v, float) else v
    return out


def build_dashboard_report(store: Store, inputs: ReportInputs, *, today: date | None = None, tz_name: str | None = None) -> dict[str, Any]:
    product = get_product(inputs.product_id)
    date_range: DateRange = custom_range(inputs.start_date, inputs.end_date)
    start, end = date_range.start_iso, date_range.end_iso
    today = today or today_in_tz(tz_name)

    # 1) creatives (also the fallback source when daily_summary lags)
    raw_creatives = get_ad_creatives(store, product.id, start, end)
    creatives = aggregate_creatives(raw_creatives)

    # 2) daily summary, reconciled with creatives
    summary_days = get_daily_summary(store, product.id, start, end)
    reconciled = reconcile(summary_days, raw_creatives, product.id)

    meta = {
        "product": product.to_dict(),
        "date_range": {"start": start, "end": end, **({"preset": inputs.preset} if inputs.preset else {})},
        "partial_day": includes_partial_day(date_range, today),
        "today": today.isoformat(),
        "generated_at": datetime.now(UTC).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "data_source": reconciled.data_source if reconciled else None,
        "fallback_dates": reconciled.fallback_dates if reconciled else [],
    }

    diagnostics: dict[str, Any] = {"notes": [], "latest_available_date": None}

    if reconciled is None:
        # Nothing to render; tell the user how far the sync got.
        latest = get_latest_daily_summary_date(store, product.id)
        diagnostics["latest_available_date"] = latest
        diagnostics["notes"].append("Sem dados para o período selecionado.")
        logger.info("No data for %s in %s..%s (latest summary day: %s)", product.id, start, end, latest)
        return {
            "report_meta": meta,
            "empty": True,
            "summary_totals": None,
            "cards": [],
            "funnel": None,
            "sheet_panel": None,
            "charts": {"time_series": [], "days": 0},
            "creatives": build_leaderboard(
                creatives, product, totals=None, sort_by=inputs.sort_by, view=inputs.view, limit=inputs.limit
            ),
            "diagnostics": diagnostics,
        }

    m = reconciled.metrics
    if reconciled.data_source != "daily_summary":
        diagnostics["notes"].append(
            "Dados de "
            + ", ".join(reconciled.fallback_dates)
            + " ainda não foram gravados no daily_summary; exibindo gasto/cliques/leads a partir de ad_creatives (parcial)."
        )
    if meta["partial_day"]:
        diagnostics["notes"].append("O período inclui hoje: dados parciais.")

    # Sheet totals of rebuilt days are unknown, so their creatives cannot claim any.
    fallback_days = set(reconciled.fallback_dates) if reconciled.data_source == "mixed" else set()
    attributed = attributed_totals([c for c in raw_creatives if str(c.get("date") or "")[:10] not in fallback_days])

    leaderboard = build_leaderboard(
        creatives,
        product,
        totals=m,
        sort_by=inputs.sort_by,
        view=inputs.view,
        limit=inputs.limit,
        attributed=attributed,
    )

    attributed_share = None
    if product.is_sales and m["sheet_sales"] > 0:
        attributed_share = round(ratio(leaderboard["unattributed"]["attributed"]["sales"], m["sheet_sales"], 100.0), 2)

    return {
        "report_meta": meta,
        "empty": False,
        "summary_totals": {**_summary_totals(m), "attributed_sales_pct": attributed_share},
        "cards": build_cards(m, product),
        "funnel": build_funnel(m, product),
        "sheet_panel": build_sheet_panel(m, product),
        "charts": {"time_series": build_time_series(m["daily_data"], product), "days": m["days"]},
        "creatives": leaderboard,
        "diagnostics": diagnostics,
    }
