from __future__ import annotations

from typing import Any, Literal

from funneldash.products import Product
from funneldash.tools.creatives import attributed_totals
from funneldash.util import ratio, round_money, to_float


View = Literal["sales", "leads", "mql"]

SORT_KEYS: tuple[str, ...] = ("conversions", "spend", "clicks", "cpc", "cost_per", "ctr")
# Cost metrics rank cheapest first; a zero cost means "no conversions" and goes last.
ASCENDING_KEYS = frozenset({"cpc", "cost_per"})

COST_GOOD_BELOW = 500.0
COST_BAD_ABOVE = 1000.0
DEFAULT_LIMIT = 10

_MEDALS = ("gold", "silver", "bronze")

_UNATTRIBUTED_LABELS = {
    "sales": "Sem atribuição (UTM ausente)",
    "mql": "Sem atribuição (MQL sem match)",
    "leads": "Sem atribuição (Lead sem match)",
}


def default_view(product: Product, total_sheet_mqls: float | None = None) -> View:
    if product.is_sales:
        return "sales"
    if product.mql_primary:
        return "mql"
    if total_sheet_mqls is not None and total_sheet_mqls > 0:
        return "mql"
    return "leads"


def validate_view(product: Product, view: str | None, total_sheet_mqls: float | None = None) -> View:
    if not view:
        return default_view(product, total_sheet_mqls)
    if product.is_sales:
        if view != "sales":
            raise ValueError("sales products only support view=sales")
        return "sales"
    if view not in ("leads", "mql"):
        raise ValueError("view must be one of: leads, mql")
    return view  # type: ignore[return-value]


def view_labels(view: View) -> dict[str, str]:
    if view == "sales":
        return {"conversions": "Vendas", "cost_per": "CPA"}
    if view == "mql":
        return {"conversions": "MQLs", "cost_per": "Custo/MQL"}
    return {"conversions": "Leads", "cost_per": "CPL"}


def creative_row_values(creative: dict[str, Any], view: View) -> dict[str, float]:
    spend = to_float(creative.get("spend"))
    real_mqls = to_float(creative.get("sheet_mqls"))
    real_leads = to_float(creative.get("real_leads"))
    real_purchases = to_float(creative.get("real_purchases"))

    if view == "sales":
        conversions = real_purchases
        cost_per = to_float(creative.get("cpa"))
    elif view == "mql":
        conversions = real_mqls
        cost_per = ratio(spend, conversions)
    else:
        conversions = real_leads
        cost_per = to_float(creative.get("cpl"))

    return {
        "conversions": conversions,
        "cost_per": cost_per,
        "cpc": ratio(spend, to_float(creative.get("link_clicks"))),
        "cost_per_mql": ratio(spend, real_mqls),
        "cpl_context": ratio(spend, real_leads),
    }


def _sort_value(creative: dict[str, Any], sort_by: str, view: View) -> float:
    if sort_by == "spend":
        return to_float(creative.get("spend"))
    if sort_by == "clicks":
        return to_float(creative.get("link_clicks"))
    if sort_by == "ctr":
        return to_float(creative.get("ctr"))
    return creative_row_values(creative, view)[sort_by]


def sort_creatives(creatives: list[dict[str, Any]], sort_by: str, view: View) -> list[dict[str, Any]]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"sort_by must be one of: {', '.join(SORT_KEYS)}")

    if sort_by in ASCENDING_KEYS:
        # (has-no-cost, cost) puts zeros after every positive value.
        return sorted(creatives, key=lambda c: (_sort_value(c, sort_by, view) == 0, _sort_value(c, sort_by, view)))
    return sorted(creatives, key=lambda c: -_sort_value(c, sort_by, view))


def cost_tier(value: float) -> str | None:
    if value <= 0:
        return None
    if value < COST_GOOD_BELOW:
        return "good"
    if value > COST_BAD_ABOVE:
        return "bad"
    return "warn"


def unattributed_conversions(
    creatives: list[dict[str, Any]],
    totals: dict[str, Any] | None,
    product: Product,
    *,
    attributed: dict[str, float] | None = None,
) -> dict[str, Any]:
    """
    Sheet conversions that no creative claimed: total reported minus the sum
    attributed per creative. ``raw`` keeps the signed difference; ``display``
    is floored at zero.

    ``attributed`` replaces the per-creative sums when the totals only cover
    part of the creatives' days.
    """
    if attributed is None:
        attributed = attributed_totals(creatives)
    totals = totals or {}
    raw = {
        "sales": to_float(totals.get("sheet_sales")) - attributed["sales"] if product.is_sales else 0.0,
        "leads": to_float(totals.get("sheet_leads")) - attributed["leads"] if not product.is_sales else 0.0,
        "mqls": to_float(totals.get("sheet_mqls")) - attributed["mqls"] if not product.is_sales else 0.0,
    }
    return {
        "attributed": attributed,
        "raw": raw,
        "display": {k: max(0.0, v) for k, v in raw.items()},
    }


def _display_name(creative: dict[str, Any], product: Product) -> str:
    ad_id = str(creative.get("ad_id") or "")
    return product.creative_name_overrides.get(ad_id) or str(creative.get("ad_name") or "")


def _creative_link(creative: dict[str, Any], product: Product, display_name: str) -> str | None:
    ad_id = str(creative.get("ad_id") or "")
    return (
        str(creative.get("instagram_permalink") or "")
        or product.creative_link_overrides.get(ad_id)
        or product.creative_link_overrides.get(display_name.strip())
        or None
    )


def build_leaderboard(
    creatives: list[dict[str, Any]],
    product: Product,
    *,
    totals: dict[str, Any] | None,
    sort_by: str = "conversions",
    view: str | None = None,
    limit: int = DEFAULT_LIMIT,
    attributed: dict[str, float] | None = None,
) -> dict[str, Any]:
    total_mqls = to_float((totals or {}).get("sheet_mqls")) if totals is not None else None
    resolved_view = validate_view(product, view, total_mqls)
    ordered = sort_creatives(creatives, sort_by, resolved_view)

    rows: list[dict[str, Any]] = []
    for index, c in enumerate(ordered[: max(0, limit)]):
        values = creative_row_values(c, resolved_view)
        name = _display_name(c, product)
        rows.append(
            {
                "rank": index + 1,
                "medal": _MEDALS[index] if index < len(_MEDALS) else None,
                "key": c.get("key"),
                "ad_id": c.get("ad_id"),
                "name": name,
                "campaign_name": c.get("campaign_name"),
                "link": _creative_link(c, product, name),
                "spend": round_money(to_float(c.get("spend"))),
                "clicks": int(to_float(c.get("link_clicks"))),
                "cpc": round_money(values["cpc"]),
                "conversions": values["conversions"],
                "leads": to_float(c.get("real_leads")),
                "mqls": to_float(c.get("sheet_mqls")),
                "cost_per": round_money(values["cost_per"]),
                "cost_tier": cost_tier(values["cost_per"]),
                "cost_per_mql": round_money(values["cost_per_mql"]),
                "cost_per_mql_tier": cost_tier(values["cost_per_mql"]),
                "cpl_context": round_money(values["cpl_context"]),
                "ctr": round(to_float(c.get("ctr")), 2),
            }
        )

    unattributed = unattributed_conversions(creatives, totals, product, attributed=attributed)
    key = {"sales": "sales", "mql": "mqls", "leads": "leads"}[resolved_view]
    unattributed_value = unattributed["display"][key]
    unattributed_row = None
    if totals is not None and unattributed_value > 0:
        unattributed_row = {
            "label": _UNATTRIBUTED_LABELS[resolved_view],
            "note": "Incluído no total, mas sem ad_id para vincular ao criativo.",
            "conversions": unattributed_value,
        }

    return {
        "view": resolved_view,
        "available_views": ["sales"] if product.is_sales else ["leads", "mql"],
        "labels": view_labels(resolved_view),
        "sort": {"by": sort_by, "dir": "asc" if sort_by in ASCENDING_KEYS else "desc"},
        "sort_options": list(SORT_KEYS),
        "show_mql_columns": product.is_sales and product.show_mql_in_sales,
        "count": len(creatives),
        "rows": rows,
        "unattributed": unattributed,
        "unattributed_row": unattributed_row,
    }
