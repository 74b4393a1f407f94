from __future__ import annotations

import logging
from typing import Any

from funneldash.store import Order, Store, StoreError, product_range_filters


logger = logging.getLogger(__name__)

# The sheet export is not consistent about column names (pt/en).
_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("lead_name", "nome", "name"),
    "phone": ("phone", "telefone"),
    "form": ("form_name", "form"),
    "reason": ("reason", "motivo"),
}


def _pick(row: dict[str, Any], columns: tuple[str, ...]) -> str:
    for col in columns:
        value = row.get(col)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def normalize_lead(row: dict[str, Any]) -> dict[str, str]:
    out = {"date": str(row.get("date") or "")[:10]}
    for target, columns in _ALIASES.items():
        out[target] = _pick(row, columns)
    return out


def get_unattributed_mql_leads(store: Store, product_name: str, start_date: str, end_date: str) -> list[dict[str, str]]:
    try:
        rows = store.select(
            "unattributed_mql_leads",
            filters=product_range_filters(product_name, start_date, end_date),
            order=Order("date", ascending=True),
        )
    except StoreError:
        logger.exception("Error fetching unattributed MQL leads for %s", product_name)
        return []
    return [normalize_lead(r) for r in rows]
