from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date
from typing import Any


def parse_iso_date(value: str | date) -> date:
    """YYYY-MM-DD, or a timestamp starting with one (``T`` or space after the date)."""
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if len(s) > 10 and s[10] not in ("T", " "):
        raise ValueError(f"invalid ISO date: {value!r}")
    return date.fromisoformat(s[:10])


def iso_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if s == "":
        return default
    try:
        return int(float(s))
    except ValueError:
        return default


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    if s == "":
        return default
    try:
        return float(s)
    except ValueError:
        return default


def ratio(n: float, d: float, scale: float = 1.0) -> float:
    """n / d * scale, or 0.0 when the denominator is not positive."""
    if d <= 0:
        return 0.0
    return n / d * scale


def prefer_positive(preferred: float, fallback: float) -> float:
    # Sheet counts win over platform counts only when they recorded something.
    return preferred if preferred > 0 else fallback


def fsum_field(rows: Iterable[dict[str, Any]], field: str) -> float:
    return math.fsum(to_float(r.get(field)) for r in rows)


def round_money(value: float | None) -> float | None:
    if value is None:
        return None
    return float(f"{value:.2f}")


def _pt_br_grouping(value: float, decimals: int) -> str:
    s = f"{value:,.{decimals}f}"
    return s.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: float, symbol: str = "R$") -> str:
    return f"{symbol} {_pt_br_grouping(float(value), 2)}"


def format_number(value: float) -> str:
    return _pt_br_grouping(float(math.floor(value + 0.5)), 0)


def format_percent(value: float) -> str:
    return f"{float(value):.2f}".replace(".", ",") + "%"


def format_ratio(value: float) -> str:
    return f"{float(value):.2f}x"
