from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from funneldash.config import DEFAULT_TIMEZONE
from funneldash.products import default_product, get_product
from funneldash.util import iso_date, parse_iso_date


PRESETS: tuple[dict[str, str], ...] = (
    {"id": "today", "label": "Hoje"},
    {"id": "yesterday", "label": "Ontem"},
    {"id": "last7days", "label": "Últimos 7 dias"},
    {"id": "last14days", "label": "Últimos 14 dias"},
    {"id": "last30days", "label": "Últimos 30 dias"},
    {"id": "thisMonth", "label": "Este mês"},
    {"id": "lastMonth", "label": "Mês passado"},
    {"id": "allTime", "label": "Todo período"},
)

_TRAILING_DAYS = {"last7days": 7, "last14days": 14, "last30days": 30}


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    preset: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"start": iso_date(self.start), "end": iso_date(self.end)}
        if self.preset:
            out["preset"] = self.preset
        return out

    @property
    def start_iso(self) -> str:
        return iso_date(self.start)

    @property
    def end_iso(self) -> str:
        return iso_date(self.end)


def today_in_tz(tz_name: str | None = None) -> date:
    return datetime.now(ZoneInfo(tz_name or DEFAULT_TIMEZONE)).date()


def _all_time(product_id: str | None, today: date) -> tuple[date, date]:
    try:
        product = get_product(product_id) if product_id else default_product()
    except KeyError:
        product = default_product()
    start = parse_iso_date(product.all_time_start)
    end = parse_iso_date(product.all_time_end) if product.all_time_end else today
    return min(start, end), end


def resolve_date_range(
    preset: str,
    product_id: str | None = None,
    *,
    today: date | None = None,
    tz_name: str | None = None,
) -> DateRange:
    """Map a named preset to concrete calendar bounds relative to ``today``."""
    today = today or today_in_tz(tz_name)
    yesterday = today - timedelta(days=1)

    if preset == "today":
        return DateRange(today, today, preset)
    if preset == "yesterday":
        return DateRange(yesterday, yesterday, preset)
    if preset in _TRAILING_DAYS:
        end = yesterday
        return DateRange(end - timedelta(days=_TRAILING_DAYS[preset] - 1), end, preset)
    if preset == "thisMonth":
        return DateRange(today.replace(day=1), today, preset)
    if preset == "lastMonth":
        end = today.replace(day=1) - timedelta(days=1)
        return DateRange(end.replace(day=1), end, preset)
    if preset == "allTime":
        start, end = _all_time(product_id, today)
        return DateRange(start, end, preset)

    # Unknown presets behave like "yesterday".
    return DateRange(yesterday, yesterday, "yesterday")


def custom_range(start: str | date, end: str | date) -> DateRange:
    try:
        s = parse_iso_date(start)
        e = parse_iso_date(end)
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD.") from exc
    if e < s:
        s, e = e, s
    return DateRange(s, e, None)


def product_default_range(product_id: str, *, today: date | None = None, tz_name: str | None = None) -> DateRange:
    today = today or today_in_tz(tz_name)
    product = get_product(product_id)
    if product.default_start:
        end = parse_iso_date(product.default_end) if product.default_end else today
        return DateRange(parse_iso_date(product.default_start), end, None)
    return resolve_date_range("allTime", product_id, today=today)


def includes_partial_day(date_range: DateRange, today: date) -> bool:
    return date_range.end >= today
