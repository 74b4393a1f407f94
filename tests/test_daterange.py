from datetime import date

import pytest

from funneldash.daterange import (
    PRESETS,
    custom_range,
    includes_partial_day,
    product_default_range,
    resolve_date_range,
)


TODAY = date(2026, 3, 15)


def test_presets_are_listed_in_display_order():
    assert [p["id"] for p in PRESETS] == [
        "today",
        "yesterday",
        "last7days",
        "last14days",
        "last30days",
        "thisMonth",
        "lastMonth",
        "allTime",
    ]


@pytest.mark.parametrize(
    "preset,start,end",
    [
        ("today", date(2026, 3, 15), date(2026, 3, 15)),
        ("yesterday", date(2026, 3, 14), date(2026, 3, 14)),
        ("last7days", date(2026, 3, 8), date(2026, 3, 14)),
        ("last14days", date(2026, 3, 1), date(2026, 3, 14)),
        ("last30days", date(2026, 2, 13), date(2026, 3, 14)),
        ("thisMonth", date(2026, 3, 1), date(2026, 3, 15)),
        ("lastMonth", date(2026, 2, 1), date(2026, 2, 28)),
    ],
)
def test_relative_presets(preset, start, end):
    rng = resolve_date_range(preset, "webinarflix", today=TODAY)
    assert (rng.start, rng.end, rng.preset) == (start, end, preset)


def test_trailing_windows_exclude_today():
    for preset, days in (("last7days", 7), ("last14days", 14), ("last30days", 30)):
        rng = resolve_date_range(preset, today=TODAY)
        assert rng.end < TODAY
        assert (rng.end - rng.start).days + 1 == days


def test_last_month_crosses_year_boundary():
    rng = resolve_date_range("lastMonth", today=date(2026, 1, 10))
    assert rng.start == date(2025, 12, 1)
    assert rng.end == date(2025, 12, 31)


def test_resolution_is_deterministic_for_a_fixed_today():
    a = resolve_date_range("last14days", "fib-live", today=TODAY)
    b = resolve_date_range("last14days", "fib-live", today=TODAY)
    assert a == b


def test_all_time_uses_product_launch_date():
    rng = resolve_date_range("allTime", "webinarflix", today=TODAY)
    assert rng.start_iso == "2026-01-20"
    assert rng.end == TODAY


def test_all_time_respects_fixed_product_end():
    rng = resolve_date_range("allTime", "upgrade-persona", today=TODAY)
    assert rng.to_dict() == {"start": "2026-01-23", "end": "2026-02-04", "preset": "allTime"}


def test_all_time_unknown_product_uses_default_product():
    rng = resolve_date_range("allTime", "does-not-exist", today=TODAY)
    assert rng.start_iso == "2026-01-20"


def test_all_time_start_never_after_end():
    rng = resolve_date_range("allTime", "webinarflix", today=date(2026, 1, 10))
    assert rng.start <= rng.end


def test_unknown_preset_falls_back_to_yesterday():
    rng = resolve_date_range("lastDecade", today=TODAY)
    assert (rng.start, rng.end, rng.preset) == (date(2026, 3, 14), date(2026, 3, 14), "yesterday")


def test_custom_range_swaps_reversed_bounds():
    rng = custom_range("2026-02-10", "2026-02-01")
    assert rng.to_dict() == {"start": "2026-02-01", "end": "2026-02-10"}


def test_custom_range_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid date format"):
        custom_range("2026-13-01", "2026-02-01")


def test_custom_range_rejects_trailing_digits():
    with pytest.raises(ValueError, match="Invalid date format"):
        custom_range("2026-02-011", "2026-02-0199")


def test_custom_range_accepts_timestamps():
    rng = custom_range("2026-02-01T10:00:00", "2026-02-03 23:59")
    assert (rng.start_iso, rng.end_iso) == ("2026-02-01", "2026-02-03")


def test_product_default_range():
    rng = product_default_range("formulario-aplicacao", today=TODAY)
    assert rng.start_iso == "2026-01-01"
    assert rng.end == TODAY

    rng = product_default_range("upgrade-persona", today=TODAY)
    assert (rng.start_iso, rng.end_iso, rng.preset) == ("2026-01-23", "2026-02-04", "allTime")

    with pytest.raises(KeyError):
        product_default_range("nope", today=TODAY)


def test_partial_day_flag():
    assert includes_partial_day(resolve_date_range("today", today=TODAY), TODAY)
    assert not includes_partial_day(resolve_date_range("yesterday", today=TODAY), TODAY)
