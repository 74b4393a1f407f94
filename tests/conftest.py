from __future__ import annotations

import pytest

from funneldash.db import init_db, insert_rows
from funneldash.products import reset_products
from funneldash.store import SQLiteStore


ADS005_ID = "120240232224840245"

SUMMARY_ROWS = [
    {
        "date": "2026-02-01",
        "product_name": "webinarflix",
        "total_spend": 100.0,
        "total_impressions": 10000,
        "total_link_clicks": 200,
        "total_page_views": 160,
        "total_leads": 0,
        "total_purchases": 2,
        "total_revenue": 0.0,
        "sheet_sales": 2,
        "sheet_revenue": 600.0,
        "sheet_leads": 0,
        "sheet_mqls": 0,
    },
    {
        "date": "2026-02-02",
        "product_name": "webinarflix",
        "total_spend": 200.0,
        "total_impressions": 20000,
        "total_link_clicks": 300,
        "total_page_views": 240,
        "total_leads": 0,
        "total_purchases": 3,
        "total_revenue": 0.0,
        "sheet_sales": 4,
        "sheet_revenue": 1200.0,
        "sheet_leads": 0,
        "sheet_mqls": 0,
    },
    {
        "date": "2026-02-01",
        "product_name": "formulario-aplicacao",
        "total_spend": 300.0,
        "total_impressions": 30000,
        "total_link_clicks": 600,
        "total_page_views": 0,
        "total_leads": 40,
        "total_purchases": 0,
        "total_revenue": 0.0,
        "sheet_sales": 0,
        "sheet_revenue": 0.0,
        "sheet_leads": 50,
        "sheet_mqls": 10,
    },
]


def _creative(date: str, ad_id: str, ad_name: str, spend: float, impressions: int, clicks: int, purchases: int, sheet_purchases: int) -> dict:
    return {
        "date": date,
        "product_name": "webinarflix",
        "account_id": "act_test",
        "campaign_name": "WebinarFlix | Vendas",
        "ad_id": ad_id,
        "ad_name": ad_name,
        "spend": spend,
        "impressions": impressions,
        "link_clicks": clicks,
        "leads": 0,
        "purchases": purchases,
        "sheet_purchases": sheet_purchases,
        "sheet_leads_utm": 0,
        "sheet_mqls": 0,
        "instagram_permalink": "",
    }


CREATIVE_ROWS = [
    _creative("2026-02-01", ADS005_ID, "ads005 raw", 60.0, 6000, 120, 1, 1),
    _creative("2026-02-01", "222", "ADS002", 40.0, 4000, 80, 1, 1),
    _creative("2026-02-02", ADS005_ID, "ads005 raw", 120.0, 12000, 180, 2, 2),
    _creative("2026-02-02", "222", "ADS002", 80.0, 8000, 120, 1, 1),
    # the summary job has not written 2026-02-03 yet
    _creative("2026-02-03", "222", "ADS002", 50.0, 5000, 100, 1, 0),
]

LEAD_ROWS = [
    {
        "date": "2026-02-01",
        "product_name": "formulario-aplicacao",
        "nome": "Ana",
        "telefone": "+55 11 91234-5678",
        "form_name": "Aplicação",
        "motivo": "sem ad_id",
    },
    {
        "date": "2026-02-02",
        "product_name": "formulario-aplicacao",
        "lead_name": "Bruno",
        "name": "ignored",
        "phone": "123",
        "form": "F2",
        "reason": "utm ausente",
    },
]


@pytest.fixture(autouse=True)
def _builtin_products():
    reset_products()
    yield
    reset_products()


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "funneldash_test.sqlite")
    init_db(path, reset=True)
    insert_rows(path, "daily_summary", SUMMARY_ROWS)
    insert_rows(path, "ad_creatives", CREATIVE_ROWS)
    insert_rows(path, "unattributed_mql_leads", LEAD_ROWS)
    return path


@pytest.fixture
def store(db_path) -> SQLiteStore:
    return SQLiteStore(db_path)
