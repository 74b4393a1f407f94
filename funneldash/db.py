from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any


SCHEMA = (
    """CREATE TABLE IF NOT EXISTS daily_summary (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT, account_id TEXT, product_name TEXT,
        total_spend REAL, total_impressions INTEGER, total_link_clicks INTEGER,
        total_page_views INTEGER, total_leads INTEGER, total_purchases INTEGER,
        total_revenue REAL, sheet_sales INTEGER, sheet_revenue REAL,
        sheet_leads INTEGER, sheet_mqls INTEGER,
        cpm REAL, ctr REAL, cpl REAL, cpa REAL, roas REAL,
        load_rate REAL, conversion_rate REAL, mql_rate REAL
    );""",
    """CREATE TABLE IF NOT EXISTS ad_creatives (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT, account_id TEXT, campaign_name TEXT, product_name TEXT,
        ad_name TEXT, ad_id TEXT,
        spend REAL, impressions INTEGER, link_clicks INTEGER,
        leads INTEGER, purchases INTEGER,
        sheet_purchases INTEGER, sheet_leads_utm INTEGER, sheet_mqls INTEGER,
        cpl REAL, cpa REAL, ctr REAL, instagram_permalink TEXT
    );""",
    """CREATE TABLE IF NOT EXISTS unattributed_mql_leads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT, product_name TEXT,
        lead_name TEXT, nome TEXT, name TEXT,
        phone TEXT, telefone TEXT,
        form_name TEXT, form TEXT,
        reason TEXT, motivo TEXT
    );""",
)


@dataclass(frozen=True)
class QueryResult:
    rows: list[dict[str, Any]]
    columns: list[str]
    row_count: int
    sql: str
    params: dict[str, Any] | None
    db_path: str


def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def query(db_path: str, sql: str, params: dict[str, Any] | None = None) -> QueryResult:
    if not Path(db_path).exists():
        raise FileNotFoundError(f"SQLite db not found: {db_path}")

    with connect(db_path) as conn:
        cur = conn.execute(sql, params or {})
        rows = [dict(r) for r in cur.fetchall()]
        columns = [d[0] for d in (cur.description or [])]
        return QueryResult(
            rows=rows,
            columns=columns,
            row_count=len(rows),
            sql=sql,
            params=params,
            db_path=db_path,
        )


def init_db(db_path: str, *, reset: bool = False) -> None:
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if reset and p.exists():
        p.unlink()

    with connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        for ddl in SCHEMA:
            conn.execute(ddl)
        conn.commit()


def insert_rows(db_path: str, table: str, rows: list[dict[str, Any]]) -> int:
    if not rows:
        return 0
    inserted = 0
    with connect(db_path) as conn:
        known = {r["name"] for r in conn.execute(f"PRAGMA table_info({table});").fetchall()}
        if not known:
            raise ValueError(f"unknown table: {table}")
        for row in rows:
            cols = [c for c in row if c in known]
            placeholders = ", ".join(f":{c}" for c in cols)
            conn.execute(
                f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
                {c: row[c] for c in cols},
            )
            inserted += 1
        conn.commit()
    return inserted
