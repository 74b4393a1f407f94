"""Read-only access to the hosted data store (Supabase/PostgREST) or a local SQLite copy."""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from funneldash.config import Settings
from funneldash.db import query


logger = logging.getLogger(__name__)

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SQL_OPS = {"eq": "=", "gte": ">=", "lte": "<="}


class StoreError(RuntimeError):
    """Raised when the data store cannot answer a request."""


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


def _check_ident(name: str) -> str:
    if not _IDENT.match(name or ""):
        raise ValueError(f"invalid column/table name: {name!r}")
    return name


def _check_op(op: str) -> str:
    if op not in _SQL_OPS:
        raise ValueError(f"unsupported filter op: {op!r} (expected one of {sorted(_SQL_OPS)})")
    return op


class Store(Protocol):
    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def close(self) -> None: ...


class SQLiteStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def close(self) -> None:
        # Connections are opened per query.
        return None

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        _check_ident(table)
        cols = "*" if columns.strip() == "*" else ", ".join(_check_ident(c.strip()) for c in columns.split(","))

        where: list[str] = []
        params: dict[str, Any] = {}
        for i, f in enumerate(filters or []):
            where.append(f"{_check_ident(f.column)} {_SQL_OPS[_check_op(f.op)]} :p{i}")
            params[f"p{i}"] = f.value

        sql = f"SELECT {cols} FROM {table}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        if order is not None:
            sql += f" ORDER BY {_check_ident(order.column)} {'ASC' if order.ascending else 'DESC'}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        try:
            return query(self.db_path, sql, params).rows
        except (sqlite3.Error, FileNotFoundError) as exc:
            raise StoreError(f"sqlite select on {table} failed: {exc}") from exc


class SupabaseStore:
    """Minimal PostgREST client: one GET per select, filters as ``col=op.value``."""

    def __init__(self, url: str, key: str, *, timeout: float = 30, client: httpx.Client | None = None) -> None:
        if not url:
            raise ValueError("SUPABASE_URL is required for the supabase store")
        self.base_url = url.rstrip("/") + "/rest/v1"
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
        }

    def close(self) -> None:
        self._client.close()

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        _check_ident(table)
        params: list[tuple[str, str]] = [("select", columns)]
        for f in filters or []:
            params.append((_check_ident(f.column), f"{_check_op(f.op)}.{f.value}"))
        if order is not None:
            params.append(("order", f"{_check_ident(order.column)}.{'asc' if order.ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(int(limit))))

        try:
            resp = self._client.get(f"{self.base_url}/{table}", params=params, headers=self._headers)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"supabase select on {table} returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise StoreError(f"supabase select on {table} failed: {exc}") from exc

        if not isinstance(payload, list):
            raise StoreError(f"supabase select on {table} returned a non-list payload")
        return [r for r in payload if isinstance(r, dict)]


def build_store(settings: Settings) -> Store:
    if settings.store == "supabase":
        logger.info("Using Supabase store at %s", settings.supabase_url)
        return SupabaseStore(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout)
    if settings.store == "sqlite":
        logger.info("Using SQLite store at %s", settings.db_path)
        return SQLiteStore(settings.db_path)
    raise ValueError(f"FUNNELDASH_STORE must be 'supabase' or 'sqlite', got {settings.store!r}")


def product_range_filters(product_name: str, start_date: str, end_date: str) -> list[Filter]:
    return [
        Filter("product_name", "eq", product_name),
        Filter("date", "gte", start_date),
        Filter("date", "lte", end_date),
    ]
