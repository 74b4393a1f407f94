from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_REFRESH_SECONDS = 300


def default_db_path() -> str:
    return os.environ.get("FUNNELDASH_DB_PATH", str(Path("data/dummy/funneldash_demo.sqlite")))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    store: str
    supabase_url: str
    supabase_key: str
    db_path: str
    timezone: str
    refresh_seconds: int
    log_level: str
    products_file: str
    http_timeout: int


def load_settings() -> Settings:
    supabase_url = os.environ.get("SUPABASE_URL", "").strip().rstrip("/")
    store = os.environ.get("FUNNELDASH_STORE", "").strip().lower()
    if not store:
        store = "supabase" if supabase_url else "sqlite"
    return Settings(
        store=store,
        supabase_url=supabase_url,
        supabase_key=os.environ.get("SUPABASE_KEY", "").strip(),
        db_path=default_db_path(),
        timezone=os.environ.get("FUNNELDASH_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE,
        refresh_seconds=max(1, _env_int("FUNNELDASH_REFRESH_SECONDS", DEFAULT_REFRESH_SECONDS)),
        log_level=os.environ.get("FUNNELDASH_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        products_file=os.environ.get("FUNNELDASH_PRODUCTS_FILE", "").strip(),
        http_timeout=_env_int("FUNNELDASH_HTTP_TIMEOUT", 30),
    )
