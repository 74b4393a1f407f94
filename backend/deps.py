from __future__ import annotations

import threading

from funneldash.config import Settings, load_settings
from funneldash.store import Store, build_store


_stores: dict[Settings, Store] = {}
_lock = threading.Lock()


def settings() -> Settings:
    return load_settings()


def store() -> Store:
    # Handlers run in worker threads; build each store only once.
    s = settings()
    with _lock:
        if s not in _stores:
            _stores[s] = build_store(s)
        return _stores[s]


def close_stores() -> None:
    with _lock:
        stores = list(_stores.values())
        _stores.clear()
    for st in stores:
        st.close()
