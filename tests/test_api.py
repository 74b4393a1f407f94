import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from backend import deps
from backend.main import ConnectionManager, Subscription, app


@pytest.fixture
def sqlite_env(db_path, monkeypatch):
    monkeypatch.setenv("FUNNELDASH_STORE", "sqlite")
    monkeypatch.setenv("FUNNELDASH_DB_PATH", db_path)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("FUNNELDASH_PRODUCTS_FILE", raising=False)
    monkeypatch.delenv("FUNNELDASH_TIMEZONE", raising=False)
    deps.close_stores()
    yield monkeypatch
    deps.close_stores()


@pytest.fixture
def client(sqlite_env):
    with TestClient(app) as c:
        yield c


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok", "store": "sqlite", "timezone": "America/Sao_Paulo"}


def test_products(client):
    body = client.get("/api/products").json()
    assert body["default"] == "webinarflix"
    assert [p["id"] for p in body["products"]] == ["webinarflix", "upgrade-persona", "fib-live", "formulario-aplicacao"]


def test_report(client):
    resp = client.get("/api/report", params={"product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["report_meta"]["data_source"] == "mixed"
    assert body["creatives"]["rows"][0]["medal"] == "gold"


@pytest.mark.parametrize(
    "params,status",
    [
        ({"product": "nope", "start_date": "2026-02-01", "end_date": "2026-02-03"}, 404),
        ({"product": "webinarflix", "start_date": "2026-02-01"}, 400),
        ({"product": "webinarflix", "start_date": "01/02/2026", "end_date": "2026-02-03"}, 400),
        ({"product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03", "sort_by": "revenue"}, 400),
    ],
)
def test_report_errors(client, params, status):
    assert client.get("/api/report", params=params).status_code == status


def test_metrics_daily_and_creatives(client):
    params = {"product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"}

    metrics = client.get("/api/metrics", params=params).json()
    assert metrics["data_source"] == "mixed"
    assert metrics["metrics"]["spend"] == 350.0
    assert "daily_data" not in metrics["metrics"]

    daily = client.get("/api/daily", params=params).json()
    assert [r["date"] for r in daily["rows"]] == ["2026-02-01", "2026-02-02"]

    creatives = client.get("/api/creatives", params=params).json()
    assert creatives["row_count"] == 2
    assert creatives["rows"][0]["spend"] == 180.0


def test_metrics_empty_period(client):
    body = client.get("/api/metrics", params={"product": "fib-live", "start_date": "2026-02-01", "end_date": "2026-02-03"}).json()
    assert body["metrics"] is None


def test_date_range_endpoints(client):
    presets = client.get("/api/date-range/presets").json()["presets"]
    assert presets[0] == {"id": "today", "label": "Hoje"}

    body = client.get("/api/date-range", params={"preset": "allTime", "product": "upgrade-persona"}).json()
    assert (body["start"], body["end"], body["preset"]) == ("2026-01-23", "2026-02-04", "allTime")
    assert body["partial_day"] is False

    assert client.get("/api/date-range", params={"product": "nope"}).status_code == 404

    body = client.post("/api/date-range", json={"start": "2026-02-10", "end": "2026-02-01"}).json()
    assert (body["start"], body["end"]) == ("2026-02-01", "2026-02-10")
    assert client.post("/api/date-range", json={"start": "x", "end": "2026-02-01"}).status_code == 400
    assert client.post("/api/date-range", json={"start": "2026-02-011", "end": "2026-02-0199"}).status_code == 400


def test_unattributed_leads(client):
    body = client.get(
        "/api/leads/unattributed",
        params={"product": "formulario-aplicacao", "start_date": "2026-02-01", "end_date": "2026-02-02"},
    ).json()
    assert body["row_count"] == 2
    assert body["rows"][0] == {
        "date": "2026-02-01",
        "name": "Ana",
        "phone": "+55 11 91234-5678",
        "form": "Aplicação",
        "reason": "sem ad_id",
    }
    assert body["rows"][1]["name"] == "Bruno"
    assert body["empty_message"] is None

    empty = client.get(
        "/api/leads/unattributed",
        params={"product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-02"},
    ).json()
    assert empty["rows"] == []
    assert empty["empty_message"]


def test_websocket_subscribe_and_refresh(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong"}

        ws.send_text("refresh")
        assert ws.receive_json()["type"] == "error"

        ws.send_text(json.dumps({"type": "subscribe", "product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"}))
        msg = ws.receive_json()
        assert msg["type"] == "report"
        assert msg["data"]["report_meta"]["data_source"] == "mixed"

        ws.send_text("refresh")
        assert ws.receive_json()["type"] == "report"

        ws.send_text(json.dumps({"type": "subscribe", "product": "nope", "preset": "yesterday"}))
        assert ws.receive_json()["type"] == "error"


def test_websocket_dispatches_on_message_type(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text(json.dumps({"type": "ping"}))
        assert ws.receive_json() == {"type": "pong"}

        ws.send_text(json.dumps({"type": "bogus", "product": "webinarflix"}))
        assert ws.receive_json() == {"type": "error", "detail": "unknown message type: 'bogus'"}

        ws.send_text(json.dumps({"product": "fib-live"}))
        assert ws.receive_json()["type"] == "error"

        ws.send_text("[1, 2]")
        assert ws.receive_json()["type"] == "error"

        ws.send_text(json.dumps({"type": "subscribe", "product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"}))
        assert ws.receive_json()["type"] == "report"

        # A refresh keeps the current subscription instead of resetting it.
        ws.send_text(json.dumps({"type": "refresh"}))
        msg = ws.receive_json()
        assert msg["type"] == "report"
        assert msg["subscription"]["product"] == "webinarflix"
        assert msg["subscription"]["start_date"] == "2026-02-01"


def test_websocket_receives_periodic_refresh(sqlite_env):
    sqlite_env.setenv("FUNNELDASH_REFRESH_SECONDS", "1")
    with TestClient(app) as c, c.websocket_connect("/ws") as ws:
        ws.send_text(json.dumps({"type": "subscribe", "product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"}))
        assert ws.receive_json()["type"] == "report"

        pushed = ws.receive_json()
        assert pushed["type"] == "report"
        assert pushed["data"]["report_meta"]["data_source"] == "mixed"


class _FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def test_refresh_all_drops_sockets_that_fail(sqlite_env):
    mgr = ConnectionManager()
    sub = Subscription(product="webinarflix", start_date="2026-02-01", end_date="2026-02-03")
    healthy, broken, idle = _FakeSocket(), _FakeSocket(fail=True), _FakeSocket()
    mgr.active[healthy] = sub
    mgr.active[broken] = sub
    mgr.active[idle] = None

    asyncio.run(mgr.refresh_all())

    assert broken not in mgr.active
    assert mgr.active[healthy] == sub
    assert [m["type"] for m in healthy.sent] == ["report"]
    assert idle in mgr.active
    assert idle.sent == []


def test_report_is_built_off_the_event_loop(client, monkeypatch):
    import backend.main

    real = backend.main.build_dashboard_report
    loops = []

    def spy(*args, **kwargs):
        try:
            loops.append(asyncio.get_running_loop())
        except RuntimeError:
            loops.append(None)
        return real(*args, **kwargs)

    monkeypatch.setattr(backend.main, "build_dashboard_report", spy)
    resp = client.get("/api/report", params={"product": "webinarflix", "start_date": "2026-02-01", "end_date": "2026-02-03"})
    assert resp.status_code == 200
    assert loops == [None]


def test_supabase_store_is_cached_and_closed(monkeypatch):
    monkeypatch.setenv("FUNNELDASH_STORE", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    deps.close_stores()

    s = deps.store()
    assert deps.store() is s

    deps.close_stores()
    assert s._client.is_closed
    assert deps.store() is not s
    deps.close_stores()


def test_lifespan_shutdown_closes_stores(sqlite_env):
    with TestClient(app) as c:
        assert c.get("/api/daily", params={"start_date": "2026-02-01", "end_date": "2026-02-02"}).status_code == 200
        assert deps._stores
    assert not deps._stores
