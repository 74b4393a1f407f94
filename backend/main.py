from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from backend.api.daterange import router as daterange_router
from backend.api.leads import router as leads_router
from backend.deps import close_stores, settings, store
from funneldash.daterange import DateRange, custom_range, product_default_range, resolve_date_range
from funneldash.logging_config import setup_logging
from funneldash.products import DEFAULT_PRODUCT_ID, get_product, list_products, load_products
from funneldash.report import ReportInputs, build_dashboard_report
from funneldash.tools.creatives import aggregate_creatives, get_ad_creatives
from funneldash.tools.fallback import reconcile
from funneldash.tools.metrics import get_daily_summary

logger = logging.getLogger("funneldash.backend")


class Subscription(BaseModel):
    product: str = DEFAULT_PRODUCT_ID
    preset: str = ""
    start_date: str = ""
    end_date: str = ""
    sort_by: str = "conversions"
    view: str = ""


def _range_for(product: str, preset: str, start_date: str, end_date: str) -> DateRange:
    """Explicit bounds win over a preset; with neither, use the product's opening range."""
    tz = settings().timezone
    if start_date and end_date:
        return custom_range(start_date, end_date)
    if start_date or end_date:
        raise ValueError("start_date and end_date must be given together")
    if preset:
        return resolve_date_range(preset, product, tz_name=tz)
    return product_default_range(product, tz_name=tz)


def _build_report(sub: Subscription) -> dict[str, Any]:
    rng = _range_for(sub.product, sub.preset, sub.start_date, sub.end_date)
    inputs = ReportInputs(
        product_id=sub.product,
        start_date=rng.start_iso,
        end_date=rng.end_iso,
        preset=rng.preset,
        sort_by=sub.sort_by,
        view=sub.view or None,
    )
    return build_dashboard_report(store(), inputs, tz_name=settings().timezone)


def _http_errors(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0] if exc.args else exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ── WebSocket manager ──────────────────────────────────────────────────────────
class ConnectionManager:
    def __init__(self):
        self.active: dict[WebSocket, Subscription | None] = {}

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active[ws] = None

    def disconnect(self, ws: WebSocket):
        self.active.pop(ws, None)

    def subscribe(self, ws: WebSocket, sub: Subscription):
        self.active[ws] = sub

    async def push(self, ws: WebSocket, sub: Subscription):
        try:
            report = await asyncio.to_thread(_build_report, sub)
        except (KeyError, ValueError) as exc:
            await ws.send_json({"type": "error", "detail": str(exc)})
            return
        await ws.send_json({"type": "report", "subscription": sub.model_dump(), "data": report})

    async def refresh_all(self):
        for ws, sub in list(self.active.items()):
            if sub is None:
                continue
            try:
                await self.push(ws, sub)
            except Exception:
                logger.warning("Dropping websocket after failed refresh push", exc_info=True)
                self.disconnect(ws)


manager = ConnectionManager()


async def _refresh_loop(interval: int):
    while True:
        await asyncio.sleep(interval)
        logger.info("Periodic refresh for %d subscriber(s)", sum(1 for s in manager.active.values() if s))
        await manager.refresh_all()


# ── App ────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    s = settings()
    setup_logging(s.log_level)
    if s.products_file:
        load_products(s.products_file)
    if s.store == "sqlite" and not Path(s.db_path).exists():
        logger.warning("DB not found at %s – run `python -m funneldash seed-demo` first", s.db_path)
    task = asyncio.create_task(_refresh_loop(s.refresh_seconds))
    yield
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    close_stores()


app = FastAPI(title="funneldash", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(daterange_router, prefix="/api/date-range", tags=["date-range"])
app.include_router(leads_router, prefix="/api/leads", tags=["leads"])


# ── REST endpoints ─────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    s = settings()
    return {"status": "ok", "store": s.store, "timezone": s.timezone}


@app.get("/api/products")
async def get_products():
    return {"products": [p.to_dict() for p in list_products()], "default": DEFAULT_PRODUCT_ID}


@app.get("/api/report")
async def get_report(
    product: str = Query(default=DEFAULT_PRODUCT_ID),
    preset: str = Query(default=""),
    start_date: str = Query(default=""),
    end_date: str = Query(default=""),
    sort_by: str = Query(default="conversions"),
    view: str = Query(default=""),
):
    sub = Subscription(product=product, preset=preset, start_date=start_date, end_date=end_date, sort_by=sort_by, view=view)
    return await asyncio.to_thread(_http_errors, _build_report, sub)


@app.get("/api/metrics")
async def get_metrics(
    product: str = Query(default=DEFAULT_PRODUCT_ID),
    preset: str = Query(default=""),
    start_date: str = Query(default=""),
    end_date: str = Query(default=""),
):
    def _run():
        get_product(product)
        rng = _range_for(product, preset, start_date, end_date)
        s = store()
        reconciled = reconcile(
            get_daily_summary(s, product, rng.start_iso, rng.end_iso),
            get_ad_creatives(s, product, rng.start_iso, rng.end_iso),
            product,
        )
        if reconciled is None:
            return {"metrics": None, "data_source": None, "date_range": rng.to_dict()}
        metrics = {k: v for k, v in reconciled.metrics.items() if k != "daily_data"}
        return {
            "metrics": metrics,
            "data_source": reconciled.data_source,
            "fallback_dates": reconciled.fallback_dates,
            "date_range": rng.to_dict(),
        }

    return await asyncio.to_thread(_http_errors, _run)


@app.get("/api/daily")
async def get_daily(
    product: str = Query(default=DEFAULT_PRODUCT_ID),
    preset: str = Query(default=""),
    start_date: str = Query(default=""),
    end_date: str = Query(default=""),
):
    def _run():
        get_product(product)
        rng = _range_for(product, preset, start_date, end_date)
        rows = get_daily_summary(store(), product, rng.start_iso, rng.end_iso)
        return {"rows": rows, "row_count": len(rows), "date_range": rng.to_dict()}

    return await asyncio.to_thread(_http_errors, _run)


@app.get("/api/creatives")
async def get_creatives(
    product: str = Query(default=DEFAULT_PRODUCT_ID),
    preset: str = Query(default=""),
    start_date: str = Query(default=""),
    end_date: str = Query(default=""),
):
    def _run():
        get_product(product)
        rng = _range_for(product, preset, start_date, end_date)
        rows = aggregate_creatives(get_ad_creatives(store(), product, rng.start_iso, rng.end_iso))
        return {"rows": rows, "row_count": len(rows), "date_range": rng.to_dict()}

    return await asyncio.to_thread(_http_errors, _run)


# ── WebSocket for periodic refresh ────────────────────────────────────────────

def _parse_message(data: str) -> tuple[str | None, dict[str, Any]]:
    """Bare "ping"/"refresh" text, or a JSON object dispatched on its "type"."""
    text = data.strip()
    if text in ("ping", "refresh"):
        return text, {}
    try:
        payload = json.loads(text)
    except ValueError:
        return None, {}
    if not isinstance(payload, dict):
        return None, {}
    fields = {k: v for k, v in payload.items() if k != "type"}
    return payload.get("type"), fields


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        while True:
            data = await ws.receive_text()
            msg_type, payload = _parse_message(data)

            if msg_type == "ping":
                await ws.send_json({"type": "pong"})
            elif msg_type == "refresh":
                sub = manager.active.get(ws)
                if sub is None:
                    await ws.send_json({"type": "error", "detail": "subscribe first"})
                else:
                    await manager.push(ws, sub)
            elif msg_type == "subscribe":
                try:
                    sub = Subscription.model_validate(payload)
                except ValidationError as exc:
                    await ws.send_json({"type": "error", "detail": exc.errors(include_url=False)})
                    continue
                manager.subscribe(ws, sub)
                await manager.push(ws, sub)
            else:
                await ws.send_json({"type": "error", "detail": f"unknown message type: {msg_type!r}"})
    except WebSocketDisconnect:
        manager.disconnect(ws)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000, reload=True)
