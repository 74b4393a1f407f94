"""Date-range presets — resolve named presets / explicit bounds to calendar dates.

Endpoints:
  GET  /api/date-range/presets   — available presets
  GET  /api/date-range           — resolve a preset for a product
  POST /api/date-range           — normalize explicit bounds
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from backend.deps import settings
from funneldash.daterange import (
    PRESETS,
    custom_range,
    includes_partial_day,
    product_default_range,
    resolve_date_range,
    today_in_tz,
)
from funneldash.products import DEFAULT_PRODUCT_ID

router = APIRouter()


class CustomRange(BaseModel):
    start: str
    end: str


@router.get("/presets")
async def presets():
    return {"presets": list(PRESETS)}


@router.get("")
async def resolve(
    preset: str = Query(default=""),
    product: str = Query(default=DEFAULT_PRODUCT_ID),
):
    tz = settings().timezone
    today = today_in_tz(tz)
    try:
        rng = resolve_date_range(preset, product, today=today) if preset else product_default_range(product, today=today)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
    return {**rng.to_dict(), "partial_day": includes_partial_day(rng, today), "today": today.isoformat()}


@router.post("")
async def normalize(body: CustomRange):
    try:
        rng = custom_range(body.start, body.end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    today = today_in_tz(settings().timezone)
    return {**rng.to_dict(), "partial_day": includes_partial_day(rng, today), "today": today.isoformat()}
