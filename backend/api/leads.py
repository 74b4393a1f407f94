"""Unattributed MQL leads — sheet leads with no ad_id / phone match, listed for client audit.

Endpoints:
  GET /api/leads/unattributed   — normalized lead rows for a product and date range
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Query

from backend.deps import store
from funneldash.daterange import custom_range
from funneldash.products import DEFAULT_PRODUCT_ID, get_product
from funneldash.tools.leads import get_unattributed_mql_leads

router = APIRouter()


@router.get("/unattributed")
async def unattributed_leads(
    product: str = Query(default=DEFAULT_PRODUCT_ID),
    start_date: str = Query(...),
    end_date: str = Query(...),
):
    try:
        get_product(product)
        rng = custom_range(start_date, end_date)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    rows = await asyncio.to_thread(get_unattributed_mql_leads, store(), product, rng.start_iso, rng.end_iso)
    return {
        "rows": rows,
        "row_count": len(rows),
        "empty_message": None if rows else "Nenhum MQL sem atribuição encontrado no período.",
    }
