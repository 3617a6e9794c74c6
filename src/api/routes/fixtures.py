from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from core.logging import get_logger
from live.service import FixtureService

router = APIRouter(prefix="/fixtures", tags=["fixtures"])
logger = get_logger("api.routes.fixtures")


def _service(request: Request) -> FixtureService:
    return request.app.state.fixture_service


@router.get("/live", summary="Fixtures live (cache con TTL)")
async def get_live(request: Request, force_refresh: bool = False):
    result = await _service(request).get_live_fixtures(force_refresh=force_refresh)
    if not result.success:
        # Errore esplicito: la UI mostra un retry invece di punteggi vecchi
        return JSONResponse(status_code=503, content=result.to_dict())
    return result.to_dict()


@router.get("/upcoming", summary="Fixtures in programma entro l'orizzonte")
async def get_upcoming(
    request: Request,
    hours: Optional[int] = Query(default=None, ge=1),
    limit: Optional[int] = Query(default=None, ge=0),
):
    service = _service(request)
    horizon = hours or service.settings.upcoming_default_hours
    items = await service.get_upcoming_fixtures(horizon, limit=limit)
    return {"count": len(items), "horizon_hours": horizon, "items": [f.to_dict() for f in items]}


@router.get("/count", summary="Totale fixtures annunciato per una data")
async def get_count(request: Request, date: str = Query(..., description="YYYY-MM-DD")):
    try:
        total = await _service(request).get_fixture_count(date)
    except ValueError:
        raise HTTPException(status_code=422, detail="date deve essere YYYY-MM-DD")
    return {"date": date, "total": total}


@router.get("/counts", summary="Statistiche sintetiche per la dashboard")
async def get_counts(request: Request):
    return await _service(request).get_match_counts()
