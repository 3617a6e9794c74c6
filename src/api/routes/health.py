from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
def health(request: Request):
    """
    Health endpoint minimale: stato cache e poller.
    """
    service = getattr(request.app.state, "fixture_service", None)
    if service is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "live_cache_state": service.cache.state.value,
        "live_poller_running": service.poller.running,
    }
