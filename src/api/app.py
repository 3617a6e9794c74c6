from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI

from core.logging import get_logger
from live.service import FixtureService

from api.routes.health import router as health_router
from api.routes.fixtures import router as fixtures_router
from api.routes.metrics import router as metrics_router

logger = get_logger("api.app")

ServiceFactory = Callable[[], FixtureService]


def create_app(service_factory: Optional[ServiceFactory] = None) -> FastAPI:
    factory = service_factory or FixtureService.from_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service = factory()
        app.state.fixture_service = service
        service.start()
        try:
            yield
        finally:
            await service.aclose()
            logger.info("FixtureService chiuso")

    app = FastAPI(title="Live Fixtures API", version="0.1.0", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(fixtures_router)
    app.include_router(metrics_router)
    return app


app = create_app()

# Avvio rapido: python -m api.app
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.app:app", host="0.0.0.0", port=8000, reload=False)
