from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from datastore.chart_slot import build_default_slot
from logging_config import configure_logging
from services.catalog import build_default_catalog
from services.forecast import build_default_forecast_service
from storage.overlays import build_default_overlays

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    catalog = build_default_catalog()
    overlays = build_default_overlays()
    failures = overlays.load_all()
    service = build_default_forecast_service()
    logger.info(
        "Service ready",
        extra={"dam_count": len(catalog), "reason": f"{len(failures)} overlay(s) unavailable"},
    )
    try:
        yield
    finally:
        await service.aclose()
        build_default_forecast_service.cache_clear()
        build_default_slot.cache_clear()
        build_default_overlays.cache_clear()
        build_default_catalog.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Dam Forecast Check",
        description="Classifies low-head dams as safe or dangerous from live streamflow forecasts.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
