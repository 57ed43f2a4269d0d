from __future__ import annotations

from pathlib import Path
from typing import Iterable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.schemas import DamSummary, ForecastResponse
from models.records import DamRecord
from services.catalog import DamCatalog, build_default_catalog
from services.forecast import CheckOutcome, ForecastService, build_default_forecast_service


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def get_catalog() -> DamCatalog:
    return build_default_catalog()


def get_forecast_service() -> ForecastService:
    return build_default_forecast_service()


def _sort_dams(dams: Iterable[DamRecord]) -> list[DamSummary]:
    ordered = sorted(dams, key=lambda dam: (not dam.is_checkable, dam.name.lower()))
    return [DamSummary.from_record(dam) for dam in ordered]


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    catalog: DamCatalog = Depends(get_catalog),
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "dams": _sort_dams(catalog),
            "catalog_error": catalog.load_error,
        },
    )


@router.get("/ui/dams/{site_id}/check", name="ui_check", response_class=HTMLResponse)
async def ui_check(
    request: Request,
    site_id: str,
    catalog: DamCatalog = Depends(get_catalog),
    service: ForecastService = Depends(get_forecast_service),
) -> HTMLResponse:
    dam = catalog.find_checkable(site_id)
    if dam is None or dam.danger_range is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No checkable dam with site id {site_id!r}.",
        )

    result = await service.check_safety(dam.id, dam.danger_range, dam.name)
    # Failed checks keep showing whatever chart was already on display.
    series = result.series if result.displayed else service.slot.current()
    return templates.TemplateResponse(
        request,
        "ui/forecast.html",
        {
            "message": result.message,
            "failed": result.outcome is not CheckOutcome.success,
            "forecast": ForecastResponse.from_series(series) if series else None,
        },
    )


@router.get("/ui/chart", name="ui_chart", response_class=HTMLResponse)
async def ui_chart(
    request: Request,
    service: ForecastService = Depends(get_forecast_service),
) -> HTMLResponse:
    series = service.slot.current()
    return templates.TemplateResponse(
        request,
        "ui/forecast.html",
        {
            "message": series.verdict.explanation if series else "No forecast has been checked yet.",
            "failed": False,
            "forecast": ForecastResponse.from_series(series) if series else None,
        },
    )
