"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import CheckRequest, CheckResponse, DamSummary, ForecastResponse, ServiceStatus
from services.catalog import DamCatalog, build_default_catalog
from services.forecast import CheckOutcome, CheckResult, ForecastService, build_default_forecast_service
from storage.overlays import OVERLAY_MEDIA_TYPE, OverlayStore, build_default_overlays

router = APIRouter()


def get_catalog() -> DamCatalog:
    return build_default_catalog()


def get_forecast_service() -> ForecastService:
    return build_default_forecast_service()


def get_overlays() -> OverlayStore:
    return build_default_overlays()


def _check_response(result: CheckResult) -> CheckResponse:
    if result.outcome is CheckOutcome.no_data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)
    if result.outcome is CheckOutcome.connection_error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.message)
    return CheckResponse.from_result(result)


@router.get(
    "/dams",
    response_model=List[DamSummary],
    summary="List dams in the catalog.",
)
async def list_dams(
    checkable_only: bool = Query(False, description="Only dams with a danger range and site id."),
    catalog: DamCatalog = Depends(get_catalog),
) -> List[DamSummary]:
    dams = catalog.checkable() if checkable_only else catalog.all()
    return [DamSummary.from_record(dam) for dam in dams]


@router.get(
    "/dams/{site_id}",
    response_model=List[DamSummary],
    summary="Fetch every catalog entry for a site identifier.",
)
async def get_dam(
    site_id: str,
    catalog: DamCatalog = Depends(get_catalog),
) -> List[DamSummary]:
    dams = catalog.find(site_id)
    if not dams:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dam with site id {site_id!r} not found.",
        )
    return [DamSummary.from_record(dam) for dam in dams]


@router.post(
    "/dams/{site_id}/check",
    response_model=CheckResponse,
    summary="Check the live forecast of a catalog dam against its danger range.",
)
async def check_dam(
    site_id: str,
    catalog: DamCatalog = Depends(get_catalog),
    service: ForecastService = Depends(get_forecast_service),
) -> CheckResponse:
    if not catalog.find(site_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dam with site id {site_id!r} not found.",
        )
    dam = catalog.find_checkable(site_id)
    if dam is None or dam.danger_range is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Dam with site id {site_id!r} has no danger range data.",
        )
    result = await service.check_safety(dam.id, dam.danger_range, dam.name)
    return _check_response(result)


@router.post(
    "/checks",
    response_model=CheckResponse,
    summary="Check the live forecast of any site against an explicit danger range.",
)
async def check_site(
    request: CheckRequest,
    service: ForecastService = Depends(get_forecast_service),
) -> CheckResponse:
    result = await service.check_safety(
        request.site_id, request.danger_range(), request.site_name
    )
    return _check_response(result)


@router.get(
    "/chart",
    response_model=ForecastResponse,
    summary="Fetch the forecast currently on display.",
)
async def current_chart(
    service: ForecastService = Depends(get_forecast_service),
) -> ForecastResponse:
    series = service.slot.current()
    if series is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No forecast has been displayed yet.",
        )
    return ForecastResponse.from_series(series)


@router.get(
    "/overlays",
    response_model=List[str],
    summary="List the hydrography overlays that loaded.",
)
async def list_overlays(overlays: OverlayStore = Depends(get_overlays)) -> List[str]:
    return list(overlays.list_layers())


@router.get(
    "/overlays/{name}",
    summary="Download a hydrography overlay file.",
    response_class=Response,
)
async def get_overlay(name: str, overlays: OverlayStore = Depends(get_overlays)) -> Response:
    try:
        data = overlays.get(name)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return Response(content=data, media_type=OVERLAY_MEDIA_TYPE)


@router.get(
    "/health",
    response_model=ServiceStatus,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(catalog: DamCatalog = Depends(get_catalog)) -> ServiceStatus:
    return ServiceStatus(status="ok", dam_count=len(catalog), catalog_error=catalog.load_error)


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
