"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from models.records import DamRecord, DangerRange, ForecastSeries, SafetyStatus, VerdictRule
from services.forecast import CheckOutcome, CheckResult


class DangerRangeModel(BaseModel):
    """Dangerous flow band in cubic feet per second."""

    min: float
    max: float


class DamSummary(BaseModel):
    """Catalog entry exposed to map and CLI clients."""

    site_id: str
    name: str
    location: str
    stream: str
    latitude: float
    longitude: float
    danger_range: Optional[DangerRangeModel] = None
    fatality_count: int = Field(default=0, ge=0)
    checkable: bool

    @classmethod
    def from_record(cls, dam: DamRecord) -> "DamSummary":
        danger = dam.danger_range
        return cls(
            site_id=dam.id,
            name=dam.name,
            location=dam.location,
            stream=dam.stream,
            latitude=dam.latitude,
            longitude=dam.longitude,
            danger_range=DangerRangeModel(min=danger.min, max=danger.max) if danger else None,
            fatality_count=dam.fatality_count,
            checkable=dam.is_checkable,
        )


class CheckRequest(BaseModel):
    """Ad hoc safety check against an explicit danger range."""

    site_id: str = Field(..., min_length=1)
    q_min: float = Field(..., description="Lower bound of the dangerous range, cfs.")
    q_max: float = Field(..., description="Upper bound of the dangerous range, cfs.")
    site_name: str = ""

    @model_validator(mode="after")
    def _check_order(self) -> "CheckRequest":
        if self.q_min > self.q_max:
            raise ValueError("q_min must not exceed q_max")
        return self

    def danger_range(self) -> DangerRange:
        return DangerRange(min=self.q_min, max=self.q_max)


class ChartDataset(BaseModel):
    name: str
    values: List[Optional[float]]
    fill_to: Optional[str] = Field(
        default=None, description="Dataset name whose line this one is shaded against."
    )


class VerdictModel(BaseModel):
    dangerous: bool
    rule: VerdictRule
    status: SafetyStatus
    current_flow: Optional[float] = None
    dangerous_indices: List[int] = Field(default_factory=list)
    explanation: str


class ForecastResponse(BaseModel):
    """A classified forecast ready to be charted."""

    site_id: str
    site_name: str
    danger_range: DangerRangeModel
    timestamps: List[datetime]
    labels: List[str]
    verdict: VerdictModel
    datasets: List[ChartDataset]

    @classmethod
    def from_series(cls, series: ForecastSeries) -> "ForecastResponse":
        danger = series.danger_range
        count = len(series.timestamps)
        verdict = series.verdict
        return cls(
            site_id=series.site_id,
            site_name=series.site_name,
            danger_range=DangerRangeModel(min=danger.min, max=danger.max),
            timestamps=list(series.timestamps),
            labels=list(series.labels),
            verdict=VerdictModel(
                dangerous=verdict.dangerous,
                rule=verdict.rule,
                status=verdict.status,
                current_flow=verdict.current_flow,
                dangerous_indices=list(verdict.dangerous_indices),
                explanation=verdict.explanation,
            ),
            datasets=[
                ChartDataset(name="median", values=list(series.median)),
                ChartDataset(name="upper", values=list(series.upper)),
                ChartDataset(name="lower", values=list(series.lower)),
                ChartDataset(name="danger_min", values=[danger.min] * count),
                ChartDataset(name="danger_max", values=[danger.max] * count, fill_to="danger_min"),
            ],
        )


class CheckResponse(BaseModel):
    """Successful safety check."""

    outcome: CheckOutcome
    sequence: int
    displayed: bool
    message: str
    forecast: ForecastResponse

    @classmethod
    def from_result(cls, result: CheckResult) -> "CheckResponse":
        if result.series is None:
            raise ValueError(f"Check for site {result.site_id} produced no forecast series.")
        return cls(
            outcome=result.outcome,
            sequence=result.sequence,
            displayed=result.displayed,
            message=result.message,
            forecast=ForecastResponse.from_series(result.series),
        )


class ServiceStatus(BaseModel):
    status: str
    dam_count: int = Field(..., ge=0)
    catalog_error: Optional[str] = None
