"""Forecast safety check orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from datastore.chart_slot import ChartSlot, build_default_slot
from models.records import DangerRange, ForecastSeries, VerdictRule
from services.classifier import ForecastClassifier
from services.exceptions import (
    ForecastConnectionError,
    MalformedForecastError,
    NoForecastDataError,
)
from services.forecast_client import ForecastClient
from settings import get_settings

logger = logging.getLogger(__name__)


class CheckOutcome(str, Enum):
    success = "success"
    connection_error = "connection_error"
    no_data = "no_data"


@dataclass
class CheckResult:
    """Outcome of one safety check; ``series`` is set only on success."""

    outcome: CheckOutcome
    site_id: str
    sequence: int
    message: str
    series: Optional[ForecastSeries] = None
    displayed: bool = False


class ForecastService:
    """Coordinates forecast fetching, classification and the displayed chart."""

    def __init__(
        self,
        client: ForecastClient,
        classifier: ForecastClassifier,
        slot: ChartSlot,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.client = client
        self.classifier = classifier
        self.slot = slot
        self.clock = clock

    async def check_safety(
        self,
        site_id: str,
        danger_range: DangerRange,
        site_name: str = "",
    ) -> CheckResult:
        """Fetch, classify and display the forecast for a site.

        Failures are reported through the result and leave the chart slot as it was.
        """
        sequence = self.slot.issue()
        context = {"site_id": site_id, "sequence": sequence}

        try:
            payload = await self.client.fetch_forecast(site_id)
            now = self.clock() if self.clock is not None else None
            series = self.classifier.classify(
                payload,
                site_id=site_id,
                site_name=site_name or site_id,
                danger_range=danger_range,
                now=now,
            )
        except NoForecastDataError as exc:
            logger.warning(
                "No forecast data for site",
                extra={**context, "outcome": CheckOutcome.no_data.value, "reason": str(exc)},
            )
            return CheckResult(
                outcome=CheckOutcome.no_data,
                site_id=site_id,
                sequence=sequence,
                message=f"API connected but no flow data found for site {site_id}.",
            )
        except ForecastConnectionError as exc:
            logger.error(
                "Forecast check failed",
                extra={
                    **context,
                    "outcome": CheckOutcome.connection_error.value,
                    "reason": str(exc),
                },
            )
            detail = "malformed forecast response" if isinstance(exc, MalformedForecastError) else str(exc)
            return CheckResult(
                outcome=CheckOutcome.connection_error,
                site_id=site_id,
                sequence=sequence,
                message=f"Error connecting to the forecast API ({detail}).",
            )

        displayed = self.slot.replace(series, sequence)
        logger.info(
            "Forecast check completed",
            extra={
                **context,
                "outcome": CheckOutcome.success.value,
                "sample_count": len(series.timestamps),
            },
        )
        return CheckResult(
            outcome=CheckOutcome.success,
            site_id=site_id,
            sequence=sequence,
            message=series.verdict.explanation,
            series=series,
            displayed=displayed,
        )

    async def aclose(self) -> None:
        await self.client.aclose()


def resolve_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown display time zone; using local zone", extra={"reason": name})
        return None


@lru_cache
def build_default_forecast_service() -> ForecastService:
    """Factory that wires the forecast service from settings."""
    settings = get_settings()
    client = ForecastClient(
        url_template=settings.forecast_url_template,
        timeout=settings.forecast_timeout,
    )
    classifier = ForecastClassifier(
        rule=VerdictRule(settings.verdict_rule),
        zone=resolve_zone(settings.display_timezone),
    )
    return ForecastService(client=client, classifier=classifier, slot=build_default_slot())
