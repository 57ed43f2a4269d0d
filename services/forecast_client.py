"""
Async client for the streamflow forecast API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from services.exceptions import ForecastConnectionError, MalformedForecastError
from settings import DEFAULT_FORECAST_URL_TEMPLATE

logger = logging.getLogger(__name__)


class ForecastClient:
    """
    Client for the per-site forecast endpoint.

    The URL template is formatted with ``site_id``; the service is expected to
    answer with a JSON object of parallel ``datetime`` and ``flow_*`` arrays.
    """

    def __init__(
        self,
        url_template: str = DEFAULT_FORECAST_URL_TEMPLATE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={
                "User-Agent": "dam-forecast-check/0.1.0",
                "Accept": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ForecastClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def url_for(self, site_id: str) -> str:
        return self.url_template.format(site_id=site_id)

    async def fetch_forecast(self, site_id: str) -> Any:
        """Fetch the raw forecast document for a site."""
        url = self.url_for(site_id)

        try:
            response = await self._client.get(url)
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            raise ForecastConnectionError(f"Request timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                "Forecast service returned an error status",
                extra={"site_id": site_id, "status_code": status_code},
            )
            if status_code == 429:
                raise ForecastConnectionError("Rate limit exceeded") from e
            elif status_code >= 500:
                raise ForecastConnectionError("Forecast service temporarily unavailable") from e
            else:
                raise ForecastConnectionError(f"HTTP error {status_code}: {e}") from e
        except httpx.RequestError as e:
            raise ForecastConnectionError(f"Network error: {e}") from e
        except ValueError as e:  # undecodable bytes or invalid JSON
            raise MalformedForecastError(f"Invalid JSON response: {e}") from e
