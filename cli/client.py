from __future__ import annotations

from typing import Any, Dict, List

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the dam forecast service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def list_dams(self, checkable_only: bool = False) -> List[Dict[str, Any]]:
        params = {"checkable_only": "true"} if checkable_only else None
        return self._request("GET", "/dams", params=params)

    def check_dam(self, site_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/dams/{site_id}/check")

    def check_site(
        self, site_id: str, q_min: float, q_max: float, site_name: str = ""
    ) -> Dict[str, Any]:
        body = {"site_id": site_id, "q_min": q_min, "q_max": q_max, "site_name": site_name}
        return self._request("POST", "/checks", json=body)

    def current_chart(self) -> Dict[str, Any]:
        return self._request("GET", "/chart")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
