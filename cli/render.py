from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_range(danger: Dict[str, Any] | None) -> str:
    if not danger:
        return "no data"
    return f"{danger.get('min'):.0f} - {danger.get('max'):.0f} cfs"


def _format_flow(value: Any) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def render_dams(dams: List[Dict[str, Any]]) -> None:
    echo_heading(f"Dams ({len(dams)})")
    if not dams:
        typer.echo("No dams loaded.")
        return
    for dam in dams:
        line = (
            f"  - {dam.get('site_id') or '-'}: {dam.get('name')} "
            f"[{_format_range(dam.get('danger_range'))}]"
        )
        if dam.get("checkable"):
            typer.echo(line)
        else:
            typer.secho(line, dim=True)


def render_forecast(forecast: Dict[str, Any], limit: int = 12) -> None:
    verdict = forecast.get("verdict") or {}
    echo_heading("Forecast")
    echo_key_values(
        [
            ("site_id", forecast.get("site_id")),
            ("site_name", forecast.get("site_name")),
            ("dangerous_range", _format_range(forecast.get("danger_range"))),
            ("rule", verdict.get("rule")),
            ("current_flow_cfs", _format_flow(verdict.get("current_flow"))),
        ]
    )

    typer.echo()
    colour = typer.colors.RED if verdict.get("dangerous") else typer.colors.GREEN
    typer.secho(f"Status: {verdict.get('status')}", fg=colour, bold=True)
    typer.echo(verdict.get("explanation", ""))

    datasets = {dataset["name"]: dataset["values"] for dataset in forecast.get("datasets", [])}
    median = datasets.get("median") or []
    upper = datasets.get("upper") or []
    lower = datasets.get("lower") or []
    labels = forecast.get("labels") or []

    typer.echo()
    echo_heading("Next hours (cfs)")
    for index, label in enumerate(labels[:limit]):
        band = ""
        if upper and lower:
            band = f" ({_format_flow(lower[index])} - {_format_flow(upper[index])})"
        typer.echo(f"  - {label}: {_format_flow(median[index])}{band}")


def render_check(payload: Dict[str, Any]) -> None:
    render_forecast(payload.get("forecast") or {})
    if not payload.get("displayed", True):
        typer.echo()
        typer.secho("A newer check already holds the chart.", fg=typer.colors.YELLOW)
