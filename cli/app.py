from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_check, render_dams, render_forecast


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Check low-head dams against live streamflow forecasts.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("dams")
def dams_command(
    ctx: typer.Context,
    checkable_only: bool = typer.Option(
        False,
        "--checkable-only",
        help="Only list dams that have a danger range and site id.",
    ),
) -> None:
    """List dams in the catalog."""
    state = _get_state(ctx)
    render_dams(state.client.list_dams(checkable_only=checkable_only))


@app.command("check")
def check_command(
    ctx: typer.Context,
    site_id: str = typer.Argument(..., help="Site identifier of a catalog dam."),
) -> None:
    """Check a catalog dam against its stored danger range."""
    state = _get_state(ctx)
    typer.echo(f"Checking forecast for {site_id} ...")
    render_check(state.client.check_dam(site_id))


@app.command("check-range")
def check_range_command(
    ctx: typer.Context,
    site_id: str = typer.Argument(..., help="Forecast site identifier."),
    q_min: float = typer.Option(..., "--q-min", help="Lower bound of the dangerous range, cfs."),
    q_max: float = typer.Option(..., "--q-max", help="Upper bound of the dangerous range, cfs."),
    name: str = typer.Option("", "--name", help="Display name for the site."),
) -> None:
    """Check any site against an explicit danger range."""
    if q_min > q_max:
        raise typer.BadParameter("--q-min must not exceed --q-max.")
    state = _get_state(ctx)
    typer.echo(f"Checking forecast for {site_id} ...")
    render_check(state.client.check_site(site_id, q_min, q_max, name))


@app.command("chart")
def chart_command(ctx: typer.Context) -> None:
    """Show the forecast currently on display."""
    state = _get_state(ctx)
    render_forecast(state.client.current_chart())
