"""Warehouse commands: connectivity check and pacing fetch."""

import asyncio
import json

import typer

from ..services import build_services
from ..errors import MediapaceError
from ..utils.config_loader import ConfigLoader
from . import console, warehouse_app


def _services():
    try:
        settings = ConfigLoader().load_config()
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    return build_services(settings)


@warehouse_app.command("ping")
def ping():
    """Run SELECT 1 through the pool."""
    services = _services()

    async def _run():
        try:
            return await services.pool.try_execute("SELECT 1 AS ok")
        finally:
            await services.close()

    outcome = asyncio.run(_run())
    if not outcome.ok:
        console.print(f"[red]Warehouse unreachable: {outcome.error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Warehouse OK[/green] ({services.settings.warehouse.driver})")


@warehouse_app.command("pacing")
def pacing(
    mba: str = typer.Option(..., "--mba", help="MBA number"),
    ids: str = typer.Option(..., "--ids", help="Comma-separated line item ids"),
    start: str = typer.Option(None, "--start"),
    end: str = typer.Option(None, "--end"),
):
    """Fetch daily pacing rows for line items."""
    services = _services()
    id_list = [i for i in ids.split(",") if i.strip()]

    async def _run():
        try:
            return await services.pacing.fetch_line_item_pacing(mba, id_list, start, end)
        finally:
            await services.close()

    try:
        rows = asyncio.run(_run())
    except MediapaceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps([r.to_dict() for r in rows]))
