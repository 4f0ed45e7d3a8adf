"""Offline plan commands: normalize, prorate, billing build/finance."""

import json
from datetime import date
from pathlib import Path

import typer
from rich.table import Table

from ..billing import (
    build_billing_schedule,
    build_monthly_inputs,
    extract_line_items,
    extract_service_amounts,
    merge_finance_line_items,
)
from ..mediaplan import burst_from_mapping, normalize
from ..pacing import compute_to_date, time_elapsed_pct
from ..utils.dates import parse_date
from ..utils.money import format_currency
from . import app, billing_app, console, read_json_file


@app.command("normalize")
def normalize_cmd(
    path: Path = typer.Argument(..., help="JSON file with a list of raw line item records"),
    media_type: str = typer.Option(..., "--media-type", "-m", help="Media container, e.g. television"),
    mba: str = typer.Option(None, "--mba", help="MBA number used to derive ids for records without one"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """Normalize raw line item records into canonical line items."""
    records = read_json_file(path)
    if not isinstance(records, list):
        console.print("[red]Expected a JSON list of records[/red]")
        raise typer.Exit(1)

    items = normalize(records, media_type, mba_number=mba)
    if as_json:
        console.print_json(json.dumps([i.to_dict() for i in items]))
        return

    table = Table(title=f"{media_type} line items")
    table.add_column("Line item")
    table.add_column("Channel")
    table.add_column("Title")
    table.add_column("Publisher")
    table.add_column("Bursts", justify="right")
    table.add_column("Budget", justify="right")
    for item in items:
        table.add_row(
            item.line_item_id,
            item.channel,
            item.title,
            item.attributes.publisher,
            str(len(item.bursts)),
            format_currency(item.total_budget),
        )
    console.print(table)


@app.command("prorate")
def prorate_cmd(
    path: Path = typer.Argument(..., help="JSON file with a list of bursts"),
    as_of: str = typer.Option(None, "--as-of", help="As-of date (YYYY-MM-DD); defaults to today"),
):
    """Show expected spend and deliverables to date for a set of bursts."""
    raw = read_json_file(path)
    bursts = [b for b in (burst_from_mapping(r) for r in raw if isinstance(r, dict)) if b is not None]
    if not bursts:
        console.print("[yellow]No datable bursts found.[/yellow]")
        raise typer.Exit(1)

    as_of_date = parse_date(as_of) if as_of else date.today()
    if as_of_date is None:
        console.print(f"[red]Invalid --as-of date: {as_of}[/red]")
        raise typer.Exit(1)

    start = min(b.start_date for b in bursts)
    end = max(b.end_date for b in bursts)
    console.print(f"[bold]As of {as_of_date.isoformat()}[/bold] ({start} → {end})")
    console.print(f"  Expected spend:        {format_currency(compute_to_date(bursts, as_of_date))}")
    console.print(f"  Expected deliverables: {compute_to_date(bursts, as_of_date, field='deliverable'):,.0f}")
    console.print(f"  Time elapsed:          {time_elapsed_pct(start, end, as_of_date):.1f}%")


@billing_app.command("build")
def billing_build(
    path: Path = typer.Argument(..., help="JSON: list of month inputs, or {lineItemsByType: {...}}"),
):
    """Build a billing schedule and print it as JSON."""
    data = read_json_file(path)
    if isinstance(data, dict) and "lineItemsByType" in data:
        months = build_monthly_inputs(
            {mt: normalize(records, mt) for mt, records in (data.get("lineItemsByType") or {}).items()},
            fee_pct_by_type=data.get("feePctByType") or {},
            budget_includes_fees=bool(data.get("budgetIncludesFees")),
            client_pays_for_media=bool(data.get("clientPaysForMedia")),
        )
    else:
        months = data if isinstance(data, list) else (data or {}).get("months", [])
    console.print_json(json.dumps({"months": build_billing_schedule(months)}))


@billing_app.command("finance")
def billing_finance(
    path: Path = typer.Argument(..., help="JSON billing schedule"),
    year: int = typer.Option(..., "--year"),
    month: int = typer.Option(..., "--month", min=1, max=12),
):
    """Extract invoice lines for one month of a billing schedule."""
    schedule = read_json_file(path)
    items = merge_finance_line_items(extract_line_items(schedule, year, month))
    services = extract_service_amounts(schedule, year, month)

    table = Table(title=f"Finance lines {year}-{month:02d}")
    table.add_column("Item code")
    table.add_column("Media type")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    for item in items:
        table.add_row(item.item_code, item.media_type, item.description, format_currency(item.amount))
    console.print(table)
    console.print(f"Ad serving/tech: {format_currency(services.adserving_tech_fees)}")
    console.print(f"Production:      {format_currency(services.production)}")
    console.print(f"Assembled fee:   {format_currency(services.assembled_fee)}")
