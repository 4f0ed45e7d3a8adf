"""mediapace CLI - modular command package."""

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console

from .. import __version__
from ..utils.logging_config import setup_logging

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="mediapace - media plan pacing and billing engine")
console = Console()

billing_app = typer.Typer()
warehouse_app = typer.Typer()

app.add_typer(billing_app, name="billing", help="Build billing schedules and finance lines")
app.add_typer(warehouse_app, name="warehouse", help="Query the analytics warehouse")


@app.callback()
def _main(log_level: str = typer.Option("WARNING", "--log-level", help="Engine log level")):
    load_dotenv()
    setup_logging(os.getenv("MEDIAPACE_LOG_LEVEL", log_level))


# ── Shared helpers ──────────────────────────────────────────────────────────

def read_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text())
    except FileNotFoundError:
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(1)


# ── Top-level commands ──────────────────────────────────────────────────────

@app.command("version")
def version():
    """Print the mediapace version."""
    console.print(f"mediapace {__version__}")


@app.command("serve")
def serve(host: str = "127.0.0.1", port: int = 9100, reload: bool = False):
    """Run the HTTP API in the foreground."""
    cmd = [
        sys.executable, "-m", "uvicorn",
        "mediapace.app:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        cmd.append("--reload")
    console.print(f"[green]Starting mediapace API on {host}:{port}...[/green]")
    try:
        code = subprocess.call(cmd)
    except KeyboardInterrupt:
        code = 130
    raise typer.Exit(code)


# ── Register submodule commands (import triggers decorator registration) ────

from . import plan_cmds       # noqa: E402, F401
from . import warehouse_cmds  # noqa: E402, F401
