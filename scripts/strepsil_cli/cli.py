#!/usr/bin/env python3
"""
Strepsil CLI - AI usage metering from the terminal.

Commands:
    config      Manage local configuration
    health      Check Strepsil health
    summary     Usage totals
    calls       List recorded AI calls
    breakdown   Cost breakdown by model, provider, endpoint, date or status
    trends      Daily or hourly usage trends
    report      Download a billing report (json, csv, pdf)
    setup       Write a .env with a fresh ENCRYPTION_KEY
    version     Show CLI and server version
"""
import json
import secrets
from pathlib import Path
from typing import Optional
from urllib.request import Request, urlopen

import typer
from rich.console import Console
from rich.table import Table

from strepsil_cli.api import (
    APIError,
    CLIError,
    CONFIG_FILE,
    DEFAULT_URL,
    api_download as _api_download,
    api_request as _api_request,
    build_endpoint,
    get_url,
    load_config,
    save_config,
)

CLI_VERSION = "1.0.0"

# Initialize Typer apps
app = typer.Typer(
    name="strepsil",
    help="Strepsil CLI - AI usage metering and reporting",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage local configuration (~/.strepsil)")
app.add_typer(config_app, name="config")

# Rich console for colored output
console = Console()
err_console = Console(stderr=True)


def fail(e: CLIError):
    """Print a CLI error and exit non-zero."""
    if isinstance(e, APIError):
        err_console.print(f"[red]Error {e.status_code}:[/red] {e.detail}")
    else:
        err_console.print(f"[red]{e}[/red]")
    raise typer.Exit(1)


def api_request(method: str, endpoint: str, data: dict = None, timeout: int = 30) -> dict:
    try:
        return _api_request(method, endpoint, data, timeout)
    except CLIError as e:
        fail(e)


def money(value: float, places: int = 2) -> str:
    return f"${(value or 0):.{places}f}"


def fetch_health(timeout: int = 10) -> dict:
    with urlopen(Request(f"{get_url().rstrip('/')}/health"), timeout=timeout) as resp:
        return json.loads(resp.read().decode())


# =============================================================================
# Config Commands
# =============================================================================

@config_app.command("init")
def config_init():
    """Create ~/.strepsil/config.yaml pointing at the default server.

    Example: strepsil config init
    """
    if CONFIG_FILE.exists():
        console.print(f"Config already exists: [cyan]{CONFIG_FILE}[/cyan]")
        for key, value in load_config().items():
            console.print(f"  {key}: [dim]{value}[/dim]")
        return

    save_config({"url": DEFAULT_URL})
    console.print(f"[green]✓[/green] Created [cyan]{CONFIG_FILE}[/cyan] (url: {DEFAULT_URL})")
    console.print("Change the server with: [cyan]strepsil config set url <url>[/cyan]")


@config_app.command("show")
def config_show(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Print the local configuration.

    Example: strepsil config show
    """
    config = load_config()
    if as_json:
        console.print(json.dumps(config, indent=2))
        return
    if not config:
        console.print(f"No config at [cyan]{CONFIG_FILE}[/cyan]")
        console.print("Run: [cyan]strepsil config init[/cyan]")
        return

    table = Table(title=str(CONFIG_FILE), show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Value", style="cyan")
    for key, value in config.items():
        table.add_row(key, value)
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Config key, e.g. url"),
    value: str = typer.Argument(..., help="New value"),
):
    """Store one configuration value.

    Example: strepsil config set url http://localhost:3001
    """
    save_config({**load_config(), key: value})
    console.print(f"[green]✓[/green] {key} = [cyan]{value}[/cyan]")


@config_app.command("get")
def config_get(
    key: str = typer.Argument(..., help="Config key"),
    raw: bool = typer.Option(False, "--raw", help="Print only the value"),
):
    """Print one configuration value.

    Example: strepsil config get url --raw
    """
    config = load_config()
    if key not in config:
        err_console.print(f"[red]No such key:[/red] {key}")
        raise typer.Exit(1)
    if raw:
        print(config[key])
    else:
        console.print(f"{key}: [cyan]{config[key]}[/cyan]")


@config_app.command("path")
def config_path():
    """Print the config file location."""
    print(CONFIG_FILE)


# =============================================================================
# Health & Version
# =============================================================================

@app.command("health")
def health(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the full response"),
):
    """Check server, database and encryption status.

    Example: strepsil health
    """
    try:
        result = fetch_health()
    except (OSError, ValueError) as e:
        err_console.print(f"[red]Cannot reach {get_url()}:[/red] {e}")
        raise typer.Exit(1)

    status = result.get("status", "unknown")
    colour = "green" if status == "healthy" else "yellow"
    mark = "✓" if status == "healthy" else "⚠"
    console.print(
        f"[{colour}]{mark}[/{colour}] {result.get('service', 'strepsil')} "
        f"v{result.get('version', '?')}: [{colour}]{status}[/{colour}]"
    )
    console.print(f"  Database: {result.get('database', 'unknown')}")
    encryption = result.get("checks", {}).get("encryption")
    if encryption:
        console.print(f"  Encryption: {encryption.get('status', 'unknown')} - {encryption.get('message', '')}")

    if verbose:
        console.print(json.dumps(result, indent=2))


@app.command("version")
def version():
    """Show CLI and server version.

    Example: strepsil version
    """
    console.print(f"strepsil-cli {CLI_VERSION}")
    try:
        server = fetch_health(timeout=5)
    except (OSError, ValueError):
        console.print(f"[dim]server unreachable at {get_url()}[/dim]")
        return
    console.print(f"server {server.get('version', '?')} at {get_url()}")


# =============================================================================
# Usage Commands
# =============================================================================

@app.command("summary")
def summary(
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD, inclusive)"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by provider"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Usage totals with provider and model breakdowns.

    Example: strepsil summary --from 2024-01-01
    """
    result = api_request("GET", build_endpoint("/api/ai-calls/analytics/summary", {
        "start_date": start_date,
        "end_date": end_date,
        "provider": provider,
    }))

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    totals = result.get("summary", {})
    console.print("[bold]Usage Summary[/bold]")
    console.print(f"  Calls: {totals.get('total_calls', 0):,}")
    console.print(f"  Cost: [green]{money(totals.get('total_cost'))}[/green]")
    console.print(f"  Tokens in/out: {totals.get('total_tokens_in', 0):,} / {totals.get('total_tokens_out', 0):,}")
    console.print(f"  Avg latency: {totals.get('average_latency_ms', 0)}ms")

    for title, key in (("By Provider", "providers"), ("By Model", "models")):
        groups = result.get("breakdowns", {}).get(key, {})
        if not groups:
            continue
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Name")
        table.add_column("Calls", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right", style="green")
        for name, stats in sorted(groups.items(), key=lambda item: item[1]["cost"], reverse=True):
            table.add_row(name, f"{stats['calls']:,}", f"{stats['tokens']:,}", money(stats["cost"]))
        console.print(table)


@app.command("calls")
def calls(
    page: int = typer.Option(1, "--page", help="Page number"),
    limit: int = typer.Option(20, "--limit", "-n", help="Calls per page"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by provider"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Filter by model"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List recorded AI calls, newest first.

    Example: strepsil calls --provider OpenAI --status failure
    """
    result = api_request("GET", build_endpoint("/api/ai-calls", {
        "page": page,
        "limit": limit,
        "provider": provider,
        "model_type": model,
        "status": status,
    }))

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    rows = result.get("aiCalls", [])
    pagination = result.get("pagination", {})
    if not rows:
        console.print("No calls found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Time", style="dim")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Latency", justify="right")
    table.add_column("Status")
    for call in rows:
        ts = (call.get("created_at") or "")[:19].replace("T", " ")
        call_status = call.get("status", "")
        status_text = f"[red]{call_status}[/red]" if call_status == "failure" else call_status
        table.add_row(
            ts,
            call.get("provider", ""),
            call.get("model_type", "")[:30],
            f"{call.get('tokens_in', 0):,}",
            f"{call.get('tokens_out', 0):,}",
            money(call.get("total_cost"), 4),
            f"{call.get('latency_ms', 0)}ms",
            status_text,
        )
    console.print(table)
    console.print(
        f"[dim]Page {pagination.get('page', page)} of {pagination.get('pages', 1)} "
        f"({pagination.get('total', len(rows))} calls)[/dim]"
    )


@app.command("breakdown")
def breakdown(
    group_by: str = typer.Option("model", "--by", "-b", help="model, provider, endpoint, date or status"),
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD, inclusive)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Cost breakdown by one dimension.

    Example: strepsil breakdown --by provider
    """
    result = api_request("GET", build_endpoint("/api/reports/cost-breakdown", {
        "group_by": group_by,
        "start_date": start_date,
        "end_date": end_date,
    }))

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    groups = result.get("breakdown", {})
    table = Table(title=f"Cost by {group_by}", show_header=True, header_style="bold")
    table.add_column(group_by.capitalize())
    table.add_column("Calls", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right", style="green")
    ordered = sorted(groups.items()) if group_by == "date" else sorted(
        groups.items(), key=lambda item: item[1]["cost"], reverse=True
    )
    for name, stats in ordered:
        table.add_row(name, f"{stats['calls']:,}", f"{stats['tokens']:,}", money(stats["cost"]))
    console.print(table)
    console.print(f"Total: {result.get('total_calls', 0):,} calls, [green]{money(result.get('total_cost'))}[/green]")


@app.command("trends")
def trends(
    period: str = typer.Option("daily", "--period", help="daily or hourly"),
    days: int = typer.Option(7, "--days", "-d", help="Days to look back"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Usage trends over recent days.

    Example: strepsil trends --days 30
    """
    result = api_request("GET", build_endpoint("/api/reports/trends", {"period": period, "days": days}))

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    buckets = result.get("trends", {})
    if not buckets:
        console.print(f"No usage in the last {days} days")
        return

    table = Table(title=f"{period.capitalize()} usage (last {days} days)", show_header=True, header_style="bold")
    table.add_column("Period")
    table.add_column("Calls", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right", style="green")
    table.add_column("Avg latency", justify="right")
    table.add_column("Errors", justify="right")
    for key in sorted(buckets):
        stats = buckets[key]
        errors = stats.get("errors", 0)
        table.add_row(
            key,
            f"{stats['calls']:,}",
            f"{stats['tokens']:,}",
            money(stats["cost"]),
            f"{int(stats.get('average_latency', 0) + 0.5)}ms",
            f"[red]{errors}[/red]" if errors else "0",
        )
    console.print(table)


@app.command("report")
def report(
    format: str = typer.Option("csv", "--format", "-f", help="json, csv or pdf"),
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD, inclusive)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
):
    """Download a billing report.

    Example: strepsil report --format pdf -o usage.pdf
    """
    endpoint = build_endpoint("/api/reports/billing", {
        "format": format,
        "start_date": start_date,
        "end_date": end_date,
    })
    try:
        content, filename = _api_download(endpoint)
    except CLIError as e:
        fail(e)

    target = output or Path(filename or f"billing-report.{format}")
    target.write_bytes(content)
    console.print(f"[green]✓[/green] Saved {len(content):,} bytes to [cyan]{target}[/cyan]")


# =============================================================================
# Setup
# =============================================================================

@app.command("setup")
def setup(
    env_file: Path = typer.Option(Path(".env"), "--env-file", help="Where to write the server .env"),
    port: int = typer.Option(3001, "--port", help="Server port"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a server .env with a freshly generated ENCRYPTION_KEY.

    Example: strepsil setup --env-file .env
    """
    if env_file.exists() and not force:
        err_console.print(f"[yellow]{env_file} already exists[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)

    lines = [
        "# Strepsil server configuration",
        f"PORT={port}",
        "DATABASE_URL=sqlite+aiosqlite:///./data/strepsil.db",
        f"ENCRYPTION_KEY={secrets.token_urlsafe(32)}",
        "FRONTEND_URL=http://localhost:3000",
        "LOG_LEVEL=INFO",
    ]
    env_file.write_text("\n".join(lines) + "\n")
    env_file.chmod(0o600)
    console.print(f"[green]✓[/green] Created: [cyan]{env_file}[/cyan]")
    console.print("Keep ENCRYPTION_KEY safe: stored provider keys cannot be read without it.")


# =============================================================================
# Main
# =============================================================================

def main():
    app()


if __name__ == "__main__":
    main()
