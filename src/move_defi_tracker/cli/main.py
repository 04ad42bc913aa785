"""CLI for the Movement DeFi position tracker."""

import asyncio
import json
import logging
from decimal import Decimal
from enum import StrEnum

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from move_defi_tracker.adapters import ALL_ADAPTERS
from move_defi_tracker.config import ScannerSettings, get_network
from move_defi_tracker.core.models import PortfolioSummary, ScanResult, ScanStatus
from move_defi_tracker.core.registry import HandlerRegistry, ProtocolRegistry
from move_defi_tracker.core.scanner import ResourceScanner
from move_defi_tracker.core.session import PositionScanService
from move_defi_tracker.rpc import MovementClient

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="move-defi-tracker",
    help="Detect and value DeFi positions held by a Movement Network account",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
        force=True,
    )
    # Request lines from httpx are noise unless debugging the client itself
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _scan(address: str, network: str | None) -> tuple[ScanResult, PortfolioSummary, str]:
    network_config = get_network(network)
    settings = ScannerSettings.from_env()

    async with MovementClient(network_config.rpc, timeout=settings.request_timeout) as client:
        service = PositionScanService(client, scanner=ResourceScanner(settings=settings))
        result = await service.scan(address)
        explorer_url = network_config.account_url(result.address) if result.address else ""
        return result, service.summarize(), explorer_url


@app.command()
def positions(
    address: str = typer.Argument(..., help="Account address to scan"),
    network: str | None = typer.Option(None, "--network", "-n", help="Network name (mainnet or testnet)"),
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        "-f",
        help="Output format",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Scan an account for DeFi positions.

    Examples:

        # Scan an account on mainnet
        move-defi-tracker positions 0xABC...

        # Scan on testnet and print JSON
        move-defi-tracker positions 0xABC... --network testnet --format json
    """
    _configure_logging(debug)

    try:
        if format == OutputFormat.JSON:
            result, summary, explorer_url = asyncio.run(_scan(address, network))
        else:
            console.print(f"\n[bold cyan]Scanning DeFi positions for:[/bold cyan] {address}")
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Fetching account resources...", total=None)
                result, summary, explorer_url = asyncio.run(_scan(address, network))
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if result.status == ScanStatus.ERROR:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)

    if format == OutputFormat.JSON:
        _output_json(summary)
    else:
        _output_table(summary, explorer_url)


@app.command()
def list_protocols() -> None:
    """List all known protocols."""
    registry = ProtocolRegistry()
    handlers_by_protocol: dict[str, list[str]] = {}
    for handler_class in HandlerRegistry.get_all_handlers():
        handlers_by_protocol.setdefault(handler_class.protocol_key, []).append(handler_class.name)

    table = Table(title="Known Protocols", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Protocol", style="green")
    table.add_column("Category", style="yellow")
    table.add_column("Specialized Handler", style="blue")
    table.add_column("Website", style="dim")

    for descriptor in registry.list_protocols():
        handlers = ", ".join(handlers_by_protocol.get(descriptor.key, [])) or "-"
        table.add_row(descriptor.key, descriptor.display_name, descriptor.category, handlers, descriptor.website or "-")

    console.print(table)


@app.command()
def list_adapters() -> None:
    """List declarative adapters in match order."""
    table = Table(title="Adapters", show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Matches", style="white")

    for adapter in ALL_ADAPTERS:
        matches = adapter.search_string
        if adapter.type_filter is not None:
            matches += " (filtered)"
        table.add_row(adapter.id, adapter.name, adapter.position_type, matches)

    console.print(table)


def _output_table(summary: PortfolioSummary, explorer_url: str) -> None:
    """Output positions as rich table."""
    if not summary.positions:
        console.print("\n[yellow]No DeFi positions found[/yellow]")
        return

    table = Table(
        title=f"DeFi positions for {summary.address[:10]}...{summary.address[-8:]}",
        show_header=True,
        header_style="bold magenta",
    )

    table.add_column("Protocol", style="cyan")
    table.add_column("Position", style="white")
    table.add_column("Type", style="yellow")
    table.add_column("Token", style="green")
    table.add_column("Amount", style="bold white", justify="right")

    for position in summary.positions:
        table.add_row(
            position.protocol_name,
            position.display_name,
            position.category,
            position.token_symbol or "-",
            position.raw_value,
        )

    console.print("\n")
    console.print(table)

    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Label", style="bold")
    summary_table.add_column("Value", style="bold green")

    summary_table.add_row("Total Positions:", str(len(summary.positions)))
    if summary.by_category:
        summary_table.add_row("", "")
        summary_table.add_row("[bold]By Category:[/bold]", "")
        for category, amount in summary.by_category.items():
            summary_table.add_row(f"  {category}", f"{amount:,.4f}")
    if summary.by_protocol:
        summary_table.add_row("", "")
        summary_table.add_row("[bold]By Protocol:[/bold]", "")
        for protocol, amount in summary.by_protocol.items():
            summary_table.add_row(f"  {protocol}", f"{amount:,.4f}")

    console.print("\n")
    console.print(summary_table)
    if explorer_url:
        console.print(f"\n[dim]Explorer: {explorer_url}[/dim]")
    console.print("\n")


def _output_json(summary: PortfolioSummary) -> None:
    """Output positions as JSON."""

    def decimal_default(obj):
        if isinstance(obj, Decimal):
            return str(obj)
        raise TypeError

    data = summary.model_dump(mode="json")
    console.print_json(json.dumps(data, default=decimal_default))


if __name__ == "__main__":
    app()
