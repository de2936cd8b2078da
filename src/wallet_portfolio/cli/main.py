"""CLI for the wallet portfolio viewer."""

import asyncio
import json
import logging
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install

from wallet_portfolio.core import LoadStage, PortfolioSnapshot, resolve_address, truncate_address
from wallet_portfolio.core.aggregator import PortfolioAggregator
from wallet_portfolio.data import load_catalog, load_settings

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="wallet-portfolio",
    help="View token balances, prices and 24h charts for a Base wallet",
    add_completion=False,
)

console = Console()

STAGE_LABELS = {
    LoadStage.BALANCES: "Loading prices...",
    LoadStage.PRICES: "Loading charts...",
    LoadStage.CHARTS: "✓ Up to date",
    LoadStage.FAILED: "Failed",
}

SPARK_CHARS = "▁▂▃▄▅▆▇█"


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=debug)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def _read_context(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


async def _resolve_cli_address(address: str | None, context: Path | None, timeout: float) -> str | None:
    if address:
        return address
    if context is None:
        return None
    return await resolve_address(asyncio.to_thread(_read_context, context), timeout=timeout)


@app.command()
def portfolio(
    address: str | None = typer.Argument(None, help="Wallet address (omit for the market view)"),
    context: Path | None = typer.Option(
        None,
        "--context",
        "-x",
        help="Host-frame context JSON to read the connected account from",
        exists=True,
        dir_okay=False,
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        "-f",
        help="Output format",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Show the portfolio of a wallet address.

    Examples:

        # Market view of every catalog token
        wallet-portfolio portfolio

        # Holdings of a wallet
        wallet-portfolio portfolio 0xABC...

        # Account taken from a host-frame context payload
        wallet-portfolio portfolio --context context.json

        # Output as JSON
        wallet-portfolio portfolio 0xABC... --format json
    """
    _configure_logging(debug)
    settings = load_settings()

    try:
        snapshot = asyncio.run(_load(address, context, format, settings))
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if debug:
            raise
        raise typer.Exit(1)

    if snapshot.error:
        console.print(f"[bold red]{snapshot.error}[/bold red]")
        raise typer.Exit(1)

    if format == OutputFormat.JSON:
        _output_json(snapshot)


async def _load(
    address: str | None,
    context: Path | None,
    format: OutputFormat,
    settings: Any,
) -> PortfolioSnapshot:
    resolved = await _resolve_cli_address(address, context, settings.account_timeout)

    async with PortfolioAggregator.from_settings(settings) as aggregator:
        if format == OutputFormat.JSON:
            return await aggregator.load_snapshot(resolved)

        header = f"Fetching portfolio for {resolved}" if resolved else "Fetching market view"
        console.print(f"\n[bold cyan]{header}[/bold cyan]")

        with Live(console=console, refresh_per_second=4) as live:
            return await aggregator.load_snapshot(
                resolved,
                on_stage=lambda snapshot: live.update(_render_table(snapshot)),
            )


@app.command()
def tokens() -> None:
    """List all catalog tokens."""
    table = Table(title="Supported Tokens", show_header=True, header_style="bold magenta")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Contract", style="yellow")
    table.add_column("Decimals", justify="right")

    for token in load_catalog():
        table.add_row(token.symbol, token.name, token.address or "native", str(token.decimals))

    console.print(table)


def _sparkline(history: list[float]) -> str:
    """Render a price series as a one-line block chart."""
    if len(history) < 2:
        return ""
    low, high = min(history), max(history)
    if high == low:
        return SPARK_CHARS[0] * len(history)
    scale = (len(SPARK_CHARS) - 1) / (high - low)
    return "".join(SPARK_CHARS[int((point - low) * scale)] for point in history)


def _render_table(snapshot: PortfolioSnapshot) -> Table:
    """Render a snapshot as a rich table."""
    title = (
        f"Portfolio for {truncate_address(snapshot.address)}" if snapshot.address else "Market view (not connected)"
    )
    table = Table(
        title=title,
        caption=f"Total: ${snapshot.total_value:,.2f}  ·  {STAGE_LABELS[snapshot.stage]}",
        show_header=True,
        header_style="bold magenta",
    )

    table.add_column("Asset", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("24h Chart")
    table.add_column("Balance", justify="right")
    table.add_column("Value", style="bold green", justify="right")

    for holding in snapshot.holdings:
        change_style = "green" if holding.change_24h >= 0 else "red"
        table.add_row(
            f"{holding.symbol} [dim]{holding.name}[/dim]",
            f"${holding.price:,.6g}" if holding.price else "-",
            f"[{change_style}]{holding.change_24h:+.2f}%[/{change_style}]",
            f"[{change_style}]{_sparkline(holding.history)}[/{change_style}]",
            f"{holding.balance:,.4f}",
            f"${holding.value:,.2f}" if holding.price else "-",
        )

    if not snapshot.holdings:
        message = "No supported tokens found in this wallet" if snapshot.address else "Connect wallet to view assets"
        table.add_row(f"[yellow]{message}[/yellow]", "", "", "", "", "")

    return table


def _output_json(snapshot: PortfolioSnapshot) -> None:
    """Output portfolio as JSON."""
    data = snapshot.model_dump(mode="json")
    console.print_json(json.dumps(data))


if __name__ == "__main__":
    app()
