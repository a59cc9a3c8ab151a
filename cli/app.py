from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer

from cli.config import CLIConfig, load_config
from cli.render import echo_error, echo_progress, render_totals
from logging_config import configure_logging
from services.aggregator import Aggregator
from services.datetimes import parse_date, parse_datetime
from services.errors import DotgainError, InvalidDateFormat
from services.price_client import PriceClient
from services.range_filter import filter_range
from services.testdata import generate_rewards
from services.transport import HttpxTransport
from storage.report_csv import format_decimal, read_rewards, write_report


@dataclass
class CLIState:
    config: CLIConfig
    client: PriceClient


app = typer.Typer(
    help="Staking reward tax reports valued at historical Binance close prices.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _datetime_option(value: str) -> datetime:
    try:
        return parse_datetime(value)
    except InvalidDateFormat as exc:
        raise typer.BadParameter(
            f"{exc}. Expected 'YYYY-MM-DD HH:MM:SS', 'YYYY-MM-DD HH:MM' or 'YYYY-MM-DD'."
        ) from exc


def _date_option(value: str) -> date:
    try:
        return parse_date(value)
    except InvalidDateFormat as exc:
        raise typer.BadParameter(f"{exc}. Expected 'YYYY-MM-DD'.") from exc


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        help="Price API base URL (defaults to DOTGAIN_API_BASE_URL env or https://api.binance.com).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each price request.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or WARNING).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout, log_level=log_level)
    configure_logging(config.log_level)
    transport = HttpxTransport(timeout=config.timeout)
    client = PriceClient(transport, base_url=config.base_url)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(transport.close)


@app.command("report")
def report_command(
    ctx: typer.Context,
    input_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Staking reward report in CSV."
    ),
    output: Path = typer.Option(..., "--output", "-o", dir_okay=False, help="Resulting report."),
    convert: Optional[str] = typer.Option(
        None, "--convert", "-c", help="Symbol to use for conversion to fiat (default DOTEUR)."
    ),
    begin: Optional[datetime] = typer.Option(
        None, "--begin", "-b", parser=_datetime_option, help="Start date & time (UTC), inclusive."
    ),
    end: Optional[datetime] = typer.Option(
        None, "--end", "-e", parser=_datetime_option, help="End date & time (UTC), not inclusive."
    ),
) -> None:
    """Value every reward at the close price of its minute and write the report."""
    state = _get_state(ctx)
    symbol = convert or state.config.default_symbol

    try:
        entries = read_rewards(input_path)
        selected = filter_range(entries, begin=begin, end=end)
        result = Aggregator(state.client).aggregate(selected, symbol, progress=echo_progress)
        write_report(output, result, symbol)
    except (DotgainError, OSError) as exc:
        typer.echo()
        echo_error(exc)
        raise typer.Exit(code=1) from exc

    typer.echo("\nDone")
    render_totals(result, symbol)


@app.command("price")
def price_command(
    ctx: typer.Context,
    when: str = typer.Argument(
        ...,
        metavar="DATE",
        help="Date & time in UTC, e.g. '2023-02-21 17:53:28'. The close price of that minute is printed.",
    ),
    convert: Optional[str] = typer.Option(
        None, "--convert", "-c", help="Symbol to look up (default DOTEUR)."
    ),
) -> None:
    """Look up a single historical close price."""
    state = _get_state(ctx)
    symbol = convert or state.config.default_symbol

    try:
        instant = parse_datetime(when)
        price = state.client.fetch_close_price(symbol, instant)
    except DotgainError as exc:
        echo_error(exc)
        raise typer.Exit(code=1) from exc

    typer.echo(format_decimal(price))


@app.command("testdata")
def testdata_command(
    begin: date = typer.Option(..., "--begin", "-b", parser=_date_option, help="Start date."),
    end: date = typer.Option(..., "--end", "-e", parser=_date_option, help="End date (not inclusive)."),
) -> None:
    """Print a mock staking report with one reward per day."""
    try:
        lines = generate_rewards(begin, end)
    except DotgainError as exc:
        echo_error(exc)
        raise typer.Exit(code=1) from exc

    for line in lines:
        typer.echo(line)
