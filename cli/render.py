from __future__ import annotations

from typing import Any, Iterable

import typer

from models.records import AggregationResult
from storage.report_csv import format_decimal, round_average_rate


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_progress(current: int, total: int) -> None:
    typer.echo(f"\rFetching prices: {current} / {total}  ", nl=False)


def echo_error(error: BaseException) -> None:
    message = f"Error: {error}"
    cause = error.__cause__
    if cause is not None:
        message = f"{message}\nCaused by: {cause}"
    typer.secho(message, fg=typer.colors.RED, err=True)


def render_totals(result: AggregationResult, symbol: str) -> None:
    totals = result.totals
    echo_heading("Totals")
    echo_key_values(
        [
            ("rows", len(result.rows)),
            ("total_amount", format_decimal(totals.total_amount)),
            (f"average_{symbol}", format_decimal(round_average_rate(result))),
            ("total_fiat_gain", format_decimal(totals.total_fiat_gain)),
        ]
    )
