"""Reading staking reward CSVs and writing fiat gain reports."""

from __future__ import annotations

import csv
import logging
import os
from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import List, Sequence, TextIO

from models.records import AggregationResult, RewardEntry
from services.datetimes import format_datetime, parse_datetime
from services.errors import InvalidDateFormat, MissingColumn, NumericParseError, RowTooShort

logger = logging.getLogger(__name__)

DATE_COLUMN = "Date"
VALUE_COLUMN = "Value"
FIAT_GAIN_COLUMN = "Fiat gain"
TOTAL_ROW = "TOTAL"
AVERAGE_RATE_MIN_DECIMALS = 8


def read_rewards(path: Path) -> List[RewardEntry]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return parse_rewards(handle)


def parse_rewards(stream: TextIO) -> List[RewardEntry]:
    """Parse reward rows from ``stream``, locating columns by header name."""
    reader = csv.reader(stream)
    header = next(reader, None)
    if header is None:
        raise MissingColumn(DATE_COLUMN)

    date_index = _column_index(header, DATE_COLUMN)
    value_index = _column_index(header, VALUE_COLUMN)
    min_columns = max(date_index, value_index) + 1

    entries: List[RewardEntry] = []
    # Row numbers are 1-based and count the header row.
    for row_number, row in enumerate(reader, start=2):
        if not row:
            continue
        if len(row) < min_columns:
            raise RowTooShort(row_number, min_columns, len(row))

        date_raw = row[date_index]
        try:
            timestamp = parse_datetime(date_raw)
        except InvalidDateFormat as exc:
            raise InvalidDateFormat(date_raw, row_number=row_number) from exc

        entries.append(
            RewardEntry(
                timestamp=timestamp,
                amount=parse_amount(row[value_index], row_number),
                row_number=row_number,
            )
        )

    logger.info("Read reward entries", extra={"row_count": len(entries)})
    return entries


def parse_amount(value: str, row_number: int | None = None) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise NumericParseError(value, row_number) from exc
    if not amount.is_finite():
        raise NumericParseError(value, row_number, reason="amount is not finite")
    if amount.is_signed() and not amount.is_zero():
        raise NumericParseError(value, row_number, reason="amount is negative")
    return amount


def _column_index(header: Sequence[str], name: str) -> int:
    try:
        return list(header).index(name)
    except ValueError:
        raise MissingColumn(name) from None


def _normalize(value: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(value.as_tuple().digits))
        return value.normalize()


def format_decimal(value: Decimal) -> str:
    """Minimal fixed-point rendering: no exponent and no trailing zeros."""
    normalized = _normalize(value)
    if normalized.is_zero():
        return "0"
    return format(normalized, "f")


def fractional_digits(value: Decimal) -> int:
    exponent = _normalize(value).as_tuple().exponent
    if not isinstance(exponent, int) or exponent >= 0:
        return 0
    return -exponent


def round_average_rate(result: AggregationResult) -> Decimal:
    """Round the average rate to at least :data:`AVERAGE_RATE_MIN_DECIMALS` places.

    More places are kept when the totals themselves carry more fractional
    digits.
    """
    totals = result.totals
    places = max(
        AVERAGE_RATE_MIN_DECIMALS,
        fractional_digits(totals.total_amount),
        fractional_digits(totals.total_fiat_gain),
    )
    average_rate = totals.average_rate
    with localcontext() as ctx:
        # Room for every integer digit plus the requested places.
        ctx.prec = max(ctx.prec, max(average_rate.adjusted(), 0) + places + 2)
        return average_rate.quantize(Decimal(1).scaleb(-places))


def build_report_rows(result: AggregationResult, symbol: str) -> List[List[str]]:
    rows: List[List[str]] = [[DATE_COLUMN, VALUE_COLUMN, symbol, FIAT_GAIN_COLUMN]]
    for row in result.rows:
        rows.append(
            [
                format_datetime(row.timestamp),
                format_decimal(row.amount),
                format_decimal(row.conversion_rate),
                format_decimal(row.fiat_gain),
            ]
        )
    totals = result.totals
    rows.append(
        [
            TOTAL_ROW,
            format_decimal(totals.total_amount),
            format_decimal(round_average_rate(result)),
            format_decimal(totals.total_fiat_gain),
        ]
    )
    return rows


def write_report(path: Path, result: AggregationResult, symbol: str) -> None:
    """Write the report atomically: readers never observe a partial file."""
    rows = build_report_rows(result, symbol)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerows(rows)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info("Wrote report", extra={"row_count": len(result.rows)})
