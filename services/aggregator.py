"""Aggregation of staking rewards into fiat-valued report rows."""

from __future__ import annotations

import logging
import time
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Callable, Iterable, List, Optional, Sequence

from models.records import AggregationResult, ReportRow, RewardEntry, Totals
from services.datetimes import format_datetime
from services.errors import PriceLookupError, PriceLookupFailed
from services.price_client import PriceSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

# Sums and products of finite decimals always fit; Inexact is trapped so any
# rounding would fail loudly instead of drifting.
EXACT_CONTEXT = Context(
    prec=MAX_PREC,
    Emax=MAX_EMAX,
    Emin=MIN_EMIN,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)

# Fractional digits kept beyond the operands' own when dividing.
AVERAGE_RATE_GUARD_DIGITS = 28


def _fraction_digits(value: Decimal) -> int:
    exponent = value.as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def _average_rate(total_fiat_gain: Decimal, total_amount: Decimal) -> Decimal:
    integer_digits = max(1, total_fiat_gain.adjusted() - total_amount.adjusted() + 1)
    fraction_digits = (
        max(_fraction_digits(total_fiat_gain), _fraction_digits(total_amount))
        + AVERAGE_RATE_GUARD_DIGITS
    )
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, integer_digits + fraction_digits)
        return total_fiat_gain / total_amount


def calculate_totals(rows: Iterable[ReportRow]) -> Totals:
    """Sum amounts and fiat gains; the average rate is weighted by amount."""
    total_amount = Decimal(0)
    total_fiat_gain = Decimal(0)
    with localcontext(EXACT_CONTEXT):
        for row in rows:
            total_amount += row.amount
            total_fiat_gain += row.fiat_gain

    if total_amount.is_zero():
        average_rate = Decimal(0)
    else:
        average_rate = _average_rate(total_fiat_gain, total_amount)

    return Totals(
        total_amount=total_amount,
        total_fiat_gain=total_fiat_gain,
        average_rate=average_rate,
    )


class Aggregator:
    """Values each reward at the close price of its minute.

    Lookups run one at a time in input order. The first failed lookup aborts
    the whole aggregation; no partial result is returned.
    """

    def __init__(self, price_source: PriceSource) -> None:
        self.price_source = price_source

    def aggregate(
        self,
        entries: Sequence[RewardEntry],
        symbol: str,
        progress: Optional[ProgressCallback] = None,
    ) -> AggregationResult:
        start_time = time.perf_counter()
        total = len(entries)
        rows: List[ReportRow] = []

        for index, entry in enumerate(entries):
            if progress is not None:
                progress(index + 1, total)

            try:
                rate = self.price_source.fetch_close_price(symbol, entry.timestamp)
            except PriceLookupError as exc:
                logger.error(
                    "Aborting aggregation after failed price lookup",
                    extra={
                        "symbol": symbol,
                        "instant": format_datetime(entry.timestamp),
                        "row_number": entry.row_number,
                    },
                )
                raise PriceLookupFailed(entry.timestamp, index, entry.row_number) from exc

            with localcontext(EXACT_CONTEXT):
                fiat_gain = entry.amount * rate
            rows.append(
                ReportRow(
                    timestamp=entry.timestamp,
                    amount=entry.amount,
                    conversion_rate=rate,
                    fiat_gain=fiat_gain,
                )
            )

        totals = calculate_totals(rows)
        logger.info(
            "Aggregated rewards",
            extra={
                "symbol": symbol,
                "row_count": len(rows),
                "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return AggregationResult(rows=rows, totals=totals)
