"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class RewardEntry:
    """A single staking reward parsed from the input CSV."""

    timestamp: datetime
    amount: Decimal
    row_number: Optional[int] = None


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Verified close price of the one-minute candle starting at ``interval_start``."""

    interval_start: datetime
    close_price: Decimal


@dataclass(frozen=True, slots=True)
class ReportRow:
    timestamp: datetime
    amount: Decimal
    conversion_rate: Decimal
    fiat_gain: Decimal


@dataclass(frozen=True, slots=True)
class Totals:
    """Report totals; ``average_rate`` is weighted by amount."""

    total_amount: Decimal = Decimal(0)
    total_fiat_gain: Decimal = Decimal(0)
    average_rate: Decimal = Decimal(0)


@dataclass
class AggregationResult:
    rows: List[ReportRow] = field(default_factory=list)
    totals: Totals = field(default_factory=Totals)
