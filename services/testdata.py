"""Mock staking reports for smoke testing the report pipeline."""

from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from services.datetimes import format_datetime
from services.errors import SampleRangeError

SECONDS_PER_DAY = 24 * 60 * 60


def generate_rewards(
    begin: date,
    end: date,
    rng: Optional[random.Random] = None,
    amount: str = "1",
) -> Iterator[str]:
    """Return CSV lines: a ``Date,Value`` header, then one reward per day in ``[begin, end)``.

    Each reward lands at a uniformly random second of its day. The range is
    validated before any line is produced.
    """
    if begin >= end:
        raise SampleRangeError(begin, end)
    return _iter_rewards(begin, end, rng or random.Random(), amount)


def _iter_rewards(begin: date, end: date, rng: random.Random, amount: str) -> Iterator[str]:
    yield "Date,Value"
    day = begin
    while day < end:
        offset = timedelta(seconds=rng.randrange(SECONDS_PER_DAY))
        moment = datetime.combine(day, time()) + offset
        yield f"{format_datetime(moment)},{amount}"
        day += timedelta(days=1)
