from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from models.records import RewardEntry


def filter_range(
    entries: Iterable[RewardEntry],
    begin: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[RewardEntry]:
    """Keep entries within ``[begin, end)``; either bound may be omitted."""
    selected: List[RewardEntry] = []
    for entry in entries:
        if begin is not None and entry.timestamp < begin:
            continue
        if end is not None and entry.timestamp >= end:
            continue
        selected.append(entry)
    return selected
