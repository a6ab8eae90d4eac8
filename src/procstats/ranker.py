"""Ranking and truncation of process entries."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from procstats.weights import ProcEntry

MAX_ITEMS_TO_LIST = 40
MIN_PERCENT_OF_WEIGHT = 2.0


def rank_key(entry: "ProcEntry") -> float:
    """Sort key ordering entries by descending weight.

    Used with Python's stable sort, so equal weights keep input order.
    """
    return -entry.weight


@dataclass
class RankResult:
    """Output of rank()."""

    entries: list["ProcEntry"]  # Visible list
    max_weight: float
    truncated: list["ProcEntry"] = field(default_factory=list)  # Top-N before the floor


def rank(
    entries: Iterable["ProcEntry"],
    max_items: int = MAX_ITEMS_TO_LIST,
    min_percent: float = MIN_PERCENT_OF_WEIGHT,
) -> RankResult:
    """Order entries by weight, keep the top *max_items*, drop insignificant ones.

    An entry is visible while its weight is at least *min_percent* of the
    heaviest entry's weight. Since the list is sorted, the walk stops at the
    first entry below the floor. A zero maximum weight makes nothing visible.
    """
    ordered = sorted(entries, key=rank_key)[:max_items]
    max_weight = ordered[0].weight if ordered else 0.0

    visible = []
    if max_weight > 0:
        for entry in ordered:
            if entry.weight / max_weight * 100 < min_percent:
                break
            visible.append(entry)

    return RankResult(entries=visible, max_weight=max_weight, truncated=ordered)


def percent_of_weight(entry: "ProcEntry", max_weight: float) -> float:
    """Entry weight as a percentage of the heaviest entry (0 if none)."""
    if max_weight <= 0:
        return 0.0
    return entry.weight / max_weight * 100


def percent_of_time(entry: "ProcEntry", total_time: int) -> float:
    """Entry duration as a percentage of the covered period (0 if empty)."""
    if total_time <= 0:
        return 0.0
    return entry.duration / total_time * 100
