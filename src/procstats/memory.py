"""Memory pressure summary over a snapshot's period."""

from dataclasses import dataclass

from procstats.model import AccumulatedSnapshot
from procstats.states import MemFactor

_STATE_LABELS = {factor.value: factor.label for factor in MemFactor}


@dataclass(frozen=True)
class MemoryRatios:
    """Share of the period spent under each coarse memory condition.

    The three values need not add up to 1: time not accounted to any bucket
    (e.g. while the device was off) is left out.
    """

    critical: float = 0.0
    low_moderate: float = 0.0
    normal: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.critical, self.low_moderate, self.normal)


def summarize_memory_ratios(snapshot: AccumulatedSnapshot) -> MemoryRatios:
    """Reduce the memory pressure buckets to (critical, low+moderate, normal)."""
    total = snapshot.elapsed
    if total <= 0:
        return MemoryRatios()

    by_factor = dict.fromkeys(MemFactor, 0)
    for key, duration in snapshot.mem_durations.items():
        by_factor[key.mem] += duration

    critical = by_factor[MemFactor.CRITICAL]
    low_moderate = by_factor[MemFactor.LOW] + by_factor[MemFactor.MODERATE]
    normal = by_factor[MemFactor.NORMAL]

    # Buckets can exceed the period when merged data is inconsistent
    total = max(total, critical + low_moderate + normal)
    return MemoryRatios(
        critical=critical / total,
        low_moderate=low_moderate / total,
        normal=normal / total,
    )


def memory_state_label(state: int) -> str:
    """Name of a current memory state value, "?" when out of range."""
    return _STATE_LABELS.get(state, "?")
