"""Merging of historical snapshot files into one accumulated snapshot."""

from collections.abc import Iterable, Sequence
from contextlib import ExitStack
from datetime import datetime
from typing import BinaryIO

import structlog

from procstats.codec import read_snapshot
from procstats.model import AccumulatedSnapshot, SnapshotFile

log = structlog.get_logger()

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_MIN_COVERAGE = DAY_MS


def _clock_label(clock: float) -> str | None:
    """ISO time of a wall clock value, the raw value if it cannot be converted."""
    if not clock:
        return None
    try:
        return datetime.fromtimestamp(clock).isoformat()
    except (OverflowError, ValueError, OSError):
        return repr(clock)


def merge(
    primary: SnapshotFile,
    historical: Iterable[SnapshotFile],
    min_coverage: int = DEFAULT_MIN_COVERAGE,
) -> AccumulatedSnapshot:
    """Accumulate snapshots until *min_coverage* ms of data is covered.

    Args:
        primary: The current (freshest) snapshot.
        historical: Older snapshots, newest first. Consumed lazily; nothing
            past the point where coverage is reached is pulled.
        min_coverage: Period length (ms) at which merging stops.

    Files carrying a read error are skipped and logged.
    """
    accumulated = AccumulatedSnapshot.from_primary(primary)
    if accumulated.elapsed >= min_coverage:
        return accumulated

    for index, snapshot in enumerate(historical):
        log.debug("snapshot_coverage_short", elapsed=accumulated.elapsed, index=index)
        if snapshot.read_error is not None:
            log.warning("snapshot_read_error", index=index, error=snapshot.read_error)
        else:
            accumulated.add(snapshot)
            log.info(
                "snapshot_added",
                index=index,
                started=_clock_label(snapshot.period_start_clock),
                elapsed=snapshot.elapsed,
            )
        if accumulated.elapsed >= min_coverage:
            break

    return accumulated


def merge_sources(
    primary: SnapshotFile,
    sources: Sequence[BinaryIO],
    min_coverage: int = DEFAULT_MIN_COVERAGE,
) -> AccumulatedSnapshot:
    """Merge historical snapshot streams into *primary*.

    Every stream is closed before returning, including ones that were never
    read because coverage was already reached, and on error.
    """
    with ExitStack() as stack:
        for source in sources:
            stack.enter_context(source)
        return merge(primary, (read_snapshot(source) for source in sources), min_coverage)
