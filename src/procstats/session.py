"""Refresh cycle tying the statistics source to the ranking engine.

A StatsSession owns the merged snapshot for its lifetime and turns it into a
StatsReport on every refresh. Rendering the report is left to the caller.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import BinaryIO, Protocol

import structlog

from procstats.categories import category_label, resolve_states
from procstats.codec import parse_snapshot
from procstats.config import RankingConfig, StateMultipliers, ViewConfig
from procstats.errors import SnapshotFormatError, StatsServiceError
from procstats.memory import MemoryRatios, summarize_memory_ratios
from procstats.merger import DEFAULT_MIN_COVERAGE, merge_sources
from procstats.model import AccumulatedSnapshot
from procstats.ranker import percent_of_time, percent_of_weight, rank
from procstats.states import StatsType
from procstats.weights import (
    ProcEntry,
    attribute_services,
    compute_entries,
    evaluate_target_package,
)

log = structlog.get_logger()

CURRENT_FILE = "current.json"
MEM_STATE_FILE = "mem_state"
UNKNOWN_MEM_STATE = -1


# ─────────────────────────────────────────────────────────────────────────────
# Options
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ViewOptions:
    """Complete parameterization of one engine run."""

    show_system: bool = False
    use_uss: bool = False
    stats_type: StatsType = StatsType.BACKGROUND

    @classmethod
    def from_config(cls, view: ViewConfig) -> "ViewOptions":
        return cls(show_system=view.show_system, use_uss=view.use_uss, stats_type=view.category)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "show_system": self.show_system,
            "use_uss": self.use_uss,
            "stats_type": self.stats_type.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ViewOptions":
        """Deserialize from a dictionary, defaulting missing values."""
        return cls(
            show_system=bool(data.get("show_system", False)),
            use_uss=bool(data.get("use_uss", False)),
            stats_type=StatsType.parse(data.get("stats_type", "background")),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Sources
# ─────────────────────────────────────────────────────────────────────────────


class StatsSource(Protocol):
    """Provider of the current snapshot and the historical snapshot files."""

    def current_memory_state(self) -> int:
        """Return the current memory pressure state (a MemFactor value)."""
        ...

    def current_stats(self) -> tuple[bytes, list[BinaryIO]]:
        """Return the encoded current snapshot and open historical streams.

        Streams are ordered newest first; the caller closes them.

        Raises:
            StatsServiceError: If the source is unavailable.
        """
        ...


class DirectoryStatsSource:
    """Reads snapshots from a directory.

    Layout: ``current.json`` for the in-progress snapshot, an optional
    ``mem_state`` file holding the current memory state, and any number of
    historical ``*.json`` files whose names sort oldest to newest.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def current_memory_state(self) -> int:
        state_path = self.path / MEM_STATE_FILE
        try:
            return int(state_path.read_text().strip())
        except FileNotFoundError:
            return UNKNOWN_MEM_STATE
        except ValueError:
            log.warning("mem_state_invalid", path=str(state_path))
            return UNKNOWN_MEM_STATE
        except OSError as e:
            raise StatsServiceError(f"Cannot read {state_path}: {e}") from e

    def history_paths(self) -> list[Path]:
        """Historical snapshot files, newest first."""
        paths = [p for p in self.path.glob("*.json") if p.name != CURRENT_FILE]
        return sorted(paths, key=lambda p: p.name, reverse=True)

    def current_stats(self) -> tuple[bytes, list[BinaryIO]]:
        current_path = self.path / CURRENT_FILE
        try:
            data = current_path.read_bytes()
        except OSError as e:
            raise StatsServiceError(f"Cannot read {current_path}: {e}") from e

        streams: list[BinaryIO] = []
        try:
            for path in self.history_paths():
                streams.append(open(path, "rb"))
        except OSError as e:
            for stream in streams:
                stream.close()
            raise StatsServiceError(f"Cannot open history in {self.path}: {e}") from e
        return data, streams


class SnapshotCache:
    """Holds merged snapshots across session teardown and re-creation.

    Owned by the caller and keyed by a session id, so a view being rebuilt
    can pick up the snapshot its predecessor loaded instead of re-reading.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, AccumulatedSnapshot] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def store(self, session_id: str, snapshot: AccumulatedSnapshot) -> None:
        """Keep *snapshot* for the next session with the same id."""
        self._snapshots[session_id] = snapshot

    def fetch(self, session_id: str) -> AccumulatedSnapshot | None:
        """Hand over and forget the snapshot stored for *session_id*."""
        return self._snapshots.pop(session_id, None)


# ─────────────────────────────────────────────────────────────────────────────
# Report
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class StatsReport:
    """Everything a renderer needs; no further computation required."""

    entries: list[ProcEntry]
    max_weight: float
    total_time: int  # ms
    memory: MemoryRatios
    mem_state: int
    options: ViewOptions
    category_label: str
    merged_snapshots: int = 0
    skipped_services: int = 0
    all_entries: list[ProcEntry] = field(default_factory=list, repr=False)

    @property
    def stats_type(self) -> StatsType:
        return self.options.stats_type

    def percent_of_weight(self, entry: ProcEntry) -> float:
        return percent_of_weight(entry, self.max_weight)

    def percent_of_time(self, entry: ProcEntry) -> float:
        return percent_of_time(entry, self.total_time)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "category": self.stats_type.label,
            "options": self.options.to_dict(),
            "total_time": self.total_time,
            "max_weight": self.max_weight,
            "mem_state": self.mem_state,
            "memory": {
                "critical": self.memory.critical,
                "low_moderate": self.memory.low_moderate,
                "normal": self.memory.normal,
            },
            "merged_snapshots": self.merged_snapshots,
            "entries": [
                {
                    **entry.to_dict(),
                    "percent_of_weight": self.percent_of_weight(entry),
                    "percent_of_time": self.percent_of_time(entry),
                }
                for entry in self.entries
            ],
        }


def build_report(
    snapshot: AccumulatedSnapshot,
    options: ViewOptions,
    mem_state: int = UNKNOWN_MEM_STATE,
    ranking: RankingConfig | None = None,
    multipliers: StateMultipliers | None = None,
) -> StatsReport:
    """Run the engine over *snapshot* with the given options."""
    ranking = ranking or RankingConfig()
    states = resolve_states(options.stats_type, options.show_system)

    entries = compute_entries(snapshot, states, options.use_uss, multipliers)
    result = rank(entries, ranking.max_items, ranking.min_percent_of_weight)
    for entry in result.entries:
        evaluate_target_package(entry, snapshot, states, options.use_uss, multipliers)
    # Services are listed for background work only; they resolve against
    # every entry, not just the visible ones
    skipped = 0
    if options.stats_type is StatsType.BACKGROUND:
        skipped = attribute_services(snapshot, entries)

    return StatsReport(
        entries=result.entries,
        max_weight=result.max_weight,
        total_time=snapshot.elapsed,
        memory=summarize_memory_ratios(snapshot),
        mem_state=mem_state,
        options=replace(options),
        category_label=category_label(options.stats_type),
        merged_snapshots=snapshot.merged_count,
        skipped_services=skipped,
        all_entries=entries,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Session
# ─────────────────────────────────────────────────────────────────────────────


class StatsSession:
    """One consumer's view over the process statistics."""

    def __init__(
        self,
        source: StatsSource,
        options: ViewOptions | None = None,
        *,
        cache: SnapshotCache | None = None,
        min_coverage: int = DEFAULT_MIN_COVERAGE,
        ranking: RankingConfig | None = None,
        multipliers: StateMultipliers | None = None,
    ) -> None:
        self.source = source
        self.options = options or ViewOptions()
        self.cache = cache
        self.min_coverage = min_coverage
        self.ranking = ranking or RankingConfig()
        self.multipliers = multipliers or StateMultipliers()
        self.snapshot: AccumulatedSnapshot | None = None
        self.mem_state = UNKNOWN_MEM_STATE
        self.report: StatsReport | None = None
        self._reload = False

    # Lifecycle hooks ─────────────────────────────────────────────────────────

    def attach(self, session_id: str) -> bool:
        """Adopt a snapshot stored by a previous session with this id."""
        if self.cache is None:
            return False
        snapshot = self.cache.fetch(session_id)
        if snapshot is None:
            return False
        self.snapshot = snapshot
        log.debug("snapshot_restored", session=session_id)
        return True

    def detach(self, session_id: str) -> None:
        """Hand the held snapshot to the cache before teardown."""
        if self.cache is not None and self.snapshot is not None:
            self.cache.store(session_id, self.snapshot)

    # Loading ─────────────────────────────────────────────────────────────────

    def invalidate(self) -> None:
        """Reload from the source on the next refresh."""
        self._reload = True

    def load(self) -> bool:
        """Fetch and merge snapshots from the source.

        On failure the error is logged and the held snapshot is left as is.

        Returns:
            True if a new snapshot was loaded.
        """
        try:
            mem_state = self.source.current_memory_state()
            data, streams = self.source.current_stats()
        except StatsServiceError as e:
            log.error("stats_unavailable", error=str(e))
            return False

        try:
            primary = parse_snapshot(data)
        except SnapshotFormatError as e:
            _close_all(streams)
            log.error("current_snapshot_invalid", error=str(e))
            return False

        self.snapshot = merge_sources(primary, streams, self.min_coverage)
        self.mem_state = mem_state
        self._reload = False
        log.info(
            "stats_loaded",
            elapsed=self.snapshot.elapsed,
            merged=self.snapshot.merged_count,
            processes=len(self.snapshot.processes),
        )
        return True

    def refresh(self) -> StatsReport | None:
        """Recompute the report, loading snapshots first if needed.

        Returns the previous report (possibly None) when loading fails.
        """
        if (self.snapshot is None or self._reload) and not self.load():
            return self.report
        assert self.snapshot is not None

        self.report = build_report(
            self.snapshot,
            self.options,
            self.mem_state,
            self.ranking,
            self.multipliers,
        )
        return self.report

    # Options ─────────────────────────────────────────────────────────────────

    def set_show_system(self, show_system: bool) -> StatsReport | None:
        self.options.show_system = show_system
        return self.refresh()

    def toggle_use_uss(self) -> StatsReport | None:
        self.options.use_uss = not self.options.use_uss
        return self.refresh()

    def set_stats_type(self, stats_type: StatsType) -> StatsReport | None:
        self.options.stats_type = stats_type
        return self.refresh()


def _close_all(streams: Sequence[BinaryIO]) -> None:
    for stream in streams:
        stream.close()
