"""Per-process weight computation and service attribution.

A process's weight is its memory cost accumulated over the time it spent in
the selected run states:

    weight = sum(cost(cell) * multiplier(cell.run) * cell.duration / total_time)

where cost is the cell's average PSS (or USS) and multiplier comes from the
configured run-state policy table.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from procstats.config import StateMultipliers
from procstats.model import AccumulatedSnapshot, ProcessKey, ProcessRecord
from procstats.ranker import rank_key
from procstats.states import RunState

log = structlog.get_logger()


@dataclass
class ProcEntry:
    """Ranking-stage view of one process.

    Created fresh on every engine run. ``record`` points back at the source
    process for detail lookups; it is not owned by the entry.
    """

    name: str
    uid: int
    package: str
    weight: float
    duration: int  # ms spent in the filtered run states
    avg_pss: float = 0.0
    max_pss: int = 0
    avg_uss: float = 0.0
    max_uss: int = 0
    packages: list[str] = field(default_factory=list)  # Packages sharing this process
    best_target_package: str | None = None
    services: list[str] = field(default_factory=list)
    record: ProcessRecord | None = field(default=None, repr=False, compare=False)

    @property
    def key(self) -> ProcessKey:
        return (self.name, self.uid)

    def add_service(self, name: str) -> None:
        """Attribute a service to this process."""
        if name not in self.services:
            self.services.append(name)

    def to_dict(self) -> dict:
        """Serialize to a dictionary (without the record back-reference)."""
        return {
            "name": self.name,
            "uid": self.uid,
            "package": self.package,
            "weight": self.weight,
            "duration": self.duration,
            "avg_pss": self.avg_pss,
            "max_pss": self.max_pss,
            "avg_uss": self.avg_uss,
            "max_uss": self.max_uss,
            "packages": list(self.packages),
            "best_target_package": self.best_target_package,
            "services": list(self.services),
        }


def compute_entry(
    record: ProcessRecord,
    states: Iterable[RunState],
    use_uss: bool,
    total_time: int,
    multipliers: StateMultipliers | None = None,
    package: str | None = None,
) -> ProcEntry:
    """Compute the weight and duration of one process record.

    Args:
        record: Process usage to evaluate.
        states: Run states to include.
        use_uss: Use USS instead of PSS as the memory cost.
        total_time: Period length (ms) the durations are relative to. Zero
            yields a zero weight.
        multipliers: Run-state policy table (defaults to StateMultipliers()).
        package: Package to report instead of the record's common package.
    """
    multipliers = multipliers or StateMultipliers()
    states = frozenset(states)
    weight = 0.0
    duration = record.duration_in(states)
    samples = 0
    pss_total = 0
    uss_total = 0
    max_pss = 0
    max_uss = 0

    for state, cell in record.cells(states):
        samples += cell.pss_samples
        pss_total += cell.pss_total
        uss_total += cell.uss_total
        max_pss = max(max_pss, cell.pss_max)
        max_uss = max(max_uss, cell.uss_max)
        if total_time > 0:
            cost = cell.avg_uss if use_uss else cell.avg_pss
            weight += cost * multipliers.get(state.run) * (cell.duration / total_time)

    return ProcEntry(
        name=record.name,
        uid=record.uid,
        package=package if package is not None else record.package,
        weight=weight,
        duration=duration,
        avg_pss=pss_total / samples if samples else 0.0,
        max_pss=max_pss,
        avg_uss=uss_total / samples if samples else 0.0,
        max_uss=max_uss,
        record=record,
    )


def _package_index(snapshot: AccumulatedSnapshot) -> dict[ProcessKey, list[str]]:
    """Map each process to the packages holding a slice of it."""
    index: dict[ProcessKey, list[str]] = defaultdict(list)
    for pkg in snapshot.packages.values():
        for proc_name in pkg.processes:
            index[(proc_name, pkg.uid)].append(pkg.name)
    return index


def compute_entries(
    snapshot: AccumulatedSnapshot,
    states: Iterable[RunState],
    use_uss: bool,
    multipliers: StateMultipliers | None = None,
) -> list[ProcEntry]:
    """Compute one entry per process in *snapshot*, in snapshot order."""
    states = frozenset(states)
    total_time = snapshot.elapsed
    index = _package_index(snapshot)

    entries = []
    for key, record in snapshot.processes.items():
        entry = compute_entry(record, states, use_uss, total_time, multipliers)
        entry.packages = sorted(index.get(key, []))
        entries.append(entry)

    log.debug("entries_computed", count=len(entries), total_time=total_time)
    return entries


def attribute_services(snapshot: AccumulatedSnapshot, entries: Iterable[ProcEntry]) -> int:
    """Attach every hosted service to the entry of its host process.

    A service whose host has no entry is logged and skipped.

    Returns:
        Number of services skipped because their host was missing.
    """
    by_key = {entry.key: entry for entry in entries}
    skipped = 0
    for pkg in snapshot.packages.values():
        for service in pkg.services.values():
            if service.process_name is None:
                continue
            entry = by_key.get((service.process_name, pkg.uid))
            if entry is None:
                skipped += 1
                log.warning(
                    "service_host_missing",
                    package=pkg.name,
                    service=service.name,
                    process=service.process_name,
                )
                continue
            entry.add_service(service.name)
    return skipped


def evaluate_target_package(
    entry: ProcEntry,
    snapshot: AccumulatedSnapshot,
    states: Iterable[RunState],
    use_uss: bool,
    multipliers: StateMultipliers | None = None,
) -> str | None:
    """Pick the package representing *entry* for labels and icons.

    A process shared by several packages (same uid) is resolved by weighing
    each package's slice of it and ordering the slices with the ranking
    comparator; the lowest-weight package wins. The result is also stored
    on ``entry.best_target_package``.
    """
    candidates = [
        pkg
        for pkg in snapshot.packages.values()
        if pkg.uid == entry.uid and entry.name in pkg.processes
    ]

    if not candidates:
        best = entry.package or None
    elif len(candidates) == 1:
        best = candidates[0].name
    else:
        states = frozenset(states)
        sub_entries = [
            compute_entry(
                pkg.processes[entry.name],
                states,
                use_uss,
                snapshot.elapsed,
                multipliers,
                package=pkg.name,
            )
            for pkg in sorted(candidates, key=lambda p: p.name)
        ]
        sub_entries.sort(key=rank_key)
        best = sub_entries[-1].package

    entry.best_target_package = best
    return best
