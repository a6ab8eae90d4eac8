"""Snapshot record model.

A snapshot holds, for one time window, the accounted usage of every process
broken down by (screen state, run state) cell, the time the system spent in
each memory pressure bucket, and the packages/services that ran.

Processes are identified by (name, uid). Process ids are not stable across
snapshots and are never recorded.
"""

import copy
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from procstats.errors import SnapshotFormatError
from procstats.states import MemStateKey, RunState, StateKey

# (process name, uid)
ProcessKey = tuple[str, int]
# (package name, uid)
PackageKey = tuple[str, int]


def _non_negative(name: str, value: int) -> int:
    if value < 0:
        raise SnapshotFormatError(f"{name} must be >= 0, got {value}")
    return value


# Wall clock seconds up to the end of year 9999
MAX_CLOCK = 253_402_300_799.0


def _wall_clock(value: float) -> float:
    if not math.isfinite(value) or not 0 <= value <= MAX_CLOCK:
        raise SnapshotFormatError(f"period_start_clock out of range: {value}")
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Per-process usage
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class StateUsage:
    """Usage accounted to one (screen, run state) cell of a process.

    Memory is kept as totals over samples (average × sample count) so two
    cells can be combined by plain field-wise addition.
    """

    duration: int = 0  # ms spent in this cell
    pss_samples: int = 0
    pss_total: int = 0  # KB summed over samples
    pss_max: int = 0  # KB
    uss_total: int = 0  # KB summed over samples
    uss_max: int = 0  # KB

    @property
    def avg_pss(self) -> float:
        return self.pss_total / self.pss_samples if self.pss_samples else 0.0

    @property
    def avg_uss(self) -> float:
        return self.uss_total / self.pss_samples if self.pss_samples else 0.0

    def add(self, other: "StateUsage") -> None:
        """Accumulate another cell into this one."""
        self.duration += other.duration
        self.pss_samples += other.pss_samples
        self.pss_total += other.pss_total
        self.uss_total += other.uss_total
        self.pss_max = max(self.pss_max, other.pss_max)
        self.uss_max = max(self.uss_max, other.uss_max)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "duration": self.duration,
            "pss_samples": self.pss_samples,
            "pss_total": self.pss_total,
            "pss_max": self.pss_max,
            "uss_total": self.uss_total,
            "uss_max": self.uss_max,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StateUsage":
        """Deserialize from a dictionary, rejecting negative values."""
        return cls(
            duration=_non_negative("duration", int(data["duration"])),
            pss_samples=_non_negative("pss_samples", int(data.get("pss_samples", 0))),
            pss_total=_non_negative("pss_total", int(data.get("pss_total", 0))),
            pss_max=_non_negative("pss_max", int(data.get("pss_max", 0))),
            uss_total=_non_negative("uss_total", int(data.get("uss_total", 0))),
            uss_max=_non_negative("uss_max", int(data.get("uss_max", 0))),
        )


@dataclass
class ProcessRecord:
    """Lifetime-aggregated usage of one process."""

    name: str
    uid: int
    package: str = ""  # Common package owning the process
    usage: dict[StateKey, StateUsage] = field(default_factory=dict)

    @property
    def key(self) -> ProcessKey:
        return (self.name, self.uid)

    def add(self, other: "ProcessRecord") -> None:
        """Merge another record of the same process into this one."""
        if other.key != self.key:
            raise ValueError(f"Cannot merge process {other.key} into {self.key}")
        if not self.package:
            self.package = other.package
        for state, cell in other.usage.items():
            if state in self.usage:
                self.usage[state].add(cell)
            else:
                self.usage[state] = copy.copy(cell)

    def cells(self, states: Iterable[RunState]) -> Iterator[tuple[StateKey, StateUsage]]:
        """Yield the usage cells whose run state is in *states*."""
        wanted = frozenset(states)
        for state, cell in self.usage.items():
            if state.run in wanted:
                yield state, cell

    def duration_in(self, states: Iterable[RunState]) -> int:
        """Return unweighted time (ms) spent in the given run states."""
        return sum(cell.duration for _, cell in self.cells(states))

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "name": self.name,
            "uid": self.uid,
            "package": self.package,
            "usage": {state.encode(): cell.to_dict() for state, cell in self.usage.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessRecord":
        """Deserialize from a dictionary."""
        return cls(
            name=str(data["name"]),
            uid=int(data["uid"]),
            package=str(data.get("package", "")),
            usage={
                StateKey.decode(state): StateUsage.from_dict(cell)
                for state, cell in data.get("usage", {}).items()
            },
        )


# ─────────────────────────────────────────────────────────────────────────────
# Packages and services
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ServiceRecord:
    """A named service of a package.

    ``process_name`` refers to the process that last hosted the service; the
    process itself is owned by the snapshot, not by the service.
    """

    name: str
    process_name: str | None = None

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {"name": self.name, "process": self.process_name}

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceRecord":
        """Deserialize from a dictionary."""
        process = data.get("process")
        return cls(name=str(data["name"]), process_name=str(process) if process else None)


@dataclass
class PackageRecord:
    """An installed package with its services and per-package process slices."""

    name: str
    uid: int
    processes: dict[str, ProcessRecord] = field(default_factory=dict)
    services: dict[str, ServiceRecord] = field(default_factory=dict)

    @property
    def key(self) -> PackageKey:
        return (self.name, self.uid)

    def add(self, other: "PackageRecord") -> None:
        """Merge an older record of the same package into this one."""
        if other.key != self.key:
            raise ValueError(f"Cannot merge package {other.key} into {self.key}")
        for name, proc in other.processes.items():
            if name in self.processes:
                self.processes[name].add(proc)
            else:
                self.processes[name] = copy.deepcopy(proc)
        for name, service in other.services.items():
            mine = self.services.get(name)
            if mine is None:
                self.services[name] = copy.copy(service)
            elif mine.process_name is None:
                # Keep the most recent host; only fill in a missing one
                mine.process_name = service.process_name

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "name": self.name,
            "uid": self.uid,
            "processes": [proc.to_dict() for proc in self.processes.values()],
            "services": [service.to_dict() for service in self.services.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PackageRecord":
        """Deserialize from a dictionary."""
        name = str(data["name"])
        uid = int(data["uid"])
        processes = [ProcessRecord.from_dict(p) for p in data.get("processes", [])]
        for proc in processes:
            if proc.uid != uid:
                raise SnapshotFormatError(
                    f"Process {proc.name!r} has uid {proc.uid} in package {name!r} of uid {uid}"
                )
        services = [ServiceRecord.from_dict(s) for s in data.get("services", [])]
        return cls(
            name=name,
            uid=uid,
            processes={p.name: p for p in processes},
            services={s.name: s for s in services},
        )


# ─────────────────────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────────────────────


def _decode_mem_durations(data: dict) -> dict[MemStateKey, int]:
    return {
        MemStateKey.decode(key): _non_negative("memory duration", int(value))
        for key, value in data.items()
    }


def _merge_processes(
    target: dict[ProcessKey, ProcessRecord], source: dict[ProcessKey, ProcessRecord]
) -> None:
    for key, proc in source.items():
        if key in target:
            target[key].add(proc)
        else:
            target[key] = copy.deepcopy(proc)


def _merge_packages(
    target: dict[PackageKey, PackageRecord], source: dict[PackageKey, PackageRecord]
) -> None:
    for key, pkg in source.items():
        if key in target:
            target[key].add(pkg)
        else:
            target[key] = copy.deepcopy(pkg)


@dataclass
class SnapshotFile:
    """One historical (or current) statistics record.

    A file that failed to decode carries ``read_error`` and no data.
    """

    period_start: int = 0  # Monotonic ms
    period_end: int = 0  # Monotonic ms
    period_start_clock: float = 0.0  # Wall clock seconds, for display only
    mem_durations: dict[MemStateKey, int] = field(default_factory=dict)
    processes: dict[ProcessKey, ProcessRecord] = field(default_factory=dict)
    packages: dict[PackageKey, PackageRecord] = field(default_factory=dict)
    read_error: str | None = None

    @property
    def elapsed(self) -> int:
        """Length of the covered period in ms."""
        return self.period_end - self.period_start

    @classmethod
    def failed(cls, error: str) -> "SnapshotFile":
        """Return an empty snapshot marked with a read error."""
        return cls(read_error=error)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "period_start": self.period_start,
            "period_end": self.period_end,
            "period_start_clock": self.period_start_clock,
            "mem_durations": {key.encode(): value for key, value in self.mem_durations.items()},
            "processes": [proc.to_dict() for proc in self.processes.values()],
            "packages": [pkg.to_dict() for pkg in self.packages.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotFile":
        """Deserialize from a dictionary.

        Raises:
            SnapshotFormatError: If the period is inverted or a value is invalid.
        """
        start = int(data["period_start"])
        end = int(data["period_end"])
        if end < start:
            raise SnapshotFormatError(f"period_end {end} is before period_start {start}")

        processes = [ProcessRecord.from_dict(p) for p in data.get("processes", [])]
        packages = [PackageRecord.from_dict(p) for p in data.get("packages", [])]
        return cls(
            period_start=start,
            period_end=end,
            period_start_clock=_wall_clock(float(data.get("period_start_clock", 0.0))),
            mem_durations=_decode_mem_durations(data.get("mem_durations", {})),
            processes={p.key: p for p in processes},
            packages={p.key: p for p in packages},
        )


@dataclass
class AccumulatedSnapshot:
    """Union of one or more snapshot files.

    Built from the freshest snapshot; older ones are appended with add().
    Periods are concatenated rather than unioned, since monotonic clocks of
    different boots are not comparable.
    """

    period_start: int = 0
    period_end: int = 0
    period_start_clock: float = 0.0
    mem_durations: dict[MemStateKey, int] = field(default_factory=dict)
    processes: dict[ProcessKey, ProcessRecord] = field(default_factory=dict)
    packages: dict[PackageKey, PackageRecord] = field(default_factory=dict)
    merged_count: int = 0  # Historical files added after the primary

    @property
    def elapsed(self) -> int:
        """Length of the accumulated period in ms."""
        return self.period_end - self.period_start

    @classmethod
    def from_primary(cls, primary: SnapshotFile) -> "AccumulatedSnapshot":
        """Start an accumulation from a copy of *primary*."""
        if primary.read_error is not None:
            raise ValueError(f"Cannot accumulate unreadable snapshot: {primary.read_error}")
        return cls(
            period_start=primary.period_start,
            period_end=primary.period_end,
            period_start_clock=primary.period_start_clock,
            mem_durations=dict(primary.mem_durations),
            processes=copy.deepcopy(primary.processes),
            packages=copy.deepcopy(primary.packages),
        )

    def add(self, other: SnapshotFile) -> None:
        """Add an older snapshot's data into this accumulation."""
        if other.read_error is not None:
            raise ValueError(f"Cannot add unreadable snapshot: {other.read_error}")

        for key, value in other.mem_durations.items():
            self.mem_durations[key] = self.mem_durations.get(key, 0) + value
        _merge_processes(self.processes, other.processes)
        _merge_packages(self.packages, other.packages)

        self.period_end += other.elapsed
        if other.period_start_clock and (
            not self.period_start_clock or other.period_start_clock < self.period_start_clock
        ):
            self.period_start_clock = other.period_start_clock
        self.merged_count += 1

    def to_snapshot_file(self) -> SnapshotFile:
        """Return the accumulated data as a standalone snapshot file."""
        return SnapshotFile(
            period_start=self.period_start,
            period_end=self.period_end,
            period_start_clock=self.period_start_clock,
            mem_durations=dict(self.mem_durations),
            processes=copy.deepcopy(self.processes),
            packages=copy.deepcopy(self.packages),
        )
