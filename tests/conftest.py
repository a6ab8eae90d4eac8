"""Shared test fixtures for procstats."""

from pathlib import Path

import pytest

from procstats.codec import dump_snapshot
from procstats.model import (
    AccumulatedSnapshot,
    PackageRecord,
    ProcessRecord,
    ServiceRecord,
    SnapshotFile,
    StateUsage,
)
from procstats.states import MemFactor, MemStateKey, RunState, ScreenState, StateKey

HOUR_MS = 60 * 60 * 1000


def make_usage(
    duration: int = HOUR_MS,
    pss: int = 1000,
    uss: int | None = None,
    samples: int = 1,
    pss_max: int | None = None,
    uss_max: int | None = None,
) -> StateUsage:
    """Create a StateUsage with the given average PSS/USS per sample."""
    uss = uss if uss is not None else pss // 2
    return StateUsage(
        duration=duration,
        pss_samples=samples,
        pss_total=pss * samples,
        pss_max=pss_max if pss_max is not None else pss,
        uss_total=uss * samples,
        uss_max=uss_max if uss_max is not None else uss,
    )


def state(run: RunState, screen: ScreenState = ScreenState.ON) -> StateKey:
    """Shorthand for a usage cell key."""
    return StateKey(screen, run)


def make_process(
    name: str = "com.example.app",
    uid: int = 10001,
    package: str | None = None,
    usage: dict[StateKey, StateUsage] | None = None,
) -> ProcessRecord:
    """Create a ProcessRecord, by default one hour of SERVICE at 1000 KB PSS."""
    if usage is None:
        usage = {state(RunState.SERVICE): make_usage()}
    return ProcessRecord(
        name=name,
        uid=uid,
        package=package if package is not None else name,
        usage=usage,
    )


def make_package(
    name: str = "com.example.app",
    uid: int = 10001,
    processes: list[ProcessRecord] | None = None,
    services: dict[str, str | None] | None = None,
) -> PackageRecord:
    """Create a PackageRecord; *services* maps service name to host process."""
    return PackageRecord(
        name=name,
        uid=uid,
        processes={p.name: p for p in processes or []},
        services={
            svc: ServiceRecord(name=svc, process_name=host)
            for svc, host in (services or {}).items()
        },
    )


def make_snapshot(
    hours: float = 1.0,
    processes: list[ProcessRecord] | None = None,
    packages: list[PackageRecord] | None = None,
    mem: dict[MemFactor, int] | None = None,
    start: int = 0,
    clock: float = 0.0,
) -> SnapshotFile:
    """Create a SnapshotFile covering *hours* from *start*."""
    return SnapshotFile(
        period_start=start,
        period_end=start + int(hours * HOUR_MS),
        period_start_clock=clock,
        mem_durations={
            MemStateKey(ScreenState.ON, factor): duration for factor, duration in (mem or {}).items()
        },
        processes={p.key: p for p in processes or []},
        packages={p.key: p for p in packages or []},
    )


def make_accumulated(**kwargs) -> AccumulatedSnapshot:
    """Create an AccumulatedSnapshot from make_snapshot() arguments."""
    return AccumulatedSnapshot.from_primary(make_snapshot(**kwargs))


def write_snapshot(path: Path, snapshot: SnapshotFile) -> Path:
    """Write *snapshot* in the on-disk format."""
    path.write_bytes(dump_snapshot(snapshot))
    return path


@pytest.fixture
def stats_dir(tmp_path: Path) -> Path:
    """Snapshot directory with a 5h current snapshot and two history files.

    History is 10h (older) and 20h (newer); merging to 24h reaches 25h after
    the newer file and never reads the older one.
    """
    path = tmp_path / "stats"
    path.mkdir()

    heavy = make_process("com.heavy", 10001, usage={state(RunState.SERVICE): make_usage(pss=50_000)})
    light = make_process("com.light", 10002, usage={state(RunState.RECEIVER): make_usage(pss=2000)})
    packages = [
        make_package("com.heavy", 10001, [make_process("com.heavy", 10001)], {"SyncService": "com.heavy"}),
        make_package("com.light", 10002, [make_process("com.light", 10002)]),
    ]

    write_snapshot(
        path / "current.json",
        make_snapshot(hours=5, processes=[heavy, light], packages=packages, mem={MemFactor.NORMAL: 5 * HOUR_MS}),
    )
    write_snapshot(path / "0001.json", make_snapshot(hours=10, processes=[heavy]))
    write_snapshot(path / "0002.json", make_snapshot(hours=20, processes=[heavy, light]))
    (path / "mem_state").write_text("1\n")
    return path
