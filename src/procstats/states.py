"""State vocabulary for process statistics.

Usage tables are keyed by explicit (screen, run state) and (screen, memory
factor) pairs instead of packed array offsets, so an invalid combination
cannot be expressed.
"""

from dataclasses import dataclass
from enum import Enum

from procstats.errors import SnapshotFormatError


class _NamedEnum(Enum):
    """Enum serialized by its lower-case member name."""

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str):
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            raise SnapshotFormatError(f"Unknown {cls.__name__}: {value!r}") from None


class ScreenState(_NamedEnum):
    OFF = 0
    ON = 1


class MemFactor(_NamedEnum):
    """System memory pressure bucket, ordered by severity."""

    NORMAL = 0
    MODERATE = 1
    LOW = 2
    CRITICAL = 3


class RunState(_NamedEnum):
    """Process importance state, most important first."""

    PERSISTENT = 0
    TOP = 1
    IMPORTANT_FOREGROUND = 2
    IMPORTANT_BACKGROUND = 3
    BACKUP = 4
    HEAVY_WEIGHT = 5
    SERVICE = 6
    SERVICE_RESTARTING = 7
    RECEIVER = 8
    HOME = 9
    LAST_ACTIVITY = 10
    CACHED_ACTIVITY = 11
    CACHED_ACTIVITY_CLIENT = 12
    CACHED_EMPTY = 13


class StatsType(_NamedEnum):
    """User-selected statistic category."""

    BACKGROUND = 0
    FOREGROUND = 1
    CACHED = 2


@dataclass(frozen=True)
class StateKey:
    """Key of one process usage cell."""

    screen: ScreenState
    run: RunState

    def encode(self) -> str:
        return f"{self.screen.label}/{self.run.label}"

    @classmethod
    def decode(cls, value: str) -> "StateKey":
        screen, sep, run = value.partition("/")
        if not sep:
            raise SnapshotFormatError(f"Malformed state key: {value!r}")
        return cls(ScreenState.parse(screen), RunState.parse(run))


@dataclass(frozen=True)
class MemStateKey:
    """Key of one memory pressure duration bucket."""

    screen: ScreenState
    mem: MemFactor

    def encode(self) -> str:
        return f"{self.screen.label}/{self.mem.label}"

    @classmethod
    def decode(cls, value: str) -> "MemStateKey":
        screen, sep, mem = value.partition("/")
        if not sep:
            raise SnapshotFormatError(f"Malformed memory state key: {value!r}")
        return cls(ScreenState.parse(screen), MemFactor.parse(mem))
