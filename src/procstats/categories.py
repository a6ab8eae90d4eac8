"""Mapping of statistic categories onto run-state filters."""

from procstats.states import RunState, StatsType

BACKGROUND_PROC_STATES = frozenset(
    {
        RunState.IMPORTANT_FOREGROUND,
        RunState.IMPORTANT_BACKGROUND,
        RunState.BACKUP,
        RunState.HEAVY_WEIGHT,
        RunState.SERVICE,
        RunState.SERVICE_RESTARTING,
        RunState.RECEIVER,
    }
)

BACKGROUND_AND_SYSTEM_PROC_STATES = BACKGROUND_PROC_STATES | {RunState.PERSISTENT}

FOREGROUND_PROC_STATES = frozenset({RunState.TOP})

CACHED_PROC_STATES = frozenset(
    {
        RunState.CACHED_ACTIVITY,
        RunState.CACHED_ACTIVITY_CLIENT,
        RunState.CACHED_EMPTY,
    }
)

_LABELS = {
    StatsType.BACKGROUND: "Background processes",
    StatsType.FOREGROUND: "Foreground processes",
    StatsType.CACHED: "Cached processes",
}


def resolve_states(category: StatsType, include_system: bool = False) -> frozenset[RunState]:
    """Return the run states counted for *category*.

    ``include_system`` only applies to the background category.
    """
    if category is StatsType.FOREGROUND:
        return FOREGROUND_PROC_STATES
    if category is StatsType.CACHED:
        return CACHED_PROC_STATES
    return BACKGROUND_AND_SYSTEM_PROC_STATES if include_system else BACKGROUND_PROC_STATES


def system_toggle_enabled(category: StatsType) -> bool:
    """Return True if the "show system processes" option applies to *category*."""
    return category is StatsType.BACKGROUND


def category_label(category: StatsType) -> str:
    """Human-readable name of a category."""
    return _LABELS[category]
