"""Tests for category to run-state mapping."""

from procstats.categories import (
    BACKGROUND_AND_SYSTEM_PROC_STATES,
    BACKGROUND_PROC_STATES,
    CACHED_PROC_STATES,
    FOREGROUND_PROC_STATES,
    category_label,
    resolve_states,
    system_toggle_enabled,
)
from procstats.states import RunState, StatsType


def test_background_excludes_system_by_default():
    """Background without system processes leaves out PERSISTENT."""
    states = resolve_states(StatsType.BACKGROUND)
    assert states == BACKGROUND_PROC_STATES
    assert RunState.PERSISTENT not in states


def test_background_with_system_adds_persistent():
    """Background with system processes adds exactly PERSISTENT."""
    states = resolve_states(StatsType.BACKGROUND, include_system=True)
    assert states == BACKGROUND_AND_SYSTEM_PROC_STATES
    assert states - BACKGROUND_PROC_STATES == {RunState.PERSISTENT}


def test_foreground_ignores_system_flag():
    """The system flag has no effect outside the background category."""
    assert resolve_states(StatsType.FOREGROUND, include_system=True) == {RunState.TOP}
    assert resolve_states(StatsType.FOREGROUND) == FOREGROUND_PROC_STATES


def test_cached_states():
    """Cached covers the three cached run states."""
    assert resolve_states(StatsType.CACHED, include_system=True) == CACHED_PROC_STATES
    assert len(CACHED_PROC_STATES) == 3


def test_categories_are_disjoint():
    """No run state counts toward two categories."""
    assert not BACKGROUND_AND_SYSTEM_PROC_STATES & FOREGROUND_PROC_STATES
    assert not BACKGROUND_AND_SYSTEM_PROC_STATES & CACHED_PROC_STATES
    assert not FOREGROUND_PROC_STATES & CACHED_PROC_STATES


def test_home_and_last_activity_uncounted():
    """HOME and LAST_ACTIVITY belong to no category."""
    counted = BACKGROUND_AND_SYSTEM_PROC_STATES | FOREGROUND_PROC_STATES | CACHED_PROC_STATES
    assert RunState.HOME not in counted
    assert RunState.LAST_ACTIVITY not in counted


def test_system_toggle_only_for_background():
    """Only the background category offers the system toggle."""
    assert system_toggle_enabled(StatsType.BACKGROUND) is True
    assert system_toggle_enabled(StatsType.FOREGROUND) is False
    assert system_toggle_enabled(StatsType.CACHED) is False


def test_category_labels():
    """Every category has a display label."""
    assert category_label(StatsType.CACHED) == "Cached processes"
    assert {category_label(t) for t in StatsType} == {
        "Background processes",
        "Foreground processes",
        "Cached processes",
    }
