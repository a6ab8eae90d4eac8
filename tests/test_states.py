"""Tests for state vocabulary."""

import pytest

from procstats.errors import SnapshotFormatError
from procstats.states import MemFactor, MemStateKey, RunState, ScreenState, StateKey, StatsType


def test_run_states_ordered_by_importance():
    """PERSISTENT is the most important state, CACHED_EMPTY the least."""
    assert RunState.PERSISTENT.value == 0
    assert RunState.CACHED_EMPTY.value == 13
    assert len(RunState) == 14


def test_mem_factor_ordered_by_severity():
    """Memory factors go from NORMAL to CRITICAL."""
    assert [f.label for f in MemFactor] == ["normal", "moderate", "low", "critical"]


def test_parse_is_case_insensitive():
    """parse() accepts any case of the member name."""
    assert StatsType.parse("Cached") is StatsType.CACHED
    assert RunState.parse("heavy_weight") is RunState.HEAVY_WEIGHT


def test_parse_unknown_raises():
    """Unknown names raise SnapshotFormatError."""
    with pytest.raises(SnapshotFormatError, match="RunState"):
        RunState.parse("sleeping")


def test_parse_non_string_raises():
    """Non-string values raise SnapshotFormatError, not AttributeError."""
    with pytest.raises(SnapshotFormatError):
        ScreenState.parse(1)  # type: ignore[arg-type]


class TestStateKey:
    """Tests for usage cell keys."""

    def test_encode(self):
        """Keys encode as screen/run."""
        assert StateKey(ScreenState.OFF, RunState.SERVICE).encode() == "off/service"

    def test_decode(self):
        """decode() reverses encode()."""
        key = StateKey.decode("on/cached_activity_client")
        assert key == StateKey(ScreenState.ON, RunState.CACHED_ACTIVITY_CLIENT)

    def test_decode_missing_separator(self):
        """A key without a separator is malformed."""
        with pytest.raises(SnapshotFormatError, match="Malformed"):
            StateKey.decode("service")

    def test_keys_are_hashable(self):
        """Equal keys collapse in a dict."""
        a = StateKey(ScreenState.ON, RunState.TOP)
        b = StateKey.decode("on/top")
        assert {a: 1, b: 2} == {a: 2}


class TestMemStateKey:
    """Tests for memory bucket keys."""

    def test_encode(self):
        """Keys encode as screen/factor."""
        assert MemStateKey(ScreenState.ON, MemFactor.LOW).encode() == "on/low"

    def test_decode_rejects_run_state(self):
        """A run state is not a memory factor."""
        with pytest.raises(SnapshotFormatError):
            MemStateKey.decode("on/top")
