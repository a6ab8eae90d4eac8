"""Tests for the snapshot JSON codec."""

import io
import json

import pytest

from conftest import make_accumulated, make_package, make_process, make_snapshot, make_usage, state
from procstats.codec import FORMAT_VERSION, dump_snapshot, parse_snapshot, read_snapshot
from procstats.errors import SnapshotFormatError
from procstats.states import MemFactor, RunState, ScreenState


def _doc(**overrides) -> bytes:
    doc = {"version": FORMAT_VERSION, "period_start": 0, "period_end": 1000}
    doc.update(overrides)
    return json.dumps(doc).encode()


def test_parse_minimal_document():
    """Only the version and period are required."""
    snapshot = parse_snapshot(_doc())
    assert snapshot.elapsed == 1000
    assert snapshot.processes == {}
    assert snapshot.read_error is None


def test_dump_then_parse_preserves_content():
    """A snapshot written by dump_snapshot() is read back unchanged."""
    proc = make_process(
        "com.example.app:remote",
        10050,
        package="com.example.app",
        usage={
            state(RunState.SERVICE, ScreenState.OFF): make_usage(duration=500, pss=2048, samples=3),
            state(RunState.TOP): make_usage(duration=100, pss=4096),
        },
    )
    pkg = make_package("com.example.app", 10050, [proc], {"Sync": "com.example.app:remote", "Idle": None})
    snapshot = make_snapshot(hours=3, processes=[proc], packages=[pkg], mem={MemFactor.LOW: 42}, clock=1.5e9)

    assert parse_snapshot(dump_snapshot(snapshot)) == snapshot


def test_dump_accumulated():
    """Accumulated snapshots are written as plain snapshot files."""
    doc = json.loads(dump_snapshot(make_accumulated(hours=2)))
    assert doc["version"] == FORMAT_VERSION
    assert "merged_count" not in doc
    assert doc["period_end"] - doc["period_start"] == 2 * 60 * 60 * 1000


@pytest.mark.parametrize(
    ("data", "match"),
    [
        (b"{not json", "Invalid JSON"),
        (b"\xff\xfe", "Invalid JSON"),
        (b"[1, 2]", "must be an object"),
        (json.dumps({"period_start": 0, "period_end": 1}).encode(), "version"),
        (json.dumps({"version": 99, "period_start": 0, "period_end": 1}).encode(), "version"),
        (json.dumps({"version": FORMAT_VERSION, "period_end": 1}).encode(), "Missing field"),
    ],
)
def test_parse_rejects_bad_documents(data: bytes, match: str):
    """Malformed documents raise SnapshotFormatError."""
    with pytest.raises(SnapshotFormatError, match=match):
        parse_snapshot(data)


def test_parse_rejects_bad_values():
    """Wrongly typed values become format errors."""
    with pytest.raises(SnapshotFormatError, match="Invalid value"):
        parse_snapshot(_doc(period_end="soon"))
    with pytest.raises(SnapshotFormatError, match="Invalid value"):
        parse_snapshot(_doc(processes=[{"name": "p", "uid": 1, "usage": "on/top"}]))


def test_parse_rejects_unknown_state():
    with pytest.raises(SnapshotFormatError, match="RunState"):
        parse_snapshot(
            _doc(processes=[{"name": "p", "uid": 1, "usage": {"on/zombie": {"duration": 1}}}])
        )


def test_read_snapshot_marks_bad_content():
    """read_snapshot() reports bad content on the result instead of raising."""
    snapshot = read_snapshot(io.BytesIO(b"garbage"))
    assert snapshot.read_error is not None
    assert "Invalid JSON" in snapshot.read_error


def test_read_snapshot_marks_io_error():
    """I/O failures become read errors too."""

    class BrokenStream(io.RawIOBase):
        def read(self, size=-1):
            raise OSError("device gone")

    snapshot = read_snapshot(BrokenStream())
    assert snapshot.read_error == "I/O error: device gone"


def test_read_snapshot_leaves_stream_open():
    stream = io.BytesIO(_doc())
    read_snapshot(stream)
    assert not stream.closed


@pytest.mark.parametrize(
    "number",
    [b"Infinity", b"-Infinity", b"NaN", b"1e400", b"-1e400"],
)
def test_parse_rejects_non_finite_numbers(number: bytes):
    """Numbers Python's json would turn into inf/nan are format errors."""
    data = b'{"version": 1, "period_start": 0, "period_end": ' + number + b"}"
    with pytest.raises(SnapshotFormatError):
        parse_snapshot(data)


def test_parse_rejects_deep_nesting():
    with pytest.raises(SnapshotFormatError, match="nested too deeply"):
        parse_snapshot(b"[" * 100_000 + b"]" * 100_000)


@pytest.mark.parametrize("clock", [-1.0, 1e20, "nan"])
def test_parse_rejects_bad_start_clock(clock):
    """The wall clock must be a real date."""
    with pytest.raises(SnapshotFormatError, match="period_start_clock"):
        parse_snapshot(_doc(period_start_clock=clock))


def test_parse_rejects_slice_with_foreign_uid():
    """Process slices of a package share the package's uid."""
    package = {
        "name": "pkg",
        "uid": 1000,
        "processes": [{"name": "p", "uid": 1001, "usage": {}}],
    }
    with pytest.raises(SnapshotFormatError, match="uid 1001"):
        parse_snapshot(_doc(packages=[package]))


def test_read_snapshot_never_raises_on_overflow():
    snapshot = read_snapshot(io.BytesIO(b'{"version": 1, "period_start": 0, "period_end": Infinity}'))
    assert snapshot.read_error is not None
