"""JSON codec for snapshot files.

Layout::

    {
      "version": 1,
      "period_start": 0, "period_end": 18000000, "period_start_clock": 1.7e9,
      "mem_durations": {"on/normal": 12000000, "off/low": 6000000},
      "processes": [{"name": ..., "uid": ..., "package": ...,
                     "usage": {"on/top": {"duration": ..., "pss_samples": ...}}}],
      "packages": [{"name": ..., "uid": ..., "processes": [...],
                    "services": [{"name": ..., "process": ...}]}]
    }
"""

import json
import math
from typing import BinaryIO

from procstats.errors import SnapshotFormatError
from procstats.model import AccumulatedSnapshot, SnapshotFile

FORMAT_VERSION = 1


def _reject_constant(name: str) -> float:
    raise SnapshotFormatError(f"Non-finite number: {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise SnapshotFormatError(f"Number out of range: {text}")
    return value


def parse_snapshot(data: bytes) -> SnapshotFile:
    """Decode a snapshot.

    Raises:
        SnapshotFormatError: If the content is not a valid snapshot document.
    """
    try:
        doc = json.loads(data, parse_constant=_reject_constant, parse_float=_finite_float)
    except ValueError as e:
        raise SnapshotFormatError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise SnapshotFormatError("Invalid JSON: nested too deeply") from e

    if not isinstance(doc, dict):
        raise SnapshotFormatError("Snapshot document must be an object")

    version = doc.get("version")
    if version != FORMAT_VERSION:
        raise SnapshotFormatError(f"Unsupported snapshot version: {version!r}")

    try:
        return SnapshotFile.from_dict(doc)
    except SnapshotFormatError:
        raise
    except KeyError as e:
        raise SnapshotFormatError(f"Missing field: {e.args[0]}") from e
    except (TypeError, ValueError, AttributeError, OverflowError) as e:
        raise SnapshotFormatError(f"Invalid value: {e}") from e


def read_snapshot(stream: BinaryIO) -> SnapshotFile:
    """Read a snapshot from *stream*.

    Never raises for bad content or I/O failure: the returned snapshot
    carries ``read_error`` instead. The stream is not closed.
    """
    try:
        data = stream.read()
    except OSError as e:
        return SnapshotFile.failed(f"I/O error: {e}")

    try:
        return parse_snapshot(data)
    except SnapshotFormatError as e:
        return SnapshotFile.failed(str(e))


def dump_snapshot(snapshot: SnapshotFile | AccumulatedSnapshot) -> bytes:
    """Encode a snapshot in the on-disk format."""
    if isinstance(snapshot, AccumulatedSnapshot):
        snapshot = snapshot.to_snapshot_file()
    doc = {"version": FORMAT_VERSION, **snapshot.to_dict()}
    return json.dumps(doc, indent=2).encode("utf-8")
