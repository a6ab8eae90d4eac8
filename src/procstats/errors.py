"""Exceptions raised by procstats."""


class ProcStatsError(Exception):
    """Base class for procstats errors."""


class SnapshotFormatError(ProcStatsError):
    """Raised when snapshot content cannot be decoded."""


class StatsServiceError(ProcStatsError):
    """Raised when the statistics source cannot provide a snapshot."""
