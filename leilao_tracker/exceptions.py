"""
Exception hierarchy for the Leilão Tracker.

Only BatchFailure is fatal for a run. Everything else is raised by one
source, one record or one input file and is caught by the stage that owns it.
"""


class LeilaoTrackerError(Exception):
    """Base exception for all leilao_tracker errors."""


class SourceFailure(LeilaoTrackerError):
    """Raised when one source collaborator errors out or times out."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class BatchFailure(LeilaoTrackerError):
    """Raised when every source failed; the run aborts without a snapshot."""


class ParseFailure(LeilaoTrackerError):
    """Raised when a single raw record is malformed."""


class OverrideLoadFailure(LeilaoTrackerError):
    """Raised when the override file exists but cannot be used."""


class SnapshotExistsError(LeilaoTrackerError):
    """Raised when writing a snapshot for a day that already has one."""


class ConfigurationError(LeilaoTrackerError):
    """Raised when configuration is invalid or missing."""
