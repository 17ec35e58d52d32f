"""Error taxonomy for the reconciliation and standings engine.

Propagation policy:
- MappingError / ProviderError are matchup-level: collected into the run's
  error list, never fatal to sibling matchups or conferences.
- StoreError is fatal to the recompute or resolution step it happened in.
- ConfigurationError is fatal to the whole sync run.
"""


class LeagueSyncError(Exception):
    """Base class for all engine errors."""


class MappingError(LeagueSyncError):
    """A team/roster link is missing or duplicated."""


class ProviderError(LeagueSyncError):
    """The external scoring provider failed or returned no data."""


class StoreError(LeagueSyncError):
    """A read or write against the record store failed."""


class ConfigurationError(LeagueSyncError):
    """No current season or no active conferences."""


class SyncAlreadyRunningError(LeagueSyncError):
    """A sync run is already in flight."""

    def __init__(self, message: str = "Sync is already running"):
        super().__init__(message)


class RecordNotFoundError(LeagueSyncError):
    """A row addressed by id does not exist."""
