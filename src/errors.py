"""Error taxonomy for sweeper passes.

PassError subclasses abort the whole pass and are reported to the caller.
EntryError subclasses are local to one entry's task and only lower the
processed count.
"""

from typing import Optional


class SweeperError(Exception):
    """Base class for all sweeper errors."""
    pass


class PassError(SweeperError):
    """Raised when a pass cannot continue. No partial result is produced."""
    pass


class StoreUnavailable(PassError):
    """Connectivity, authentication or timeout failure talking to Redis."""
    pass


class ScanFailure(PassError):
    """Redis rejected the pending-entry list query."""
    pass


class ClaimFailure(PassError):
    """Redis rejected the bulk claim request."""
    pass


class EntryError(SweeperError):
    """Failure while reprocessing a single claimed entry."""

    def __init__(self, entry_id: str, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.entry_id = entry_id
        self.key = key


class EntryWriteFailure(EntryError):
    """The side-index record could not be written. The entry is not acked."""
    pass


class EntryAckFailure(EntryError):
    """The entry was written but could not be acknowledged."""
    pass
