"""Data model shared by the sweeper components.

StreamEntry and PendingRecord mirror what the stream store reports. The
remaining types exist only for the duration of one pass.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class StreamEntry:
    """A single stream entry as returned by a claim."""
    entry_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PendingRecord:
    """One row of the consumer group's pending-entry list."""
    entry_id: str
    consumer: str
    idle_ms: int
    delivery_count: int


@dataclass(frozen=True)
class ClaimBatch:
    """Entry IDs selected for reassignment in one pass."""
    entry_ids: List[str]

    @classmethod
    def from_pending(cls, records: List[PendingRecord]) -> "ClaimBatch":
        return cls(entry_ids=[r.entry_id for r in records])

    def __len__(self) -> int:
        return len(self.entry_ids)


@dataclass(frozen=True)
class ReprocessOutcome:
    """Result of reprocessing one claimed entry."""
    entry_id: str
    succeeded: bool
    error: Optional[str] = None
    key: Optional[str] = None


@dataclass(frozen=True)
class ProcessResult:
    """Summary of one sweeper pass. The only externally visible output."""
    pending: int = 0
    claimed: int = 0
    processed: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Render the wire form returned by the trigger endpoint.

        TimeTakenSecs is omitted when no reprocessing took place.
        """
        body: Dict[str, Any] = {
            "Pending": self.pending,
            "Claimed": self.claimed,
            "Processed": self.processed,
        }
        if self.elapsed_seconds:
            body["TimeTakenSecs"] = self.elapsed_seconds
        return body


def entry_id_sort_key(entry_id: str) -> Tuple[int, int]:
    """Order stream IDs ("<ms>-<seq>") numerically rather than lexically."""
    ms, _, seq = entry_id.partition("-")
    return int(ms), int(seq or 0)
