"""Outcome aggregation module.

OutcomeTally is the only state shared between reprocessing tasks. All
access to it is protected by a lock. aggregate() assembles the final
ProcessResult once fan-in has finished.
"""

import threading
from typing import Dict, List

from models import ProcessResult, ReprocessOutcome


class OutcomeTally:
    """Thread-safe collector of per-entry reprocessing outcomes.

    Tasks call record() concurrently as they complete. An entry ID may be
    recorded at most once per pass.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: Dict[str, ReprocessOutcome] = {}
        self._succeeded = 0

    def record(self, outcome: ReprocessOutcome) -> None:
        """Record the outcome of one entry.

        Args:
            outcome: Result of the entry's task

        Raises:
            ValueError: If the entry already has a recorded outcome
        """
        with self._lock:
            if outcome.entry_id in self._outcomes:
                raise ValueError(
                    f"Outcome for entry {outcome.entry_id} recorded twice"
                )
            self._outcomes[outcome.entry_id] = outcome
            if outcome.succeeded:
                self._succeeded += 1

    @property
    def succeeded(self) -> int:
        with self._lock:
            return self._succeeded

    def failures(self) -> List[ReprocessOutcome]:
        """Return a snapshot of the failed outcomes."""
        with self._lock:
            return [o for o in self._outcomes.values() if not o.succeeded]


def aggregate(
    pending: int, claimed: int, processed: int, elapsed_seconds: float = 0.0
) -> ProcessResult:
    """Combine the counters of one pass into a ProcessResult.

    Args:
        pending: Entries listed by the pending scan
        claimed: Entries transferred to the recovery consumer
        processed: Entries written and acknowledged
        elapsed_seconds: Fan-out to fan-in duration (0 when nothing ran)

    Returns:
        ProcessResult for the pass

    Raises:
        ValueError: If processed <= claimed <= pending does not hold
    """
    if min(pending, claimed, processed) < 0 or elapsed_seconds < 0:
        raise ValueError("Pass counters must be non-negative")
    if claimed > pending:
        raise ValueError(f"claimed ({claimed}) exceeds pending ({pending})")
    if processed > claimed:
        raise ValueError(f"processed ({processed}) exceeds claimed ({claimed})")

    return ProcessResult(
        pending=pending,
        claimed=claimed,
        processed=processed,
        elapsed_seconds=elapsed_seconds,
    )
