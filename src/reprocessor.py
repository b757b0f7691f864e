"""Concurrent reprocessor module.

For every claimed entry, writes the entry's fields into the side-index hash
derived from its payload and, only once that write has succeeded,
acknowledges the entry. Entries fan out over a bounded thread pool and the
caller blocks until every task has finished or the pass deadline expires.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, List, Optional, Tuple

from aggregator import OutcomeTally
from errors import EntryAckFailure, EntryError, EntryWriteFailure
from models import ReprocessOutcome, StreamEntry

logger = logging.getLogger(__name__)


class ConcurrentReprocessor:
    """Writes and acknowledges claimed entries, one task per entry.

    A failure in one entry's task never affects another entry. Failed
    entries stay unacknowledged and are picked up again by a later pass,
    so the side-index write is an overwrite keyed by the payload ID.
    """

    def __init__(
        self,
        gateway: Any,
        key_prefix: str = "tweet:",
        key_field: str = "id",
        max_workers: int = 32,
        deadline_seconds: Optional[float] = 60,
    ) -> None:
        """Initialize the reprocessor.

        Args:
            gateway: StreamGateway (or compatible stub)
            key_prefix: Prefix of the side-index hash key
            key_field: Payload field that identifies the record
            max_workers: Upper bound on concurrently running tasks
            deadline_seconds: Maximum fan-in wait; None or 0 waits forever
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._gateway = gateway
        self._key_prefix = key_prefix
        self._key_field = key_field
        self._max_workers = max_workers
        self._deadline_seconds = deadline_seconds or None

    def derive_key(self, entry: StreamEntry) -> str:
        """Build the side-index key for entry.

        Raises:
            EntryWriteFailure: If the payload is missing or lacks the key field
        """
        if not entry.fields:
            raise EntryWriteFailure(
                entry.entry_id, f"entry {entry.entry_id} has no payload"
            )
        value = entry.fields.get(self._key_field)
        if value is None or str(value) == "":
            raise EntryWriteFailure(
                entry.entry_id,
                f"entry {entry.entry_id} is missing field '{self._key_field}'",
            )
        return f"{self._key_prefix}{value}"

    def reprocess(
        self, stream: str, group: str, entries: List[StreamEntry]
    ) -> Tuple[int, float]:
        """Reprocess claimed entries concurrently.

        Args:
            stream: Stream key the entries belong to
            group: Consumer group to acknowledge against
            entries: Claimed entries, each with a unique entry ID

        Returns:
            Tuple of (processed_count, elapsed_seconds) where elapsed time
            spans fan-out start to fan-in completion

        Raises:
            ValueError: If an entry ID appears more than once
        """
        if not entries:
            return 0, 0.0

        entry_ids = [entry.entry_id for entry in entries]
        if len(set(entry_ids)) != len(entry_ids):
            raise ValueError("Claimed entries contain duplicate entry IDs")

        tally = OutcomeTally()
        workers = min(self._max_workers, len(entries))
        start = time.monotonic()

        executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="reprocess"
        )
        try:
            futures = {
                executor.submit(self._process_entry, stream, group, entry, tally): entry
                for entry in entries
            }
            logger.info(
                f"waiting for batch of {len(entries)} messages to get processed "
                f"({workers} workers)"
            )
            done, not_done = wait(futures, timeout=self._deadline_seconds)

            for future in done:
                exc = future.exception()
                if exc is not None:
                    entry = futures[future]
                    logger.error(
                        f"Unexpected error reprocessing entry {entry.entry_id}",
                        exc_info=exc,
                    )

            if not_done:
                for future in not_done:
                    future.cancel()
                logger.warning(
                    f"Pass deadline of {self._deadline_seconds}s expired with "
                    f"{len(not_done)} of {len(entries)} entries unfinished; "
                    "queued entries remain pending for a later pass, and entries "
                    "already in flight may still be acknowledged after this pass "
                    "reports, so Processed is a lower bound"
                )
            processed = tally.succeeded
            failures = tally.failures()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        elapsed = time.monotonic() - start
        if failures:
            summary = ", ".join(
                f"{o.entry_id} (key={o.key or '-'}): {o.error}" for o in failures
            )
            logger.warning(
                f"{len(failures)} of {len(entries)} entries failed and stay pending: "
                f"{summary}"
            )
        logger.info(
            f"finished processing batch of {len(entries)} messages: "
            f"{processed} processed in {elapsed:.3f}s"
        )
        return processed, elapsed

    def _process_entry(
        self, stream: str, group: str, entry: StreamEntry, tally: OutcomeTally
    ) -> ReprocessOutcome:
        """Run write-then-ack for one entry and record its outcome."""
        try:
            self._write_then_ack(stream, group, entry)
            outcome = ReprocessOutcome(entry_id=entry.entry_id, succeeded=True)
        except EntryError as e:
            logger.warning(f"Entry {entry.entry_id} not reprocessed: {e}")
            outcome = ReprocessOutcome(
                entry_id=entry.entry_id, succeeded=False, error=str(e), key=e.key
            )

        tally.record(outcome)
        return outcome

    def _write_then_ack(self, stream: str, group: str, entry: StreamEntry) -> None:
        """Write the side-index record, then acknowledge the entry.

        Raises:
            EntryWriteFailure: If the key cannot be derived or the write fails
            EntryAckFailure: If the acknowledge fails or is not applied
        """
        key = self.derive_key(entry)

        try:
            self._gateway.write_index_record(key, dict(entry.fields))
        except Exception as e:
            raise EntryWriteFailure(
                entry.entry_id, f"failed to add record {key} due to {e}", key=key
            ) from e

        logger.debug(f"added record {key} for entry {entry.entry_id}")

        try:
            acked = self._gateway.acknowledge(stream, group, entry.entry_id)
        except Exception as e:
            raise EntryAckFailure(
                entry.entry_id, f"failed to ACK record {key} due to {e}", key=key
            ) from e

        if not acked:
            raise EntryAckFailure(
                entry.entry_id,
                f"ACK for record {key} was not applied (entry no longer pending)",
                key=key,
            )
