"""Idle claim coordinator module.

Reassigns pending entries that have been idle for at least the configured
threshold to the dedicated recovery consumer.
"""

import logging
from typing import Any, List

import redis

from errors import ClaimFailure, StoreUnavailable
from models import ClaimBatch, StreamEntry, entry_id_sort_key
from redis_client import is_connectivity_error

logger = logging.getLogger(__name__)


class IdleClaimCoordinator:
    """Issues one bulk claim per pass for the scanned candidate set."""

    def __init__(self, gateway: Any) -> None:
        self._gateway = gateway

    def claim(
        self,
        stream: str,
        group: str,
        new_owner: str,
        min_idle_seconds: int,
        candidates: ClaimBatch,
    ) -> List[StreamEntry]:
        """Claim every candidate idle for at least min_idle_seconds.

        Ownership transfer and the idle check happen atomically per entry
        inside Redis. Entries below the threshold are left with their
        current owner and show up again in a later scan.

        Args:
            stream: Stream key
            group: Consumer group name
            new_owner: Recovery consumer that takes ownership
            min_idle_seconds: Idle threshold in whole seconds
            candidates: Entry IDs from the pending scan

        Returns:
            Claimed entries ordered by entry ID ascending

        Raises:
            ValueError: If min_idle_seconds is negative or not an integer
            StoreUnavailable: If Redis cannot be reached
            ClaimFailure: If Redis rejects the claim
        """
        if not isinstance(min_idle_seconds, int) or isinstance(min_idle_seconds, bool):
            raise ValueError("min_idle_seconds must be an integer")
        if min_idle_seconds < 0:
            raise ValueError("min_idle_seconds must be >= 0")

        if not candidates.entry_ids:
            return []

        try:
            claimed = self._gateway.claim(
                stream,
                group,
                new_owner,
                min_idle_seconds * 1000,
                list(candidates.entry_ids),
            )
        except redis.exceptions.RedisError as e:
            if is_connectivity_error(e):
                raise StoreUnavailable(f"Redis unavailable during claim: {e}") from e
            raise ClaimFailure(
                f"Failed to claim {len(candidates)} entries for {new_owner}: {e}"
            ) from e

        # Each requested ID at most once, so no entry gets two tasks
        requested = set(candidates.entry_ids)
        unique = {}
        for entry in claimed:
            if entry.entry_id in requested:
                unique.setdefault(entry.entry_id, entry)
        claimed = list(unique.values())

        if not claimed:
            logger.info(f"No messages pending for more than {min_idle_seconds} sec")
        else:
            logger.info(
                f"No. of messages claimed {len(claimed)} (these have not been "
                f"processed since {min_idle_seconds} sec)"
            )

        return sorted(claimed, key=lambda e: entry_id_sort_key(e.entry_id))
