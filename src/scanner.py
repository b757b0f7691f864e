"""Pending scanner module.

Counts and enumerates the delivered-but-unacknowledged entries of a
consumer group, oldest first.
"""

import logging
from typing import Any, List, Tuple

import redis

from errors import ScanFailure, StoreUnavailable
from models import PendingRecord, entry_id_sort_key
from redis_client import is_connectivity_error

logger = logging.getLogger(__name__)


class PendingScanner:
    """Reads the pending-entry list of a stream/group pair."""

    def __init__(self, gateway: Any) -> None:
        """Initialize the scanner.

        Args:
            gateway: StreamGateway (or compatible stub)
        """
        self._gateway = gateway

    def scan(self, stream: str, group: str) -> Tuple[int, List[PendingRecord]]:
        """Return the pending count and the pending records for a group.

        The summary count bounds the detail query. The returned count is the
        number of detail records actually listed, since entries acknowledged
        between the two calls drop out of the list.

        Args:
            stream: Stream key
            group: Consumer group name

        Returns:
            Tuple of (pending_count, records ordered by entry ID ascending)

        Raises:
            StoreUnavailable: If Redis cannot be reached
            ScanFailure: If Redis rejects either query
        """
        try:
            summary_count = self._gateway.pending_summary(stream, group)
            logger.info(f"No. of pending messages = {summary_count}")

            if summary_count == 0:
                return 0, []

            records = self._gateway.pending_details(
                stream, group, "-", "+", summary_count
            )
        except redis.exceptions.RedisError as e:
            if is_connectivity_error(e):
                raise StoreUnavailable(f"Redis unavailable during scan: {e}") from e
            raise ScanFailure(
                f"Failed to read pending entries for {stream}/{group}: {e}"
            ) from e

        records = sorted(records[:summary_count], key=lambda r: entry_id_sort_key(r.entry_id))

        if len(records) < summary_count:
            logger.debug(
                f"Pending list shrank from {summary_count} to {len(records)} "
                "entries between summary and detail queries"
            )

        return len(records), records
