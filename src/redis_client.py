"""Redis client abstraction module.

All redis-py usage is isolated here. No other module imports from redis
except to classify the exceptions raised by the gateway.
"""

import logging
import ssl
from typing import Any, Dict, List

import redis

from config import Config
from models import PendingRecord, StreamEntry

logger = logging.getLogger(__name__)


def build_redis_client(config: Config) -> redis.Redis:
    """Construct and return a configured Redis client.

    Args:
        config: Configuration object containing Redis connection settings

    Returns:
        redis.Redis: Client with string decoding and socket timeouts applied
    """
    kwargs: Dict[str, Any] = {
        "host": config.redis.host,
        "port": config.redis.port,
        "decode_responses": True,
        "socket_timeout": config.redis.socket_timeout_seconds,
        "socket_connect_timeout": config.redis.socket_connect_timeout_seconds,
    }

    if config.redis.password:
        kwargs["password"] = config.redis.password

    if config.redis.ssl:
        kwargs["ssl"] = True
        kwargs["ssl_min_version"] = ssl.TLSVersion.TLSv1_2
    elif config.redis.password:
        logger.warning(
            f"Redis password configured for {config.redis.host}:{config.redis.port} "
            "but TLS is disabled. Credentials will be sent in clear text."
        )

    return redis.Redis(**kwargs)


def is_connectivity_error(exc: BaseException) -> bool:
    """Return True for failures that mean Redis itself is unreachable.

    Covers refused connections, socket timeouts and authentication
    failures (redis-py raises AuthenticationError as a ConnectionError).
    """
    return isinstance(
        exc,
        (
            redis.exceptions.ConnectionError,
            redis.exceptions.TimeoutError,
            redis.exceptions.AuthenticationError,
        ),
    )


class StreamGateway:
    """Thin wrapper exposing the stream operations a sweeper pass needs.

    redis-py exceptions propagate unchanged; callers decide whether a
    failure is fatal for the pass or local to one entry.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def ping(self) -> bool:
        return bool(self._client.ping())

    def close(self) -> None:
        self._client.close()

    def pending_summary(self, stream: str, group: str) -> int:
        """Return the number of delivered-but-unacknowledged entries.

        Args:
            stream: Stream key
            group: Consumer group name

        Returns:
            Total pending entries for the group
        """
        summary = self._client.xpending(stream, group)
        return int(summary.get("pending", 0) or 0)

    def pending_details(
        self, stream: str, group: str, start: str, end: str, count: int
    ) -> List[PendingRecord]:
        """Return pending-entry list rows between start and end.

        Args:
            stream: Stream key
            group: Consumer group name
            start: Lowest entry ID ("-" for the oldest)
            end: Highest entry ID ("+" for the newest)
            count: Maximum number of rows

        Returns:
            PendingRecords ordered by entry ID ascending
        """
        rows = self._client.xpending_range(
            stream, group, min=start, max=end, count=count
        )
        return [
            PendingRecord(
                entry_id=row["message_id"],
                consumer=row["consumer"],
                idle_ms=int(row["time_since_delivered"]),
                delivery_count=int(row["times_delivered"]),
            )
            for row in rows
        ]

    def claim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        entry_ids: List[str],
    ) -> List[StreamEntry]:
        """Reassign idle pending entries to consumer.

        Redis only transfers entries whose idle time is at least
        min_idle_ms, so the result may be a subset of entry_ids. Entries
        trimmed from the stream come back with an empty field mapping.

        Args:
            stream: Stream key
            group: Consumer group name
            consumer: New owner
            min_idle_ms: Minimum idle time in milliseconds
            entry_ids: Candidate entry IDs

        Returns:
            Claimed StreamEntry objects
        """
        claimed = self._client.xclaim(
            stream,
            group,
            consumer,
            min_idle_time=min_idle_ms,
            message_ids=entry_ids,
        )
        return [
            StreamEntry(entry_id=entry_id, fields=dict(fields or {}))
            for entry_id, fields in claimed
        ]

    def write_index_record(self, key: str, fields: Dict[str, Any]) -> None:
        """Write fields into the hash at key, overwriting existing values."""
        self._client.hset(key, mapping=fields)

    def acknowledge(self, stream: str, group: str, entry_id: str) -> int:
        """Acknowledge entry_id for group.

        Returns:
            Number of entries acknowledged (0 when it was no longer pending)
        """
        return int(self._client.xack(stream, group, entry_id))
