"""Pytest configuration and shared fixtures."""

import pytest
import random
import sys
import os
import threading
import time

import redis

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import Config, IndexConfig, RedisConfig, ServerConfig, StreamConfig, SweeperConfig
from models import PendingRecord, StreamEntry


class StubGateway:
    """In-memory stand-in for StreamGateway.

    Models a single stream with one consumer group: entries, a pending-entry
    list with per-entry owner and delivery time, and the side-index hashes.
    Time is a manual millisecond clock. Every call is logged.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.now_ms = 1_000_000
        self.entries = {}
        self.pending = {}
        self.index = {}
        self.calls = []
        self.fail_write_keys = set()
        self.fail_ack_ids = set()
        self.unapplied_ack_ids = set()
        self.scan_error = None
        self.claim_error = None
        self.max_latency = 0.0

    # Test helpers

    def add_pending(self, entry_id, fields, consumer="consumer-1", idle_ms=0, deliveries=1):
        self.entries[entry_id] = dict(fields) if fields is not None else None
        self.pending[entry_id] = {
            "consumer": consumer,
            "delivered_at": self.now_ms - idle_ms,
            "deliveries": deliveries,
        }

    def calls_named(self, name):
        with self._lock:
            return [c for c in self.calls if c[0] == name]

    def _log(self, *call):
        with self._lock:
            self.calls.append(call)

    def _jitter(self):
        if self.max_latency:
            time.sleep(random.uniform(0, self.max_latency))

    # Gateway interface

    def ping(self):
        return True

    def close(self):
        pass

    def pending_summary(self, stream, group):
        self._log("pending_summary", stream, group)
        if self.scan_error is not None:
            raise self.scan_error
        return len(self.pending)

    def pending_details(self, stream, group, start, end, count):
        self._log("pending_details", stream, group, start, end, count)
        if self.scan_error is not None:
            raise self.scan_error
        ids = sorted(self.pending, key=lambda i: tuple(int(p) for p in i.split("-")))
        return [
            PendingRecord(
                entry_id=i,
                consumer=self.pending[i]["consumer"],
                idle_ms=self.now_ms - self.pending[i]["delivered_at"],
                delivery_count=self.pending[i]["deliveries"],
            )
            for i in ids[:count]
        ]

    def claim(self, stream, group, consumer, min_idle_ms, entry_ids):
        self._log("claim", stream, group, consumer, min_idle_ms, list(entry_ids))
        if self.claim_error is not None:
            raise self.claim_error
        claimed = []
        for entry_id in entry_ids:
            state = self.pending.get(entry_id)
            if state is None:
                continue
            if self.now_ms - state["delivered_at"] < min_idle_ms:
                continue
            state["consumer"] = consumer
            state["delivered_at"] = self.now_ms
            state["deliveries"] += 1
            claimed.append(
                StreamEntry(entry_id=entry_id, fields=dict(self.entries[entry_id] or {}))
            )
        return claimed

    def write_index_record(self, key, fields):
        self._jitter()
        self._log("write_index_record", key, dict(fields))
        if key in self.fail_write_keys:
            raise redis.exceptions.ResponseError(f"write refused for {key}")
        with self._lock:
            self.index.setdefault(key, {}).update(fields)

    def acknowledge(self, stream, group, entry_id):
        self._jitter()
        self._log("acknowledge", stream, group, entry_id)
        if entry_id in self.fail_ack_ids:
            raise redis.exceptions.ConnectionError("connection reset during XACK")
        if entry_id in self.unapplied_ack_ids:
            return 0
        with self._lock:
            return 1 if self.pending.pop(entry_id, None) is not None else 0


def make_test_config(
    min_idle_seconds: int = 60,
    max_workers: int = 8,
    pass_deadline_seconds: int = 30,
) -> Config:
    """Create a test configuration."""
    return Config(
        redis=RedisConfig(host="localhost", port=6379),
        stream=StreamConfig(
            name="tweets_stream",
            consumer_group="group1",
            recovery_consumer="monitoring-consumer",
            min_idle_seconds=min_idle_seconds,
        ),
        index=IndexConfig(key_prefix="tweet:", key_field="id"),
        sweeper=SweeperConfig(
            max_workers=max_workers,
            pass_deadline_seconds=pass_deadline_seconds,
            interval_seconds=60,
        ),
        server=ServerConfig(host="127.0.0.1", port=8080),
    )


def tweet(tweet_id):
    """Payload shaped like the entries the producer appends."""
    return {
        "id": str(tweet_id),
        "user": f"user{tweet_id}",
        "text": f"tweet number {tweet_id}",
        "location": "Seattle",
        "hashtags": "redis,streams",
    }


@pytest.fixture
def gateway():
    """Provide an empty stub gateway."""
    return StubGateway()


@pytest.fixture
def test_config():
    """Provide the default test configuration (min idle 60s)."""
    return make_test_config()
