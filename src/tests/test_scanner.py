"""Tests for scanner.py module."""

import pytest
import redis

from conftest import StubGateway, tweet
from errors import ScanFailure, StoreUnavailable
from scanner import PendingScanner


class ShrinkingGateway(StubGateway):
    """Stub whose pending list loses entries between summary and details."""

    def pending_details(self, stream, group, start, end, count):
        self.pending.pop(sorted(self.pending)[0])
        return super().pending_details(stream, group, start, end, count)


class UnorderedGateway(StubGateway):
    """Stub that returns detail rows newest first."""

    def pending_details(self, stream, group, start, end, count):
        return list(reversed(super().pending_details(stream, group, start, end, count)))


def test_no_pending_entries_skips_detail_query(gateway):
    count, records = PendingScanner(gateway).scan("tweets_stream", "group1")

    assert count == 0
    assert records == []
    assert gateway.calls_named("pending_details") == []


def test_detail_query_bounded_by_summary_count(gateway):
    for n in range(1, 4):
        gateway.add_pending(f"{n}-0", tweet(n), idle_ms=n * 1000)

    count, records = PendingScanner(gateway).scan("tweets_stream", "group1")

    assert count == 3
    assert [r.entry_id for r in records] == ["1-0", "2-0", "3-0"]
    assert gateway.calls_named("pending_details") == [
        ("pending_details", "tweets_stream", "group1", "-", "+", 3)
    ]
    assert records[0].consumer == "consumer-1"
    assert records[2].idle_ms == 3000


def test_records_ordered_oldest_first():
    gateway = UnorderedGateway()
    for entry_id in ("9-0", "10-0", "10-1"):
        gateway.add_pending(entry_id, tweet(entry_id))

    _, records = PendingScanner(gateway).scan("tweets_stream", "group1")

    # numeric, not lexical, ordering
    assert [r.entry_id for r in records] == ["9-0", "10-0", "10-1"]


def test_count_reflects_listed_records_when_list_shrinks():
    gateway = ShrinkingGateway()
    for n in range(1, 4):
        gateway.add_pending(f"{n}-0", tweet(n))

    count, records = PendingScanner(gateway).scan("tweets_stream", "group1")

    assert count == 2
    assert len(records) == 2


def test_response_error_raises_scan_failure(gateway):
    gateway.scan_error = redis.exceptions.ResponseError("NOGROUP No such key")

    with pytest.raises(ScanFailure) as exc_info:
        PendingScanner(gateway).scan("tweets_stream", "group1")

    assert "NOGROUP" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, redis.exceptions.ResponseError)


@pytest.mark.parametrize(
    "error",
    [
        redis.exceptions.ConnectionError("Connection refused"),
        redis.exceptions.TimeoutError("Timeout reading from socket"),
        redis.exceptions.AuthenticationError("invalid password"),
    ],
)
def test_connectivity_errors_raise_store_unavailable(gateway, error):
    gateway.scan_error = error

    with pytest.raises(StoreUnavailable):
        PendingScanner(gateway).scan("tweets_stream", "group1")
