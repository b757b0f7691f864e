"""Tests for redis_client.py module."""

import ssl
from unittest.mock import MagicMock, patch

import pytest
import redis

from conftest import make_test_config
from models import PendingRecord, StreamEntry
from redis_client import StreamGateway, build_redis_client, is_connectivity_error


@pytest.fixture
def mock_client():
    return MagicMock(spec=redis.Redis)


class TestBuildRedisClient:
    """Client construction from configuration."""

    def test_plain_connection(self):
        cfg = make_test_config()
        with patch("redis_client.redis.Redis") as redis_cls:
            build_redis_client(cfg)

        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "localhost"
        assert kwargs["port"] == 6379
        assert kwargs["decode_responses"] is True
        assert kwargs["socket_timeout"] == 5
        assert kwargs["socket_connect_timeout"] == 5
        assert "ssl" not in kwargs
        assert "password" not in kwargs

    def test_tls_with_password(self):
        cfg = make_test_config()
        cfg.redis.password = "secret"
        cfg.redis.ssl = True
        with patch("redis_client.redis.Redis") as redis_cls:
            build_redis_client(cfg)

        kwargs = redis_cls.call_args.kwargs
        assert kwargs["password"] == "secret"
        assert kwargs["ssl"] is True
        assert kwargs["ssl_min_version"] == ssl.TLSVersion.TLSv1_2

    def test_password_without_tls_warns(self, caplog):
        cfg = make_test_config()
        cfg.redis.password = "secret"
        with patch("redis_client.redis.Redis"):
            build_redis_client(cfg)

        assert "TLS is disabled" in caplog.text


class TestStreamGateway:
    """Translation between redis-py replies and the data model."""

    def test_pending_summary(self, mock_client):
        mock_client.xpending.return_value = {
            "pending": 4, "min": "1-0", "max": "4-0", "consumers": []
        }
        assert StreamGateway(mock_client).pending_summary("s", "g") == 4
        mock_client.xpending.assert_called_once_with("s", "g")

    def test_pending_summary_empty_group(self, mock_client):
        mock_client.xpending.return_value = {
            "pending": 0, "min": None, "max": None, "consumers": []
        }
        assert StreamGateway(mock_client).pending_summary("s", "g") == 0

    def test_pending_details(self, mock_client):
        mock_client.xpending_range.return_value = [
            {"message_id": "1-0", "consumer": "c1", "time_since_delivered": 61000, "times_delivered": 2},
            {"message_id": "2-0", "consumer": "c2", "time_since_delivered": 10, "times_delivered": 1},
        ]

        records = StreamGateway(mock_client).pending_details("s", "g", "-", "+", 2)

        assert records == [
            PendingRecord("1-0", "c1", 61000, 2),
            PendingRecord("2-0", "c2", 10, 1),
        ]
        mock_client.xpending_range.assert_called_once_with("s", "g", min="-", max="+", count=2)

    def test_claim(self, mock_client):
        mock_client.xclaim.return_value = [
            ("1-0", {"id": "42", "text": "hello"}),
            ("2-0", None),
        ]

        claimed = StreamGateway(mock_client).claim("s", "g", "monitor", 60000, ["1-0", "2-0"])

        assert claimed == [
            StreamEntry("1-0", {"id": "42", "text": "hello"}),
            StreamEntry("2-0", {}),
        ]
        mock_client.xclaim.assert_called_once_with(
            "s", "g", "monitor", min_idle_time=60000, message_ids=["1-0", "2-0"]
        )

    def test_write_index_record(self, mock_client):
        StreamGateway(mock_client).write_index_record("tweet:42", {"id": "42"})
        mock_client.hset.assert_called_once_with("tweet:42", mapping={"id": "42"})

    def test_acknowledge(self, mock_client):
        mock_client.xack.return_value = 1
        assert StreamGateway(mock_client).acknowledge("s", "g", "1-0") == 1
        mock_client.xack.assert_called_once_with("s", "g", "1-0")

    def test_errors_propagate(self, mock_client):
        mock_client.hset.side_effect = redis.exceptions.ResponseError("WRONGTYPE")
        with pytest.raises(redis.exceptions.ResponseError):
            StreamGateway(mock_client).write_index_record("tweet:1", {"id": "1"})


@pytest.mark.parametrize(
    "error, expected",
    [
        (redis.exceptions.ConnectionError("refused"), True),
        (redis.exceptions.TimeoutError("timeout"), True),
        (redis.exceptions.AuthenticationError("bad password"), True),
        (redis.exceptions.ResponseError("NOGROUP"), False),
        (ValueError("other"), False),
    ],
)
def test_is_connectivity_error(error, expected):
    assert is_connectivity_error(error) is expected
