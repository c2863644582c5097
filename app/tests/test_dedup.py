from unittest.mock import Mock

import redis

from deskrelay.services import dedup
from deskrelay.services.dedup import EventDeduplicator, create_deduplicator


class TestEventDeduplicator:
    def test_first_delivery(self):
        client = Mock()
        client.set.return_value = True

        assert EventDeduplicator(client, ttl_seconds=60).first_seen("message:1") is True
        client.set.assert_called_once_with("deskrelay:event:message:1", "1", nx=True, ex=60)

    def test_repeated_delivery(self):
        client = Mock()
        client.set.return_value = None

        assert EventDeduplicator(client, ttl_seconds=60).first_seen("message:1") is False

    def test_redis_down_processes_anyway(self):
        client = Mock()
        client.set.side_effect = redis.ConnectionError("refused")

        assert EventDeduplicator(client, ttl_seconds=60).first_seen("message:1") is True


def test_disabled_without_redis(monkeypatch):
    monkeypatch.setattr(dedup, "_redis_client", None)
    monkeypatch.setattr(dedup.settings, "redis_dsn", None)

    assert create_deduplicator() is None
