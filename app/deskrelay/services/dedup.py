import redis

from deskrelay.config import settings
from deskrelay.logging import logger

_redis_client: redis.Redis | None = None


def get_redis() -> redis.Redis | None:
    """Получить (или создать) клиент Redis. None — Redis не настроен."""
    global _redis_client
    if _redis_client is None and settings.redis_dsn:
        _redis_client = redis.from_url(settings.redis_dsn, decode_responses=True)
    return _redis_client


class EventDeduplicator:
    """
    Отсев повторных доставок webhook-событий.

    Использует SET NX EX: атомарная проверка + установка TTL.
    """

    _KEY_PREFIX = "deskrelay:event"

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self._client = client
        self._ttl = ttl_seconds

    def first_seen(self, event_key: str) -> bool:
        """True, если событие пришло впервые (или Redis недоступен)."""
        key = f"{self._KEY_PREFIX}:{event_key}"
        try:
            result = self._client.set(key, "1", nx=True, ex=self._ttl)
        except redis.RedisError as e:
            logger.error("Dedup check failed for %s, processing anyway: %s", key, e)
            return True
        if not result:
            logger.info("Duplicate event skipped: %s", key)
            return False
        return True


def create_deduplicator() -> EventDeduplicator | None:
    client = get_redis()
    if client is None:
        return None
    return EventDeduplicator(client, settings.dedup_ttl_seconds)
