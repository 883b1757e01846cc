"""Redis service for audit status pub/sub and health checks."""

from typing import Optional
import redis

from adaudit.core.config import settings


class CacheService:
    """Redis-backed helper; connection failures are non-fatal."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
                socket_connect_timeout=2,
            )
        return self._client

    def publish(self, channel: str, message: str) -> None:
        """Publish a message to a Redis channel (audit status updates)."""
        try:
            self.client.publish(channel, message)
        except redis.RedisError:
            pass  # Publish failures are non-fatal

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return self.client.ping()
        except redis.RedisError:
            return False


cache_service = CacheService()
