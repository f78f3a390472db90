from __future__ import annotations

import logging
from typing import Optional

import redis
from rq import Queue

from casefile.common.errors import QueueUnavailable
from casefile.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 5.0


class QueueConnection:
    """
    Connexion Redis explicite partagee par le QueueService et les workers.

    Usage:
        connection = QueueConnection.from_settings(get_settings())
        connection.open()
        queue = connection.get_queue("document-processing")
        ...
        connection.close()
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        default_timeout: int = 3600,
        client: Optional[redis.Redis] = None,
    ):
        self.url = url
        self.connect_timeout = connect_timeout
        self.default_timeout = default_timeout
        self._client = client
        self._open = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QueueConnection":
        settings = settings or get_settings()
        return cls(
            settings.redis_url,
            connect_timeout=settings.redis_connect_timeout,
            default_timeout=settings.job_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "QueueConnection":
        """Ping Redis avec le delai de connexion; leve QueueUnavailable si injoignable."""
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                socket_connect_timeout=self.connect_timeout,
                socket_timeout=self.connect_timeout,
            )
        try:
            self._client.ping()
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            self._open = False
            logger.error(f"[Queue] Redis not reachable at {self._safe_url()}: {exc}")
            raise QueueUnavailable(f"Queue is not available (Redis not running): {exc}") from exc
        self._open = True
        logger.info(f"[Queue] ✅ Connected to Redis at {self._safe_url()}")
        return self

    def close(self) -> None:
        if self._client is not None and self._open:
            self._client.close()
        self._open = False

    @property
    def redis(self) -> redis.Redis:
        if not self._open or self._client is None:
            raise QueueUnavailable()
        return self._client

    def get_queue(self, name: str, *, timeout: Optional[int] = None) -> Queue:
        return Queue(name, connection=self.redis, default_timeout=timeout or self.default_timeout)

    def _safe_url(self) -> str:
        return self.url.split("@", 1)[-1]

    def __enter__(self) -> "QueueConnection":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["QueueConnection", "CONNECT_TIMEOUT_SECONDS"]
