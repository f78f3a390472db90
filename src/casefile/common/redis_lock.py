"""
Verrou Redis "un seul job en vol par cle d'idempotence".

Garanties:
- SET NX EX: un seul detenteur (le job_id) par cle
- Auto-release: le TTL expire si le worker meurt sans liberer
- Release conditionnel: seul le detenteur courant peut liberer
- Reprise d'une cle orpheline par compare-and-set (WATCH/MULTI)
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "casefile:inflight:"


class InflightLock:
    """
    Usage:
        lock = InflightLock(redis_client, "doc-42", ttl_seconds=3600)
        if not lock.try_acquire(job_id):
            holder = lock.get_holder()
            ...
        lock.release(job_id)
    """

    def __init__(self, redis_client: redis.Redis, key: str, ttl_seconds: int = 3600):
        self.redis = redis_client
        self.key = key
        self.lock_key = f"{KEY_PREFIX}{key}"
        self.ttl_seconds = ttl_seconds

    def try_acquire(self, holder_id: str) -> bool:
        acquired = bool(self.redis.set(self.lock_key, holder_id, nx=True, ex=self.ttl_seconds))
        if acquired:
            logger.debug(f"[InflightLock] acquired {self.lock_key} [holder={holder_id}]")
        return acquired

    def get_holder(self) -> Optional[str]:
        holder = self.redis.get(self.lock_key)
        if holder is None:
            return None
        return holder.decode() if isinstance(holder, bytes) else str(holder)

    def reclaim(self, expected_holder: Optional[str], holder_id: str) -> bool:
        """Remplace un detenteur orphelin par `holder_id` si la cle n'a pas change entre-temps."""
        with self.redis.pipeline() as pipe:
            try:
                pipe.watch(self.lock_key)
                current = pipe.get(self.lock_key)
                current_str = current.decode() if isinstance(current, bytes) else current
                if current_str != expected_holder:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(self.lock_key, holder_id, ex=self.ttl_seconds)
                pipe.execute()
            except redis.WatchError:
                return False
        logger.info(f"[InflightLock] reclaimed {self.lock_key}: {expected_holder} -> {holder_id}")
        return True

    def release(self, holder_id: str) -> bool:
        current = self.get_holder()
        if current is None:
            return False
        if current != holder_id:
            logger.warning(
                f"[InflightLock] release refused for {self.lock_key}: held by {current}, not {holder_id}"
            )
            return False
        deleted = bool(self.redis.delete(self.lock_key))
        if deleted:
            logger.debug(f"[InflightLock] released {self.lock_key} [holder={holder_id}]")
        return deleted

    def extend(self, holder_id: str, ttl_seconds: Optional[int] = None) -> bool:
        if self.get_holder() != holder_id:
            return False
        return bool(self.redis.expire(self.lock_key, ttl_seconds or self.ttl_seconds))


__all__ = ["InflightLock", "KEY_PREFIX"]
