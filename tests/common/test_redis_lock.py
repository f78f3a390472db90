"""
Tests du verrou "en vol" (fakeredis)
"""
import pytest

from casefile.common.redis_lock import KEY_PREFIX, InflightLock


class TestInflightLock:
    """Un seul detenteur par cle d'idempotence"""

    def test_acquire_and_release(self, fake_redis):
        lock = InflightLock(fake_redis, "doc-1", ttl_seconds=60)

        assert lock.try_acquire("job-a") is True
        assert fake_redis.exists(f"{KEY_PREFIX}doc-1") == 1
        assert lock.get_holder() == "job-a"

        assert lock.release("job-a") is True
        assert fake_redis.exists(f"{KEY_PREFIX}doc-1") == 0

    def test_second_holder_is_rejected(self, fake_redis):
        first = InflightLock(fake_redis, "doc-2")
        second = InflightLock(fake_redis, "doc-2")

        assert first.try_acquire("job-a") is True
        assert second.try_acquire("job-b") is False
        assert second.get_holder() == "job-a"

    def test_only_holder_can_release(self, fake_redis):
        lock = InflightLock(fake_redis, "doc-3")
        lock.try_acquire("job-a")

        assert lock.release("job-b") is False
        assert lock.get_holder() == "job-a"

    def test_lock_has_ttl(self, fake_redis):
        lock = InflightLock(fake_redis, "doc-4", ttl_seconds=120)
        lock.try_acquire("job-a")

        ttl = fake_redis.ttl(f"{KEY_PREFIX}doc-4")
        assert 0 < ttl <= 120

    def test_reclaim_replaces_expected_holder_only(self, fake_redis):
        lock = InflightLock(fake_redis, "doc-5")
        lock.try_acquire("job-dead")

        assert lock.reclaim("job-other", "job-new") is False
        assert lock.get_holder() == "job-dead"

        assert lock.reclaim("job-dead", "job-new") is True
        assert lock.get_holder() == "job-new"

    def test_extend_requires_holder(self, fake_redis):
        lock = InflightLock(fake_redis, "doc-6", ttl_seconds=10)
        lock.try_acquire("job-a")

        assert lock.extend("job-b", 500) is False
        assert lock.extend("job-a", 500) is True
        assert fake_redis.ttl(f"{KEY_PREFIX}doc-6") > 10
