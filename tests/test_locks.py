"""
Tests for candidate locks and webhook de-duplication.
"""

import threading

import pytest
from redis.exceptions import LockError

from app.core.locks import CandidateLockTimeout, LocalCandidateLocks, RedisCandidateLocks
from app.services.dedup import InboundDeduplicator


class TestLocalCandidateLocks:
    def test_same_candidate_is_serialized(self):
        locks = LocalCandidateLocks(wait=0.1)
        with locks.hold("cand-1"):
            errors = []

            def contender():
                try:
                    with locks.hold("cand-1"):
                        pass
                except CandidateLockTimeout as e:
                    errors.append(e)

            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert len(errors) == 1

    def test_other_candidates_are_independent(self):
        locks = LocalCandidateLocks(wait=0.1)
        with locks.hold("cand-1"):
            with locks.hold("cand-2"):
                pass

    def test_released_after_exception(self):
        locks = LocalCandidateLocks(wait=0.1)
        with pytest.raises(ValueError):
            with locks.hold("cand-1"):
                raise ValueError("boom")
        with locks.hold("cand-1"):
            pass


class FakeRedisLock:
    def __init__(self, acquired=True, release_error=False):
        self.acquired = acquired
        self.release_error = release_error
        self.released = False

    def acquire(self):
        return self.acquired

    def release(self):
        if self.release_error:
            raise LockError("expired")
        self.released = True


class FakeLockClient:
    def __init__(self, lock):
        self._lock = lock
        self.calls = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.calls.append((name, timeout, blocking_timeout))
        return self._lock


class TestRedisCandidateLocks:
    def test_hold_acquires_and_releases(self):
        lock = FakeRedisLock()
        client = FakeLockClient(lock)
        with RedisCandidateLocks(client, timeout=30, wait=5).hold("cand-1"):
            pass
        assert client.calls == [("lock:candidate:cand-1", 30, 5)]
        assert lock.released

    def test_timeout_raises(self):
        locks = RedisCandidateLocks(FakeLockClient(FakeRedisLock(acquired=False)), timeout=30, wait=5)
        with pytest.raises(CandidateLockTimeout):
            with locks.hold("cand-1"):
                pass

    def test_expired_lock_release_is_logged_not_raised(self):
        locks = RedisCandidateLocks(FakeLockClient(FakeRedisLock(release_error=True)), timeout=30, wait=5)
        with locks.hold("cand-1"):
            pass


class TestInboundDeduplicator:
    def test_first_delivery_claims(self, fake_redis):
        dedup = InboundDeduplicator(fake_redis, ttl_seconds=60)
        assert dedup.claim("SM1") is True
        assert dedup.claim("SM1") is False
        assert dedup.claim("SM2") is True
        assert fake_redis.ttls["webhook:msg:SM1"] == 60

    def test_missing_id_always_processed(self, fake_redis):
        dedup = InboundDeduplicator(fake_redis)
        assert dedup.claim(None) is True
        assert dedup.claim(None) is True
