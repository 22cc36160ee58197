"""
Per-candidate mutual exclusion.

Two inbound events for the same candidate must never interleave transcript
writes. Workers may run in separate processes, so the production backend is a
Redis lock keyed by candidate id; the local backend serves single-process runs
(eager Celery, development, tests).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from redis.exceptions import LockError

from app.core.config import settings

logger = logging.getLogger(__name__)


class CandidateLockTimeout(Exception):
    """The candidate lock could not be acquired within the wait budget."""
    pass


class RedisCandidateLocks:
    """Distributed candidate locks backed by redis-py's ``Lock``."""

    def __init__(self, client, timeout: int, wait: int):
        self.client = client
        self.timeout = timeout
        self.wait = wait

    @contextmanager
    def hold(self, candidate_id) -> Iterator[None]:
        lock = self.client.lock(
            f"lock:candidate:{candidate_id}",
            timeout=self.timeout,
            blocking_timeout=self.wait,
        )
        if not lock.acquire():
            raise CandidateLockTimeout(f"Candidate {candidate_id} is busy")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Lock expired under us; the next holder already owns the key
                logger.warning(f"Could not release lock for candidate {candidate_id}: {e}")


class LocalCandidateLocks:
    """In-process candidate locks, one ``threading.Lock`` per candidate id."""

    def __init__(self, wait: int):
        self.wait = wait
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, candidate_id) -> threading.Lock:
        key = str(candidate_id)
        with self._registry_lock:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, candidate_id) -> Iterator[None]:
        lock = self._lock_for(candidate_id)
        if not lock.acquire(timeout=self.wait):
            raise CandidateLockTimeout(f"Candidate {candidate_id} is busy")
        try:
            yield
        finally:
            lock.release()


_local_locks = LocalCandidateLocks(wait=settings.CANDIDATE_LOCK_WAIT_SECONDS)


def get_candidate_locks():
    """Return the lock backend selected by LOCK_BACKEND."""
    if settings.LOCK_BACKEND == "local":
        return _local_locks

    from app.core.redis_client import get_redis
    return RedisCandidateLocks(
        get_redis(),
        timeout=settings.CANDIDATE_LOCK_TIMEOUT_SECONDS,
        wait=settings.CANDIDATE_LOCK_WAIT_SECONDS,
    )
