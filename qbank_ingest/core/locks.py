"""
Per question bank write locks.

Persistence for a single question bank is serialized so concurrent uploads do
not race on shared rows such as usage-stats. Uploads to different banks run in
parallel. With several API workers the lock has to live in Redis.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

import redis

from qbank_ingest.core.config import settings

logger = logging.getLogger(__name__)

_local_locks: Dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()
_redis_client = None


def lock_key(question_bank_id: str) -> str:
    return f"qbank:bulk:{question_bank_id}"


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def _local_lock(question_bank_id: str) -> threading.Lock:
    with _registry_lock:
        lock = _local_locks.get(question_bank_id)
        if lock is None:
            lock = _local_locks[question_bank_id] = threading.Lock()
        return lock


@contextmanager
def question_bank_lock(question_bank_id: str, backend: str | None = None) -> Iterator[None]:
    """Hold the write lock for one question bank for the duration of the block."""
    backend = (backend or settings.LOCK_BACKEND).lower()
    if backend == "redis":
        lock = _get_redis().lock(lock_key(question_bank_id), timeout=settings.LOCK_TIMEOUT)
        logger.debug("Acquiring redis lock %s", lock_key(question_bank_id))
        with lock:
            yield
        return
    with _local_lock(question_bank_id):
        yield
