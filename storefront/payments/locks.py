"""
Sérialisation de la réconciliation par couple (user_id, game_id).

- RedisLockRegistry: verrou distribué (plusieurs workers uvicorn), redis-py Lock
- LocalLockRegistry: verrou process-local (un seul worker, dev/tests)
Sans verrou, deux événements concurrents pour le même couple peuvent lire la même
expiration et créer deux licences ou sous-prolonger la licence.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import redis
from redis.exceptions import LockError, RedisError

from storefront.config import Settings
from storefront.exceptions import LockUnavailableError

logger = logging.getLogger(__name__)


def lock_key(user_id: str, game_id: str) -> str:
    return f"reconcile:{user_id}:{game_id}"


class LocalLockRegistry:
    """Un threading.Lock par clé, libéré du registre quand plus personne ne l’attend."""

    def __init__(self, timeout: float = 30):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # key -> [lock, holders]

    @contextmanager
    def hold(self, user_id: str, game_id: str) -> Iterator[None]:
        key = lock_key(user_id, game_id)
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        acquired = entry[0].acquire(timeout=self.timeout)
        try:
            if not acquired:
                raise LockUnavailableError(key)
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def active_keys(self) -> List[str]:
        with self._guard:
            return list(self._locks)


class RedisLockRegistry:
    """
    Verrou Redis (SET NX PX) par clé.
    - timeout: durée de vie du verrou (protège d’un worker mort)
    - blocking_timeout: attente maximale avant LockUnavailableError
    """

    def __init__(self, client: "redis.Redis", timeout: float = 30, blocking_timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout
        self.blocking_timeout = timeout if blocking_timeout is None else blocking_timeout

    @contextmanager
    def hold(self, user_id: str, game_id: str) -> Iterator[None]:
        key = lock_key(user_id, game_id)
        lock = self.client.lock(key, timeout=self.timeout, blocking_timeout=self.blocking_timeout)
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise LockUnavailableError(key) from e
        if not acquired:
            raise LockUnavailableError(key)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # le TTL a expiré pendant la réconciliation: un autre worker a pu entrer
                logger.warning("payments.locks lock expired before release key=%s", key)


def build_lock_registry(settings: Settings):
    """Redis si RECONCILE_LOCK_REDIS_URL est défini, sinon verrou process-local."""
    timeout = settings.reconcile_lock_timeout_seconds
    if settings.reconcile_lock_redis_url:
        client = redis.from_url(settings.reconcile_lock_redis_url)
        logger.info("payments.locks using redis registry timeout=%s", timeout)
        return RedisLockRegistry(client, timeout=timeout)
    return LocalLockRegistry(timeout=timeout)
