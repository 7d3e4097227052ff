import logging
import threading
import time
from typing import Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)


class StoreBackend:
    """Key/value storage with per-key expiry.

    Implementations: ``MemoryBackend`` and ``RedisBackend``. One is picked at
    startup; callers only look at ``mode`` for diagnostics.
    """

    mode = 'unknown'

    def save(self, key: str, value: str, ttl: int) -> None:
        raise NotImplementedError

    def load(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def ping(self) -> dict:
        raise NotImplementedError


class MemoryBackend(StoreBackend):
    mode = 'memory'

    def __init__(self, clock=time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def save(self, key, value, ttl):
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def load(self, key):
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            value, expire_at = hit
            if self._clock() >= expire_at:
                # Expired entries are evicted on read
                del self._entries[key]
                return None
            return value

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def ping(self):
        return {'ok': True, 'mode': self.mode}


class RedisBackend(StoreBackend):
    mode = 'redis'

    def __init__(self, client: 'redis.Redis'):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> 'RedisBackend':
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def save(self, key, value, ttl):
        self.client.set(key, value, ex=max(1, int(ttl)))

    def load(self, key):
        raw = self.client.get(key)
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        return raw

    def delete(self, key):
        self.client.delete(key)

    def ping(self):
        try:
            self.client.ping()
        except Exception as exc:
            return {'ok': False, 'mode': self.mode, 'error': str(exc)}
        return {'ok': True, 'mode': self.mode}


def select_backend(redis_url: Optional[str]) -> StoreBackend:
    """Pick the backend once, at startup.

    A configured and reachable redis wins; anything else gets the in-memory map.
    """
    if not redis_url:
        logger.info('[store] REDIS_URL not set, using memory backend')
        return MemoryBackend()
    backend = RedisBackend.from_url(redis_url)
    health = backend.ping()
    if not health['ok']:
        logger.warning(f"[store] redis unreachable ({health.get('error')}), falling back to memory backend")
        return MemoryBackend()
    logger.info('[store] redis connected')
    return backend
