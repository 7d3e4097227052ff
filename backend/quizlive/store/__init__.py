"""Durable snapshot storage keyed by session PIN."""
import json
import logging
from typing import Optional

from quizlive.models import now_ms
from quizlive.store.backends import MemoryBackend, RedisBackend, StoreBackend, select_backend

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class SessionStore:
    """Serializes snapshots and delegates to a single backend.

    ``save`` stamps each payload with ``_v`` and ``_savedAt``. Backend
    failures are logged and degrade to a False / None result.
    """

    def __init__(self, backend: StoreBackend, ttl: int = 6 * 60 * 60, prefix: str = 'quiz:state:'):
        self.backend = backend
        self.ttl = ttl
        self.prefix = prefix

    def key_for(self, pin) -> str:
        return f'{self.prefix}{pin}'

    def save(self, pin, state: dict, ttl: Optional[int] = None) -> bool:
        payload = dict(state)
        payload['_savedAt'] = now_ms()
        payload['_v'] = SCHEMA_VERSION
        try:
            self.backend.save(self.key_for(pin), json.dumps(payload), self.ttl if ttl is None else ttl)
        except Exception:
            logger.exception(f'[store-save-failed] pin={pin} mode={self.backend.mode}')
            return False
        return True

    def load(self, pin) -> Optional[dict]:
        try:
            raw = self.backend.load(self.key_for(pin))
        except Exception:
            logger.exception(f'[store-load-failed] pin={pin} mode={self.backend.mode}')
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f'[store-corrupt] pin={pin} unparsable payload ignored')
            return None
        return data if isinstance(data, dict) else None

    def delete(self, pin) -> bool:
        try:
            self.backend.delete(self.key_for(pin))
        except Exception:
            logger.exception(f'[store-delete-failed] pin={pin} mode={self.backend.mode}')
            return False
        return True

    def ping(self) -> dict:
        try:
            return self.backend.ping()
        except Exception as exc:
            return {'ok': False, 'mode': self.backend.mode, 'error': str(exc)}

    def mode(self) -> str:
        return self.backend.mode


def create_store(config) -> SessionStore:
    return SessionStore(
        select_backend(config.get('REDIS_URL')),
        ttl=int(config.get('QUIZ_STATE_TTL', 6 * 60 * 60)),
        prefix=config.get('QUIZ_STATE_PREFIX', 'quiz:state:'),
    )


__all__ = ['SessionStore', 'StoreBackend', 'MemoryBackend', 'RedisBackend', 'create_store', 'select_backend']
