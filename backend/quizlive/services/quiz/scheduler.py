import itertools
import logging
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


class DeadlineScheduler:
    """Reveal a question server-side once its time limit passes.

    Only wired in when ``ENFORCE_DEADLINE`` is on; otherwise the deadline sent
    to clients is advisory. One pending timer per room: scheduling a new
    question or revealing cancels the previous one by invalidating its token,
    and a stale worker wakes up and does nothing.
    """

    def __init__(self, spawn, sleep, grace_sec: float = 0.0):
        self._spawn = spawn
        self._sleep = sleep
        self.grace_sec = grace_sec
        self._tokens: Dict[str, Tuple[int, int]] = {}
        self._counter = itertools.count(1)

    @classmethod
    def for_socketio(cls, socketio, grace_sec: float = 0.0) -> 'DeadlineScheduler':
        return cls(socketio.start_background_task, socketio.sleep, grace_sec)

    def pending(self, room) -> bool:
        return room.pin in self._tokens

    def schedule(self, room, index: int, delay_sec: float) -> None:
        token = next(self._counter)
        self._tokens[room.pin] = (index, token)
        logger.info(f'[timer-set] pin={room.pin} index={index} duration={delay_sec}s')
        self._spawn(self._worker, room, index, token, delay_sec + self.grace_sec)

    def cancel(self, room) -> None:
        if self._tokens.pop(room.pin, None) is not None:
            logger.debug(f'[timer-cancel] pin={room.pin}')

    def _worker(self, room, index: int, token: int, delay: float) -> None:
        self._sleep(delay)
        if self._tokens.get(room.pin) != (index, token):
            logger.debug(f'[timer-abort] pin={room.pin} index={index} superseded')
            return
        self._tokens.pop(room.pin, None)
        logger.info(f'[timer-fire] pin={room.pin} index={index}')
        try:
            room.expire(index)
        except Exception:
            logger.exception(f'[timer-error] pin={room.pin} index={index}')
