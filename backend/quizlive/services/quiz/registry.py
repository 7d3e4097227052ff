import logging
import random
import threading
from typing import Dict, Optional

from quizlive.exceptions import SessionNotFound
from quizlive.models import Phase, Snapshot, now_ms
from .room import Room

logger = logging.getLogger(__name__)


def generate_pin() -> str:
    """Random 6-digit PIN. Collisions are not checked."""
    return str(random.randint(100000, 999999))


class RoomRegistry:
    """Owns every live room, keyed by PIN, and which connection sits in which room."""

    def __init__(self, broadcaster, store, clock=now_ms, leaderboard_size: int = 10,
                 default_time_limit: int = 20, deadline_timer=None, pin_factory=generate_pin):
        self.broadcaster = broadcaster
        self.store = store
        self.clock = clock
        self.leaderboard_size = leaderboard_size
        self.default_time_limit = default_time_limit
        self.deadline_timer = deadline_timer
        self.pin_factory = pin_factory
        self._rooms: Dict[str, Room] = {}
        self._connections: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rooms)

    def _new_room(self, pin: str, host_sid: Optional[str]) -> Room:
        return Room(
            pin,
            self.broadcaster,
            store=self.store,
            host_sid=host_sid,
            clock=self.clock,
            leaderboard_size=self.leaderboard_size,
            default_time_limit=self.default_time_limit,
            deadline_timer=self.deadline_timer,
        )

    def create(self, host_sid: str) -> Room:
        room = self._new_room(self.pin_factory(), host_sid)
        self._release(host_sid, room.pin)
        with self._lock:
            self._rooms[room.pin] = room
            self._connections[host_sid] = room.pin
        logger.info(f'[create] pin={room.pin} host={host_sid}')
        return room

    def get(self, pin) -> Optional[Room]:
        if pin is None:
            return None
        return self._rooms.get(str(pin).strip())

    def require(self, pin) -> Room:
        room = self.get(pin)
        if room is None or room.phase == Phase.ENDED:
            raise SessionNotFound(pin)
        return room

    def remove(self, pin) -> Optional[Room]:
        with self._lock:
            room = self._rooms.pop(str(pin), None)
            if room is not None:
                for sid in [s for s, p in self._connections.items() if p == room.pin]:
                    del self._connections[sid]
        if room is not None:
            logger.info(f'[remove] pin={room.pin}')
        return room

    def bind(self, sid: str, pin: str) -> None:
        with self._lock:
            self._connections[sid] = pin

    def pin_for(self, sid) -> Optional[str]:
        return self._connections.get(sid)

    def room_for(self, sid) -> Optional[Room]:
        return self.get(self.pin_for(sid))

    def _release(self, sid: str, pin: str) -> Optional[str]:
        # One connection belongs to one session
        previous = self.pin_for(sid)
        if previous is None or previous == pin:
            return None
        return self.disconnect(sid)

    def join(self, sid: str, pin, name):
        """Add ``sid`` to the session at ``pin`` as a participant.

        A connection that already belongs to another session leaves it first,
        exactly as if it had disconnected: if it was that session's host, the
        old session ends. Raises ``SessionNotFound`` before touching the old
        membership when ``pin`` is unknown or ended.
        """
        room = self.require(pin)
        self._release(sid, room.pin)
        participant = room.add_participant(sid, name)
        if participant is None:
            raise SessionNotFound(pin)
        self.bind(sid, room.pin)
        return room, participant

    def attach(self, sid: str, pin) -> Room:
        """Bind ``sid`` as host of a hostless session, leaving any other session it was in."""
        room = self.require(pin)
        if room.attach_host(sid):
            self._release(sid, room.pin)
            self.bind(sid, room.pin)
        return room

    def resume(self, pin) -> Room:
        """Rebuild a room from its last durable snapshot.

        The rebuilt room sits in the lobby with no host, positioned on the last
        revealed question, so the next ``next_question`` moves one step past it.
        Scores are carried by exact name from the snapshot leaderboard. A live
        room with the same PIN is returned unchanged.
        """
        pin = str(pin).strip()
        live = self.get(pin)
        if live is not None and live.phase != Phase.ENDED:
            return live
        data = self.store.load(pin)
        if not data:
            raise SessionNotFound(pin, 'no snapshot')
        try:
            snapshot = Snapshot.from_dict(data)
            carried = snapshot.scores_by_name()
        except (TypeError, ValueError):
            logger.warning(f'[resume-failed] pin={pin} malformed snapshot')
            raise SessionNotFound(pin, 'no snapshot')
        room = self._new_room(pin, None)
        room.history = list(snapshot.history)
        room.current_index = snapshot.last_revealed_index
        room.carried_scores = carried
        with self._lock:
            self._rooms[pin] = room
        logger.info(f'[resume] pin={pin} index={room.current_index} carried={len(room.carried_scores)}')
        return room

    def snapshot(self, pin) -> Optional[dict]:
        """Live snapshot if the room exists, else the last durable one."""
        room = self.get(pin)
        if room is not None and room.phase != Phase.ENDED:
            return room.snapshot().to_dict()
        return self.store.load(str(pin).strip())

    def disconnect(self, sid) -> Optional[str]:
        with self._lock:
            pin = self._connections.pop(sid, None)
        room = self.get(pin)
        if room is None:
            return None
        role = room.disconnect(sid)
        if role == 'host':
            self.remove(room.pin)
        return role
