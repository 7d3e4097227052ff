"""Quiz session domain: scoring, question validation, the room state machine,
the room registry and the optional deadline timer.

Transport concerns stay in the socket handlers and HTTP routes; everything here
talks to the outside world through a broadcaster and a session store.
"""
from .registry import RoomRegistry, generate_pin
from .room import Room
from .scheduler import DeadlineScheduler
from .scoring import score

__all__ = ['Room', 'RoomRegistry', 'DeadlineScheduler', 'generate_pin', 'score']
