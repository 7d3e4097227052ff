import time
from typing import Dict, List, Optional

OPTION_COUNT = 4
DEFAULT_PLAYER_NAME = 'Player'


def now_ms() -> int:
    return int(time.time() * 1000)


class Phase:
    LOBBY = 'lobby'
    QUESTION_ACTIVE = 'question_active'
    REVEAL = 'reveal'
    GAME_OVER = 'game_over'
    ENDED = 'ended'


class Question:
    def __init__(self, text: str, options: List[str], correct_index: int,
                 time_limit_sec: int, explanation: str = ''):
        self.text = text
        self.options = list(options)
        self.correct_index = correct_index
        self.time_limit_sec = time_limit_sec
        self.explanation = explanation

    def public_dict(self):
        """Client-facing view; the correct answer is withheld."""
        return {
            'questionText': self.text,
            'options': list(self.options),
            'timeLimitSec': self.time_limit_sec,
        }

    def to_dict(self):
        return {
            'question': self.text,
            'options': list(self.options),
            'correctIndex': self.correct_index,
            'timeLimitSec': self.time_limit_sec,
            'explanation': self.explanation,
        }


def normalize_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        return DEFAULT_PLAYER_NAME
    return name.strip()


class Participant:
    """A joined player, keyed by its transport connection id."""

    def __init__(self, sid: str, name, score: int = 0):
        self.sid = sid
        self.name = normalize_name(name)
        self.score = score
        self.answered_at: Optional[int] = None
        self.choice: Optional[int] = None
        self.last_correct = False

    @property
    def has_answered(self) -> bool:
        return self.answered_at is not None

    def reset_answer(self) -> None:
        self.answered_at = None
        self.choice = None
        self.last_correct = False

    def to_dict(self):
        return {
            'name': self.name,
            'score': self.score,
            'answered': self.has_answered,
        }


class HistoryEntry:
    """Result of one revealed question. Built once and never mutated."""

    def __init__(self, index: int, question: str, correct_index: int,
                 explanation: str, per_player: List[dict]):
        self.index = index
        self.question = question
        self.correct_index = correct_index
        self.explanation = explanation
        self.per_player = tuple(dict(p) for p in per_player)

    def to_dict(self):
        return {
            'index': self.index,
            'question': self.question,
            'correctIndex': self.correct_index,
            'explanation': self.explanation,
            'perPlayer': [dict(p) for p in self.per_player],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'HistoryEntry':
        return cls(
            index=int(data.get('index', -1)),
            question=data.get('question') or '',
            correct_index=int(data.get('correctIndex', 0)),
            explanation=data.get('explanation') or '',
            per_player=data.get('perPlayer') or [],
        )


class Snapshot:
    """Persistable projection of a session.

    Holds no connection ids, only names and scores, so it can be written to
    the store and later used to rebuild scores-by-name and the position.
    """

    def __init__(self, pin: str, current_index: int, leaderboard: List[dict],
                 history: List[HistoryEntry], timestamp: Optional[int] = None):
        self.pin = pin
        self.current_index = current_index
        self.leaderboard = [dict(entry) for entry in leaderboard]
        self.history = list(history)
        self.timestamp = timestamp if timestamp is not None else now_ms()

    @property
    def last_revealed_index(self) -> int:
        if not self.history:
            return -1
        return self.history[-1].index

    def scores_by_name(self) -> Dict[str, int]:
        scores = {}
        for entry in self.leaderboard:
            name = entry.get('name')
            if isinstance(name, str) and name not in scores:
                scores[name] = int(entry.get('score') or 0)
        return scores

    def to_dict(self):
        return {
            'pin': self.pin,
            'currentIndex': self.current_index,
            'leaderboard': [dict(entry) for entry in self.leaderboard],
            'history': [entry.to_dict() for entry in self.history],
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Snapshot':
        return cls(
            pin=str(data.get('pin', '')),
            current_index=int(data.get('currentIndex', -1)),
            leaderboard=[e for e in (data.get('leaderboard') or []) if isinstance(e, dict)],
            history=[HistoryEntry.from_dict(h) for h in (data.get('history') or []) if isinstance(h, dict)],
            timestamp=data.get('timestamp'),
        )
