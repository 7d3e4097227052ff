import logging
import threading
from typing import Dict, List, Optional

from quizlive.models import (
    OPTION_COUNT,
    HistoryEntry,
    Participant,
    Phase,
    Question,
    Snapshot,
    now_ms,
)
from .scoring import score
from .validation import normalize_questions

logger = logging.getLogger(__name__)


def _option_index(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class Room:
    """State of one live session.

    Phases run lobby -> question_active <-> reveal -> game_over, and ended once
    the host leaves. Every public operation holds the room lock, checks its
    preconditions before touching state and then mutates in one go, so a
    rejected or failing event leaves the room as it was.
    """

    def __init__(self, pin: str, broadcaster, store=None, host_sid: Optional[str] = None,
                 clock=now_ms, leaderboard_size: int = 10, default_time_limit: int = 20,
                 deadline_timer=None):
        self.pin = pin
        self.broadcaster = broadcaster
        self.store = store
        self.host_sid = host_sid
        self.clock = clock
        self.leaderboard_size = leaderboard_size
        self.default_time_limit = default_time_limit
        self.deadline_timer = deadline_timer

        self.questions: List[Question] = []
        self.current_index = -1
        self.phase = Phase.LOBBY
        self.question_started_at: Optional[int] = None
        self.question_deadline: Optional[int] = None
        self.tally = [0] * OPTION_COUNT
        self.history: List[HistoryEntry] = []
        self.participants: Dict[str, Participant] = {}
        # Only filled when rebuilt from a snapshot
        self.carried_scores: Dict[str, int] = {}
        self._lock = threading.RLock()

    # ---- queries ----

    def is_host(self, sid) -> bool:
        return sid is not None and sid == self.host_sid

    @property
    def accepting(self) -> bool:
        return self.phase == Phase.QUESTION_ACTIVE

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def totals(self):
        answered = sum(1 for p in self.participants.values() if p.has_answered)
        return {'joined': len(self.participants), 'answered': answered}

    def leaderboard(self, limit: Optional[int] = None) -> List[dict]:
        # sorted() is stable: equal scores keep join order
        ranked = sorted(self.participants.values(), key=lambda p: p.score, reverse=True)
        limit = self.leaderboard_size if limit is None else limit
        return [{'name': p.name, 'score': p.score} for p in ranked[:limit]]

    def status_payload(self):
        return {
            'pin': self.pin,
            'phase': self.phase,
            'totals': self.totals(),
            'accepting': self.accepting,
            'deadlineEpochMs': self.question_deadline,
            'players': [p.to_dict() for p in self.participants.values()],
        }

    def question_payload(self):
        question = self.current_question
        if question is None:
            return None
        payload = {
            'index': self.current_index,
            'total': len(self.questions),
            'deadlineEpochMs': self.question_deadline,
            'totals': self.totals(),
        }
        payload.update(question.public_dict())
        return payload

    def snapshot(self) -> Snapshot:
        return Snapshot(
            pin=self.pin,
            current_index=self.current_index,
            leaderboard=self.leaderboard(),
            history=self.history,
            timestamp=self.clock(),
        )

    # ---- helpers ----

    def _require_host(self, sid, action: str) -> bool:
        if self.is_host(sid):
            return True
        logger.debug(f'[auth-noop] pin={self.pin} action={action} sid={sid}')
        return False

    def _send_status(self) -> None:
        self.broadcaster.to_connection(self.host_sid, 'status', self.status_payload())

    def _cancel_deadline(self) -> None:
        if self.deadline_timer is not None:
            self.deadline_timer.cancel(self)

    def persist(self) -> bool:
        """Write the current snapshot. Failures are logged, never raised."""
        if self.store is None:
            return False
        try:
            state = self.snapshot().to_dict()
        except Exception:
            logger.exception(f'[persist-failed] pin={self.pin} snapshot build error')
            return False
        saved = self.store.save(self.pin, state)
        if not saved:
            logger.warning(f'[persist-failed] pin={self.pin} index={self.current_index}')
        return saved

    # ---- host operations ----

    def attach_host(self, sid) -> bool:
        with self._lock:
            if self.phase == Phase.ENDED or self.host_sid is not None:
                return False
            self.host_sid = sid
            logger.info(f'[attach] pin={self.pin} host={sid}')
            return True

    def load_quiz(self, sid, raw_questions):
        """Replace the question list with the valid subset of ``raw_questions``.

        Returns ``(accepted_count, rejected)`` or None when ignored.
        Phase and current index are left alone.
        """
        with self._lock:
            if self.phase == Phase.ENDED or not self._require_host(sid, 'load-quiz'):
                return None
            questions, rejected = normalize_questions(raw_questions, self.default_time_limit)
            self.questions = questions
            logger.info(f'[load-quiz] pin={self.pin} accepted={len(questions)} rejected={len(rejected)}')
            return len(questions), rejected

    def next_question(self, sid) -> bool:
        with self._lock:
            if self.phase in (Phase.ENDED, Phase.GAME_OVER) or not self._require_host(sid, 'next-question'):
                return False
            self._cancel_deadline()
            next_index = self.current_index + 1
            if next_index >= len(self.questions):
                self.current_index = next_index
                self.phase = Phase.GAME_OVER
                self.question_started_at = None
                self.question_deadline = None
                logger.info(f'[game-over] pin={self.pin} questions={len(self.questions)}')
                self.broadcaster.to_session(self.pin, 'game-over', {'leaderboard': self.leaderboard()})
                self._send_status()
                self.persist()
                return True

            question = self.questions[next_index]
            started = self.clock()
            for participant in self.participants.values():
                participant.reset_answer()
            self.tally = [0] * OPTION_COUNT
            self.current_index = next_index
            self.phase = Phase.QUESTION_ACTIVE
            self.question_started_at = started
            self.question_deadline = started + question.time_limit_sec * 1000
            logger.info(
                f'[question] pin={self.pin} index={next_index}/{len(self.questions)} '
                f'limit={question.time_limit_sec}s deadline={self.question_deadline}'
            )
            self.broadcaster.to_session(self.pin, 'question-started', self.question_payload())
            self._send_status()
            if self.deadline_timer is not None:
                self.deadline_timer.schedule(self, next_index, question.time_limit_sec)
            return True

    def reveal(self, sid) -> bool:
        with self._lock:
            if not self._require_host(sid, 'reveal'):
                return False
            return self._reveal()

    def expire(self, index: int) -> bool:
        """Deadline reached for ``index``; reveals only if it is still open."""
        with self._lock:
            if self.phase != Phase.QUESTION_ACTIVE or self.current_index != index:
                return False
            logger.info(f'[deadline] pin={self.pin} index={index} auto reveal')
            return self._reveal()

    def _reveal(self) -> bool:
        question = self.current_question
        if self.phase != Phase.QUESTION_ACTIVE or question is None:
            return False

        started = self.question_started_at
        results = []
        for participant in self.participants.values():
            earned = score(question, participant.answered_at, started, participant.choice)
            correct = participant.choice is not None and participant.choice == question.correct_index
            time_ms = None
            if participant.has_answered and started is not None:
                time_ms = max(0, participant.answered_at - started)
            results.append((participant, correct, earned, time_ms))

        self._cancel_deadline()
        self.phase = Phase.REVEAL
        per_player = []
        for participant, correct, earned, time_ms in results:
            participant.score += earned
            participant.last_correct = correct
            per_player.append({
                'name': participant.name,
                'correct': correct,
                'score': participant.score,
                'timeMs': time_ms,
                'earned': earned,
            })
        self.history.append(HistoryEntry(
            index=self.current_index,
            question=question.text,
            correct_index=question.correct_index,
            explanation=question.explanation,
            per_player=per_player,
        ))
        totals = self.totals()
        logger.info(f"[reveal] pin={self.pin} index={self.current_index} answered={totals['answered']}/{totals['joined']}")

        self.broadcaster.to_session(self.pin, 'reveal-result', {
            'index': self.current_index,
            'correctIndex': question.correct_index,
            'leaderboard': self.leaderboard(),
            'perParticipant': per_player,
            'explanation': question.explanation,
        })
        self.broadcaster.to_connection(self.host_sid, 'option-tally', {
            'counts': list(self.tally),
            'correctIndex': question.correct_index,
            'totals': totals,
        })
        # Broadcast first: a failed write does not undo the reveal
        self.persist()
        return True

    # ---- participant operations ----

    def add_participant(self, sid, name) -> Optional[Participant]:
        with self._lock:
            if self.phase == Phase.ENDED:
                return None
            existing = self.participants.get(sid)
            if existing is not None:
                return existing
            participant = Participant(sid, name)
            participant.score = self.carried_scores.get(participant.name, 0)
            self.participants[sid] = participant
            logger.info(f'[join] pin={self.pin} name={participant.name!r} score={participant.score}')
            self._send_status()
            return participant

    def submit_answer(self, sid, option_index) -> bool:
        with self._lock:
            if self.phase != Phase.QUESTION_ACTIVE:
                return False
            participant = self.participants.get(sid)
            if participant is None or participant.has_answered:
                return False
            choice = _option_index(option_index)
            if choice is None:
                return False

            participant.answered_at = self.clock()
            participant.choice = choice
            if 0 <= choice < len(self.tally):
                self.tally[choice] += 1
            self._send_status()

            totals = self.totals()
            if totals['joined'] > 0 and totals['answered'] == totals['joined']:
                logger.info(f'[auto-reveal] pin={self.pin} index={self.current_index} all {totals["joined"]} answered')
                self._reveal()
            return True

    def disconnect(self, sid) -> Optional[str]:
        """Returns 'host', 'participant' or None depending on who left."""
        with self._lock:
            if self.is_host(sid):
                self._cancel_deadline()
                self.phase = Phase.ENDED
                self.host_sid = None
                logger.info(f'[session-ended] pin={self.pin} host disconnected')
                self.broadcaster.to_session(self.pin, 'session-ended', {'pin': self.pin})
                return 'host'
            participant = self.participants.pop(sid, None)
            if participant is None:
                return None
            logger.info(f'[leave] pin={self.pin} name={participant.name!r}')
            self._send_status()
            return 'participant'
