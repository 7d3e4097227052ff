"""Shape-checking of host supplied question lists.

Each raw entry yields either ``Valid`` (a normalized ``Question``) or
``Rejected`` with a reason. Whether rejections are reported back to the host
or silently dropped is a policy decision made by the caller.
"""
from typing import List, Tuple, Union

from quizlive.models import OPTION_COUNT, Question

POLICY_DROP = 'drop'
POLICY_REPORT = 'report'


class Valid:
    def __init__(self, question: Question):
        self.question = question


class Rejected:
    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason

    def to_dict(self):
        return {'index': self.index, 'reason': self.reason}


def _first(raw: dict, *keys):
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _as_index(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _time_limit(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    if seconds != seconds or seconds <= 0 or seconds == float('inf'):
        return default
    return max(1, int(round(seconds)))


def validate_question(raw, index: int, default_time_limit: int) -> Union[Valid, Rejected]:
    if not isinstance(raw, dict):
        return Rejected(index, 'entry is not an object')

    text = _first(raw, 'question', 'text')
    if not isinstance(text, str) or not text.strip():
        return Rejected(index, 'missing question text')

    options = _first(raw, 'options', 'choices')
    if not isinstance(options, (list, tuple)) or len(options) != OPTION_COUNT:
        return Rejected(index, f'expected exactly {OPTION_COUNT} options')
    cleaned = []
    for option in options:
        if isinstance(option, bool) or not isinstance(option, (str, int, float)):
            return Rejected(index, 'options must be text')
        option = str(option).strip()
        if not option:
            return Rejected(index, 'options must not be empty')
        cleaned.append(option)

    correct = _as_index(_first(raw, 'correctIndex', 'answerIndex', 'correct'))
    if correct is None or not 0 <= correct < OPTION_COUNT:
        return Rejected(index, 'correct index out of range')

    explanation = raw.get('explanation')
    explanation = explanation.strip() if isinstance(explanation, str) else ''

    return Valid(Question(
        text=text.strip(),
        options=cleaned,
        correct_index=correct,
        time_limit_sec=_time_limit(_first(raw, 'timeLimitSec', 'timeLimit', 'time'), default_time_limit),
        explanation=explanation,
    ))


def normalize_questions(raw_questions, default_time_limit: int) -> Tuple[List[Question], List[Rejected]]:
    """Split a raw payload into accepted questions and rejections."""
    if not isinstance(raw_questions, (list, tuple)):
        return [], [Rejected(-1, 'questions must be a list')]
    questions, rejected = [], []
    for i, raw in enumerate(raw_questions):
        result = validate_question(raw, i, default_time_limit)
        if isinstance(result, Valid):
            questions.append(result.question)
        else:
            rejected.append(result)
    return questions, rejected
