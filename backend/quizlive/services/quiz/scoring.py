import math
from typing import Optional

MIN_POINTS = 200
MAX_POINTS = 1000
POINT_STEP = 50


def round_to_step(value: float, step: int = POINT_STEP) -> int:
    """Round to the nearest multiple of ``step``, halves going up."""
    return int(math.floor(value / step + 0.5)) * step


def score(question, answered_at: Optional[int], question_started_at: Optional[int],
          chosen_index: Optional[int]) -> int:
    """Points earned for one answer.

    Wrong or missing answers earn 0. A correct answer earns between 200
    (at the deadline) and 1000 (instantly), scaled linearly by the time left
    and rounded to the nearest 50. Timestamps are epoch milliseconds.
    """
    if chosen_index is None or chosen_index != question.correct_index:
        return 0
    duration_ms = question.time_limit_sec * 1000
    if duration_ms <= 0 or answered_at is None or question_started_at is None:
        speed_factor = 1.0
    else:
        elapsed = min(max(answered_at - question_started_at, 0), duration_ms)
        speed_factor = 1 - elapsed / duration_ms
    raw = MIN_POINTS + (MAX_POINTS - MIN_POINTS) * speed_factor
    return round_to_step(raw)
