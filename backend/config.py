import os


def _flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Remote snapshot store; when unset the in-memory backend is used
    REDIS_URL = os.environ.get('REDIS_URL') or None
    QUIZ_STATE_TTL = int(os.environ.get('QUIZ_STATE_TTL', str(6 * 60 * 60)))
    QUIZ_STATE_PREFIX = os.environ.get('QUIZ_STATE_PREFIX', 'quiz:state:')
    # Applied when a question has no usable time limit
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get('DEFAULT_TIME_LIMIT_SEC', '20'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    # 'drop' silently filters malformed questions, 'report' also tells the host why
    QUESTION_REJECT_POLICY = os.environ.get('QUESTION_REJECT_POLICY', 'drop')
    REPORT_UNAUTHORIZED = _flag('REPORT_UNAUTHORIZED')
    # Server-side reveal at the question deadline. Off: the deadline is advisory only.
    ENFORCE_DEADLINE = _flag('ENFORCE_DEADLINE')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
