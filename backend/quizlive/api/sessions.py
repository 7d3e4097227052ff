from flask import Blueprint, current_app, jsonify

from quizlive.exceptions import SessionNotFound

sessions = Blueprint('sessions', __name__)


def _registry():
    return current_app.extensions['quiz_registry']


@sessions.errorhandler(SessionNotFound)
def handle_not_found(exc):
    return jsonify({'ok': False, 'error': exc.message, 'pin': exc.pin}), 404


@sessions.route('/<string:pin>/resume', methods=['POST'])
def resume_session(pin):
    """
    Rebuilds a session from its last durable snapshot so a new host can attach.
    """
    room = _registry().resume(pin)
    current_app.logger.info(f'[http-resume] pin={room.pin} index={room.current_index}')
    return jsonify({
        'ok': True,
        'pin': room.pin,
        'currentIndex': room.current_index,
        'carriedScores': [[name, score] for name, score in room.carried_scores.items()],
    })


@sessions.route('/<string:pin>/snapshot', methods=['GET'])
def get_snapshot(pin):
    """
    Returns the live snapshot, or the last durable one when no session is running.
    """
    data = _registry().snapshot(pin)
    if data is None:
        raise SessionNotFound(pin, 'no snapshot')
    return jsonify(data)
