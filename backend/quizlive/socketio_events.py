from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from quizlive import socketio
from quizlive.broadcast import session_room
from quizlive.exceptions import SessionNotFound
from quizlive.models import Phase
from quizlive.services.quiz.validation import POLICY_REPORT


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _registry():
    return current_app.extensions['quiz_registry']


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def _pin(data):
    pin = _payload(data).get('pin')
    return str(pin).strip() if pin is not None else None


def _host_room(data):
    """Room for a host-only event, or None when it should be ignored."""
    room = _registry().get(_pin(data))
    if room is None or room.phase == Phase.ENDED:
        return None
    if not room.is_host(_get_sid()):
        if current_app.config.get('REPORT_UNAUTHORIZED'):
            emit('error', {'code': 'forbidden', 'message': 'host only', 'pin': room.pin})
        return None
    return room


def _switch_room(previous, room) -> None:
    """Move the caller's Socket.IO room membership from ``previous`` to ``room``."""
    if previous is not None and previous != room.pin:
        leave_room(session_room(previous))
    join_room(session_room(room.pin))


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to quiz server'})


def handle_disconnect(reason=None):
    sid = _get_sid()
    role = _registry().disconnect(sid)
    if role:
        current_app.logger.info(f'[disconnect] sid={sid} role={role}')


def handle_create_session(data=None):
    sid = _get_sid()
    previous = _registry().pin_for(sid)
    room = _registry().create(sid)
    _switch_room(previous, room)
    emit('session-created', {'pin': room.pin})


def handle_load_quiz(data=None):
    room = _host_room(data)
    if room is None:
        return
    result = room.load_quiz(_get_sid(), _payload(data).get('questions'))
    if result is None:
        return
    count, rejected = result
    ack = {'pin': room.pin, 'count': count, 'total': count + len(rejected)}
    if current_app.config.get('QUESTION_REJECT_POLICY') == POLICY_REPORT:
        ack['rejected'] = [r.to_dict() for r in rejected]
    emit('quiz-loaded', ack)


def handle_next_question(data=None):
    room = _host_room(data)
    if room is not None:
        room.next_question(_get_sid())


def handle_reveal(data=None):
    room = _host_room(data)
    if room is not None:
        room.reveal(_get_sid())


def handle_attach(data=None):
    sid = _get_sid()
    previous = _registry().pin_for(sid)
    try:
        room = _registry().attach(sid, _pin(data))
    except SessionNotFound as exc:
        emit('error', exc.to_dict())
        return
    if not room.is_host(sid):
        if current_app.config.get('REPORT_UNAUTHORIZED'):
            emit('error', {'code': 'forbidden', 'message': 'session already has a host', 'pin': room.pin})
        return
    _switch_room(previous, room)
    emit('attached', {
        'pin': room.pin,
        'currentIndex': room.current_index,
        'phase': room.phase,
        'questionCount': len(room.questions),
        'carriedScores': [[name, score] for name, score in room.carried_scores.items()],
    })
    emit('status', room.status_payload())


def handle_join(data=None):
    sid = _get_sid()
    previous = _registry().pin_for(sid)
    try:
        room, participant = _registry().join(sid, _pin(data), _payload(data).get('name'))
    except SessionNotFound as exc:
        emit('error', exc.to_dict())
        return
    _switch_room(previous, room)
    emit('joined', {
        'pin': room.pin,
        'name': participant.name,
        'score': participant.score,
        'phase': room.phase,
    })
    # Late joiners get the open question straight away
    if room.phase == Phase.QUESTION_ACTIVE:
        payload = room.question_payload()
        if payload is not None:
            emit('question-started', payload)


def handle_answer(data=None):
    room = _registry().get(_pin(data))
    if room is None:
        return
    room.submit_answer(_get_sid(), _payload(data).get('optionIndex'))


def handle_leave(data=None):
    sid = _get_sid()
    room = _registry().room_for(sid)
    if room is None:
        return
    leave_room(session_room(room.pin))
    _registry().disconnect(sid)
    emit('left', {'pin': room.pin})


def handle_ping(data=None):
    emit('pong', data or {})


def handle_error(exc):
    # Logged at the process boundary; the server keeps serving other events
    current_app.logger.exception(f'[event-error] sid={getattr(request, "sid", None)} event={getattr(request, "event", None)}')


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('create-session', handle_create_session, namespace=namespace)
    socketio.on_event('load-quiz', handle_load_quiz, namespace=namespace)
    socketio.on_event('next-question', handle_next_question, namespace=namespace)
    socketio.on_event('reveal', handle_reveal, namespace=namespace)
    socketio.on_event('attach', handle_attach, namespace=namespace)
    socketio.on_event('join', handle_join, namespace=namespace)
    socketio.on_event('answer', handle_answer, namespace=namespace)
    socketio.on_event('leave', handle_leave, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
    socketio.on_error(namespace)(handle_error)
