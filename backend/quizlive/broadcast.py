def session_room(pin) -> str:
    return f'session:{pin}'


class SocketBroadcaster:
    """Outbound side of the event transport.

    Rooms only talk to this object, so the state machine never imports
    Flask-SocketIO directly.
    """

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def to_session(self, pin, event: str, payload=None) -> None:
        self.socketio.emit(event, payload if payload is not None else {}, to=session_room(pin), namespace=self.namespace)

    def to_connection(self, sid, event: str, payload=None) -> None:
        if not sid:
            return
        self.socketio.emit(event, payload if payload is not None else {}, to=sid, namespace=self.namespace)
