class SessionNotFound(LookupError):
    """No live session (or durable snapshot) exists for a PIN."""

    code = 'not_found'

    def __init__(self, pin, message='session not found'):
        super().__init__(f'{message}: {pin}')
        self.pin = pin
        self.message = message

    def to_dict(self):
        return {'code': self.code, 'message': self.message, 'pin': self.pin}
