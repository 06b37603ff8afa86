"""Errors raised by game operations.

Routes render these as ``{"error": message, "code": code}`` with the
exception's ``status_code``.
"""


class GameError(Exception):
    status_code = 400
    code = 'GAME_ERROR'

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class AuthorizationError(GameError):
    status_code = 403
    code = 'FORBIDDEN'


class NotFoundError(GameError):
    status_code = 404
    code = 'NOT_FOUND'


class InvalidActionError(GameError):
    status_code = 400
    code = 'INVALID_ACTION'


class InvalidTransitionError(GameError):
    status_code = 409
    code = 'INVALID_TRANSITION'
