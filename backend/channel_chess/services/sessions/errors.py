"""
Session error hierarchy.

Every rejected transition raises a subclass of SessionError. Rejections are
atomic: the session keeps its prior state and no value moves. The ``code``
is stable and machine-readable so a client can tell a wrong turn apart from
stale data apart from a forged signature.
"""

__all__ = [
    "AlreadyStarted",
    "GameAlreadyStarted",
    "InvalidInput",
    "InvalidSignature",
    "InvalidStake",
    "NotParticipant",
    "SessionClosed",
    "SessionError",
    "StakeMismatch",
    "StaleSequence",
    "TimeoutNotReached",
    "WrongTurn",
]


class SessionError(Exception):
    """Base exception for rejected session operations.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        status: HTTP status used by the API layer
    """
    code = "SessionError"
    status = 400
    default_message = "Operation rejected"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class InvalidInput(SessionError):
    code = "InvalidInput"
    status = 400
    default_message = "Invalid request"


class InvalidStake(SessionError):
    code = "InvalidStake"
    status = 400
    default_message = "Initial deposit must equal a positive stake"


class StakeMismatch(SessionError):
    code = "StakeMismatch"
    status = 400
    default_message = "Deposit does not match the session stake"


class AlreadyStarted(SessionError):
    code = "AlreadyStarted"
    status = 409
    default_message = "Session is not waiting for an opponent"


class GameAlreadyStarted(SessionError):
    code = "GameAlreadyStarted"
    status = 409
    default_message = "Both stakes are committed; the session can no longer be cancelled"


class SessionClosed(SessionError):
    code = "SessionClosed"
    status = 409
    default_message = "Session is not active"


class StaleSequence(SessionError):
    code = "StaleSequence"
    status = 409
    default_message = "Update does not extend the latest accepted state"


class InvalidSignature(SessionError):
    code = "InvalidSignature"
    status = 403
    default_message = "Signature was not produced by the expected player"


class NotParticipant(SessionError):
    code = "NotParticipant"
    status = 403
    default_message = "Caller is not a participant of this session"


class WrongTurn(SessionError):
    code = "WrongTurn"
    status = 403
    default_message = "It is not this player's turn"


class TimeoutNotReached(SessionError):
    code = "TimeoutNotReached"
    status = 409
    default_message = "The opponent has not been idle longer than the timeout interval"
