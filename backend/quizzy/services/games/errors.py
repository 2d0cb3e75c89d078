"""Error taxonomy for live games.

Every error raised by the game layer is a :class:`GameError`. Its ``kind``
tells the transport how to report it; none of them are fatal to the process.
"""


class GameError(Exception):
    kind = 'error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.default_message)

    default_message = 'Request rejected'

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {'message': self.message, 'kind': self.kind}


class ValidationError(GameError):
    """Malformed or missing fields in an inbound payload."""
    kind = 'validation'
    default_message = 'Invalid payload'


class PreconditionError(GameError):
    """The operation is not valid in the game's current state."""
    kind = 'precondition'
    default_message = 'Operation not allowed right now'


class NotFoundError(GameError):
    kind = 'not_found'
    default_message = 'Game not found'


class AuthenticationError(GameError):
    kind = 'authentication'
    default_message = 'Authentication required'


class QuizNotFoundError(NotFoundError):
    default_message = 'Quiz not found'


class EmptyQuizError(PreconditionError):
    default_message = 'Quiz has no questions'


class NameTakenError(PreconditionError):
    default_message = 'Username already taken'


class GameAlreadyStartedError(PreconditionError):
    default_message = 'Game has already started'
