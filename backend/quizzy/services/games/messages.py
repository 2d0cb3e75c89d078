"""Inbound Socket.IO messages, validated before they reach a session."""

from dataclasses import dataclass

from .errors import ValidationError


def _require_int(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{key} must be an integer')
    return value


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{key} is required')
    return value.strip()


@dataclass(frozen=True)
class CreateGame:
    quiz_id: int

    @classmethod
    def from_payload(cls, data: dict, **_):
        quiz_id = _require_int(data, 'quiz_id')
        if quiz_id <= 0:
            raise ValidationError('quiz_id must be positive')
        return cls(quiz_id)


@dataclass(frozen=True)
class JoinGame:
    game_code: str
    username: str

    @classmethod
    def from_payload(cls, data: dict, max_username_length: int = 24, **_):
        game_code = _require_str(data, 'game_code').upper()
        if not game_code.isalnum():
            raise ValidationError('game_code must be letters and digits')
        username = _require_str(data, 'username')
        if len(username) > max_username_length:
            raise ValidationError(f'username must be at most {max_username_length} characters')
        return cls(game_code, username)


@dataclass(frozen=True)
class StartGame:
    @classmethod
    def from_payload(cls, data: dict, **_):
        return cls()


@dataclass(frozen=True)
class SubmitAnswer:
    option_id: int

    @classmethod
    def from_payload(cls, data: dict, **_):
        return cls(_require_int(data, 'option_id'))


@dataclass(frozen=True)
class NextQuestion:
    @classmethod
    def from_payload(cls, data: dict, **_):
        return cls()


@dataclass(frozen=True)
class EndGame:
    @classmethod
    def from_payload(cls, data: dict, **_):
        return cls()


MESSAGE_TYPES = {
    'create_game': CreateGame,
    'join_game': JoinGame,
    'start_game': StartGame,
    'submit_answer': SubmitAnswer,
    'next_question': NextQuestion,
    'end_game': EndGame,
}


def parse_message(event: str, data, **options):
    """Build the message variant for ``event`` from a raw payload."""
    message_type = MESSAGE_TYPES.get(event)
    if message_type is None:
        raise ValidationError(f'Unknown event {event}')
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Payload must be an object')
    return message_type.from_payload(data, **options)
