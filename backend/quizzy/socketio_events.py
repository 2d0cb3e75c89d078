from functools import wraps

from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room

from quizzy import registry, socketio
from quizzy.services.games.errors import AuthenticationError, GameError, NotFoundError, PreconditionError
from quizzy.services.games.messages import parse_message
from quizzy.services.games.quizzes import load_quiz_snapshot
from quizzy.services.games.session import GameSession, GameStatus, QuestionResults

NAMESPACE = '/ws'


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room(game_code: str) -> str:
    return f"game:{game_code}"


def _broadcast(session: GameSession, event: str, payload: dict) -> None:
    # socketio.emit since this may run from the deadline background task
    socketio.emit(event, payload, to=_room(session.game_code), namespace=NAMESPACE)


def _parse(event, data):
    return parse_message(
        event,
        data,
        max_username_length=int(current_app.config.get('MAX_USERNAME_LENGTH', 24)),
    )


def _reports_errors(event):
    """Turn a GameError into an ``error`` event for the calling socket only."""
    def decorator(handler):
        @wraps(handler)
        def wrapper(*args):
            try:
                return handler(*args)
            except GameError as exc:
                current_app.logger.info(
                    f"[rejected] event={event} sid={_get_sid()} kind={exc.kind} message={exc.message}"
                )
                emit('error', exc.to_dict())
        return wrapper
    return decorator


def _admin_session() -> GameSession:
    session = registry.get_by_admin(_get_sid())
    if session is None:
        raise NotFoundError('No game found')
    return session


def _leaderboard_payload(entries) -> list:
    return [e.to_dict() for e in entries]


# ---- game flow helpers ----

def _on_question_closed(session: GameSession, results: QuestionResults) -> None:
    _broadcast(session, 'question_end', results.to_dict())
    _broadcast(session, 'leaderboard_update', {'leaderboard': _leaderboard_payload(session.get_leaderboard())})


def _close_question(session: GameSession) -> None:
    with session.lock:
        results = session.end_question()
        if results is not None:
            current_app.logger.info(
                f"[question-end] game={session.game_code} question={results.question_index} early=True"
            )
            _on_question_closed(session, results)


def _open_next_question(session: GameSession) -> None:
    with session.lock:
        payload = session.start_next_question()
        if payload is None:
            _finish_game(session, 'completed')
            return
        _broadcast(session, 'question_start', payload)
        session.arm_deadline(registry.scheduler, _on_question_closed)
        current_app.logger.info(
            f"[question-start] game={session.game_code} question={payload['question_index']} "
            f"timer={payload['timer_seconds']}s"
        )


def _finish_game(session: GameSession, reason: str) -> None:
    """Single teardown path: final standings, registry removal, broadcast."""
    leaderboard = session.finish()
    if leaderboard is None:
        return
    registry.remove(session.game_code)
    _broadcast(session, 'game_end', {'leaderboard': _leaderboard_payload(leaderboard), 'reason': reason})
    socketio.close_room(_room(session.game_code), namespace=NAMESPACE)
    current_app.logger.info(f"[game-end] game={session.game_code} reason={reason} players={session.player_count}")


# ---- handlers ----

def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    sid = _get_sid()
    session = registry.get_by_admin(sid)
    if session is not None:
        _finish_game(session, 'admin_disconnected')
        return

    left = registry.leave(sid)
    if left is None:
        return
    session, player = left
    _broadcast(session, 'player_left', {'username': player.username, 'player_count': session.player_count})
    current_app.logger.info(f"[player-left] game={session.game_code} username={player.username}")


@_reports_errors('create_game')
def handle_create_game(data=None):
    if not current_user.is_authenticated:
        raise AuthenticationError()
    message = _parse('create_game', data)
    sid = _get_sid()

    # One game per admin connection; a repeat request gets the same game
    existing = registry.get_by_admin(sid)
    if existing is not None:
        emit('game_created', {'game_code': existing.game_code})
        return
    if registry.get_by_player(sid) is not None:
        raise PreconditionError('Players cannot host a game')

    quiz = load_quiz_snapshot(message.quiz_id)
    session = registry.create(quiz, sid)
    join_room(_room(session.game_code))
    emit('game_created', {'game_code': session.game_code})
    current_app.logger.info(
        f"[game-created] code={session.game_code} quiz={quiz.quiz_id} admin={current_user.id}"
    )


@_reports_errors('join_game')
def handle_join_game(data=None):
    message = _parse('join_game', data)
    session = registry.join(message.game_code, _get_sid(), message.username)
    join_room(_room(session.game_code))
    _broadcast(session, 'player_joined', {'username': message.username, 'player_count': session.player_count})
    emit('game_status', {
        'game_code': session.game_code,
        'status': session.status,
        'player_count': session.player_count,
    })
    current_app.logger.info(f"[player-joined] game={session.game_code} username={message.username}")


@_reports_errors('start_game')
def handle_start_game(data=None):
    _parse('start_game', data)
    session = _admin_session()
    with session.lock:
        if session.status != GameStatus.WAITING:
            raise PreconditionError('Game has already started')
        if session.player_count == 0:
            raise PreconditionError('No players have joined')
        _open_next_question(session)


@_reports_errors('submit_answer')
def handle_submit_answer(data=None):
    message = _parse('submit_answer', data)
    sid = _get_sid()
    session = registry.get_by_player(sid)
    if session is None:
        raise NotFoundError('You are not in a game')
    with session.lock:
        if not session.submit_answer(sid, message.option_id):
            if session.status != GameStatus.QUESTION:
                raise PreconditionError('No question is open')
            raise PreconditionError('You already answered this question')
        if session.all_players_answered():
            _close_question(session)


@_reports_errors('next_question')
def handle_next_question(data=None):
    _parse('next_question', data)
    session = _admin_session()
    with session.lock:
        if session.status == GameStatus.WAITING:
            raise PreconditionError('Game has not started')
        if session.status == GameStatus.QUESTION:
            # Close the open question first; unless it was the last, the next call advances
            _close_question(session)
            if not session.is_last_question():
                return
        if session.is_last_question():
            _finish_game(session, 'completed')
            return
        _open_next_question(session)


@_reports_errors('end_game')
def handle_end_game(data=None):
    _parse('end_game', data)
    _finish_game(_admin_session(), 'ended_by_admin')


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('create_game', handle_create_game, namespace=namespace)
    socketio.on_event('join_game', handle_join_game, namespace=namespace)
    socketio.on_event('start_game', handle_start_game, namespace=namespace)
    socketio.on_event('submit_answer', handle_submit_answer, namespace=namespace)
    socketio.on_event('next_question', handle_next_question, namespace=namespace)
    socketio.on_event('end_game', handle_end_game, namespace=namespace)
