import pytest

from quizzy import registry
from quizzy.services.games.session import GameStatus

from conftest import make_quiz_payload

NS = '/ws'


def drain(sio):
    """Collect received events by name, emptying the client's queue."""
    received = {}
    for pkt in sio.get_received(NS):
        received.setdefault(pkt['name'], []).append(pkt['args'][0] if pkt['args'] else None)
    return received


def option_id(quiz, question_index, correct=True):
    options = quiz['questions'][question_index]['options']
    return next(o['id'] for o in options if o['is_correct'] == correct)


def create_game(admin_sio, quiz_id):
    admin_sio.emit('create_game', {'quiz_id': quiz_id}, namespace=NS)
    received = drain(admin_sio)
    assert 'error' not in received, received.get('error')
    return received['game_created'][0]['game_code']


def join(sio, code, username):
    sio.emit('join_game', {'game_code': code, 'username': username}, namespace=NS)


@pytest.fixture()
def game(admin_sio, sio_factory, quiz):
    """A game with Alice and Bob joined, still waiting to start."""
    code = create_game(admin_sio, quiz['id'])
    alice = sio_factory()
    bob = sio_factory()
    join(alice, code, 'Alice')
    join(bob, code, 'Bob')
    for sio in (admin_sio, alice, bob):
        drain(sio)
    return code, alice, bob


def test_socket_connect(sio_factory):
    sio = sio_factory()
    assert sio.is_connected(NS)


def test_create_game_requires_admin_login(sio_factory, quiz):
    anonymous = sio_factory()
    anonymous.emit('create_game', {'quiz_id': quiz['id']}, namespace=NS)
    received = drain(anonymous)
    assert received['error'][0]['kind'] == 'authentication'
    assert len(registry) == 0


def test_create_game_twice_returns_same_code(admin_sio, quiz):
    first = create_game(admin_sio, quiz['id'])
    second = create_game(admin_sio, quiz['id'])
    assert first == second
    assert len(registry) == 1


def test_create_game_for_unknown_or_empty_quiz(admin_sio, admin_client):
    admin_sio.emit('create_game', {'quiz_id': 999}, namespace=NS)
    assert drain(admin_sio)['error'][0]['kind'] == 'not_found'

    empty = admin_client.post('/api/quizzes', json=make_quiz_payload(questions=0)).get_json()
    admin_sio.emit('create_game', {'quiz_id': empty['id']}, namespace=NS)
    error = drain(admin_sio)['error'][0]
    assert error['message'] == 'Quiz has no questions'
    assert len(registry) == 0


def test_create_game_validates_payload(admin_sio):
    admin_sio.emit('create_game', {'quiz_id': 'abc'}, namespace=NS)
    assert drain(admin_sio)['error'][0]['kind'] == 'validation'


def test_join_broadcasts_player_count(admin_sio, sio_factory, quiz, client):
    code = create_game(admin_sio, quiz['id'])
    players = [sio_factory() for _ in range(3)]
    for n, (sio, name) in enumerate(zip(players, ['Alice', 'Bob', 'Cara']), start=1):
        join(sio, code, name)
        assert drain(admin_sio)['player_joined'][-1] == {'username': name, 'player_count': n}
        status = drain(sio)['game_status'][0]
        assert status['status'] == GameStatus.WAITING
        assert status['player_count'] == n

    summary = client.get(f'/api/games/{code}').get_json()
    assert summary['player_count'] == 3
    assert summary['status'] == 'waiting'


def test_join_rejects_case_insensitive_duplicate(game, sio_factory):
    code, _, _ = game
    copycat = sio_factory()
    join(copycat, code, 'aLiCe')
    received = drain(copycat)
    assert received['error'][0]['message'] == 'Username already taken'
    assert registry.get(code).player_count == 2


def test_join_unknown_code_and_bad_payload(sio_factory):
    sio = sio_factory()
    join(sio, 'ZZZZZZ', 'Alice')
    assert drain(sio)['error'][0]['kind'] == 'not_found'
    sio.emit('join_game', {'game_code': 'ZZZZZZ'}, namespace=NS)
    assert drain(sio)['error'][0]['kind'] == 'validation'


def test_start_requires_players_and_admin(admin_sio, sio_factory, quiz):
    code = create_game(admin_sio, quiz['id'])
    admin_sio.emit('start_game', namespace=NS)
    assert drain(admin_sio)['error'][0]['message'] == 'No players have joined'

    player = sio_factory()
    join(player, code, 'Alice')
    drain(player)
    player.emit('start_game', namespace=NS)
    assert drain(player)['error'][0]['message'] == 'No game found'
    assert registry.get(code).status == GameStatus.WAITING


def test_question_start_hides_correct_option(game, admin_sio, quiz):
    code, alice, _ = game
    admin_sio.emit('start_game', namespace=NS)
    question = drain(alice)['question_start'][0]
    assert question['question_index'] == 0
    assert question['total_questions'] == 2
    assert question['timer_seconds'] == 20
    assert all(set(o) == {'id', 'text'} for o in question['options'])
    assert len(registry.scheduler.pending) == 1


def test_join_after_start_is_rejected(game, admin_sio, sio_factory):
    code, _, _ = game
    admin_sio.emit('start_game', namespace=NS)
    late = sio_factory()
    join(late, code, 'Late')
    assert drain(late)['error'][0]['message'] == 'Game has already started'


def test_scenario_all_answered_closes_immediately(game, admin_sio, quiz, clock, scheduler):
    code, alice, bob = game
    admin_sio.emit('start_game', namespace=NS)
    clock.advance(2)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    clock.advance(3)
    bob.emit('submit_answer', {'option_id': option_id(quiz, 0, correct=False)}, namespace=NS)

    received = drain(alice)
    end = received['question_end'][0]
    assert end['correct_option_id'] == option_id(quiz, 0)
    results = {r['username']: r for r in end['player_results']}
    assert results['Alice']['correct'] is True and results['Alice']['points'] > 0
    assert results['Bob']['correct'] is False and results['Bob']['points'] == 0

    leaderboard = received['leaderboard_update'][0]['leaderboard']
    assert [e['username'] for e in leaderboard] == ['Alice', 'Bob']
    assert registry.get(code).status == GameStatus.LEADERBOARD
    assert scheduler.pending == []

    # The cancelled deadline firing late must not score again
    scheduler.fire_all()
    assert 'question_end' not in drain(alice)
    scores = {p.username: p.score for p in registry.get(code).players.values()}
    assert scores == {'Alice': results['Alice']['points'], 'Bob': 0}


def test_scenario_deadline_closes_with_unanswered_player(game, admin_sio, quiz, clock, scheduler):
    code, alice, bob = game
    admin_sio.emit('start_game', namespace=NS)
    clock.advance(2)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    assert 'question_end' not in drain(bob)

    clock.advance(18)
    assert scheduler.fire_pending() == 1

    received = drain(bob)
    results = {r['username']: r for r in received['question_end'][0]['player_results']}
    assert results['Bob'] == {'username': 'Bob', 'correct': False, 'points': 0}
    assert results['Alice']['points'] > 0
    leaderboard = received['leaderboard_update'][0]['leaderboard']
    assert [e['username'] for e in leaderboard] == ['Alice', 'Bob']
    assert set(leaderboard[1]) == {'rank', 'username', 'score', 'last_correct', 'last_points'}
    assert leaderboard[1]['last_correct'] is False

    # Answers after the close are rejected, not scored
    bob.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    assert drain(bob)['error'][0]['message'] == 'No question is open'


def test_duplicate_answer_is_rejected(game, admin_sio, quiz):
    code, alice, _ = game
    admin_sio.emit('start_game', namespace=NS)
    drain(alice)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0, correct=False)}, namespace=NS)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    received = drain(alice)
    assert received['error'][0]['message'] == 'You already answered this question'
    players = registry.get(code).players.values()
    assert [p.current_answer for p in players if p.username == 'Alice'] == [option_id(quiz, 0, correct=False)]


def test_scenario_next_after_last_question_finishes(game, admin_sio, quiz, client):
    code, alice, bob = game
    admin_sio.emit('start_game', namespace=NS)
    for q in range(2):
        alice.emit('submit_answer', {'option_id': option_id(quiz, q)}, namespace=NS)
        bob.emit('submit_answer', {'option_id': option_id(quiz, q)}, namespace=NS)
        assert registry.get(code).status == GameStatus.LEADERBOARD
        admin_sio.emit('next_question', namespace=NS)

    received = drain(alice)
    assert len(received['question_start']) == 2
    assert len(received['question_end']) == 2
    final = received['game_end'][0]
    assert final['reason'] == 'completed'
    assert [e['username'] for e in final['leaderboard']] == ['Alice', 'Bob']

    assert registry.get(code) is None
    assert client.get(f'/api/games/{code}').status_code == 404
    admin_sio.emit('next_question', namespace=NS)
    assert drain(admin_sio)['error'][0]['kind'] == 'not_found'


def test_next_question_closes_an_open_question_first(game, admin_sio, quiz, scheduler):
    code, alice, _ = game
    admin_sio.emit('start_game', namespace=NS)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    admin_sio.emit('next_question', namespace=NS)

    received = drain(alice)
    assert len(received['question_end']) == 1
    assert len(received['question_start']) == 1
    assert registry.get(code).status == GameStatus.LEADERBOARD
    assert scheduler.pending == []

    admin_sio.emit('next_question', namespace=NS)
    assert drain(alice)['question_start'][0]['question_index'] == 1


def test_next_question_on_open_last_question_finishes_game(game, admin_sio, quiz, scheduler):
    code, alice, _ = game
    admin_sio.emit('start_game', namespace=NS)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    admin_sio.emit('next_question', namespace=NS)
    admin_sio.emit('next_question', namespace=NS)
    drain(alice)

    # Question 2 of 2 is open and Bob has not answered
    alice.emit('submit_answer', {'option_id': option_id(quiz, 1)}, namespace=NS)
    admin_sio.emit('next_question', namespace=NS)

    received = drain(alice)
    assert received['question_end'][0]['question_index'] == 1
    assert received['game_end'][0]['reason'] == 'completed'
    assert registry.get(code) is None
    assert scheduler.pending == []


def test_scenario_admin_disconnect_mid_question(game, admin_sio, quiz, scheduler):
    code, alice, bob = game
    admin_sio.emit('start_game', namespace=NS)
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    bob.emit('submit_answer', {'option_id': option_id(quiz, 0, correct=False)}, namespace=NS)
    admin_sio.emit('next_question', namespace=NS)
    drain(alice)

    admin_sio.disconnect(namespace=NS)

    received = drain(alice)
    final = received['game_end'][0]
    assert final['reason'] == 'admin_disconnected'
    assert [e['username'] for e in final['leaderboard']] == ['Alice', 'Bob']
    assert final['leaderboard'][0]['score'] > 0
    assert registry.get(code) is None
    assert scheduler.pending == []

    scheduler.fire_all()
    assert drain(alice) == {}


def test_end_game_by_admin(game, admin_sio):
    code, alice, _ = game
    admin_sio.emit('end_game', namespace=NS)
    final = drain(alice)['game_end'][0]
    assert final['reason'] == 'ended_by_admin'
    assert registry.get(code) is None


def test_player_disconnect_broadcasts_and_leaves_roster(game, admin_sio):
    code, alice, bob = game
    bob.disconnect(namespace=NS)
    left = drain(admin_sio)['player_left'][0]
    assert left == {'username': 'Bob', 'player_count': 1}
    assert [p.username for p in registry.get(code).players.values()] == ['Alice']


def test_disconnect_mid_question_shrinks_the_answer_check(game, admin_sio, quiz):
    code, alice, bob = game
    admin_sio.emit('start_game', namespace=NS)
    bob.disconnect(namespace=NS)
    # Leaving does not close the question by itself
    assert registry.get(code).status == GameStatus.QUESTION
    alice.emit('submit_answer', {'option_id': option_id(quiz, 0)}, namespace=NS)
    assert registry.get(code).status == GameStatus.LEADERBOARD
