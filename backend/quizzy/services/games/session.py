"""Live game session: question lifecycle, answers, scoring, leaderboard.

A session is driven by the Socket.IO handlers and by its own deadline
timer, which may run on another thread. Every mutation takes the
session's lock, and closing a question flips the status inside that lock,
so the all-answered path and the deadline path cannot both score a
question.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import GameAlreadyStartedError, NameTakenError, PreconditionError
from .quizzes import QuizSnapshot
from .scoring import LeaderboardEntry, Outcome, build_leaderboard, points_for


class GameStatus:
    WAITING = 'waiting'
    QUESTION = 'question'
    REVEAL = 'reveal'
    LEADERBOARD = 'leaderboard'
    FINISHED = 'finished'


@dataclass
class Player:
    sid: str
    username: str
    join_seq: int
    score: int = 0
    current_answer: Optional[int] = None
    answer_timestamp: Optional[float] = None

    def reset_answer(self) -> None:
        self.current_answer = None
        self.answer_timestamp = None


@dataclass(frozen=True)
class PlayerResult:
    username: str
    correct: bool
    points: int

    def to_dict(self) -> dict:
        return {'username': self.username, 'correct': self.correct, 'points': self.points}


@dataclass(frozen=True)
class QuestionResults:
    question_index: int
    correct_option_id: Optional[int]
    player_results: List[PlayerResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'question_index': self.question_index,
            'correct_option_id': self.correct_option_id,
            'player_results': [r.to_dict() for r in self.player_results],
        }


class GameSession:

    def __init__(self, game_code: str, admin_sid: str, quiz: QuizSnapshot,
                 clock: Callable[[], float] = time.time):
        self.game_code = game_code
        self.admin_sid = admin_sid
        self.quiz = quiz
        self.players: Dict[str, Player] = {}
        self.current_question_index = -1
        self.status = GameStatus.WAITING
        self.question_start_time: Optional[float] = None
        self.lock = threading.RLock()
        self._clock = clock
        self._join_counter = itertools.count()
        self._question_results: Dict[str, Outcome] = {}
        self._deadline = None
        self._deadline_index: Optional[int] = None

    @property
    def total_questions(self) -> int:
        return self.quiz.total_questions

    @property
    def timer_seconds(self) -> int:
        return self.quiz.timer_seconds

    @property
    def player_count(self) -> int:
        return len(self.players)

    # ---- roster ----

    def add_player(self, sid: str, username: str) -> Player:
        with self.lock:
            if self.status != GameStatus.WAITING:
                raise GameAlreadyStartedError()
            folded = username.casefold()
            if any(p.username.casefold() == folded for p in self.players.values()):
                raise NameTakenError()
            player = Player(sid=sid, username=username, join_seq=next(self._join_counter))
            self.players[sid] = player
            return player

    def remove_player(self, sid: str) -> Optional[Player]:
        with self.lock:
            return self.players.pop(sid, None)

    def has_player(self, sid: str) -> bool:
        return sid in self.players

    # ---- question lifecycle ----

    def start_next_question(self) -> Optional[dict]:
        """Open the next question and return its public payload.

        Returns None, leaving the status untouched, once every question has
        been shown; the caller decides whether that ends the game.
        """
        with self.lock:
            if self.status not in (GameStatus.WAITING, GameStatus.LEADERBOARD):
                raise PreconditionError(f'Cannot open a question while {self.status}')
            if self.current_question_index + 1 >= self.total_questions:
                self.current_question_index = self.total_questions - 1
                return None
            self.current_question_index += 1
            self.status = GameStatus.QUESTION
            self.question_start_time = self._clock()
            self._question_results = {}
            for player in self.players.values():
                player.reset_answer()
            question = self.quiz.questions[self.current_question_index]
            return {
                'question_index': self.current_question_index,
                'total_questions': self.total_questions,
                'question_text': question.text,
                'options': [o.to_public() for o in question.options],
                'timer_seconds': self.timer_seconds,
                'deadline': self.question_start_time + self.timer_seconds,
            }

    def submit_answer(self, sid: str, option_id: int) -> bool:
        with self.lock:
            if self.status != GameStatus.QUESTION:
                return False
            player = self.players.get(sid)
            if player is None or player.current_answer is not None:
                return False
            player.current_answer = option_id
            player.answer_timestamp = self._clock()
            return True

    def all_players_answered(self) -> bool:
        with self.lock:
            return all(p.current_answer is not None for p in self.players.values())

    def end_question(self) -> Optional[QuestionResults]:
        """Close the open question and score it.

        Only the first call for a question does anything; later calls (a
        deadline firing after early closure, say) return None.
        """
        with self.lock:
            if self.status != GameStatus.QUESTION:
                return None
            self.status = GameStatus.REVEAL
            self.cancel_deadline()

            question = self.quiz.questions[self.current_question_index]
            correct_option_id = question.correct_option_id
            results = []
            for player in self.players.values():
                correct = player.current_answer is not None and player.current_answer == correct_option_id
                time_taken = None
                if player.answer_timestamp is not None and self.question_start_time is not None:
                    time_taken = player.answer_timestamp - self.question_start_time
                points = points_for(correct, time_taken, self.timer_seconds)
                player.score += points
                self._question_results[player.sid] = Outcome(correct=correct, points=points)
                results.append(PlayerResult(player.username, correct, points))

            self.status = GameStatus.LEADERBOARD
            return QuestionResults(self.current_question_index, correct_option_id, results)

    def get_leaderboard(self) -> List[LeaderboardEntry]:
        with self.lock:
            return build_leaderboard(self.players.values(), self._question_results)

    def is_last_question(self) -> bool:
        return self.current_question_index >= self.total_questions - 1

    # ---- deadline ----

    def arm_deadline(self, scheduler, on_close: Callable[['GameSession', QuestionResults], None]) -> bool:
        """Schedule the close of the open question after its time budget.

        ``on_close`` receives the results only when the deadline is what
        closed the question. Arming the same question twice is a no-op.
        """
        with self.lock:
            if self.status != GameStatus.QUESTION:
                return False
            index = self.current_question_index
            if self._deadline is not None and self._deadline_index == index and self._deadline.pending:
                return False

            def _on_deadline():
                with self.lock:
                    if self.current_question_index != index:
                        return
                    results = self.end_question()
                    # Broadcast under the lock so results precede any next question
                    if results is not None:
                        on_close(self, results)

            self._deadline_index = index
            self._deadline = scheduler.call_later(
                self.timer_seconds,
                _on_deadline,
                label=f"game={self.game_code} question={index}",
            )
            return True

    def cancel_deadline(self) -> None:
        with self.lock:
            if self._deadline is not None:
                self._deadline.cancel()
            self._deadline = None
            self._deadline_index = None

    def teardown(self) -> None:
        self.cancel_deadline()

    def finish(self) -> Optional[List[LeaderboardEntry]]:
        """Move to the terminal state and return the final standings.

        Returns None when the session had already finished.
        """
        with self.lock:
            if self.status == GameStatus.FINISHED:
                return None
            self.teardown()
            self.status = GameStatus.FINISHED
            return self.get_leaderboard()

    def summary(self) -> dict:
        with self.lock:
            return {
                'game_code': self.game_code,
                'quiz_title': self.quiz.title,
                'status': self.status,
                'player_count': self.player_count,
                'question_index': self.current_question_index,
                'total_questions': self.total_questions,
                'timer_seconds': self.timer_seconds,
            }
