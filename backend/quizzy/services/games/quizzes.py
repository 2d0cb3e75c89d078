"""Read-only quiz snapshots handed to live game sessions."""

from dataclasses import dataclass
from typing import Optional, Tuple

from quizzy import db
from quizzy.models import Quiz
from .errors import EmptyQuizError, QuizNotFoundError


@dataclass(frozen=True)
class OptionSnapshot:
    id: int
    text: str
    is_correct: bool

    def to_public(self) -> dict:
        # Correctness is never sent while a question is open
        return {'id': self.id, 'text': self.text}


@dataclass(frozen=True)
class QuestionSnapshot:
    text: str
    options: Tuple[OptionSnapshot, ...]

    @property
    def correct_option_id(self) -> Optional[int]:
        return next((o.id for o in self.options if o.is_correct), None)


@dataclass(frozen=True)
class QuizSnapshot:
    quiz_id: int
    title: str
    timer_seconds: int
    questions: Tuple[QuestionSnapshot, ...]

    def __post_init__(self):
        if not self.questions:
            raise EmptyQuizError()
        if self.timer_seconds <= 0:
            raise ValueError('timer_seconds must be positive')

    @property
    def total_questions(self) -> int:
        return len(self.questions)


def snapshot_from_model(quiz: Quiz) -> QuizSnapshot:
    return QuizSnapshot(
        quiz_id=quiz.id,
        title=quiz.title,
        timer_seconds=int(quiz.timer_seconds),
        questions=tuple(
            QuestionSnapshot(
                text=q.question_text,
                options=tuple(OptionSnapshot(o.id, o.option_text, bool(o.is_correct)) for o in q.options),
            )
            for q in quiz.questions
        ),
    )


def load_quiz_snapshot(quiz_id: int) -> QuizSnapshot:
    """Fetch a quiz with its ordered questions and options, once.

    Raises QuizNotFoundError for an unknown id and EmptyQuizError when the
    quiz has no questions.
    """
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise QuizNotFoundError()
    return snapshot_from_model(quiz)
