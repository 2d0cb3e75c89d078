from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from quizzy import db
from quizzy.models import Quiz, Question, Option

quizzes = Blueprint('quizzes', __name__)

MIN_TIMER_SECONDS = 5
MAX_TIMER_SECONDS = 300


class QuizPayloadError(Exception):
    pass


def _parse_questions(raw_questions):
    if not isinstance(raw_questions, list):
        raise QuizPayloadError('questions must be a list')
    parsed = []
    for q_idx, raw in enumerate(raw_questions, start=1):
        if not isinstance(raw, dict):
            raise QuizPayloadError(f'Question {q_idx} must be an object')
        text = (raw.get('question_text') or '').strip()
        if not text:
            raise QuizPayloadError(f'Question {q_idx} needs text')
        options = raw.get('options')
        if not isinstance(options, list) or len(options) < 2:
            raise QuizPayloadError(f'Question {q_idx} needs at least two options')
        parsed_options = []
        for raw_option in options:
            if not isinstance(raw_option, dict) or not (raw_option.get('option_text') or '').strip():
                raise QuizPayloadError(f'Question {q_idx} has an option without text')
            parsed_options.append((raw_option['option_text'].strip(), bool(raw_option.get('is_correct'))))
        if sum(1 for _, correct in parsed_options if correct) != 1:
            raise QuizPayloadError(f'Question {q_idx} must have exactly one correct option')
        parsed.append((text, parsed_options))
    return parsed


def _apply_payload(quiz, data, partial=False):
    """Validate ``data`` and write it onto ``quiz``. Raises QuizPayloadError."""
    if not partial or 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            raise QuizPayloadError('Title is required')
        quiz.title = title
    if 'description' in data:
        quiz.description = data.get('description')
    if not partial or 'timer_seconds' in data:
        timer = data.get('timer_seconds', current_app.config.get('DEFAULT_TIMER_SECONDS', 20))
        if isinstance(timer, bool) or not isinstance(timer, int) or not (MIN_TIMER_SECONDS <= timer <= MAX_TIMER_SECONDS):
            raise QuizPayloadError(f'timer_seconds must be between {MIN_TIMER_SECONDS} and {MAX_TIMER_SECONDS}')
        quiz.timer_seconds = timer
    if not partial or 'questions' in data:
        parsed = _parse_questions(data.get('questions', []))
        quiz.questions.clear()
        for q_idx, (text, options) in enumerate(parsed):
            question = Question(question_text=text, order_index=q_idx)
            for o_idx, (option_text, correct) in enumerate(options):
                question.options.append(Option(option_text=option_text, is_correct=correct, order_index=o_idx))
            quiz.questions.append(question)


def _owned_quiz_or_error(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        return None, (jsonify({'error': 'Quiz not found'}), 404)
    if quiz.owner_id != current_user.id:
        return None, (jsonify({'error': 'You do not own this quiz'}), 403)
    return quiz, None


@quizzes.route('', methods=['GET'])
@login_required
def list_quizzes():
    """Returns the current user's quizzes, newest first."""
    rows = Quiz.query.filter_by(owner_id=current_user.id).order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()
    return jsonify([q.to_dict() for q in rows])


@quizzes.route('', methods=['POST'])
@login_required
def create_quiz():
    data = request.get_json(silent=True) or {}
    quiz = Quiz(owner_id=current_user.id)
    try:
        _apply_payload(quiz, data)
    except QuizPayloadError as exc:
        return jsonify({'error': str(exc)}), 400
    db.session.add(quiz)
    db.session.commit()
    current_app.logger.info(f"[quiz-created] quiz={quiz.id} owner={current_user.id} questions={len(quiz.questions)}")
    return jsonify(quiz.to_dict(include_questions=True)), 201


@quizzes.route('/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    quiz, error = _owned_quiz_or_error(quiz_id)
    if error:
        return error
    return jsonify(quiz.to_dict(include_questions=True))


@quizzes.route('/<int:quiz_id>', methods=['PUT'])
@login_required
def update_quiz(quiz_id):
    """
    Updates a quiz. Fields left out of the body are kept; a questions list
    replaces every existing question.
    """
    quiz, error = _owned_quiz_or_error(quiz_id)
    if error:
        return error
    data = request.get_json(silent=True) or {}
    try:
        _apply_payload(quiz, data, partial=True)
    except QuizPayloadError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400
    db.session.commit()
    return jsonify(quiz.to_dict(include_questions=True))


@quizzes.route('/<int:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    quiz, error = _owned_quiz_or_error(quiz_id)
    if error:
        return error
    db.session.delete(quiz)
    db.session.commit()
    return jsonify({'message': 'Quiz deleted.'})
