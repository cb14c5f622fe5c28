from flask import Blueprint, jsonify, request, current_app
from quizworld.errors import NotFound, StorageError
from quizworld.services.quiz.countries import resolve_selection
from quizworld.services.quiz.questions import SqlQuestionBank


questions = Blueprint('questions', __name__)


def _bank():
    return SqlQuestionBank(logger=current_app.logger)


@questions.route('/random', methods=['POST'])
def random_question():
    """
    Picks a random question the caller has not seen yet.
    ``question`` is null once every question has been seen.
    """
    data = request.get_json(silent=True) or {}
    seen_ids = data.get('seenIds') or []
    if not isinstance(seen_ids, list) or any(isinstance(i, bool) or not isinstance(i, int) for i in seen_ids):
        return jsonify({'error': 'seenIds must be a list of question ids'}), 400
    try:
        question = _bank().pick_random(seen_ids)
    except StorageError:
        return jsonify({'error': 'Could not load a question'}), 500
    return jsonify({'question': question.to_dict() if question else None})


@questions.route('/verify', methods=['POST'])
def verify_answer():
    """
    Reports whether an answer is correct without revealing the right one.
    """
    data = request.get_json(silent=True) or {}
    question_id = data.get('questionId')
    user_answer = data.get('userAnswer')
    if not question_id or user_answer is None:
        return jsonify({'error': 'questionId and userAnswer are required'}), 400
    if isinstance(question_id, bool) or not isinstance(question_id, int):
        return jsonify({'error': 'questionId must be an integer'}), 400
    try:
        answer = resolve_selection(user_answer, logger=current_app.logger)
        is_correct = _bank().verify(question_id, answer)
    except NotFound:
        return jsonify({'error': 'Question not found'}), 404
    except StorageError:
        return jsonify({'error': 'Could not verify the answer'}), 500
    return jsonify({'isCorrect': is_correct})
