from flask import Blueprint, jsonify, current_app
from quizworld.errors import StorageError
from quizworld.services.quiz.questions import SqlQuestionBank

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the QuizWorld game server!'})

@main.route('/api/health')
def health():
    try:
        questions = SqlQuestionBank(logger=current_app.logger).count()
    except StorageError:
        return jsonify({'status': 'degraded', 'questions': None}), 503
    return jsonify({'status': 'ok', 'questions': questions})
