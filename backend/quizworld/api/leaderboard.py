from flask import Blueprint, jsonify, request
from quizworld.errors import AuthError, StorageError, ValidationError
from quizworld.services.quiz.leaderboard import leaderboard_for


leaderboard = Blueprint('leaderboard', __name__)


@leaderboard.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    """
    Returns the best scores, highest first; earlier submissions win ties.
    """
    try:
        players = leaderboard_for().top_scores()
    except StorageError:
        return jsonify({'error': 'Internal server error'}), 500
    return jsonify([p.to_dict() for p in players])


@leaderboard.route('/players', methods=['POST'])
def submit_player_score():
    """
    Creates a player or records a new personal best for an existing one.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = leaderboard_for().submit_score(
            data.get('username'),
            data.get('password'),
            data.get('country'),
            data.get('score'),
        )
    except ValidationError as exc:
        return jsonify({'error': str(exc)}), 400
    except AuthError as exc:
        return jsonify({'error': str(exc)}), 401
    except StorageError:
        return jsonify({'error': 'Internal server error'}), 500
    return jsonify(result.to_dict())
