from flask import Blueprint, jsonify
from quizzy import registry

games = Blueprint('games', __name__)


@games.route('/<string:game_code>', methods=['GET'])
def get_game_status(game_code):
    """
    Returns the public status of a live game so a player can check a code
    before joining.
    """
    session = registry.get(game_code)
    if session is None:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify(session.summary())
