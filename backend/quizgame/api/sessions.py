from flask import Blueprint, abort, current_app, jsonify, request

from quizgame.errors import ValidationError
from quizgame.services.quiz import gameplay
from quizgame.services.quiz.registry import Game

sessions = Blueprint('sessions', __name__)


def _app():
    return current_app._get_current_object()


def _get_game_or_404(session_id: str) -> Game:
    game = gameplay.get_runtime().registry.get(session_id)
    if game is None:
        abort(404)
    return game


def _optional_int(data, field):
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')


def _ignored(game: Game):
    # Late or duplicate actions are not errors; report the unchanged state
    payload = {'ignored': True, 'state': game.to_dict()}
    return jsonify(payload), 200


@sessions.route('/sessions', methods=['POST'])
def start_session():
    data = request.get_json(silent=True) or {}
    player_name = data.get('player_name')
    if not isinstance(player_name, str):
        return jsonify({'error': 'player_name is required'}), 400
    avatar = data.get('avatar')
    if avatar is not None and not isinstance(avatar, str):
        return jsonify({'error': 'avatar must be a string'}), 400
    game = gameplay.start_game(_app(), player_name, avatar)
    return jsonify(game.to_dict()), 201


@sessions.route('/sessions/<string:session_id>', methods=['GET'])
def get_session(session_id):
    game = _get_game_or_404(session_id)
    with game.lock:
        return jsonify(game.to_dict())


@sessions.route('/sessions/<string:session_id>', methods=['DELETE'])
def delete_session(session_id):
    game = _get_game_or_404(session_id)
    gameplay.discard(_app(), game)
    return jsonify({'message': 'Session discarded'})


@sessions.route('/sessions/<string:session_id>/answer', methods=['POST'])
def submit_answer(session_id):
    game = _get_game_or_404(session_id)
    data = request.get_json(silent=True) or {}
    selected_index = _optional_int(data, 'selected_index')
    if selected_index is None:
        return jsonify({'error': 'selected_index is required'}), 400
    generation = _optional_int(data, 'generation')
    outcome = gameplay.answer(_app(), game, selected_index, generation=generation)
    if outcome is None:
        return _ignored(game)
    with game.lock:
        return jsonify({'outcome': outcome.to_dict(), 'state': game.to_dict()})


@sessions.route('/sessions/<string:session_id>/expire', methods=['POST'])
def expire(session_id):
    game = _get_game_or_404(session_id)
    outcome = gameplay.time_up(_app(), game)
    if outcome is None:
        return _ignored(game)
    with game.lock:
        return jsonify({'outcome': outcome.to_dict(), 'state': game.to_dict()})


@sessions.route('/sessions/<string:session_id>/advance', methods=['POST'])
def advance(session_id):
    game = _get_game_or_404(session_id)
    question = gameplay.advance(_app(), game)
    if question is None:
        return _ignored(game)
    with game.lock:
        return jsonify(game.to_dict())


@sessions.route('/sessions/<string:session_id>/restart', methods=['POST'])
def restart(session_id):
    game = _get_game_or_404(session_id)
    gameplay.restart(_app(), game)
    with game.lock:
        return jsonify(game.to_dict())


@sessions.route('/sessions/<string:session_id>/leaderboard', methods=['GET'])
def session_leaderboard(session_id):
    game = _get_game_or_404(session_id)
    entries = gameplay.session_leaderboard(_app(), game)
    return jsonify([e.to_dict() for e in entries])
