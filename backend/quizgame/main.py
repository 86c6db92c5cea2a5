from flask import Blueprint, current_app, jsonify

from quizgame.services.quiz.gameplay import get_runtime, lobby_leaderboard
from quizgame.services.quiz.types import avatar_to_dict, parse_avatar

main = Blueprint('main', __name__)


@main.route('/')
def index():
    rt = get_runtime()
    return jsonify({
        'message': 'Survival quiz server is running',
        'questions': len(rt.bank),
        'categories': rt.bank.categories(),
        'max_lives': rt.rules.max_lives,
    })


@main.route('/api/config', methods=['GET'])
def store_config():
    # Credentials for browser clients that talk to the store directly
    cfg = current_app.config
    return jsonify({
        'url': cfg.get('SUPABASE_URL') or '',
        'key': cfg.get('SUPABASE_KEY') or '',
    })


@main.route('/api/avatars', methods=['GET'])
def avatars():
    return jsonify([avatar_to_dict(parse_avatar(a)) for a in get_runtime().avatars])


@main.route('/api/leaderboard', methods=['GET'])
def leaderboard():
    entries = lobby_leaderboard(current_app._get_current_object())
    return jsonify([e.to_dict() for e in entries])
