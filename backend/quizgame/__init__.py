import logging
import random

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
allowed_origins = "*"
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def init_quiz(flask_app, transport=None):
    """Build the question bank, store client and session registry for this app."""
    from quizgame.models import Score
    from quizgame.services.quiz.bank import QuestionBank, load_avatars, load_roster
    from quizgame.services.quiz.gameplay import EXTENSION_KEY, QuizRuntime
    from quizgame.services.quiz.store import build_store
    from quizgame.services.quiz.types import GameRules

    cfg = flask_app.config
    runtime = QuizRuntime(
        bank=QuestionBank.load(cfg.get('QUESTION_BANK_PATH') or None),
        store=build_store(cfg, db=db, model=Score, transport=transport),
        roster=load_roster(),
        avatars=load_avatars(),
        rules=GameRules.from_config(cfg),
        settle_delay=float(cfg.get('SETTLE_DELAY_SEC', 3)),
        leaderboard_size=int(cfg.get('LEADERBOARD_SIZE', 10)),
        hit_chance=float(cfg.get('OPPONENT_HIT_CHANCE', 0.6)),
        ended_ttl=float(cfg.get('ENDED_SESSION_TTL_SEC', 60)),
        idle_ttl=float(cfg.get('SESSION_IDLE_TTL_SEC', 900)),
        rng=random.Random(cfg['RANDOM_SEED']) if cfg.get('RANDOM_SEED') is not None else None,
    )
    flask_app.extensions[EXTENSION_KEY] = runtime
    return runtime


def create_app(config_class=Config, transport=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(flask_app)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    init_quiz(flask_app, transport=transport)

    # Import and register blueprints here
    from quizgame.main import main
    flask_app.register_blueprint(main)

    from quizgame.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api')

    from quizgame.errors import ValidationError

    @flask_app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({'error': str(exc)}), 400

    from quizgame.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    with flask_app.app_context():
        db.create_all()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the local scores table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Scores table has been reset!')

    @click.command('scores-top')
    @click.option('--limit', '-n', default=10, show_default=True, help='Number of rows to show.')
    def scores_top_command(limit):
        """Prints the top scores from the configured score store."""
        from quizgame.services.quiz.store import UNAVAILABLE
        with flask_app.app_context():
            records = flask_app.extensions['quiz'].store.top_scores(limit)
            if records is UNAVAILABLE:
                click.echo('Score store unavailable.')
                return
            for position, record in enumerate(records, start=1):
                click.echo(f"{position:>3}. {record.player_name:<24} {record.score:>7}  streak {record.best_streak}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(scores_top_command)

    return flask_app
