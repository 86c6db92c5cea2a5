"""Glue between the engine and the outside world.

Every function here takes the Flask ``app`` so it can be called both from
request handlers and from scheduler tasks running outside a request.
"""

import random
from typing import Dict, List, Optional

from flask import current_app

from quizgame import socketio
from quizgame.errors import ValidationError
from .bank import QuestionBank, build_opponents
from .engine import SessionEngine
from .leaderboard import OpponentPool, in_game_view, lobby_view
from .registry import Game, SessionRegistry
from .scheduler import schedule_for_generation
from .store import UNAVAILABLE, ScoreStoreClient
from .types import AnswerOutcome, GameRules, LeaderboardEntry, ScoreRecord, ShuffledQuestion, parse_avatar

EXTENSION_KEY = 'quiz'


class QuizRuntime:
    """Per-app wiring, stored in ``app.extensions['quiz']``."""

    def __init__(
        self,
        bank: QuestionBank,
        store: ScoreStoreClient,
        roster: List[Dict],
        avatars: List[str],
        rules: GameRules,
        settle_delay: float = 3.0,
        leaderboard_size: int = 10,
        hit_chance: float = 0.6,
        ended_ttl: float = 60.0,
        idle_ttl: float = 900.0,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng or random.Random()
        self.bank = bank
        self.store = store
        self.roster = roster
        self.avatars = avatars
        self.rules = rules
        self.engine = SessionEngine(bank, rules, rng=self.rng)
        self.registry = SessionRegistry()
        self.settle_delay = settle_delay
        self.leaderboard_size = leaderboard_size
        self.hit_chance = hit_chance
        self.ended_ttl = ended_ttl
        self.idle_ttl = idle_ttl

    def new_opponents(self) -> OpponentPool:
        return OpponentPool(build_opponents(self.roster), rng=self.rng, hit_chance=self.hit_chance)


def get_runtime(app=None) -> QuizRuntime:
    return (app or current_app).extensions[EXTENSION_KEY]


def emit_state(game: Game, event: str = 'state_update') -> None:
    socketio.emit(
        event,
        {'session_id': game.id, 'phase': game.state.phase.value, 'generation': game.state.generation},
        to=game.room,
        namespace='/ws',
    )


# ---- timers ----

def _arm_question_timer(app, game: Game) -> None:
    countdown = game.state.countdown
    delay = countdown.seconds_until_expiry() if countdown else float(get_runtime(app).rules.question_duration)
    schedule_for_generation(app, game, 'timer', delay, time_up)


def _arm_settle(app, game: Game) -> None:
    schedule_for_generation(app, game, 'settle', get_runtime(app).settle_delay, advance)


# ---- lifecycle ----

def start_game(app, player_name: str, avatar: Optional[str] = None) -> Game:
    """Validate, build the session, show the first question.

    Raises ValidationError for an empty, too long or taken name.
    """
    rt = get_runtime(app)
    sweep_sessions(app)
    state = rt.engine.start_session(player_name, parse_avatar(avatar), name_exists=rt.store.name_exists)
    game = rt.registry.add(Game(state, rt.new_opponents()))
    app.logger.info(f"[session-start] session={game.id} player={state.player_name}")
    with game.lock:
        rt.engine.load_question(state, 0)
        emit_state(game)
        _arm_question_timer(app, game)
    return game


def restart(app, game: Game) -> Game:
    rt = get_runtime(app)
    with game.lock:
        rt.engine.restart(game.state)
        game.opponents = rt.new_opponents()
        game.persisted = False
        game.touch()
        app.logger.info(f"[session-restart] session={game.id} player={game.state.player_name}")
        rt.engine.load_question(game.state, 0)
        emit_state(game)
        _arm_question_timer(app, game)
    return game


def discard(app, game: Game) -> None:
    rt = get_runtime(app)
    with game.lock:
        rt.engine.reset(game.state)
        rt.registry.discard(game.id)
    app.logger.info(f"[session-discard] session={game.id}")
    emit_state(game, event='session_ended')


def sweep_sessions(app, now: Optional[float] = None) -> List[Game]:
    """Drop ended and abandoned sessions; their pending timers go stale."""
    rt = get_runtime(app)
    evicted = rt.registry.sweep(rt.ended_ttl, rt.idle_ttl, now=now)
    for game in evicted:
        with game.lock:
            rt.engine.reset(game.state)
        app.logger.info(f"[session-evict] session={game.id} player={game.state.player_name}")
        emit_state(game, event='session_ended')
    return evicted


# ---- answers ----

def answer(app, game: Game, selected_index: Optional[int], generation: Optional[int] = None) -> Optional[AnswerOutcome]:
    rt = get_runtime(app)
    with game.lock:
        if generation is not None and generation != game.state.generation:
            app.logger.info(f"[answer-stale] session={game.id} gen={generation} current={game.state.generation}")
            return None
        current = game.state.current
        if selected_index is not None and current is not None and not 0 <= selected_index < len(current.options):
            raise ValidationError(f'selected_index must be between 0 and {len(current.options) - 1}')
        outcome = rt.engine.submit_answer(game.state, selected_index)
        if outcome is None:
            return None
        record = _after_outcome(app, game, outcome)
    save_score(app, game, record)
    return outcome


def time_up(app, game: Game) -> Optional[AnswerOutcome]:
    rt = get_runtime(app)
    with game.lock:
        outcome = rt.engine.expire_timer(game.state)
        if outcome is None:
            return None
        record = _after_outcome(app, game, outcome)
    save_score(app, game, record)
    return outcome


def _after_outcome(app, game: Game, outcome: AnswerOutcome) -> Optional[ScoreRecord]:
    state = game.state
    game.touch()
    app.logger.info(
        f"[answer] session={game.id} correct={outcome.correct} timed_out={outcome.timed_out} "
        f"points={outcome.points_awarded} lives={outcome.lives_remaining} score={state.score}"
    )
    if outcome.correct:
        game.opponents.simulate_opponent_tick()
    record = claim_final_score(game) if outcome.session_ended else None
    emit_state(game)
    if not outcome.session_ended:
        _arm_settle(app, game)
    return record


def advance(app, game: Game) -> Optional[ShuffledQuestion]:
    rt = get_runtime(app)
    with game.lock:
        question = rt.engine.advance(game.state)
        if question is None:
            return None
        game.touch()
        emit_state(game)
        _arm_question_timer(app, game)
        return question


def claim_final_score(game: Game) -> Optional[ScoreRecord]:
    """Snapshot the final score once per match. Call with ``game.lock`` held."""
    if game.persisted:
        return None
    state = game.state
    game.persisted = True
    return ScoreRecord(
        player_name=state.player_name,
        score=state.score,
        best_streak=state.max_streak,
        avatar=state.avatar,
    )


def save_score(app, game: Game, record: Optional[ScoreRecord]):
    """Send a claimed record to the store. Store trouble is logged, not raised."""
    if record is None:
        return None
    saved = get_runtime(app).store.record_score(record)
    if saved is UNAVAILABLE:
        app.logger.warning(f"[score-unsaved] session={game.id} player={record.player_name} score={record.score}")
    return saved


# ---- leaderboards ----

def _remote_scores(app) -> List[ScoreRecord]:
    rt = get_runtime(app)
    records = rt.store.top_scores(rt.leaderboard_size)
    if records is UNAVAILABLE:
        return []
    return list(records)


def session_leaderboard(app, game: Game) -> List[LeaderboardEntry]:
    rt = get_runtime(app)
    remote = _remote_scores(app)
    with game.lock:
        return in_game_view(game.state, remote, game.opponents, rt.leaderboard_size)


def lobby_leaderboard(app) -> List[LeaderboardEntry]:
    rt = get_runtime(app)
    return lobby_view(_remote_scores(app), rt.new_opponents(), rt.leaderboard_size)
