import threading
from typing import Callable, Set, Tuple

from quizgame import socketio
from .registry import Game

Callback = Callable[[object, Game], object]

_scheduled_keys: Set[Tuple[str, str, int]] = set()
_keys_lock = threading.Lock()


def schedule_for_generation(app, game: Game, kind: str, delay: float, callback: Callback) -> None:
    """Run ``callback(app, game)`` after ``delay`` seconds, if still relevant.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set, in
      which case the task runs inline
    - Ensures a single task per (session, kind, generation)
    - The task is dropped when the session's generation has moved on
      (answered, reloaded, restarted or discarded in the meantime)
    """
    testing = app.config.get('TESTING')
    if testing and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    generation = game.state.generation
    key = (game.id, kind, generation)
    with _keys_lock:
        if key in _scheduled_keys:
            app.logger.info(f"[timer-skip] session={game.id} kind={kind} gen={generation} already scheduled")
            return
        _scheduled_keys.add(key)
    app.logger.info(f"[timer-set] session={game.id} kind={kind} gen={generation} delay={delay:.2f}s")

    def _worker(session_id: str, expected_generation: int, wait: float):
        if wait > 0:
            socketio.sleep(wait)
        with app.app_context():
            with _keys_lock:
                _scheduled_keys.discard((session_id, kind, expected_generation))
            fire(app, session_id, kind, expected_generation, callback)

    if testing:
        _worker(game.id, generation, delay)
    else:
        socketio.start_background_task(_worker, game.id, generation, delay)


def fire(app, session_id: str, kind: str, generation: int, callback: Callback) -> bool:
    """Invoke a scheduled callback unless it belongs to an older generation."""
    runtime = app.extensions['quiz']
    game = runtime.registry.get(session_id)
    if game is None:
        app.logger.info(f"[timer-abort] session={session_id} kind={kind} session gone")
        return False
    with game.lock:
        if not runtime.engine.is_current(game.state, generation):
            app.logger.info(
                f"[timer-abort] session={session_id} kind={kind} stale gen={generation} current={game.state.generation}"
            )
            return False
        app.logger.info(f"[timer-fire] session={session_id} kind={kind} gen={generation}")
        callback(app, game)
        return True

