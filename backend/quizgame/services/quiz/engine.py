"""Survival-mode session engine.

The engine is the only code that mutates :class:`SessionState`. It is pure
game logic: no Flask, no sockets, no timers. Time enters through an
injectable clock (for the per-question countdown) and randomness through an
injectable ``random.Random``.

Lifecycle::

    idle -> accepting -> settling -> accepting (next question) ...
                                  -> ended (no lives left)

Answers, expiries and advances that arrive in the wrong phase are ignored
and reported as ``None``.
"""

import logging
import random
import time
from typing import Callable, List, MutableSequence, Optional, TypeVar

from quizgame.errors import StateError, ValidationError
from .bank import QuestionBank
from .scoring import multiplier_for, points_for_correct
from .types import (
    DEFAULT_AVATAR,
    AnswerOutcome,
    Avatar,
    Countdown,
    GameRules,
    Phase,
    Question,
    SessionState,
    ShuffledQuestion,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# name_exists may answer True/False or an "unavailable" sentinel (falsy)
NameCheck = Callable[[str], object]


def fisher_yates(items: MutableSequence[T], rng: random.Random) -> MutableSequence[T]:
    """Uniform in-place shuffle, walking from the end."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


class SessionEngine:

    def __init__(
        self,
        bank: QuestionBank,
        rules: Optional[GameRules] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bank = bank
        self.rules = rules or GameRules()
        self.rng = rng or random.Random()
        self.clock = clock

    # ---- session lifecycle ----

    def start_session(
        self,
        player_name: str,
        avatar: Optional[Avatar] = None,
        name_exists: Optional[NameCheck] = None,
    ) -> SessionState:
        """Validate the player and build a fresh state with a shuffled order.

        ``name_exists`` is consulted before any state is created. A result
        that is exactly ``True`` rejects the name; anything else (``False``
        or an unavailable store) lets the session start.
        """
        name = (player_name or '').strip()
        if not name:
            raise ValidationError('Player name is required')
        if len(name) > self.rules.max_name_length:
            raise ValidationError(
                f'Player name must be at most {self.rules.max_name_length} characters'
            )
        if name_exists is not None and name_exists(name) is True:
            raise ValidationError(f'Player name "{name}" is already taken')

        state = SessionState(
            player_name=name,
            avatar=avatar or DEFAULT_AVATAR,
            ordered_questions=[],
            lives_remaining=self.rules.max_lives,
        )
        self._prepare(state)
        logger.info('Session prepared for %s with %d questions', name, len(state.ordered_questions))
        return state

    def restart(self, state: SessionState) -> SessionState:
        """New match for the same player. The name is not re-checked."""
        self.reset(state)
        self._prepare(state)
        return state

    def reset(self, state: SessionState) -> None:
        """Back to idle. Bumping the generation orphans any pending timer."""
        if state.countdown is not None:
            state.countdown.cancel()
        state.phase = Phase.IDLE
        state.generation += 1

    def _prepare(self, state: SessionState) -> None:
        state.score = 0
        state.streak = 0
        state.max_streak = 0
        state.lives_remaining = self.rules.max_lives
        state.multiplier = multiplier_for(0)
        state.current_index = 0
        state.current = None
        state.countdown = None
        state.questions_answered = 0
        state.reshuffles = 0
        state.phase = Phase.IDLE
        state.ordered_questions = self._shuffled_bank()

    def _shuffled_bank(self) -> List[Question]:
        return list(fisher_yates(list(self.bank), self.rng))

    # ---- questions ----

    def load_question(self, state: SessionState, index: int) -> ShuffledQuestion:
        if state.is_ended:
            raise StateError('Session has ended')
        if not 0 <= index < len(state.ordered_questions):
            raise IndexError(f'Question index {index} out of range')

        question = state.ordered_questions[index]
        pairs = [(text, i == question.correct_index) for i, text in enumerate(question.options)]
        fisher_yates(pairs, self.rng)
        correct_index = next(i for i, (_, is_correct) in enumerate(pairs) if is_correct)

        if state.countdown is not None:
            state.countdown.cancel()
        state.current_index = index
        state.current = ShuffledQuestion(
            source_index=index,
            prompt=question.prompt,
            category=question.category,
            options=tuple(text for text, _ in pairs),
            correct_index=correct_index,
        )
        state.countdown = Countdown(self.rules.question_duration, clock=self.clock)
        state.generation += 1
        state.phase = Phase.ACCEPTING
        return state.current

    # ---- answers ----

    def _close_answer_window(self, state: SessionState) -> ShuffledQuestion:
        if not state.is_accepting or state.current is None:
            raise StateError(f'Not accepting answers (phase={state.phase.value})')
        state.phase = Phase.SETTLING
        if state.countdown is not None:
            state.countdown.cancel()
        return state.current

    def submit_answer(
        self,
        state: SessionState,
        selected_index: Optional[int],
        time_left: Optional[int] = None,
    ) -> Optional[AnswerOutcome]:
        try:
            current = self._close_answer_window(state)
        except StateError as exc:
            logger.debug('Answer ignored for %s: %s', state.player_name, exc)
            return None

        if time_left is None:
            time_left = state.countdown.remaining() if state.countdown else 0
        state.questions_answered += 1

        if selected_index is not None and selected_index == current.correct_index:
            points = points_for_correct(self.rules, time_left, state.streak, state.multiplier)
            state.score += points
            state.streak += 1
            state.max_streak = max(state.max_streak, state.streak)
            state.multiplier = multiplier_for(state.streak)
            return AnswerOutcome(
                correct=True,
                points_awarded=points,
                lives_remaining=state.lives_remaining,
                session_ended=False,
                correct_index=current.correct_index,
                selected_index=selected_index,
            )

        return self._register_miss(state, current, selected_index, timed_out=False)

    def expire_timer(self, state: SessionState) -> Optional[AnswerOutcome]:
        try:
            current = self._close_answer_window(state)
        except StateError as exc:
            logger.debug('Expiry ignored for %s: %s', state.player_name, exc)
            return None
        state.questions_answered += 1
        return self._register_miss(state, current, None, timed_out=True)

    def _register_miss(
        self,
        state: SessionState,
        current: ShuffledQuestion,
        selected_index: Optional[int],
        timed_out: bool,
    ) -> AnswerOutcome:
        state.streak = 0
        state.lives_remaining = max(0, state.lives_remaining - 1)
        state.multiplier = multiplier_for(state.streak)
        ended = state.lives_remaining <= 0
        if ended:
            state.phase = Phase.ENDED
            logger.info(
                'Session over for %s: score=%d best_streak=%d answered=%d',
                state.player_name, state.score, state.max_streak, state.questions_answered,
            )
        return AnswerOutcome(
            correct=False,
            points_awarded=0,
            lives_remaining=state.lives_remaining,
            session_ended=ended,
            correct_index=current.correct_index,
            selected_index=selected_index,
            timed_out=timed_out,
        )

    # ---- progression ----

    def advance(self, state: SessionState) -> Optional[ShuffledQuestion]:
        """Move past a settled question; reshuffle the bank when it runs out."""
        if state.phase is not Phase.SETTLING:
            logger.debug('Advance ignored for %s (phase=%s)', state.player_name, state.phase.value)
            return None
        if state.lives_remaining <= 0:
            state.phase = Phase.ENDED
            return None
        if state.current_index < len(state.ordered_questions) - 1:
            return self.load_question(state, state.current_index + 1)

        state.ordered_questions = self._shuffled_bank()
        state.reshuffles += 1
        logger.info('All questions used by %s, reshuffling (round %d)', state.player_name, state.reshuffles + 1)
        return self.load_question(state, 0)

    def is_current(self, state: SessionState, generation: int) -> bool:
        return state.generation == generation

