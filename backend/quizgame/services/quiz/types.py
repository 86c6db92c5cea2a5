"""Value types for the quiz domain.

Everything here is a plain dataclass. ``SessionState`` is the only mutable
game value and is changed exclusively by :class:`SessionEngine`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Emoji:
    symbol: str

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class ImageRef:
    url: str

    def __str__(self) -> str:
        return self.url


Avatar = Union[Emoji, ImageRef]

DEFAULT_AVATAR = Emoji('🏆')

_IMAGE_SUFFIXES = ('.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp')


def parse_avatar(raw: Optional[str]) -> Avatar:
    """Turn the stored/transported avatar string into its variant."""
    if not raw or not str(raw).strip():
        return DEFAULT_AVATAR
    value = str(raw).strip()
    lowered = value.lower()
    if (
        lowered.startswith(('http://', 'https://', 'data:image/', '/', './'))
        or lowered.endswith(_IMAGE_SUFFIXES)
    ):
        return ImageRef(value)
    return Emoji(value)


def avatar_to_dict(avatar: Avatar) -> Dict[str, str]:
    if isinstance(avatar, ImageRef):
        return {'kind': 'image', 'value': avatar.url}
    return {'kind': 'emoji', 'value': avatar.symbol}


@dataclass(frozen=True)
class Question:
    prompt: str
    category: str
    options: Tuple[str, str, str, str]
    correct_index: int

    @property
    def correct_text(self) -> str:
        return self.options[self.correct_index]


@dataclass(frozen=True)
class ShuffledQuestion:
    """One presentation of a question with its options permuted."""
    source_index: int
    prompt: str
    category: str
    options: Tuple[str, ...]
    correct_index: int

    def to_dict(self, reveal: bool = False) -> Dict[str, Any]:
        data = {
            'index': self.source_index,
            'prompt': self.prompt,
            'category': self.category,
            'options': list(self.options),
        }
        if reveal:
            data['correct_index'] = self.correct_index
        return data


class Phase(str, Enum):
    IDLE = 'idle'
    ACCEPTING = 'accepting'
    SETTLING = 'settling'
    ENDED = 'ended'


@dataclass(frozen=True)
class GameRules:
    max_lives: int = 3
    question_duration: int = 15
    base_points: int = 100
    time_bonus_rate: int = 10
    streak_bonus_rate: int = 5
    max_name_length: int = 24

    @classmethod
    def from_config(cls, config) -> 'GameRules':
        return cls(
            max_lives=int(config.get('MAX_LIVES', 3)),
            question_duration=int(config.get('QUESTION_DURATION_SEC', 15)),
            base_points=int(config.get('BASE_POINTS', 100)),
            time_bonus_rate=int(config.get('TIME_BONUS_RATE', 10)),
            streak_bonus_rate=int(config.get('STREAK_BONUS_RATE', 5)),
            max_name_length=int(config.get('MAX_NAME_LENGTH', 24)),
        )


class Countdown:
    """Per-question time budget measured against an injectable clock.

    Whole seconds are reported, matching a ticking on-screen counter: a
    15 second budget reads 15 until the first full second has elapsed.
    """

    def __init__(self, duration: int, clock: Callable[[], float] = time.monotonic):
        self.duration = int(duration)
        self._clock = clock
        self._started_at = clock()
        self._stopped_at: Optional[float] = None

    @property
    def cancelled(self) -> bool:
        return self._stopped_at is not None

    def cancel(self) -> None:
        if self._stopped_at is None:
            self._stopped_at = self._clock()

    def elapsed(self) -> float:
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def remaining(self) -> int:
        return max(0, self.duration - int(self.elapsed()))

    def seconds_until_expiry(self) -> float:
        return max(0.0, self.duration - self.elapsed())


@dataclass
class SessionState:
    player_name: str
    avatar: Avatar
    ordered_questions: List[Question]
    lives_remaining: int
    current_index: int = 0
    score: int = 0
    streak: int = 0
    max_streak: int = 0
    multiplier: float = 1.0
    phase: Phase = Phase.IDLE
    generation: int = 0
    current: Optional[ShuffledQuestion] = None
    countdown: Optional[Countdown] = None
    questions_answered: int = 0
    reshuffles: int = 0

    @property
    def is_accepting(self) -> bool:
        return self.phase is Phase.ACCEPTING

    @property
    def is_ended(self) -> bool:
        return self.phase is Phase.ENDED

    def to_dict(self) -> Dict[str, Any]:
        reveal = self.phase in (Phase.SETTLING, Phase.ENDED)
        return {
            'player_name': self.player_name,
            'avatar': avatar_to_dict(self.avatar),
            'phase': self.phase.value,
            'is_accepting': self.is_accepting,
            'generation': self.generation,
            'current_index': self.current_index,
            'question_count': len(self.ordered_questions),
            'question': self.current.to_dict(reveal=reveal) if self.current else None,
            'time_left': self.countdown.remaining() if self.countdown else None,
            'score': self.score,
            'streak': self.streak,
            'max_streak': self.max_streak,
            'multiplier': self.multiplier,
            'lives_remaining': self.lives_remaining,
            'questions_answered': self.questions_answered,
            'reshuffles': self.reshuffles,
        }


@dataclass(frozen=True)
class AnswerOutcome:
    correct: bool
    points_awarded: int
    lives_remaining: int
    session_ended: bool
    correct_index: int
    selected_index: Optional[int] = None
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'correct': self.correct,
            'points_awarded': self.points_awarded,
            'lives_remaining': self.lives_remaining,
            'session_ended': self.session_ended,
            'correct_index': self.correct_index,
            'selected_index': self.selected_index,
            'timed_out': self.timed_out,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScoreRecord:
    player_name: str
    score: int
    best_streak: int
    avatar: Avatar = DEFAULT_AVATAR
    timestamp: datetime = field(default_factory=_utcnow)

    def to_row(self) -> Dict[str, Any]:
        """Column mapping of the ``scores`` collection."""
        return {
            'player_name': self.player_name,
            'score': self.score,
            'streak': self.best_streak,
            'avatar': str(self.avatar),
            'created_at': self.timestamp.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ScoreRecord':
        created = row.get('created_at')
        if isinstance(created, str):
            try:
                timestamp = datetime.fromisoformat(created.replace('Z', '+00:00'))
            except ValueError:
                timestamp = _utcnow()
        elif isinstance(created, datetime):
            timestamp = created
        else:
            timestamp = _utcnow()
        return cls(
            player_name=str(row.get('player_name') or ''),
            score=int(row.get('score') or 0),
            best_streak=int(row.get('streak') or 0),
            avatar=parse_avatar(row.get('avatar')),
            timestamp=timestamp,
        )


@dataclass
class Opponent:
    name: str
    avatar: Avatar
    score: int = 0
    streak: int = 0


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    score: int
    streak: int
    avatar: Avatar
    is_local_player: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'score': self.score,
            'streak': self.streak,
            'avatar': avatar_to_dict(self.avatar),
            'is_local_player': self.is_local_player,
        }
