import random
from typing import Iterable, List, Optional, Sequence

from .types import LeaderboardEntry, Opponent, ScoreRecord, SessionState

DEFAULT_LIMIT = 10


def rank(
    local: Optional[SessionState],
    remote: Iterable[ScoreRecord],
    simulated: Iterable[Opponent],
    limit: int = DEFAULT_LIMIT,
) -> List[LeaderboardEntry]:
    """Merge local, remote and simulated players into the top ``limit``.

    Sources are concatenated in that order and sorted by score, highest
    first. ``sorted`` is stable, so ties keep their concatenation order.
    """
    entries: List[LeaderboardEntry] = []
    if local is not None:
        entries.append(LeaderboardEntry(
            name=local.player_name,
            score=local.score,
            streak=local.streak,
            avatar=local.avatar,
            is_local_player=True,
        ))
    entries.extend(
        LeaderboardEntry(name=r.player_name, score=r.score, streak=r.best_streak, avatar=r.avatar)
        for r in remote
    )
    entries.extend(
        LeaderboardEntry(name=o.name, score=o.score, streak=o.streak, avatar=o.avatar)
        for o in simulated
    )
    return sorted(entries, key=lambda e: e.score, reverse=True)[:max(0, limit)]


def in_game_view(state: SessionState, remote, simulated, limit: int = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
    return rank(state, remote, simulated, limit)


def lobby_view(remote, simulated, limit: int = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
    return rank(None, remote, simulated, limit)


class OpponentPool:
    """Simulated rivals for one session.

    Purely cosmetic: each correct local answer gives every opponent a
    chance to score too, so the board keeps moving.
    """

    def __init__(
        self,
        opponents: Sequence[Opponent],
        rng: Optional[random.Random] = None,
        hit_chance: float = 0.6,
        min_gain: int = 100,
        max_gain: int = 150,
    ):
        self.opponents = list(opponents)
        self.rng = rng or random.Random()
        self.hit_chance = hit_chance
        self.min_gain = min_gain
        self.max_gain = max_gain

    def __iter__(self):
        return iter(self.opponents)

    def __len__(self) -> int:
        return len(self.opponents)

    def simulate_opponent_tick(self) -> None:
        for opponent in self.opponents:
            if self.rng.random() < self.hit_chance:
                opponent.streak += 1
                opponent.score += self.rng.randint(self.min_gain, self.max_gain)
            else:
                opponent.streak = 0
