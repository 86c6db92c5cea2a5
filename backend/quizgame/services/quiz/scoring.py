import math

from .types import GameRules

MIN_MULTIPLIER = 1.0
MAX_MULTIPLIER = 5.0
STREAK_STEP = 3
MULTIPLIER_STEP = 0.5


def multiplier_for(streak: int) -> float:
    """Score multiplier for a streak: +0.5x per three answers, capped at 5x."""
    raw = MIN_MULTIPLIER + (max(0, int(streak)) // STREAK_STEP) * MULTIPLIER_STEP
    return min(MAX_MULTIPLIER, max(MIN_MULTIPLIER, raw))


def round_half_up(value: float) -> int:
    # round() would send 0.5 to the even neighbour
    return int(math.floor(value + 0.5))


def points_for_correct(rules: GameRules, time_left: int, streak: int, multiplier: float) -> int:
    """Points for a correct answer given the streak *before* it is counted.

    (base + time_left * time_bonus_rate + streak * streak_bonus_rate) * multiplier
    """
    base = rules.base_points
    time_bonus = max(0, int(time_left)) * rules.time_bonus_rate
    streak_bonus = max(0, int(streak)) * rules.streak_bonus_rate
    return round_half_up((base + time_bonus + streak_bonus) * multiplier)
