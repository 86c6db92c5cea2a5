import random

from quizgame.services.quiz.leaderboard import OpponentPool, in_game_view, lobby_view, rank
from quizgame.services.quiz.types import Emoji, ImageRef, Opponent, ScoreRecord, SessionState, parse_avatar


def _state(score=0, streak=0):
    return SessionState(player_name='Me', avatar=Emoji('🚀'), ordered_questions=[], lives_remaining=3,
                        score=score, streak=streak)


def _opponents():
    return [
        Opponent('Ann', Emoji('🐱'), score=500, streak=1),
        Opponent('Ben', Emoji('🤖'), score=300),
    ]


def test_rank_sorts_descending_and_marks_local_player():
    remote = [ScoreRecord('Zed', 700, 4), ScoreRecord('Yan', 100, 0)]
    entries = rank(_state(score=400), remote, _opponents())
    assert [e.name for e in entries] == ['Zed', 'Ann', 'Me', 'Ben', 'Yan']
    assert [e.is_local_player for e in entries] == [False, False, True, False, False]
    assert entries[0].streak == 4


def test_rank_ties_keep_concatenation_order():
    remote = [ScoreRecord('Remote', 300, 0)]
    entries = rank(_state(score=300), remote, [Opponent('Sim', Emoji('👾'), score=300)])
    assert [e.name for e in entries] == ['Me', 'Remote', 'Sim']


def test_rank_truncates_to_limit():
    remote = [ScoreRecord(f'p{i}', i * 10, 0) for i in range(15)]
    entries = rank(_state(score=5), remote, _opponents())
    assert len(entries) == 10
    assert entries[0].score == 500
    assert len(rank(None, remote, [], limit=3)) == 3


def test_rank_is_idempotent():
    remote = [ScoreRecord('A', 200, 1), ScoreRecord('B', 200, 2)]
    state = _state(score=200)
    opponents = _opponents()
    assert rank(state, remote, opponents) == rank(state, remote, opponents)


def test_views_include_or_exclude_local_player():
    state = _state(score=50)
    remote = [ScoreRecord('R', 60, 0)]
    assert any(e.is_local_player for e in in_game_view(state, remote, _opponents()))
    lobby = lobby_view(remote, _opponents())
    assert not any(e.is_local_player for e in lobby)
    assert [e.name for e in lobby] == ['Ann', 'Ben', 'R']


def test_opponent_tick_always_hits_with_full_chance():
    pool = OpponentPool(_opponents(), rng=random.Random(5), hit_chance=1.0)
    pool.simulate_opponent_tick()
    ann, ben = pool.opponents
    assert ann.streak == 2 and 600 <= ann.score <= 650
    assert ben.streak == 1 and 400 <= ben.score <= 450


def test_opponent_tick_resets_streak_on_miss():
    pool = OpponentPool(_opponents(), rng=random.Random(5), hit_chance=0.0)
    pool.simulate_opponent_tick()
    assert [(o.score, o.streak) for o in pool] == [(500, 0), (300, 0)]


def test_opponent_tick_every_opponent_either_scores_or_resets():
    pool = OpponentPool(_opponents(), rng=random.Random(11))
    for _ in range(50):
        before = [(o.score, o.streak) for o in pool]
        pool.simulate_opponent_tick()
        for (score, streak), opponent in zip(before, pool):
            if opponent.streak == 0:
                assert opponent.score == score
            else:
                assert opponent.streak == streak + 1
                assert 100 <= opponent.score - score <= 150


def test_parse_avatar_variants():
    assert parse_avatar('🦊') == Emoji('🦊')
    assert parse_avatar('https://cdn.example.com/a.png') == ImageRef('https://cdn.example.com/a.png')
    assert parse_avatar('/assets/avatars/cyber-1.png') == ImageRef('/assets/avatars/cyber-1.png')
    assert parse_avatar('') == Emoji('🏆')
    assert parse_avatar(None) == Emoji('🏆')
