import json

import httpx

from quizgame import db
from quizgame.models import Score
from quizgame.services.quiz.store import (
    UNAVAILABLE,
    ScoreStoreClient,
    SqlBackend,
    StoreCredentials,
    SupabaseBackend,
    build_store,
)
from quizgame.services.quiz.types import Emoji, ImageRef, ScoreRecord

SUPABASE = {
    'SCORE_STORE': 'supabase',
    'SUPABASE_URL': 'https://demo.supabase.co/',
    'SUPABASE_KEY': 'anon-key',
}


class Recorder:
    def __init__(self, responder):
        self.requests = []
        self.responder = responder

    def __call__(self, request):
        self.requests.append(request)
        return self.responder(request)


def _store(responder, config=SUPABASE):
    recorder = Recorder(responder)
    return build_store(config, transport=httpx.MockTransport(recorder)), recorder


def test_record_score_posts_row_with_headers():
    def responder(request):
        body = json.loads(request.content)
        body[0]['id'] = 1
        return httpx.Response(201, json=body)

    store, recorder = _store(responder)
    saved = store.record_score(ScoreRecord('Alice', 1234, 5, Emoji('🦊')))

    assert saved.player_name == 'Alice'
    assert saved.score == 1234
    assert saved.best_streak == 5
    request = recorder.requests[0]
    assert request.method == 'POST'
    assert str(request.url) == 'https://demo.supabase.co/rest/v1/scores'
    assert request.headers['apikey'] == 'anon-key'
    assert request.headers['Authorization'] == 'Bearer anon-key'
    assert request.headers['Prefer'] == 'return=representation'
    row = json.loads(request.content)[0]
    assert row['player_name'] == 'Alice'
    assert row['streak'] == 5
    assert row['avatar'] == '🦊'
    assert 'created_at' in row


def test_top_scores_queries_descending_with_limit():
    rows = [
        {'player_name': 'B', 'score': 900, 'streak': 3, 'avatar': 'https://x/a.png', 'created_at': '2024-01-01T00:00:00Z'},
        {'player_name': 'A', 'score': 400, 'streak': 1, 'avatar': '🐼', 'created_at': '2024-01-02T00:00:00+00:00'},
    ]
    store, recorder = _store(lambda request: httpx.Response(200, json=rows))
    records = store.top_scores(5)

    assert [r.player_name for r in records] == ['B', 'A']
    assert records[0].avatar == ImageRef('https://x/a.png')
    params = recorder.requests[0].url.params
    assert params['order'] == 'score.desc'
    assert params['limit'] == '5'
    assert params['select'] == '*'


def test_top_scores_never_returns_more_than_requested():
    rows = [{'player_name': f'p{i}', 'score': i, 'streak': 0, 'avatar': '🏆'} for i in range(8)]
    store, _ = _store(lambda request: httpx.Response(200, json=rows))
    records = store.top_scores(3)
    assert [r.score for r in records] == [7, 6, 5]


def test_name_exists_filters_by_exact_name():
    def responder(request):
        if request.url.params['player_name'] == 'eq.Taken':
            return httpx.Response(200, json=[{'player_name': 'Taken'}])
        return httpx.Response(200, json=[])

    store, recorder = _store(responder)
    assert store.name_exists('Taken') is True
    assert store.name_exists('Free') is False
    assert recorder.requests[0].url.params['limit'] == '1'


def test_http_errors_become_unavailable():
    store, _ = _store(lambda request: httpx.Response(500, json={'message': 'boom'}))
    assert store.record_score(ScoreRecord('A', 1, 0)) is UNAVAILABLE
    assert store.top_scores(10) is UNAVAILABLE
    assert store.name_exists('A') is UNAVAILABLE
    assert not UNAVAILABLE


def test_transport_errors_become_unavailable():
    def responder(request):
        raise httpx.ConnectError('no route', request=request)

    store, _ = _store(responder)
    assert store.top_scores(10) is UNAVAILABLE


def test_missing_credentials_become_unavailable():
    store = build_store({'SCORE_STORE': 'supabase', 'SUPABASE_URL': '', 'SUPABASE_KEY': ''})
    assert store.name_exists('anyone') is UNAVAILABLE


def test_no_store_is_always_unavailable():
    store = build_store({'SCORE_STORE': 'none'})
    assert not store.available
    assert store.record_score(ScoreRecord('A', 1, 0)) is UNAVAILABLE
    assert store.top_scores(10) is UNAVAILABLE


def test_auto_picks_supabase_only_with_credentials():
    assert isinstance(build_store({'SCORE_STORE': 'auto', **{k: v for k, v in SUPABASE.items() if k != 'SCORE_STORE'}}).backend,
                      SupabaseBackend)
    assert isinstance(build_store({'SCORE_STORE': 'auto'}, db=db, model=Score).backend, SqlBackend)


def test_credentials_from_config_endpoint_are_fetched_once():
    calls = []

    def responder(request):
        if request.url.path == '/api/config':
            calls.append(request)
            return httpx.Response(200, json={'url': 'https://remote.supabase.co', 'key': 'remote-key'})
        return httpx.Response(200, json=[])

    transport = httpx.MockTransport(responder)
    credentials = StoreCredentials(config_url='http://game.local/api/config', transport=transport)
    store = ScoreStoreClient(SupabaseBackend(credentials, transport=transport))

    assert store.top_scores(3) == []
    assert store.name_exists('x') is False
    assert len(calls) == 1
    assert credentials.resolve() == {'url': 'https://remote.supabase.co', 'key': 'remote-key'}


def test_credentials_accept_legacy_field_names():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={'supabaseUrl': 'https://old.supabase.co/', 'supabaseKey': 'k'})
    )
    credentials = StoreCredentials(config_url='http://game.local/api/config', transport=transport)
    assert credentials.resolve()['url'] == 'https://old.supabase.co'


def test_sql_store_is_append_only_and_ordered(flask_app):
    store = ScoreStoreClient(SqlBackend(db, Score))
    store.record_score(ScoreRecord('Alice', 300, 2))
    store.record_score(ScoreRecord('Bob', 800, 6, Emoji('🤖')))
    store.record_score(ScoreRecord('Alice', 500, 3))

    assert Score.query.filter_by(player_name='Alice').count() == 2
    top = store.top_scores(2)
    assert [(r.player_name, r.score) for r in top] == [('Bob', 800), ('Alice', 500)]
    assert top[0].avatar == Emoji('🤖')
    assert store.name_exists('Alice') is True
    assert store.name_exists('alice') is False


def test_invalid_store_url_becomes_unavailable():
    store, recorder = _store(
        lambda request: httpx.Response(200, json=[]),
        config={**SUPABASE, 'SUPABASE_URL': 'https://demo.supabase.co:notaport'},
    )
    assert store.name_exists('x') is UNAVAILABLE
    assert store.top_scores(5) is UNAVAILABLE
    assert store.record_score(ScoreRecord('A', 1, 0)) is UNAVAILABLE
    assert recorder.requests == []


def test_config_endpoint_with_non_object_body_becomes_unavailable():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=['nope']))
    credentials = StoreCredentials(config_url='http://game.local/api/config', transport=transport)
    store = ScoreStoreClient(SupabaseBackend(credentials, transport=transport))
    assert store.top_scores(3) is UNAVAILABLE
    assert store.name_exists('x') is UNAVAILABLE


def test_malformed_rows_become_unavailable():
    store, _ = _store(lambda request: httpx.Response(200, json=[{'player_name': 'A', 'score': 'lots'}]))
    assert store.top_scores(5) is UNAVAILABLE
    assert store.record_score(ScoreRecord('A', 1, 0)) is UNAVAILABLE

    store, _ = _store(lambda request: httpx.Response(200, json=['not-a-row']))
    assert store.top_scores(5) is UNAVAILABLE
