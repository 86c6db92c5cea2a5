"""Score store client.

The game keeps a single append-only ``scores`` collection with the columns
``player_name, score, streak, avatar, created_at``. It can live in Supabase
(reached over its PostgREST API) or in the app's own SQL database.

Backends raise :class:`StoreError`. :class:`ScoreStoreClient` is the only
thing callers talk to: it never raises and reports any failure as the falsy
``UNAVAILABLE`` sentinel, so gameplay carries on without the remote board.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Union

import httpx
from sqlalchemy.exc import SQLAlchemyError

from quizgame.errors import StoreError
from .types import ScoreRecord

logger = logging.getLogger(__name__)

TABLE = 'scores'


class _Unavailable:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'UNAVAILABLE'


UNAVAILABLE = _Unavailable()


class StoreCredentials:
    """Resolves ``{url, key}`` once and keeps it for the life of the process.

    With ``config_url`` set the credentials are fetched from that endpoint
    (the same shape served by ``GET /api/config``); otherwise the static
    values are used.
    """

    def __init__(
        self,
        url: str = '',
        key: str = '',
        config_url: str = '',
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._static = (url or '', key or '')
        self._config_url = config_url or ''
        self._timeout = timeout
        self._transport = transport
        self._resolved: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    def _fetch_remote(self) -> Dict[str, str]:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(self._config_url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise StoreError(f'Could not load store config from {self._config_url}: {exc}') from exc
        if not isinstance(data, dict):
            raise StoreError(f'Store config from {self._config_url} is not an object')
        return {
            'url': str(data.get('url') or data.get('supabaseUrl') or ''),
            'key': str(data.get('key') or data.get('supabaseKey') or ''),
        }

    def resolve(self) -> Dict[str, str]:
        with self._lock:
            if self._resolved is None:
                if self._config_url:
                    resolved = self._fetch_remote()
                else:
                    resolved = {'url': self._static[0], 'key': self._static[1]}
                if not resolved['url'] or not resolved['key']:
                    raise StoreError('Score store URL/key not configured')
                resolved['url'] = resolved['url'].rstrip('/')
                self._resolved = resolved
                logger.info('Score store credentials resolved for %s', resolved['url'])
            return dict(self._resolved)

    @property
    def configured(self) -> bool:
        return bool(self._config_url or (self._static[0] and self._static[1]))


class SupabaseBackend:
    """``scores`` table through the Supabase REST endpoint."""

    def __init__(
        self,
        credentials: StoreCredentials,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self.transport = transport

    def _headers(self, key: str, prefer: Optional[str] = None) -> Dict[str, str]:
        header = {
            'apikey': key,
            'Authorization': f'Bearer {key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if prefer:
            header['Prefer'] = prefer
        return header

    def _request(self, method: str, params: Optional[Dict[str, Any]] = None,
                 payload: Optional[List[Dict[str, Any]]] = None,
                 prefer: Optional[str] = None) -> List[Dict[str, Any]]:
        creds = self.credentials.resolve()
        url = f"{creds['url']}/rest/v1/{TABLE}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(
                    method, url, params=params, json=payload,
                    headers=self._headers(creds['key'], prefer),
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                'Supabase %s failed: table=%s status=%s body=%s',
                method, TABLE, exc.response.status_code, exc.response.text,
            )
            raise StoreError(f'Supabase {method} returned {exc.response.status_code}') from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise StoreError(f'Supabase {method} failed: {exc}') from exc

        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as exc:
            raise StoreError('Supabase returned a non-JSON body') from exc
        if isinstance(data, dict):
            return data.get('data', [])
        if isinstance(data, list):
            return data
        return []

    def _parse(self, rows: List[Dict[str, Any]]) -> List[ScoreRecord]:
        try:
            return [ScoreRecord.from_row(r) for r in rows]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreError(f'Supabase returned a malformed score row: {exc}') from exc

    def insert(self, record: ScoreRecord) -> ScoreRecord:
        rows = self._request('POST', payload=[record.to_row()], prefer='return=representation')
        return self._parse(rows[:1])[0] if rows else record

    def top(self, limit: int) -> List[ScoreRecord]:
        rows = self._request('GET', params={
            'select': '*',
            'order': 'score.desc',
            'limit': limit,
        })
        return self._parse(rows)

    def exists(self, name: str) -> bool:
        rows = self._request('GET', params={
            'select': 'player_name',
            'player_name': f'eq.{name}',
            'limit': 1,
        })
        return len(rows) > 0


class SqlBackend:
    """``scores`` table in the app database (Flask-SQLAlchemy)."""

    def __init__(self, db, model):
        self.db = db
        self.model = model

    def insert(self, record: ScoreRecord) -> ScoreRecord:
        row = self.model(
            player_name=record.player_name,
            score=record.score,
            streak=record.best_streak,
            avatar=str(record.avatar),
            created_at=record.timestamp,
        )
        try:
            self.db.session.add(row)
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f'Could not insert score: {exc}') from exc
        return ScoreRecord.from_row(row.to_dict())

    def top(self, limit: int) -> List[ScoreRecord]:
        try:
            rows = (
                self.model.query
                .order_by(self.model.score.desc(), self.model.id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f'Could not query scores: {exc}') from exc
        return [ScoreRecord.from_row(r.to_dict()) for r in rows]

    def exists(self, name: str) -> bool:
        try:
            return self.model.query.filter_by(player_name=name).first() is not None
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f'Could not check player name: {exc}') from exc


class ScoreStoreClient:
    """Never-raising facade over a backend (or no backend at all)."""

    def __init__(self, backend=None):
        self.backend = backend

    @property
    def available(self) -> bool:
        return self.backend is not None

    def record_score(self, record: ScoreRecord) -> Union[ScoreRecord, _Unavailable]:
        if self.backend is None:
            return UNAVAILABLE
        try:
            saved = self.backend.insert(record)
        except StoreError as exc:
            logger.warning('Score for %s not saved: %s', record.player_name, exc)
            return UNAVAILABLE
        logger.info('Saved score %d for %s', record.score, record.player_name)
        return saved

    def top_scores(self, n: int = 10) -> Union[List[ScoreRecord], _Unavailable]:
        if self.backend is None:
            return UNAVAILABLE
        if n <= 0:
            return []
        try:
            records = self.backend.top(n)
        except StoreError as exc:
            logger.warning('Top scores unavailable: %s', exc)
            return UNAVAILABLE
        records = sorted(records, key=lambda r: r.score, reverse=True)
        return records[:n]

    def name_exists(self, name: str) -> Union[bool, _Unavailable]:
        if self.backend is None:
            return UNAVAILABLE
        try:
            return self.backend.exists(name)
        except StoreError as exc:
            logger.warning('Name check for %s skipped: %s', name, exc)
            return UNAVAILABLE


def build_store(config, db=None, model=None, transport: Optional[httpx.BaseTransport] = None) -> ScoreStoreClient:
    """Pick a backend from ``SCORE_STORE`` (supabase | sql | none | auto)."""
    kind = str(config.get('SCORE_STORE', 'auto') or 'auto').lower()
    timeout = float(config.get('STORE_TIMEOUT_SEC', 10))
    credentials = StoreCredentials(
        url=config.get('SUPABASE_URL', ''),
        key=config.get('SUPABASE_KEY', ''),
        config_url=config.get('STORE_CONFIG_URL', ''),
        timeout=timeout,
        transport=transport,
    )
    if kind == 'auto':
        kind = 'supabase' if credentials.configured else 'sql'

    if kind == 'supabase':
        return ScoreStoreClient(SupabaseBackend(credentials, timeout=timeout, transport=transport))
    if kind == 'sql' and db is not None and model is not None:
        return ScoreStoreClient(SqlBackend(db, model))
    if kind not in ('none', 'sql'):
        logger.warning('Unknown SCORE_STORE %r, running without a score store', kind)
    return ScoreStoreClient(None)
