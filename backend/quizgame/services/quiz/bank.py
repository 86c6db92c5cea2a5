"""Question bank and opponent roster loading.

Both ship as JSON under ``quizgame/data``. A custom question bank can be
pointed at with ``QUESTION_BANK_PATH``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from quizgame.errors import ValidationError
from .types import Opponent, Question, parse_avatar

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[2] / 'data'
DEFAULT_BANK_PATH = DATA_DIR / 'questions.json'
DEFAULT_ROSTER_PATH = DATA_DIR / 'opponents.json'
DEFAULT_AVATARS_PATH = DATA_DIR / 'avatars.json'


def _read_json(path: Path) -> Any:
    with open(path, 'r', encoding='utf-8') as fh:
        return json.load(fh)


def parse_question(item: Dict[str, Any], position: int = 0) -> Question:
    try:
        prompt = str(item['prompt']).strip()
        options = [str(o) for o in item['options']]
        correct = int(item['correct_index'])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f'Question #{position} is malformed: {exc}') from exc
    if not prompt:
        raise ValidationError(f'Question #{position} has an empty prompt')
    if len(options) != 4:
        raise ValidationError(f'Question #{position} must have exactly 4 options, got {len(options)}')
    if not 0 <= correct < 4:
        raise ValidationError(f'Question #{position} has correct_index {correct} outside 0..3')
    return Question(
        prompt=prompt,
        category=str(item.get('category') or 'General'),
        options=tuple(options),
        correct_index=correct,
    )


class QuestionBank:
    """Immutable, ordered collection of questions."""

    def __init__(self, questions: Iterable[Question]):
        self._questions = tuple(questions)
        if not self._questions:
            raise ValidationError('Question bank is empty')

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self):
        return iter(self._questions)

    def __getitem__(self, index: int) -> Question:
        return self._questions[index]

    @property
    def questions(self) -> Sequence[Question]:
        return self._questions

    def categories(self) -> List[str]:
        seen: List[str] = []
        for q in self._questions:
            if q.category not in seen:
                seen.append(q.category)
        return seen

    @classmethod
    def from_items(cls, items: Iterable[Dict[str, Any]]) -> 'QuestionBank':
        return cls(parse_question(item, i) for i, item in enumerate(items))

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'QuestionBank':
        bank_path = Path(path) if path else DEFAULT_BANK_PATH
        data = _read_json(bank_path)
        if isinstance(data, dict):
            data = data.get('questions', [])
        bank = cls.from_items(data)
        logger.info('Loaded %d questions from %s', len(bank), bank_path)
        return bank


def load_roster(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Raw opponent templates; fresh :class:`Opponent` objects come from :func:`build_opponents`."""
    return list(_read_json(Path(path) if path else DEFAULT_ROSTER_PATH))


def build_opponents(roster: Iterable[Dict[str, Any]]) -> List[Opponent]:
    return [
        Opponent(
            name=str(entry['name']),
            avatar=parse_avatar(entry.get('avatar')),
            score=int(entry.get('score', 0)),
            streak=int(entry.get('streak', 0)),
        )
        for entry in roster
    ]


def load_avatars(path: Optional[str] = None) -> List[str]:
    return [str(a) for a in _read_json(Path(path) if path else DEFAULT_AVATARS_PATH)]
