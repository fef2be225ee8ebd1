"""
Question, Answer and Exam records plus the question record normalizer.

Records arrive in two shapes: camelCase (bundled sets, legacy exports) and
snake_case (Supabase rows). Both are normalized to Question; malformed records
are dropped, never raised.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid5, NAMESPACE_DNS

from typerating import settings
from typerating.criteria import (
    AIRCRAFT_TYPES,
    DIFFICULTIES,
    normalize_aircraft,
    normalize_difficulty,
)

logger = logging.getLogger(__name__)

OPTION_COUNT = 4
DEFAULT_CATEGORY = "General"
DEFAULT_DIFFICULTY = "intermediate"
DEFAULT_AIRCRAFT = "GENERAL"


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    options: Tuple[str, str, str, str]
    correct_answer: int
    explanation: str = ""
    aircraft_type: str = DEFAULT_AIRCRAFT
    category: str = DEFAULT_CATEGORY
    difficulty: str = DEFAULT_DIFFICULTY
    is_active: bool = True
    created_at: Optional[int] = None  # epoch ms
    reference: Optional[str] = None
    regulation_code: Optional[str] = None
    source: Optional[str] = None

    def is_correct(self, selected_answer: Optional[int]) -> bool:
        return selected_answer is not None and selected_answer == self.correct_answer

    def to_row(self) -> Dict:
        """Snake_case row for the questions table."""
        row = {
            "id": self.id,
            "text": self.text,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "aircraft_type": self.aircraft_type,
            "category": self.category,
            "difficulty": self.difficulty,
            "is_active": self.is_active,
            "reference": self.reference,
            "regulation_code": self.regulation_code,
            "source": self.source,
        }
        if self.created_at is not None:
            row["created_at"] = datetime.fromtimestamp(self.created_at / 1000, tz=timezone.utc).isoformat()
        return row


@dataclass
class Answer:
    question_id: str
    selected_answer: int
    time_spent: int = 0
    is_correct: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Exam:
    id: str
    title: str
    description: str = ""
    aircraft_type: str = "ALL"
    category: str = ""
    difficulty: str = "all"
    time_limit: int = 0  # minutes, 0 = untimed
    passing_score: int = settings.DEFAULT_PASSING_SCORE
    questions_count: int = settings.DEFAULT_QUESTION_COUNT
    is_active: bool = True
    metadata: Dict = field(default_factory=dict)

    @property
    def time_limit_seconds(self) -> int:
        return max(0, int(self.time_limit or 0)) * 60

    @classmethod
    def from_row(cls, row: Dict) -> "Exam":
        return cls(
            id=str(row.get("id") or row.get("_id") or ""),
            title=row.get("title") or "",
            description=row.get("description") or "",
            aircraft_type=normalize_aircraft(row.get("aircraft_type") or row.get("aircraftType")),
            category=row.get("category") or "",
            difficulty=normalize_difficulty(row.get("difficulty")),
            time_limit=int(_pick(row, "time_limit", "timeLimit", default=0) or 0),
            passing_score=int(_pick(row, "passing_score", "passingScore", default=settings.DEFAULT_PASSING_SCORE)),
            questions_count=int(_pick(row, "questions_count", "questionsCount", default=settings.DEFAULT_QUESTION_COUNT)),
            is_active=_parse_bool(_pick(row, "is_active", "isActive"), default=True),
        )


def _pick(raw: Dict, *names, default=None):
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return default


TRUE_STRINGS = {"true", "t", "yes", "y", "1", "on"}
FALSE_STRINGS = {"false", "f", "no", "n", "0", "off", ""}


def _parse_bool(value, default: bool = True) -> bool:
    """Flags from JSONL exports may arrive as strings ("false", "0")."""
    if value is None:
        return default
    if isinstance(value, str):
        token = value.strip().lower()
        if token in TRUE_STRINGS:
            return True
        if token in FALSE_STRINGS:
            return False
        logger.debug(f"Unrecognized boolean {value!r}; using {default}")
        return default
    return bool(value)


def _parse_created_at(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(parsed.timestamp() * 1000)


def question_id_for(text: str) -> str:
    """Deterministic id for records that carry none."""
    return str(uuid5(NAMESPACE_DNS, text.strip()))


def normalize_question(raw: Dict) -> Optional[Question]:
    """
    Normalize one raw record to a Question.

    Returns None (and logs at DEBUG) when the record is unusable: no text,
    options that are not exactly four non-empty strings, or a correct index
    outside 0-3.
    """
    if not isinstance(raw, dict):
        logger.debug(f"Dropping non-mapping question record: {raw!r}")
        return None

    text = _pick(raw, "text", "question")
    if not isinstance(text, str) or not text.strip():
        logger.debug(f"Dropping question without text: {raw.get('id') or raw.get('_id')}")
        return None
    text = text.strip()

    options = raw.get("options")
    if (
        not isinstance(options, (list, tuple))
        or len(options) != OPTION_COUNT
        or not all(isinstance(o, str) and o.strip() for o in options)
    ):
        logger.debug(f"Dropping question with invalid options: {text[:50]}")
        return None

    correct = _pick(raw, "correct_answer", "correctAnswer", "correct_answer_idx")
    if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < OPTION_COUNT:
        logger.debug(f"Dropping question with invalid correct index {correct!r}: {text[:50]}")
        return None

    aircraft = normalize_aircraft(_pick(raw, "aircraft_type", "aircraftType"))
    if aircraft == "ALL":
        aircraft = DEFAULT_AIRCRAFT

    difficulty = normalize_difficulty(raw.get("difficulty"))
    if difficulty not in DIFFICULTIES:
        difficulty = DEFAULT_DIFFICULTY

    category = raw.get("category")
    if not isinstance(category, str) or not category.strip():
        category = DEFAULT_CATEGORY

    return Question(
        id=str(_pick(raw, "id", "_id") or question_id_for(text)),
        text=text,
        options=tuple(o.strip() for o in options),
        correct_answer=correct,
        explanation=(raw.get("explanation") or "").strip(),
        aircraft_type=aircraft,
        category=category.strip(),
        difficulty=difficulty,
        is_active=_parse_bool(_pick(raw, "is_active", "isActive"), default=True),
        created_at=_parse_created_at(_pick(raw, "created_at", "_creationTime", "createdAt")),
        reference=raw.get("reference"),
        regulation_code=_pick(raw, "regulation_code", "regulationCode"),
        source=raw.get("source"),
    )


def normalize_questions(records: Iterable[Dict]) -> List[Question]:
    questions = []
    dropped = 0
    for raw in records or []:
        question = normalize_question(raw)
        if question is None:
            dropped += 1
            continue
        questions.append(question)
    if dropped:
        logger.info(f"Dropped {dropped} malformed question records")
    return questions


def validate_question(payload: Dict) -> List[str]:
    """
    Authoring rules for new questions (suggestions, manual inserts).

    Args:
        payload: camelCase or snake_case question fields

    Returns:
        List of error messages; empty when the payload is valid
    """
    errors = []

    text = _pick(payload, "text", "question", default="")
    if not isinstance(text, str) or not text.strip():
        errors.append("Question text is required")
    elif len(text.strip()) < 10:
        errors.append("Question text must be at least 10 characters")
    elif len(text.strip()) > 500:
        errors.append("Question text must be at most 500 characters")

    options = payload.get("options")
    if not isinstance(options, (list, tuple)) or len(options) != OPTION_COUNT:
        errors.append("Exactly 4 options are required")
    else:
        cleaned = [o.strip() if isinstance(o, str) else "" for o in options]
        for i, option in enumerate(cleaned):
            if not option:
                errors.append(f"Option {i + 1} must not be empty")
            elif len(option) > 200:
                errors.append(f"Option {i + 1} must be at most 200 characters")
        non_empty = [o.lower() for o in cleaned if o]
        if len(set(non_empty)) != len(non_empty):
            errors.append("Options must be unique")

    correct = _pick(payload, "correct_answer", "correctAnswer")
    if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < OPTION_COUNT:
        errors.append("Correct answer must be an index between 0 and 3")

    explanation = payload.get("explanation") or ""
    if not isinstance(explanation, str) or len(explanation.strip()) < 20:
        errors.append("Explanation must be at least 20 characters")
    elif len(explanation.strip()) > 1000:
        errors.append("Explanation must be at most 1000 characters")

    aircraft = normalize_aircraft(_pick(payload, "aircraft_type", "aircraftType"))
    if aircraft not in AIRCRAFT_TYPES:
        errors.append(f"Unknown aircraft type: {aircraft}")

    category = payload.get("category") or ""
    if not isinstance(category, str) or len(category.strip()) < 2:
        errors.append("Category must be at least 2 characters")

    difficulty = normalize_difficulty(payload.get("difficulty"))
    if difficulty not in DIFFICULTIES:
        errors.append(f"Unknown difficulty: {payload.get('difficulty')}")

    return errors
