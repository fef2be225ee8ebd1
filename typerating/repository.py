"""
Question repository: an ordered chain of question sources behind a TTL cache.

Sources are tried in order (remote bank, bundled sets, minimal set). A source
that raises or yields no usable records is skipped; the repository itself never
raises and returns an empty list only when every source is exhausted.
"""
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from typerating import settings
from typerating import question_sets
from typerating.questions import Question, normalize_questions

logger = logging.getLogger(__name__)

ALL_QUESTIONS_KEY = "all_questions"


class TTLCache:
    """Small key/value cache whose entries expire after ttl_seconds."""

    def __init__(self, ttl_seconds: float = settings.QUESTION_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value):
        self._entries[key] = (self.clock(), value)

    def invalidate(self, key: Optional[str] = None):
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


class Source:
    """A provider of raw question records. fetch_questions raises on failure."""

    name = "source"

    def fetch_questions(self, criteria=None) -> List[Dict]:
        raise NotImplementedError


class SupabaseSource(Source):
    """Active questions from the remote question bank."""

    def __init__(self, database, limit: int = settings.REMOTE_QUESTION_LIMIT, name: str = "remote"):
        self.database = database
        self.limit = limit
        self.name = name

    def fetch_questions(self, criteria=None) -> List[Dict]:
        return self.database.query_questions(limit=self.limit)


class StaticSource(Source):
    """Bundled question sets; loader results are concatenated and optionally truncated."""

    def __init__(self, name: str, loaders: Sequence[Callable[[], List[Dict]]], limit: Optional[int] = None):
        self.name = name
        self.loaders = list(loaders)
        self.limit = limit

    def fetch_questions(self, criteria=None) -> List[Dict]:
        records: List[Dict] = []
        for loader in self.loaders:
            records.extend(loader())
        if self.limit is not None:
            records = records[: self.limit]
        return records


def default_sources(database=None) -> List[Source]:
    """Remote bank (when a database is given), then bundled sets, then the minimal set."""
    sources: List[Source] = []
    if database is not None:
        sources.append(SupabaseSource(database))
    sources.append(StaticSource("bundled", question_sets.BUNDLED_LOADERS))
    sources.append(StaticSource("minimal", [question_sets.load_minimal_questions], limit=settings.MINIMAL_SET_LIMIT))
    return sources


def _prepare(records: Iterable[Dict]) -> List[Question]:
    seen = set()
    questions = []
    for question in normalize_questions(records):
        if not question.is_active or question.id in seen:
            continue
        seen.add(question.id)
        questions.append(question)
    return questions


class QuestionRepository:
    """Cached access to the question bank across fallback sources."""

    def __init__(self, sources: Sequence[Source], cache: Optional[TTLCache] = None):
        self.sources = list(sources)
        self.cache = cache if cache is not None else TTLCache()
        self.last_source: Optional[str] = None

    def get_all_questions(self) -> List[Question]:
        """
        Return every active question from the first source that yields any.

        Returns:
            List of Question (possibly empty, never raises)
        """
        cached = self.cache.get(ALL_QUESTIONS_KEY)
        if cached is not None:
            return list(cached)

        for source in self.sources:
            try:
                questions = _prepare(source.fetch_questions())
            except Exception as e:
                logger.warning(f"Question source {source.name} unavailable: {e}")
                continue
            if not questions:
                logger.warning(f"Question source {source.name} returned no usable questions")
                continue

            logger.info(f"Loaded {len(questions)} questions from {source.name}")
            self.last_source = source.name
            self.cache.set(ALL_QUESTIONS_KEY, tuple(questions))
            return questions

        logger.error("All question sources exhausted; no questions available")
        return []

    def invalidate(self):
        self.cache.invalidate()
