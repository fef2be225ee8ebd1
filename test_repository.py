from typerating import question_sets, settings
from typerating.repository import (
    QuestionRepository,
    StaticSource,
    SupabaseSource,
    TTLCache,
    default_sources,
)


class ExplodingSource:
    name = "exploding"

    def __init__(self) -> None:
        self.calls = 0

    def fetch_questions(self, criteria=None):
        self.calls += 1
        raise ConnectionError("network down")


def _rows(*ids: str, **extra) -> list[dict]:
    return [
        dict(
            {
                "id": qid,
                "text": f"Remote question {qid}?",
                "options": ["a", "b", "c", "d"],
                "correct_answer": 0,
                "aircraft_type": "A320_FAMILY",
                "category": "Electrical",
                "difficulty": "basic",
                "is_active": True,
            },
            **extra,
        )
        for qid in ids
    ]


def test_ttl_cache_expiry(clock) -> None:
    cache = TTLCache(ttl_seconds=300, clock=clock)
    cache.set("k", [1])
    clock.advance(299)
    assert cache.get("k") == [1]
    clock.advance(1)
    assert cache.get("k") is None


def test_ttl_cache_invalidate(clock) -> None:
    cache = TTLCache(ttl_seconds=300, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.invalidate()
    assert cache.get("b") is None


def test_remote_source_preferred(fake_client, database, clock) -> None:
    fake_client.tables[settings.QUESTIONS_TABLE] = _rows("r1", "r2")
    repo = QuestionRepository(default_sources(database), TTLCache(clock=clock))
    questions = repo.get_all_questions()
    assert [q.id for q in questions] == ["r1", "r2"]
    assert repo.last_source == "remote"


def test_cached_within_ttl(fake_client, database, clock) -> None:
    fake_client.tables[settings.QUESTIONS_TABLE] = _rows("r1")
    repo = QuestionRepository([SupabaseSource(database)], TTLCache(ttl_seconds=300, clock=clock))
    repo.get_all_questions()
    fake_client.tables[settings.QUESTIONS_TABLE] = _rows("r1", "r2")
    clock.advance(120)
    assert len(repo.get_all_questions()) == 1
    assert fake_client.count_calls(settings.QUESTIONS_TABLE, "select") == 1
    clock.advance(180)
    assert len(repo.get_all_questions()) == 2
    assert fake_client.count_calls(settings.QUESTIONS_TABLE, "select") == 2


def test_invalidate_forces_refresh(fake_client, database, clock) -> None:
    fake_client.tables[settings.QUESTIONS_TABLE] = _rows("r1")
    repo = QuestionRepository([SupabaseSource(database)], TTLCache(clock=clock))
    repo.get_all_questions()
    fake_client.tables[settings.QUESTIONS_TABLE] = _rows("r1", "r2")
    repo.invalidate()
    assert len(repo.get_all_questions()) == 2


def test_falls_back_to_bundled_when_remote_fails(fake_client, database, clock) -> None:
    fake_client.fail_tables.add(settings.QUESTIONS_TABLE)
    repo = QuestionRepository(default_sources(database), TTLCache(clock=clock))
    questions = repo.get_all_questions()
    expected = len(question_sets.A320_QUESTIONS) + len(question_sets.B737_QUESTIONS) + len(question_sets.GENERAL_QUESTIONS)
    assert len(questions) == expected
    assert repo.last_source == "bundled"


def test_empty_remote_falls_through(database, clock) -> None:
    repo = QuestionRepository(default_sources(database), TTLCache(clock=clock))
    assert repo.get_all_questions()
    assert repo.last_source == "bundled"


def _corrupt_loader() -> list[dict]:
    raise ValueError("corrupt bundle")


def test_minimal_set_is_last_resort(clock) -> None:
    broken = StaticSource("bundled", [_corrupt_loader])
    minimal = StaticSource("minimal", [question_sets.load_minimal_questions], limit=3)
    repo = QuestionRepository([ExplodingSource(), broken, minimal], TTLCache(clock=clock))
    questions = repo.get_all_questions()
    assert [q.id for q in questions] == ["min-001", "min-002", "min-003"]
    assert repo.last_source == "minimal"


def test_invalid_and_inactive_records_dropped(clock) -> None:
    rows = _rows("ok-1", "ok-2")
    rows += _rows("bad-options", options=["a", "b"])
    rows += _rows("bad-index", correct_answer=9)
    rows += _rows("ok-1")
    rows += _rows("inactive", is_active=False)
    repo = QuestionRepository([StaticSource("rows", [lambda: rows])], TTLCache(clock=clock))
    assert [q.id for q in repo.get_all_questions()] == ["ok-1", "ok-2"]


def test_never_raises_and_empty_is_not_cached(clock) -> None:
    source = ExplodingSource()
    repo = QuestionRepository([source], TTLCache(clock=clock))
    assert repo.get_all_questions() == []
    assert repo.get_all_questions() == []
    assert source.calls == 2


def test_static_source_concatenates_and_truncates() -> None:
    source = StaticSource("two", [lambda: [{"id": 1}], lambda: [{"id": 2}, {"id": 3}]], limit=2)
    assert source.fetch_questions() == [{"id": 1}, {"id": 2}]


def test_default_sources_without_database() -> None:
    names = [s.name for s in default_sources()]
    assert names == ["bundled", "minimal"]
    minimal = default_sources()[-1]
    assert minimal.limit == settings.MINIMAL_SET_LIMIT
