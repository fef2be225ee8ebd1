import pytest

from typerating import settings
from typerating.engine import (
    ABANDONED,
    COMPLETED,
    IN_PROGRESS,
    NOT_STARTED,
    ExamSession,
    PracticeMode,
    ReviewMode,
    SessionStateError,
    TimedMode,
    get_mode,
)
from typerating.questions import Answer, Exam
from typerating.scoring import LedgerUpdates, MissedAnswer, ReviewLedger


@pytest.fixture
def questions(make_question):
    return [make_question(f"q{i}", correct=i % 4) for i in range(1, 4)]


def _session(questions, mode, clock, database=None, user_id="user-1", exam=None):
    return ExamSession(questions, mode=mode, exam=exam, user_id=user_id, database=database, clock=clock)


def test_get_mode() -> None:
    assert isinstance(get_mode("practice"), PracticeMode)
    assert isinstance(get_mode(" Timed "), TimedMode)
    assert isinstance(get_mode("review"), ReviewMode)
    mode = ReviewMode()
    assert get_mode(mode) is mode
    with pytest.raises(ValueError):
        get_mode("marathon")


def test_start_initializes_session(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database, exam=Exam(id="e1", title="A320", time_limit=30))
    assert session.state == NOT_STARTED
    session_id = session.start()
    assert session.state == IN_PROGRESS
    assert session.session_id == session_id
    assert session.current_index == 0
    assert session.answers == {}
    assert session.started_at == clock.now
    assert session.time_remaining == 30 * 60
    stored = fake_client.rows(settings.SESSIONS_TABLE)
    assert stored[0]["id"] == session_id
    assert stored[0]["mode"] == "timed"
    assert stored[0]["exam_id"] == "e1"


def test_fresh_session_id_per_session(questions, clock) -> None:
    first = _session(questions, "practice", clock)
    second = _session(questions, "practice", clock)
    assert first.start() != second.start()


def test_untimed_modes_have_no_countdown(questions, clock) -> None:
    exam = Exam(id="e1", title="A320", time_limit=30)
    for mode in ("practice", "review"):
        session = _session(questions, mode, clock, exam=exam)
        session.start()
        assert session.time_remaining == 0
        session.tick()
        assert session.state == IN_PROGRESS


def test_timed_mode_default_limit(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    assert session.time_remaining == settings.DEFAULT_TIMED_LIMIT_MINUTES * 60


def test_start_requires_questions(clock) -> None:
    with pytest.raises(SessionStateError):
        _session([], "practice", clock).start()


def test_start_only_once(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    with pytest.raises(SessionStateError):
        session.start()


def test_start_notification_failure_does_not_block(questions, clock, database, fake_client) -> None:
    fake_client.fail_tables.add(settings.SESSIONS_TABLE)
    session = _session(questions, "timed", clock, database)
    session.start()
    assert session.state == IN_PROGRESS
    result = session.submit()
    assert result is not None
    assert session.state == COMPLETED


def test_scenario_c_timer_expiry_submits_once(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database, exam=Exam(id="e1", title="Quick", time_limit=1))
    session.start()
    for _ in range(59):
        session.tick()
    assert session.state == IN_PROGRESS
    assert session.time_remaining == 1
    session.tick()
    assert session.state == COMPLETED
    assert session.result.score == 0
    assert session.result.correct_count == 0
    for _ in range(5):
        session.tick()
    assert session.submit() is None
    assert fake_client.count_calls(settings.SESSIONS_TABLE, "upsert") == 1


def test_scenario_d_practice_commits_final_selection(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    assert session.select_answer("q1", 2) is None
    assert session.select_answer("q1", 1) is None
    assert session.answers == {}
    answer = session.confirm_answer("q1")
    assert answer.selected_answer == 1
    assert answer.is_correct is True
    assert session.answers["q1"].selected_answer == 1
    assert session.is_revealed("q1")


def test_practice_confirm_without_pending_is_noop(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    assert session.confirm_answer("q1") is None
    assert session.answers == {}


def test_practice_reselect_hides_explanation(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    session.select_answer("q1", 0)
    session.confirm_answer("q1")
    assert session.is_revealed("q1")
    session.select_answer("q1", 1)
    assert session.pending_selection("q1") == 1
    assert not session.is_revealed("q1")
    assert session.answers["q1"].selected_answer == 0
    session.confirm_answer("q1")
    assert session.answers["q1"].selected_answer == 1
    assert session.is_revealed("q1")


def test_practice_reselect_same_option_keeps_explanation(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    session.select_answer("q1", 1)
    session.confirm_answer("q1")
    session.select_answer("q1", 1)
    assert session.is_revealed("q1")


def test_practice_advance_requires_answer(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    assert session.advance() is False
    session.select_answer("q1", 3)
    assert session.advance() is False
    session.confirm_answer("q1")
    assert session.advance() is True
    assert session.current_question.id == "q2"


def test_timed_commits_immediately_and_replaces(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    first = session.select_answer("q1", 0)
    assert first.is_correct is False
    second = session.select_answer("q1", 1)
    assert second.is_correct is True
    assert list(session.answers) == ["q1"]
    assert session.confirm_answer("q1") is None
    assert session.advance() is True


def test_time_on_question(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    clock.advance(10)
    assert session.select_answer("q1", 0).time_spent == 10
    clock.advance(5)
    assert session.select_answer("q2", 0).time_spent == 5
    clock.advance(3)
    assert session.select_answer("q1", 1).time_spent == 13


def test_invalid_selections_ignored(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    assert session.select_answer("q1", 0) is None
    session.start()
    assert session.select_answer("missing", 0) is None
    assert session.select_answer("q1", 4) is None
    assert session.select_answer("q1", True) is None
    assert session.answers == {}


def test_navigation_bounds(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    assert session.retreat() is False
    assert session.advance() and session.advance()
    assert session.advance() is False
    assert session.current_index == 2
    assert session.retreat() is True
    assert session.go_to(0) is True
    assert session.go_to(3) is False
    assert session.go_to(-1) is False
    assert session.current_index == 0


def test_submit_scores_and_persists(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database)
    session.start()
    session.select_answer("q1", 1)
    session.select_answer("q2", 0)
    clock.advance(42)
    result = session.submit()
    assert result.score == 33
    assert result.correct_count == 1
    assert result.total_questions == 3
    assert result.time_spent == 42
    assert result.passed is False
    assert [a.question_id for a in result.incorrect_answers] == ["q2"]
    assert result.category_breakdown["Electrical"]["total"] == 3

    stored = fake_client.rows(settings.SESSIONS_TABLE)[0]
    assert stored["status"] == "completed"
    assert stored["score"] == 33
    assert len(stored["answers"]) == 2

    missed = fake_client.rows(settings.MISSED_QUESTIONS_TABLE)
    assert [row["question_id"] for row in missed] == ["q2"]


def test_submit_with_final_answers(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database)
    session.start()
    session.select_answer("q1", 0)
    result = session.submit([Answer("q1", 1), Answer("q2", 2), Answer("q3", 3), Answer("elsewhere", 0)])
    assert result.correct_count == 3
    assert result.score == 100
    assert result.passed is True
    assert [a.is_correct for a in result.answers] == [True, True, True]
    stored = fake_client.rows(settings.SESSIONS_TABLE)[0]["answers"]
    assert [row["is_correct"] for row in stored] == [True, True, True]


def test_final_answers_have_derived_correctness(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database)
    session.start()
    result = session.submit([
        Answer("q1", 1, time_spent=12, is_correct=False),
        Answer("q2", 0, is_correct=True),
        Answer("q3", 7, is_correct=True),
    ])
    by_id = {a.question_id: a for a in result.answers}
    assert set(by_id) == {"q1", "q2"}
    assert by_id["q1"].is_correct is True
    assert by_id["q1"].time_spent == 12
    assert by_id["q2"].is_correct is False
    assert result.correct_count == 1
    stored = {row["question_id"]: row for row in fake_client.rows(settings.SESSIONS_TABLE)[0]["answers"]}
    assert stored["q1"]["is_correct"] is True
    assert stored["q2"]["is_correct"] is False


def test_double_submit_is_noop(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database)
    session.start()
    session.select_answer("q1", 0)
    first = session.submit()
    assert session.submit() is None
    assert session.result is first
    rows = fake_client.rows(settings.MISSED_QUESTIONS_TABLE)
    assert len(rows) == 1
    assert rows[0]["attempt_count"] == 1
    assert fake_client.count_calls(settings.SESSIONS_TABLE, "upsert") == 1


def test_answers_after_completion_ignored(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    session.submit()
    assert session.select_answer("q1", 1) is None
    assert session.answers == {}


def test_practice_queued_miss_is_recorded_even_if_corrected(questions, clock, database, fake_client) -> None:
    session = _session(questions, "practice", clock, database)
    session.start()
    session.select_answer("q1", 3)
    session.confirm_answer("q1")
    session.select_answer("q1", 1)
    session.confirm_answer("q1")
    result = session.submit()
    assert result.correct_count == 1
    rows = fake_client.rows(settings.MISSED_QUESTIONS_TABLE)
    assert [(row["question_id"], row["incorrect_answer"]) for row in rows] == [("q1", 3)]


def test_ledger_failure_does_not_affect_result(questions, clock, database, fake_client) -> None:
    fake_client.fail_tables.add(settings.MISSED_QUESTIONS_TABLE)
    session = _session(questions, "timed", clock, database)
    session.start()
    session.select_answer("q1", 0)
    result = session.submit()
    assert result.score == 0
    assert session.state == COMPLETED


def test_abandon_stops_timer_without_submitting(questions, clock, database, fake_client) -> None:
    session = _session(questions, "timed", clock, database, exam=Exam(id="e1", title="Quick", time_limit=1))
    session.start()
    session.select_answer("q1", 0)
    assert session.abandon() is True
    for _ in range(120):
        session.tick()
    assert session.state == ABANDONED
    assert session.result is None
    assert session.submit() is None
    assert session.abandon() is False
    assert fake_client.count_calls(settings.SESSIONS_TABLE, "upsert") == 0
    assert fake_client.rows(settings.MISSED_QUESTIONS_TABLE) == []


def test_scenario_e_review_resolves_missed_questions(questions, clock, database, fake_client) -> None:
    ledger = ReviewLedger(database)
    ledger.apply("user-1", LedgerUpdates(missed=tuple(MissedAnswer(q, (q.correct_answer + 1) % 4) for q in questions)))
    assert len(ledger.unresolved_question_ids("user-1")) == 3

    session = ExamSession(questions, mode="review", user_id="user-1", database=database, ledger=ledger, clock=clock)
    session.start()
    for question in questions:
        session.select_answer(question.id, question.correct_answer)
    result = session.submit()

    assert result.score == 100
    assert ledger.unresolved_question_ids("user-1") == []
    assert all(row["is_resolved"] for row in fake_client.rows(settings.MISSED_QUESTIONS_TABLE))


def test_review_wrong_answer_does_not_add_misses(questions, clock, database, fake_client) -> None:
    session = _session(questions, "review", clock, database)
    session.start()
    session.select_answer("q1", 0)
    session.submit()
    assert fake_client.rows(settings.MISSED_QUESTIONS_TABLE) == []


def test_result_to_dict(questions, clock) -> None:
    session = _session(questions, "timed", clock)
    session.start()
    session.select_answer("q1", 1)
    data = session.submit().to_dict()
    assert data["mode"] == "timed"
    assert data["answers"] == [{"question_id": "q1", "selected_answer": 1, "time_spent": 0, "is_correct": True}]
    assert data["passing_score"] == 75
    assert data["started_at"].endswith("+00:00")


def test_session_summary(questions, clock) -> None:
    session = _session(questions, "practice", clock)
    session.start()
    summary = session.get_session_summary()
    assert summary["current_question"] == 1
    assert summary["total_questions"] == 3
    assert summary["time_remaining_sec"] is None
