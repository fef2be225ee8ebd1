"""
Exam session engine: session state machine and answer-commit modes.

A session moves NOT_STARTED -> IN_PROGRESS -> COMPLETED, or to ABANDONED when
the user leaves. How an answer is committed depends on the mode:

    practice  select marks a pending choice; confirm commits and reveals it
    timed     select commits immediately; the countdown auto-submits at zero
    review    select commits immediately; correct answers resolve missed records
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from typerating import settings
from typerating.questions import Answer, Exam, Question
from typerating.scoring import ReviewLedger, category_breakdown, ledger_updates, score

logger = logging.getLogger(__name__)

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ABANDONED = "abandoned"


class SessionStateError(Exception):
    """Raised when a session cannot be started."""


class SessionMode:
    """Commit semantics for one exam mode."""

    name = ""
    records_misses = True
    resolves_misses = False

    def time_limit_minutes(self, exam: Optional[Exam]) -> int:
        return 0

    def select_answer(self, session: "ExamSession", question_id: str, option_index: int) -> Optional[Answer]:
        raise NotImplementedError

    def confirm_answer(self, session: "ExamSession", question_id: str) -> Optional[Answer]:
        logger.debug(f"confirm_answer has no effect in {self.name} mode")
        return None

    def can_advance(self, session: "ExamSession") -> bool:
        return True


class PracticeMode(SessionMode):
    """Deferred commit: a choice is pending until confirmed."""

    name = "practice"

    def select_answer(self, session, question_id, option_index):
        previous = session.pending.get(question_id)
        if previous is None and question_id in session.answers:
            previous = session.answers[question_id].selected_answer
        if previous is not None and previous != option_index:
            session.revealed.discard(question_id)
        session.pending[question_id] = option_index
        return None

    def confirm_answer(self, session, question_id):
        option_index = session.pending.pop(question_id, None)
        if option_index is None:
            logger.warning(f"confirm_answer without a pending selection for {question_id}; ignoring")
            return None
        answer = session._commit(question_id, option_index)
        session.revealed.add(question_id)
        if not answer.is_correct:
            session.queued_misses.append(answer)
        return answer

    def can_advance(self, session):
        question = session.current_question
        return question is not None and question.id in session.answers


class ImmediateMode(SessionMode):
    def select_answer(self, session, question_id, option_index):
        return session._commit(question_id, option_index)


class TimedMode(ImmediateMode):
    name = "timed"

    def time_limit_minutes(self, exam):
        if exam is not None and exam.time_limit:
            return exam.time_limit
        return settings.DEFAULT_TIMED_LIMIT_MINUTES


class ReviewMode(ImmediateMode):
    name = "review"
    records_misses = False
    resolves_misses = True


MODES: Dict[str, SessionMode] = {mode.name: mode for mode in (PracticeMode(), TimedMode(), ReviewMode())}


def get_mode(name) -> SessionMode:
    if isinstance(name, SessionMode):
        return name
    try:
        return MODES[str(name).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown exam mode: {name}")


def _isoformat(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class ExamResult:
    session_id: str
    mode: str
    score: int
    correct_count: int
    total_questions: int
    time_spent: int
    passed: bool
    passing_score: int
    incorrect_answers: Tuple[Answer, ...] = ()
    answers: Tuple[Answer, ...] = ()
    category_breakdown: Dict[str, Dict] = field(default_factory=dict)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "session_id": self.session_id,
            "mode": self.mode,
            "score": self.score,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "time_spent": self.time_spent,
            "passed": self.passed,
            "passing_score": self.passing_score,
            "incorrect_answers": [a.to_dict() for a in self.incorrect_answers],
            "answers": [a.to_dict() for a in self.answers],
            "category_breakdown": self.category_breakdown,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
        }


class ExamSession:
    """Manages a single exam session: navigation, answers, timer and submission."""

    def __init__(
        self,
        questions: Iterable[Question],
        mode="practice",
        exam: Optional[Exam] = None,
        user_id: Optional[str] = None,
        database=None,
        ledger: Optional[ReviewLedger] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            questions: the resolved question list for this session
            mode: mode name or SessionMode
            exam: optional exam (time limit, passing score)
            user_id: owner of the ledger records; None disables ledger writes
            database: gateway for session start/completion records
            ledger: missed-question ledger; defaults to one over database
            clock: seconds clock, injectable for tests
        """
        self.questions: List[Question] = list(questions)
        self._by_id = {q.id: q for q in self.questions}
        self.mode = get_mode(mode)
        self.exam = exam
        self.user_id = user_id
        self.database = database
        self.ledger = ledger if ledger is not None else ReviewLedger(database)
        self.clock = clock or time.time

        self.time_limit = self.mode.time_limit_minutes(exam)
        self.passing_score = exam.passing_score if exam is not None else settings.DEFAULT_PASSING_SCORE

        self.state = NOT_STARTED
        self.session_id: Optional[str] = None
        self.current_index = 0
        self.answers: Dict[str, Answer] = {}
        self.pending: Dict[str, int] = {}
        self.revealed = set()
        self.queued_misses: List[Answer] = []
        self.time_remaining = 0
        self.started_at: Optional[float] = None
        self.completed_at: Optional[float] = None
        self.result: Optional[ExamResult] = None

    # ============= Lifecycle =============

    def start(self) -> str:
        """
        Start the session.

        Returns:
            The new session id

        Raises:
            SessionStateError: not in NOT_STARTED, or no questions
        """
        if self.state != NOT_STARTED:
            raise SessionStateError(f"Cannot start a session that is {self.state}")
        if not self.questions:
            raise SessionStateError("Cannot start a session without questions")

        self.session_id = str(uuid4())
        self.current_index = 0
        self.answers = {}
        self.pending = {}
        self.revealed = set()
        self.queued_misses = []
        self.started_at = self.clock()
        self.time_remaining = self.time_limit * 60
        self.state = IN_PROGRESS
        logger.info(f"Session {self.session_id} started: mode={self.mode.name}, {len(self.questions)} questions, time limit {self.time_limit} min")

        self._notify_start()
        return self.session_id

    def _notify_start(self):
        if self.database is None:
            return
        try:
            self.database.start_session(
                self.session_id,
                self.user_id,
                self.mode.name,
                exam_id=self.exam.id if self.exam is not None else None,
                total_questions=len(self.questions),
                time_limit=self.time_limit,
            )
        except Exception as e:
            logger.error(f"Error notifying session start: {e}")

    def abandon(self) -> bool:
        """Leave the session: stops the timer, nothing is submitted or persisted."""
        if self.state in (COMPLETED, ABANDONED):
            return False
        self.state = ABANDONED
        self.pending.clear()
        logger.info(f"Session {self.session_id} abandoned with {len(self.answers)} answers")
        return True

    @property
    def is_active(self) -> bool:
        return self.state == IN_PROGRESS

    # ============= Answers =============

    def _commit(self, question_id: str, option_index: int) -> Answer:
        question = self._by_id[question_id]
        accumulated = sum(a.time_spent for qid, a in self.answers.items() if qid != question_id)
        elapsed = self.clock() - self.started_at - accumulated
        answer = Answer(
            question_id=question_id,
            selected_answer=option_index,
            time_spent=max(0, int(elapsed)),
            is_correct=question.is_correct(option_index),
        )
        self.answers[question_id] = answer
        logger.debug(f"Answer recorded: Q={question_id}, Correct={answer.is_correct}")
        return answer

    def _final_answer(self, answer: Answer) -> Optional[Answer]:
        """Rebuild a caller-supplied answer; correctness is always derived from the question."""
        question = self._by_id.get(answer.question_id)
        if question is None:
            logger.warning(f"Ignoring final answer for unknown question {answer.question_id}")
            return None
        selected = answer.selected_answer
        if isinstance(selected, bool) or not isinstance(selected, int) or not 0 <= selected <= 3:
            logger.warning(f"Ignoring invalid final answer {selected!r} for {answer.question_id}")
            return None
        try:
            time_spent = max(0, int(answer.time_spent or 0))
        except (TypeError, ValueError):
            time_spent = 0
        return Answer(
            question_id=question.id,
            selected_answer=selected,
            time_spent=time_spent,
            is_correct=question.is_correct(selected),
        )

    def _accepts_answer(self, question_id: str) -> bool:
        if self.state != IN_PROGRESS:
            logger.warning(f"Ignoring answer for {question_id}: session is {self.state}")
            return False
        if question_id not in self._by_id:
            logger.error(f"Question {question_id} not found in session")
            return False
        return True

    def select_answer(self, question_id: str, option_index: int) -> Optional[Answer]:
        """
        Select an option. Practice mode only marks it pending (returns None);
        timed and review modes commit it and return the Answer.
        """
        if not self._accepts_answer(question_id):
            return None
        if isinstance(option_index, bool) or not isinstance(option_index, int) or not 0 <= option_index <= 3:
            logger.warning(f"Ignoring invalid option index {option_index!r} for {question_id}")
            return None
        return self.mode.select_answer(self, question_id, option_index)

    def confirm_answer(self, question_id: str) -> Optional[Answer]:
        """Commit the pending practice selection and reveal the explanation."""
        if not self._accepts_answer(question_id):
            return None
        return self.mode.confirm_answer(self, question_id)

    def pending_selection(self, question_id: str) -> Optional[int]:
        return self.pending.get(question_id)

    def is_revealed(self, question_id: str) -> bool:
        return question_id in self.revealed

    # ============= Navigation =============

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def advance(self) -> bool:
        if self.state != IN_PROGRESS or self.current_index >= len(self.questions) - 1:
            return False
        if not self.mode.can_advance(self):
            logger.info("Answer the current question before moving on")
            return False
        self.current_index += 1
        return True

    def retreat(self) -> bool:
        if self.state != IN_PROGRESS or self.current_index <= 0:
            return False
        self.current_index -= 1
        return True

    def go_to(self, index: int) -> bool:
        if self.state != IN_PROGRESS or not 0 <= index < len(self.questions):
            return False
        self.current_index = index
        return True

    # ============= Timer =============

    def tick(self):
        """One second of countdown. Submits automatically when time runs out."""
        if self.state != IN_PROGRESS or self.time_limit <= 0:
            return
        if self.time_remaining > 0:
            self.time_remaining -= 1
        if self.time_remaining <= 0:
            logger.info(f"Session {self.session_id}: time expired, submitting")
            self.submit()

    # ============= Submission =============

    def submit(self, answers: Optional[Iterable[Answer]] = None) -> Optional[ExamResult]:
        """
        Finish the session: score it, write the ledger and store the result.

        Runs at most once; later calls are logged and return None
        (self.result keeps the first result).

        Args:
            answers: optional final answers replacing recorded ones per question
        """
        if self.state != IN_PROGRESS:
            logger.warning(f"Ignoring submit for session {self.session_id}: session is {self.state}")
            return None
        self.state = COMPLETED
        self.completed_at = self.clock()
        self.pending.clear()

        for answer in answers or []:
            accepted = self._final_answer(answer)
            if accepted is not None:
                self.answers[accepted.question_id] = accepted

        final = list(self.answers.values())
        outcome = score(final, self.questions, self.passing_score)
        self.result = ExamResult(
            session_id=self.session_id,
            mode=self.mode.name,
            score=outcome.score,
            correct_count=outcome.correct_count,
            total_questions=outcome.total_questions,
            time_spent=max(0, int(self.completed_at - self.started_at)),
            passed=outcome.passed,
            passing_score=self.passing_score,
            incorrect_answers=outcome.incorrect_answers,
            answers=tuple(final),
            category_breakdown=category_breakdown(final, self.questions),
            started_at=self.started_at,
            completed_at=self.completed_at,
        )
        logger.info(f"Session {self.session_id} completed: Score={outcome.score}%, Pass={outcome.passed}")

        self._write_ledger(final)
        self._persist_result()
        return self.result

    def _write_ledger(self, final: List[Answer]):
        updates = ledger_updates(self.mode.name, final, self.questions, self.queued_misses)
        try:
            self.ledger.apply(self.user_id, updates, session_type=self.mode.name)
        except Exception as e:
            logger.error(f"Error writing ledger for session {self.session_id}: {e}")

    def _persist_result(self):
        if self.database is None:
            return
        try:
            self.database.complete_session(self.session_id, self.user_id, self.result.to_dict())
        except Exception as e:
            logger.error(f"Error persisting session {self.session_id}: {e}")

    def get_session_summary(self) -> Dict:
        """Real-time summary for display during the exam."""
        return {
            "session_id": self.session_id,
            "state": self.state,
            "mode": self.mode.name,
            "current_question": self.current_index + 1,
            "total_questions": len(self.questions),
            "questions_answered": len(self.answers),
            "time_remaining_sec": self.time_remaining if self.time_limit else None,
        }
