"""
Question loading: criteria -> repository -> review pool -> selection -> session.
"""
import logging
import random
from typing import List, Optional
from uuid import uuid5, NAMESPACE_DNS

from typerating import settings
from typerating.criteria import Criteria, normalize
from typerating.engine import ExamSession, get_mode
from typerating.questions import Exam, Question, normalize_questions
from typerating.repository import QuestionRepository
from typerating.scoring import ReviewLedger
from typerating.selection import select_with_stage

logger = logging.getLogger(__name__)


class NoQuestionsAvailable(Exception):
    """Every question source is exhausted for these filters."""

    def __init__(self, criteria: Criteria):
        super().__init__("No questions available for these filters")
        self.criteria = criteria


def exam_for_criteria(criteria: Criteria) -> Exam:
    """Synthetic exam for a criteria-driven session."""
    mode = get_mode(criteria.mode)
    time_limit = 0
    if mode.name == "timed":
        time_limit = criteria.time_limit or settings.DEFAULT_TIMED_LIMIT_MINUTES
    categories = ", ".join(criteria.categories) or "all categories"
    return Exam(
        id=str(uuid5(NAMESPACE_DNS, repr(criteria))),
        title=f"{mode.name.capitalize()}: {categories}",
        description=f"{criteria.aircraft} / {criteria.difficulty}",
        aircraft_type=criteria.aircraft,
        category=",".join(criteria.categories),
        difficulty=criteria.difficulty,
        time_limit=time_limit,
        passing_score=settings.DEFAULT_PASSING_SCORE,
        questions_count=criteria.question_count,
    )


class QuestionLoader:
    """Resolves UI criteria into a question list and exam sessions."""

    def __init__(
        self,
        repository: QuestionRepository,
        ledger: Optional[ReviewLedger] = None,
        database=None,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository
        self.database = database
        self.ledger = ledger if ledger is not None else ReviewLedger(database)
        self.rng = rng if rng is not None else random.Random()
        self.last_stage: Optional[str] = None

    def _review_pool(self, bank: List[Question], user_id: Optional[str]) -> List[str]:
        review_ids = self.ledger.unresolved_question_ids(user_id)
        if not review_ids:
            logger.info(f"No unresolved missed questions for user {user_id}")
            return []

        known = {q.id for q in bank}
        missing = [qid for qid in review_ids if qid not in known]
        if missing and self.database is not None:
            try:
                rows = self.database.get_questions_by_ids(missing)
            except Exception as e:
                logger.error(f"Error fetching missed questions: {e}")
                rows = []
            fetched = [q for q in normalize_questions(rows) if q.is_active and q.id not in known]
            bank.extend(fetched)
            logger.info(f"Fetched {len(fetched)} missed questions not in the cached bank")
        return review_ids

    def load_questions(self, raw_criteria, user_id: Optional[str] = None) -> List[Question]:
        """
        Load the questions for a session.

        Raises:
            NoQuestionsAvailable: no source yielded any question
        """
        criteria = normalize(raw_criteria)
        bank = self.repository.get_all_questions()

        review_ids = None
        if criteria.mode == "review":
            review_ids = self._review_pool(bank, user_id)

        selected, stage = select_with_stage(bank, criteria, rng=self.rng, review_ids=review_ids)
        self.last_stage = stage
        if not selected:
            raise NoQuestionsAvailable(criteria)
        return selected

    def start_exam(self, raw_criteria, user_id: Optional[str] = None, exam: Optional[Exam] = None, clock=None) -> ExamSession:
        """Load questions and start a session for them."""
        criteria = normalize(raw_criteria)
        questions = self.load_questions(criteria, user_id=user_id)
        session = ExamSession(
            questions,
            mode=criteria.mode,
            exam=exam if exam is not None else exam_for_criteria(criteria),
            user_id=user_id,
            database=self.database,
            ledger=self.ledger,
            clock=clock,
        )
        session.start()
        return session
