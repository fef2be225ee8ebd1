"""
Scoring and the missed-question (review) ledger.

score() is pure. Ledger writes go through ReviewLedger and are best-effort:
a failed write is logged and never affects the computed score.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from typerating import settings
from typerating.questions import Answer, Question

logger = logging.getLogger(__name__)

REVIEW_MODE = "review"


@dataclass(frozen=True)
class Score:
    score: int
    correct_count: int
    total_questions: int
    passed: bool
    incorrect_answers: Tuple[Answer, ...] = ()


@dataclass(frozen=True)
class MissedAnswer:
    question: Question
    selected_answer: int


@dataclass(frozen=True)
class LedgerUpdates:
    missed: Tuple[MissedAnswer, ...] = ()
    resolved: Tuple[str, ...] = ()

    def __len__(self):
        return len(self.missed) + len(self.resolved)


def percentage(correct: int, total: int) -> int:
    """Whole percentage, rounded half up (2/3 -> 67, 1/8 -> 13)."""
    if total <= 0:
        return 0
    value = Decimal(correct) * Decimal(100) / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score(answers: Iterable[Answer], questions: Sequence[Question], passing_score: int = settings.DEFAULT_PASSING_SCORE) -> Score:
    """
    Score a set of answers against the session's questions.

    Answers for questions outside the session are ignored; unanswered
    questions count as incorrect through the total.

    Returns:
        Score with score 0-100, correct_count, total_questions, passed and the
        incorrect answers in question order
    """
    order = {q.id: i for i, q in enumerate(questions)}
    by_id = {q.id: q for q in questions}

    correct = 0
    incorrect = []
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            logger.debug(f"Ignoring answer for unknown question {answer.question_id}")
            continue
        if question.is_correct(answer.selected_answer):
            correct += 1
        else:
            incorrect.append(answer)

    incorrect.sort(key=lambda a: order[a.question_id])
    total = len(questions)
    value = percentage(correct, total)
    return Score(
        score=value,
        correct_count=correct,
        total_questions=total,
        passed=value >= passing_score,
        incorrect_answers=tuple(incorrect),
    )


def ledger_updates(
    mode: str,
    answers: Iterable[Answer],
    questions: Sequence[Question],
    queued_misses: Iterable[Answer] = (),
) -> LedgerUpdates:
    """
    Work out the ledger write-set for a finished session.

    Outside review mode every wrong final answer, plus every miss queued while
    practicing, becomes a missed record (one per question). In review mode
    every correct answer resolves its record.
    """
    by_id = {q.id: q for q in questions}
    answers = [a for a in answers if a.question_id in by_id]

    if mode == REVIEW_MODE:
        resolved = []
        for answer in answers:
            if by_id[answer.question_id].is_correct(answer.selected_answer) and answer.question_id not in resolved:
                resolved.append(answer.question_id)
        return LedgerUpdates(resolved=tuple(resolved))

    missed: Dict[str, MissedAnswer] = {}
    for answer in answers:
        question = by_id[answer.question_id]
        if not question.is_correct(answer.selected_answer):
            missed[question.id] = MissedAnswer(question, answer.selected_answer)
    for answer in queued_misses:
        question = by_id.get(answer.question_id)
        if question is not None and question.id not in missed:
            missed[question.id] = MissedAnswer(question, answer.selected_answer)
    return LedgerUpdates(missed=tuple(missed.values()))


def category_breakdown(answers: Iterable[Answer], questions: Sequence[Question]) -> Dict[str, Dict]:
    """Per-category totals and accuracy for a session."""
    by_question = {a.question_id: a for a in answers}
    stats: Dict[str, Dict] = {}
    for question in questions:
        cat = question.category or "unknown"
        if cat not in stats:
            stats[cat] = {"total": 0, "correct": 0}
        stats[cat]["total"] += 1
        answer = by_question.get(question.id)
        if answer is not None and question.is_correct(answer.selected_answer):
            stats[cat]["correct"] += 1
    for counts in stats.values():
        counts["accuracy_percent"] = percentage(counts["correct"], counts["total"])
    return stats


class ReviewLedger:
    """Per-user record of missed questions, backed by the database gateway."""

    def __init__(self, database=None):
        self.database = database

    def apply(self, user_id: Optional[str], updates: LedgerUpdates, session_type: str = "practice") -> int:
        """
        Write the ledger updates. Failures are logged and skipped.

        Returns:
            Number of writes that succeeded
        """
        if not updates:
            return 0
        if user_id is None or self.database is None:
            logger.info(f"Skipping {len(updates)} ledger writes (no user or database)")
            return 0

        written = 0
        for miss in updates.missed:
            try:
                ok = self.database.record_missed_question(
                    user_id, miss.question.to_row(), miss.selected_answer, session_type
                )
            except Exception as e:
                logger.error(f"Error recording missed question {miss.question.id}: {e}")
                ok = False
            if ok:
                written += 1
            else:
                logger.warning(f"Ledger write failed for missed question {miss.question.id}")

        for question_id in updates.resolved:
            try:
                ok = self.database.resolve_missed_question(user_id, question_id)
            except Exception as e:
                logger.error(f"Error resolving missed question {question_id}: {e}")
                ok = False
            if ok:
                written += 1
            else:
                logger.warning(f"Ledger write failed for resolved question {question_id}")

        logger.info(f"Ledger: {written}/{len(updates)} writes for user {user_id}")
        return written

    def unresolved_question_ids(self, user_id: Optional[str], category: Optional[str] = None) -> List[str]:
        if user_id is None or self.database is None:
            return []
        try:
            records = self.database.get_missed_questions(user_id, only_unresolved=True, category=category)
        except Exception as e:
            logger.error(f"Error fetching unresolved questions: {e}")
            return []
        ids = []
        for record in records:
            question_id = str(record.get("question_id"))
            if question_id not in ids:
                ids.append(question_id)
        return ids
