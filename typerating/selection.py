"""
Question selection: staged filtering with progressive relaxation, then shuffle.

Stages run in order and stop at the first non-empty result:
strict -> aircraft relaxed -> category relaxed -> aircraft-general -> unfiltered.
"""
import logging
import random
from typing import Iterable, List, Optional, Tuple

from typerating.criteria import (
    GENERAL_CATEGORY,
    Criteria,
    aircraft_matches,
    category_matches,
    difficulty_matches,
    sanitize,
)
from typerating.questions import Question

logger = logging.getLogger(__name__)

STRICT = "strict"
AIRCRAFT_RELAXED = "aircraft_relaxed"
CATEGORY_RELAXED = "category_relaxed"
AIRCRAFT_GENERAL = "aircraft_general"
UNFILTERED = "unfiltered"


def _matches(question: Question, criteria: Criteria, aircraft: bool = True, category: bool = True) -> bool:
    if aircraft and not aircraft_matches(question.aircraft_type, criteria.aircraft):
        return False
    if category and criteria.categories and not category_matches(question.category, criteria.categories):
        return False
    return difficulty_matches(question.difficulty, criteria.difficulty)


def filter_stages(questions: List[Question], criteria: Criteria) -> Tuple[List[Question], str]:
    """Run the relaxation chain and return (pool, stage name)."""
    stages = (
        (STRICT, lambda q: _matches(q, criteria)),
        (AIRCRAFT_RELAXED, lambda q: _matches(q, criteria, aircraft=False)),
        (CATEGORY_RELAXED, lambda q: _matches(q, criteria, category=False)),
        (AIRCRAFT_GENERAL, lambda q: category_matches(q.category, [GENERAL_CATEGORY])),
    )
    for stage, predicate in stages:
        pool = [q for q in questions if predicate(q)]
        if pool:
            return pool, stage
        logger.debug(f"Selection stage {stage} empty")
    return list(questions), UNFILTERED


def dedupe_by_text(questions: Iterable[Question]) -> List[Question]:
    """Keep the first question for each normalized text."""
    seen = set()
    unique = []
    for question in questions:
        key = sanitize(question.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique


def select_with_stage(
    questions: List[Question],
    criteria: Criteria,
    rng: Optional[random.Random] = None,
    review_ids: Optional[Iterable[str]] = None,
) -> Tuple[List[Question], str]:
    """
    Select up to criteria.question_count questions.

    Args:
        questions: the question bank
        criteria: normalized criteria
        rng: random source (seed it for deterministic output)
        review_ids: unresolved missed-question ids; restricts the pool when any
            of them are in the bank

    Returns:
        (selected questions, name of the stage that produced them)
    """
    rng = rng if rng is not None else random.Random()
    bank = list(questions)

    if review_ids:
        wanted = set(review_ids)
        restricted = [q for q in bank if q.id in wanted]
        if restricted:
            bank = restricted
        else:
            logger.info("No missed questions found in the bank; using the full question bank for review")

    pool, stage = filter_stages(bank, criteria)
    pool = dedupe_by_text(pool)
    rng.shuffle(pool)
    selected = pool[: criteria.question_count]
    logger.info(f"Selected {len(selected)} of {len(pool)} questions (stage: {stage})")
    return selected, stage


def select(
    questions: List[Question],
    criteria: Criteria,
    rng: Optional[random.Random] = None,
    review_ids: Optional[Iterable[str]] = None,
) -> List[Question]:
    selected, _ = select_with_stage(questions, criteria, rng=rng, review_ids=review_ids)
    return selected
