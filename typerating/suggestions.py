"""
Question suggestion workflow: users propose questions, reviewers approve them
into the question bank.

    pending      -> approved | rejected | needs_review
    needs_review -> approved | rejected
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from typerating.criteria import normalize_aircraft, normalize_difficulty
from typerating.questions import normalize_question, validate_question

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
NEEDS_REVIEW = "needs_review"
STATUSES = (PENDING, APPROVED, REJECTED, NEEDS_REVIEW)

TRANSITIONS = {
    PENDING: {APPROVED, REJECTED, NEEDS_REVIEW},
    NEEDS_REVIEW: {APPROVED, REJECTED},
    APPROVED: set(),
    REJECTED: set(),
}

SUGGESTION_SOURCE = "suggestion"


class SuggestionError(Exception):
    """Invalid suggestion payload or status change."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


class SuggestionWorkflow:
    """Submission, review and approval of question suggestions."""

    def __init__(self, database):
        self.database = database

    def submit(self, user_id: str, payload: Dict) -> Optional[Dict]:
        """
        Validate and store a new suggestion with status pending.

        Raises:
            SuggestionError: the payload breaks the authoring rules
        """
        errors = validate_question(payload)
        if errors:
            raise SuggestionError("Invalid question suggestion", errors)

        row = {
            "user_id": str(user_id),
            "text": (payload.get("text") or payload.get("question")).strip(),
            "options": [o.strip() for o in payload["options"]],
            "correct_answer": payload.get("correct_answer", payload.get("correctAnswer")),
            "explanation": payload["explanation"].strip(),
            "aircraft_type": normalize_aircraft(payload.get("aircraft_type") or payload.get("aircraftType")),
            "category": payload["category"].strip(),
            "difficulty": normalize_difficulty(payload.get("difficulty")),
            "reference": payload.get("reference"),
            "status": PENDING,
        }
        stored = self.database.submit_suggestion(row)
        if stored is None:
            logger.error(f"Suggestion from user {user_id} could not be stored")
        else:
            logger.info(f"Suggestion {stored.get('id')} submitted by user {user_id}")
        return stored

    def _resolve(self, suggestion) -> Dict:
        if isinstance(suggestion, dict):
            return suggestion
        found = self.database.get_suggestion(suggestion)
        if found is None:
            raise SuggestionError(f"Suggestion {suggestion} not found")
        return found

    def set_status(self, suggestion, status: str, reviewer_id: Optional[str] = None, notes: Optional[str] = None) -> bool:
        """
        Move a suggestion to a new status.

        Raises:
            SuggestionError: unknown status or a transition the workflow forbids
        """
        if status not in STATUSES:
            raise SuggestionError(f"Unknown suggestion status: {status}")
        record = self._resolve(suggestion)
        current = record.get("status") or PENDING
        if not can_transition(current, status):
            raise SuggestionError(f"Cannot move suggestion from {current} to {status}")

        fields = {
            "status": status,
            "admin_notes": notes,
            "reviewed_by": reviewer_id,
            "reviewed_at": datetime.now(timezone.utc).isoformat(),
        }
        ok = self.database.update_suggestion(record["id"], fields)
        if ok:
            logger.info(f"Suggestion {record['id']}: {current} -> {status}")
        return ok

    def approve(self, suggestion, reviewer_id: Optional[str] = None, notes: Optional[str] = None) -> Optional[Dict]:
        """
        Insert the suggested question into the bank, then mark it approved.

        Returns:
            The stored question row, or None when the insert failed (the
            suggestion keeps its status)
        """
        record = self._resolve(suggestion)
        current = record.get("status") or PENDING
        if not can_transition(current, APPROVED):
            raise SuggestionError(f"Cannot approve a suggestion that is {current}")

        question = normalize_question({
            "text": record.get("text"),
            "options": record.get("options"),
            "correct_answer": record.get("correct_answer"),
            "explanation": record.get("explanation"),
            "aircraft_type": record.get("aircraft_type"),
            "category": record.get("category"),
            "difficulty": record.get("difficulty"),
            "reference": record.get("reference"),
            "source": SUGGESTION_SOURCE,
        })
        if question is None:
            raise SuggestionError(f"Suggestion {record['id']} is not a valid question")

        stored = self.database.insert_question(question.to_row())
        if stored is None:
            logger.error(f"Question insert failed for suggestion {record['id']}")
            return None

        self.set_status(record, APPROVED, reviewer_id, notes)
        return stored

    def stats(self) -> Dict[str, int]:
        """Count of suggestions per status, plus total."""
        counts = {status: 0 for status in STATUSES}
        for row in self.database.get_suggestions(limit=10000):
            status = row.get("status") or PENDING
            counts[status] = counts.get(status, 0) + 1
        counts["total"] = sum(counts.values())
        return counts
