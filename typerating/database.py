"""
Database operations for the type-rating engine.
Handles Supabase CRUD for questions, exams, exam sessions, the missed-question
ledger and question suggestions.

Every method except query_questions is best-effort: failures are logged and
reported through the return value (False / None / []).
"""
import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional

from supabase import Client

from typerating import settings
from typerating.db import get_supabase

logger = logging.getLogger(__name__)

GENERAL_AIRCRAFT = ["GENERAL", "GENERAL_AVIATION"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatabaseClient:
    """Wrapper around Supabase client with exam-engine operations."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client if client is not None else get_supabase()

    # ============= Questions =============

    def query_questions(
        self,
        aircraft: Optional[str] = None,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = settings.REMOTE_QUESTION_LIMIT,
    ) -> List[Dict]:
        """
        Fetch active questions, optionally scoped by aircraft/category/difficulty.

        Raises on backend failure so callers can fall back to another source.

        Args:
            aircraft: aircraft family; general-purpose questions are always included
            category: exact category value
            difficulty: basic | intermediate | advanced
            limit: max rows

        Returns:
            List of question rows
        """
        query = self.client.table(settings.QUESTIONS_TABLE).select("*").eq("is_active", True)
        if aircraft and aircraft != "ALL":
            query = query.in_("aircraft_type", [aircraft] + GENERAL_AIRCRAFT)
        if category:
            query = query.eq("category", category)
        if difficulty and difficulty != "all":
            query = query.eq("difficulty", difficulty)
        response = query.limit(limit).execute()
        return response.data if response.data else []

    def get_questions_by_ids(self, question_ids: List[str]) -> List[Dict]:
        """Fetch questions by id (used for review sessions)."""
        if not question_ids:
            return []
        try:
            response = (
                self.client.table(settings.QUESTIONS_TABLE)
                .select("*")
                .in_("id", list(question_ids))
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching questions by id: {e}")
            return []

    def insert_question(self, row: Dict) -> Optional[Dict]:
        """Insert a single question. Returns the stored row or None."""
        try:
            response = self.client.table(settings.QUESTIONS_TABLE).insert(row).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error inserting question: {e}")
            return None

    # ============= Exams =============

    def get_exams(self, aircraft_type: Optional[str] = None) -> List[Dict]:
        """Fetch active exams, optionally for one aircraft type."""
        try:
            query = self.client.table(settings.EXAMS_TABLE).select("*").eq("is_active", True)
            if aircraft_type:
                query = query.eq("aircraft_type", aircraft_type)
            response = query.execute()
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching exams: {e}")
            return []

    # ============= Sessions =============

    def start_session(
        self,
        session_id: str,
        user_id: Optional[str],
        mode: str,
        exam_id: Optional[str] = None,
        total_questions: int = 0,
        time_limit: int = 0,
    ) -> bool:
        """Record the start of an exam session."""
        try:
            session_data = {
                "id": session_id,
                "user_id": user_id,
                "exam_id": exam_id,
                "mode": mode,
                "status": "in_progress",
                "total_questions": total_questions,
                "time_limit": time_limit,
                "started_at": _now(),
            }
            self.client.table(settings.SESSIONS_TABLE).insert(session_data).execute()
            return True
        except Exception as e:
            logger.error(f"Error starting session: {e}")
            return False

    def complete_session(self, session_id: str, user_id: Optional[str], result: Dict) -> bool:
        """
        Store the completion record of a session.

        Upserts on id so a session whose start notification failed still gets
        a completion record.
        """
        try:
            update_data = {
                "id": session_id,
                "user_id": user_id,
                "mode": result.get("mode"),
                "status": "completed",
                "score": result.get("score"),
                "correct_count": result.get("correct_count"),
                "total_questions": result.get("total_questions"),
                "time_spent": result.get("time_spent"),
                "passed": result.get("passed"),
                "answers": result.get("answers", []),
                "completed_at": _now(),
            }
            self.client.table(settings.SESSIONS_TABLE).upsert(update_data, on_conflict="id").execute()
            return True
        except Exception as e:
            logger.error(f"Error completing session: {e}")
            return False

    def get_session_history(self, user_id: str, limit: int = 10) -> List[Dict]:
        """Fetch user's session history."""
        try:
            response = (
                self.client.table(settings.SESSIONS_TABLE)
                .select("*")
                .eq("user_id", str(user_id))
                .order("started_at", desc=True)
                .limit(limit)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching session history: {e}")
            return []

    # ============= Missed questions =============

    def record_missed_question(
        self,
        user_id: str,
        question: Dict,
        incorrect_answer: int,
        session_type: str,
    ) -> bool:
        """
        Upsert the ledger record for (user, question) after a wrong answer.
        Increments attempt_count and marks the record unresolved again.

        Args:
            user_id: user id
            question: question row (id, correct_answer, category, difficulty, aircraft_type)
            incorrect_answer: the selected (wrong) option index
            session_type: practice | timed | review

        Returns:
            True if successful
        """
        try:
            existing = self.client.table(settings.MISSED_QUESTIONS_TABLE).select("*").match({
                "user_id": str(user_id),
                "question_id": str(question["id"])
            }).execute()

            if existing.data:
                record = existing.data[0]
                update_data = {
                    "incorrect_answer": incorrect_answer,
                    "session_type": session_type,
                    "is_resolved": False,
                    "attempt_count": (record.get("attempt_count") or 0) + 1,
                    "last_attempt_at": _now(),
                }
                self.client.table(settings.MISSED_QUESTIONS_TABLE).update(update_data).eq("id", record["id"]).execute()
            else:
                insert_data = {
                    "user_id": str(user_id),
                    "question_id": str(question["id"]),
                    "incorrect_answer": incorrect_answer,
                    "correct_answer": question.get("correct_answer"),
                    "session_type": session_type,
                    "category": question.get("category"),
                    "difficulty": question.get("difficulty"),
                    "aircraft_type": question.get("aircraft_type"),
                    "is_resolved": False,
                    "attempt_count": 1,
                    "last_attempt_at": _now(),
                    "created_at": _now(),
                }
                self.client.table(settings.MISSED_QUESTIONS_TABLE).insert(insert_data).execute()

            return True
        except Exception as e:
            logger.error(f"Error recording missed question: {e}")
            return False

    def resolve_missed_question(self, user_id: str, question_id: str) -> bool:
        """Mark the ledger record for (user, question) as resolved."""
        try:
            self.client.table(settings.MISSED_QUESTIONS_TABLE).update({
                "is_resolved": True,
                "last_attempt_at": _now(),
            }).match({
                "user_id": str(user_id),
                "question_id": str(question_id)
            }).execute()
            return True
        except Exception as e:
            logger.error(f"Error resolving missed question: {e}")
            return False

    def get_missed_questions(
        self,
        user_id: str,
        only_unresolved: bool = True,
        category: Optional[str] = None,
    ) -> List[Dict]:
        """Fetch the user's missed-question ledger records."""
        try:
            query = self.client.table(settings.MISSED_QUESTIONS_TABLE).select("*").eq("user_id", str(user_id))
            if only_unresolved:
                query = query.eq("is_resolved", False)
            if category:
                query = query.eq("category", category)
            response = query.order("last_attempt_at", desc=True).execute()
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching missed questions: {e}")
            return []

    # ============= Question suggestions =============

    def submit_suggestion(self, row: Dict) -> Optional[Dict]:
        """Insert a question suggestion. Returns the stored row or None."""
        try:
            now = _now()
            payload = dict(row, created_at=now, updated_at=now)
            response = self.client.table(settings.SUGGESTIONS_TABLE).insert(payload).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error submitting suggestion: {e}")
            return None

    def get_suggestion(self, suggestion_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table(settings.SUGGESTIONS_TABLE)
                .select("*")
                .eq("id", str(suggestion_id))
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching suggestion {suggestion_id}: {e}")
            return None

    def get_suggestions(
        self,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict]:
        """Fetch suggestions, newest first, optionally by status or author."""
        try:
            query = self.client.table(settings.SUGGESTIONS_TABLE).select("*")
            if status:
                query = query.eq("status", status)
            if user_id:
                query = query.eq("user_id", str(user_id))
            response = query.order("created_at", desc=True).limit(limit).execute()
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching suggestions: {e}")
            return []

    def update_suggestion(self, suggestion_id: str, fields: Dict) -> bool:
        try:
            payload = dict(fields, updated_at=_now())
            self.client.table(settings.SUGGESTIONS_TABLE).update(payload).eq("id", str(suggestion_id)).execute()
            return True
        except Exception as e:
            logger.error(f"Error updating suggestion {suggestion_id}: {e}")
            return False
