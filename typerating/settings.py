"""Engine settings: backend credentials from .env plus exam tunables.

Tunables can be overridden from the environment (or .env), e.g.
QUESTION_CACHE_TTL_SECONDS=60.
"""
import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Tables
QUESTIONS_TABLE = "questions"
EXAMS_TABLE = "exams"
SESSIONS_TABLE = "exam_sessions"
MISSED_QUESTIONS_TABLE = "missed_questions"
SUGGESTIONS_TABLE = "question_suggestions"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Question repository
QUESTION_CACHE_TTL_SECONDS = _env_int("QUESTION_CACHE_TTL_SECONDS", 5 * 60)
REMOTE_QUESTION_LIMIT = _env_int("REMOTE_QUESTION_LIMIT", 1000)
MINIMAL_SET_LIMIT = _env_int("MINIMAL_SET_LIMIT", 100)

# Question counts
DEFAULT_QUESTION_COUNT = _env_int("DEFAULT_QUESTION_COUNT", 20)
MIN_QUESTION_COUNT = _env_int("MIN_QUESTION_COUNT", 1)
MAX_QUESTION_COUNT = _env_int("MAX_QUESTION_COUNT", 100)

# Scoring and timing
DEFAULT_PASSING_SCORE = _env_int("DEFAULT_PASSING_SCORE", 75)
DEFAULT_TIMED_LIMIT_MINUTES = _env_int("DEFAULT_TIMED_LIMIT_MINUTES", 60)
MAX_TIME_LIMIT_MINUTES = _env_int("MAX_TIME_LIMIT_MINUTES", 300)
