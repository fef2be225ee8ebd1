"""Print the Supabase database schema for the type-rating engine."""
import argparse

from typerating import settings

# SQL schema
SCHEMA_SQL = f"""
-- Question Bank
CREATE TABLE IF NOT EXISTS {settings.QUESTIONS_TABLE} (
    id TEXT PRIMARY KEY,
    text TEXT NOT NULL,
    options JSONB NOT NULL CHECK (jsonb_array_length(options) = 4),
    correct_answer INT NOT NULL CHECK (correct_answer BETWEEN 0 AND 3),
    explanation TEXT,
    aircraft_type VARCHAR(30) NOT NULL DEFAULT 'GENERAL',
    category VARCHAR(100) NOT NULL DEFAULT 'General',
    difficulty VARCHAR(20) NOT NULL DEFAULT 'intermediate'
        CHECK (difficulty IN ('basic', 'intermediate', 'advanced')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    reference TEXT,
    regulation_code VARCHAR(50),
    source VARCHAR(50),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Exams (optional grouping)
CREATE TABLE IF NOT EXISTS {settings.EXAMS_TABLE} (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    description TEXT,
    aircraft_type VARCHAR(30),
    category VARCHAR(100),
    difficulty VARCHAR(20),
    time_limit INT DEFAULT 0 CHECK (time_limit BETWEEN 0 AND 300),
    passing_score INT DEFAULT 75 CHECK (passing_score BETWEEN 0 AND 100),
    questions_count INT DEFAULT 20,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Exam Sessions (start notification + completion record)
CREATE TABLE IF NOT EXISTS {settings.SESSIONS_TABLE} (
    id UUID PRIMARY KEY,
    user_id TEXT,
    exam_id TEXT,
    mode VARCHAR(20),
    status VARCHAR(20) DEFAULT 'in_progress',
    score INT,
    correct_count INT,
    total_questions INT DEFAULT 0,
    time_limit INT DEFAULT 0,
    time_spent INT,
    passed BOOLEAN,
    answers JSONB DEFAULT '[]'::jsonb,
    started_at TIMESTAMPTZ DEFAULT NOW(),
    completed_at TIMESTAMPTZ
);

-- Missed-question ledger (drives review mode)
CREATE TABLE IF NOT EXISTS {settings.MISSED_QUESTIONS_TABLE} (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    question_id TEXT NOT NULL,
    incorrect_answer INT CHECK (incorrect_answer BETWEEN 0 AND 3),
    correct_answer INT CHECK (correct_answer BETWEEN 0 AND 3),
    session_type VARCHAR(20),
    category VARCHAR(100),
    difficulty VARCHAR(20),
    aircraft_type VARCHAR(30),
    is_resolved BOOLEAN NOT NULL DEFAULT FALSE,
    attempt_count INT NOT NULL DEFAULT 1,
    last_attempt_at TIMESTAMPTZ DEFAULT NOW(),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE(user_id, question_id)
);

-- Question Suggestions (review workflow)
CREATE TABLE IF NOT EXISTS {settings.SUGGESTIONS_TABLE} (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    text TEXT NOT NULL,
    options JSONB NOT NULL,
    correct_answer INT NOT NULL CHECK (correct_answer BETWEEN 0 AND 3),
    explanation TEXT,
    aircraft_type VARCHAR(30),
    category VARCHAR(100),
    difficulty VARCHAR(20),
    reference TEXT,
    status VARCHAR(20) NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'approved', 'rejected', 'needs_review')),
    admin_notes TEXT,
    reviewed_by TEXT,
    reviewed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_questions_aircraft_type ON {settings.QUESTIONS_TABLE}(aircraft_type);
CREATE INDEX IF NOT EXISTS idx_questions_category ON {settings.QUESTIONS_TABLE}(category);
CREATE INDEX IF NOT EXISTS idx_questions_is_active ON {settings.QUESTIONS_TABLE}(is_active);
CREATE INDEX IF NOT EXISTS idx_exam_sessions_user_id ON {settings.SESSIONS_TABLE}(user_id);
CREATE INDEX IF NOT EXISTS idx_missed_questions_user_resolved ON {settings.MISSED_QUESTIONS_TABLE}(user_id, is_resolved);
CREATE INDEX IF NOT EXISTS idx_question_suggestions_status ON {settings.SUGGESTIONS_TABLE}(status)
"""


def split_statements(sql: str = SCHEMA_SQL) -> list[str]:
    """Split the schema into executable statements (comment-only chunks dropped)."""
    statements = []
    for chunk in sql.split(";"):
        lines = [line for line in chunk.strip().splitlines() if not line.strip().startswith("--")]
        stmt = "\n".join(lines).strip()
        if stmt:
            statements.append(stmt)
    return statements


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print the Supabase schema for the type-rating engine.")
    parser.add_argument("--statements", action="store_true", help="List the statements one by one")
    args = parser.parse_args(argv)

    print("Initializing Supabase schema...")
    print(f"URL: {settings.SUPABASE_URL}")

    if args.statements:
        statements = split_statements()
        for i, stmt in enumerate(statements, 1):
            print(f"Statement {i}/{len(statements)}:")
            print(f"  {stmt.splitlines()[0][:60]}...")

    print("\nNote: Due to Supabase client limitations, run this SQL in Supabase SQL Editor:")
    print(SCHEMA_SQL)
    print("Go to: https://app.supabase.com > SQL Editor > New Query")


if __name__ == "__main__":
    main()
