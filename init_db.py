"""Print the Supabase schema for the NEET Practice Tracker (run it in the Supabase SQL Editor)."""

SCHEMA_SQL = """
-- User profiles (one per Supabase Auth user)
CREATE TABLE IF NOT EXISTS profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    guardian_email TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Practice test records; aggregate fields are flattened onto the row
CREATE TABLE IF NOT EXISTS test_records (
    id TEXT NOT NULL,
    user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    subject VARCHAR(20) NOT NULL CHECK (subject IN ('Physics', 'Chemistry', 'Biology')),
    question_count INT NOT NULL CHECK (question_count BETWEEN 0 AND 200),
    questions JSONB NOT NULL DEFAULT '[]',
    date_iso TIMESTAMPTZ NOT NULL,
    score INT NOT NULL,
    correct INT NOT NULL,
    wrong INT NOT NULL,
    not_attempted INT NOT NULL,
    -- array of {chapter, correct, wrong, not_attempted, score} in first-seen order
    by_chapter JSONB NOT NULL DEFAULT '[]',
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (user_id, id)
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_test_records_user_date ON test_records(user_id, date_iso DESC);
CREATE INDEX IF NOT EXISTS idx_test_records_user_subject ON test_records(user_id, subject, date_iso DESC);
"""


def main():
    statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
    print(f"-- {len(statements)} statements. Paste into Supabase > SQL Editor > New Query")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
