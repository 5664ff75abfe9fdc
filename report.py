"""
Report a user's practice history: test counts and scores by subject, plus the weakest chapters.
Run: python report.py --user-id <uuid>
      python report.py --user-id <uuid> --subject Physics --top 5
"""
import argparse
import logging
import sys

from tracker.chapters import SUBJECTS
from tracker.engine import QuestionOutcome, compute_aggregate, weak_chapters
from tracker.models import TestRecord, TestStats, parse_subject


def combined_outcomes(records: list[TestRecord]) -> list[QuestionOutcome]:
    """Every question across the records, so chapters can be ranked over the whole history."""
    return [q for record in records for q in record.questions]


def format_report(records: list[TestRecord], top_n: int = 5) -> str:
    stats = TestStats.from_records(records)
    lines = [
        "=" * 60,
        "PRACTICE TEST REPORT",
        "=" * 60,
        f"  Tests: {stats.total_tests}",
        f"  Questions: {stats.total_questions}",
        f"  Total score: {stats.total_score}",
        f"  Average score: {stats.avg_score:.2f}",
    ]
    if stats.by_subject:
        lines.append("\n--- By subject ---")
        for s in stats.by_subject:
            lines.append(f"  {s.subject.value:<10} tests={s.count:3d}  avg={s.avg_score:7.2f}  questions={s.total_questions}")

    overall = compute_aggregate(combined_outcomes(records))
    weak = weak_chapters(overall, top_n=top_n)
    if weak:
        lines.append("\n--- Weakest chapters ---")
        for name, info in weak:
            lines.append(
                f"  {name:<28} {info['correct']}/{info['total']} correct "
                f"({info['accuracy_percent']:.0f}%)  score={info['score']}"
            )
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Summarize a user's practice tests.")
    parser.add_argument("--user-id", required=True, help="Supabase auth user id")
    parser.add_argument("--subject", choices=SUBJECTS, default=None, help="Only this subject")
    parser.add_argument("--top", type=int, default=5, help="How many weak chapters to list (default 5)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    from db import get_store_uncached
    from tracker.errors import TrackerError

    try:
        store = get_store_uncached()
        subject = parse_subject(args.subject) if args.subject else None
        records = store.list(args.user_id, subject)
    except (ValueError, TrackerError) as e:
        print(f"Could not load records: {e}")
        sys.exit(1)

    print(format_report(records, top_n=args.top))


if __name__ == "__main__":
    main()
