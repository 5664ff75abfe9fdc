from report import combined_outcomes, format_report
from tracker.chapters import Subject
from tracker.models import TestRecord, parse_outcomes


def make(rid, subject, questions):
    outcomes = parse_outcomes([{"number": i, "chapter": c, "status": s} for i, (c, s) in enumerate(questions, 1)])
    return TestRecord.build(rid, "u1", subject, outcomes, "2026-10-19T08:00:00+00:00")


def sample_records():
    return [
        make("a", Subject.PHYSICS, [("Mechanics", "correct"), ("Mechanics", "wrong"), ("Optics", "wrong")]),
        make("b", Subject.PHYSICS, [("Optics", "not_attempted"), ("Thermodynamics", "correct")]),
        make("c", Subject.BIOLOGY, [("Genetics", "correct")]),
    ]


def test_combined_outcomes():
    assert len(combined_outcomes(sample_records())) == 6


def test_report_totals_and_subjects():
    text = format_report(sample_records())
    assert "PRACTICE TEST REPORT" in text
    assert "Tests: 3" in text
    assert "Questions: 6" in text
    assert "Total score: 10" in text
    assert "--- By subject ---" in text
    assert text.index("Physics") < text.index("Biology")


def test_report_ranks_weakest_chapter_first():
    text = format_report(sample_records(), top_n=5)
    weak = text.split("--- Weakest chapters ---")[1]
    assert weak.index("Optics") < weak.index("Mechanics")
    assert "0/2 correct (0%)" in weak
    # Chapters answered fully correctly are not weak
    assert "Genetics" not in weak
    assert "Thermodynamics" not in weak


def test_report_top_n():
    weak = format_report(sample_records(), top_n=1).split("--- Weakest chapters ---")[1]
    assert "Optics" in weak
    assert "Mechanics" not in weak


def test_empty_report():
    text = format_report([])
    assert "Tests: 0" in text
    assert "Weakest" not in text
    assert "By subject" not in text
