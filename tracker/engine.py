"""
Test Aggregation Engine: NEET scoring and chapter-wise breakdown.
Turns a sequence of per-question outcomes into overall and per-chapter tallies.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

# Scoring: correct +4, wrong -1, not attempted 0
CORRECT_SCORE = 4
WRONG_SCORE = -1
NOT_ATTEMPTED_SCORE = 0

MIXED_CHAPTER = "Mixed"


class QuestionStatus(str, Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    NOT_ATTEMPTED = "not_attempted"

    @property
    def label(self) -> str:
        return {
            QuestionStatus.CORRECT: f"Correct (+{CORRECT_SCORE})",
            QuestionStatus.WRONG: f"Wrong ({WRONG_SCORE})",
            QuestionStatus.NOT_ATTEMPTED: f"Not Attempted ({NOT_ATTEMPTED_SCORE})",
        }[self]


SCORE_RULE: Dict[QuestionStatus, int] = {
    QuestionStatus.CORRECT: CORRECT_SCORE,
    QuestionStatus.WRONG: WRONG_SCORE,
    QuestionStatus.NOT_ATTEMPTED: NOT_ATTEMPTED_SCORE,
}


@dataclass(frozen=True)
class QuestionOutcome:
    number: int
    chapter: Optional[str]
    status: QuestionStatus

    def to_dict(self) -> Dict:
        return {"number": self.number, "chapter": self.chapter or "", "status": self.status.value}


@dataclass(frozen=True)
class ChapterStats:
    correct: int = 0
    wrong: int = 0
    not_attempted: int = 0
    score: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.wrong + self.not_attempted

    def to_dict(self) -> Dict:
        return {
            "correct": self.correct,
            "wrong": self.wrong,
            "not_attempted": self.not_attempted,
            "score": self.score,
        }


@dataclass(frozen=True)
class Aggregate:
    correct: int = 0
    wrong: int = 0
    not_attempted: int = 0
    score: int = 0
    # Insertion order = first occurrence of each chapter in the input
    by_chapter: Dict[str, ChapterStats] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.correct + self.wrong + self.not_attempted

    def to_dict(self) -> Dict:
        return {
            "correct": self.correct,
            "wrong": self.wrong,
            "not_attempted": self.not_attempted,
            "score": self.score,
            "by_chapter": {name: stats.to_dict() for name, stats in self.by_chapter.items()},
        }


def score_for_status(status: QuestionStatus) -> int:
    return SCORE_RULE[status]


def normalize_chapter(label: Optional[str]) -> str:
    """Trim the chapter label; empty or missing labels fall into 'Mixed'."""
    key = (label or "").strip()
    return key or MIXED_CHAPTER


def _bucket(status: QuestionStatus) -> int:
    if status is QuestionStatus.CORRECT:
        return 0
    if status is QuestionStatus.WRONG:
        return 1
    return 2


def compute_aggregate(outcomes: Iterable[QuestionOutcome]) -> Aggregate:
    """
    Tally a test in a single pass.

    Only `chapter` and `status` are read; `number` is carried along by callers
    but never used for scoring, so unsorted or repeated numbers are fine.

    Returns:
        Aggregate with overall counts, total score and a first-seen ordered
        chapter breakdown. Empty input yields an all-zero Aggregate.
    """
    totals = [0, 0, 0]
    score = 0
    # chapter -> [correct, wrong, not_attempted, score]
    chapters: Dict[str, List[int]] = {}

    for outcome in outcomes:
        points = score_for_status(outcome.status)
        bucket = _bucket(outcome.status)
        score += points
        totals[bucket] += 1

        key = normalize_chapter(outcome.chapter)
        if key not in chapters:
            chapters[key] = [0, 0, 0, 0]
        chapters[key][bucket] += 1
        chapters[key][3] += points

    by_chapter = {
        key: ChapterStats(correct=c, wrong=w, not_attempted=na, score=s)
        for key, (c, w, na, s) in chapters.items()
    }
    return Aggregate(
        correct=totals[0],
        wrong=totals[1],
        not_attempted=totals[2],
        score=score,
        by_chapter=by_chapter,
    )


def accuracy_percent(aggregate: Aggregate) -> int:
    """Share of questions answered correctly, rounded to a whole percent."""
    if aggregate.total == 0:
        return 0
    # Halves round up (12.5 -> 13), not to even
    return math.floor(aggregate.correct / aggregate.total * 100 + 0.5)


def weak_chapters(aggregate: Aggregate, top_n: int = 3) -> List[Tuple[str, Dict]]:
    """
    Rank chapters weakest first.

    Lag factor = (100 - accuracy) * questions in chapter, so a chapter with many
    misses outranks a single missed question. Ties go to the lower score.
    Chapters without a single miss are left out.
    """
    ranked = []
    for name, stats in aggregate.by_chapter.items():
        if stats.total == 0 or stats.correct == stats.total:
            continue
        accuracy = stats.correct / stats.total * 100
        ranked.append((name, {
            "total": stats.total,
            "correct": stats.correct,
            "score": stats.score,
            "accuracy_percent": accuracy,
            "lag_factor": (100 - accuracy) * stats.total,
        }))

    ranked.sort(key=lambda item: (-item[1]["lag_factor"], item[1]["score"]))
    return ranked[:top_n]
