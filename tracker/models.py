"""
Records and request/response types for the tracker.
Every operation has its own request type; `from_dict` validates the raw
payload before anything reaches storage or the engine.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tracker.chapters import Subject
from tracker.engine import Aggregate, ChapterStats, QuestionOutcome, QuestionStatus, compute_aggregate
from tracker.errors import ValidationError

MAX_QUESTIONS = 200
EMAIL_PATTERN = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: Any) -> str:
    """Validate an ISO-8601 timestamp and return it in canonical form."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Date must be an ISO-8601 string")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


def parse_subject(value: Any) -> Subject:
    try:
        return Subject(value)
    except ValueError:
        allowed = ", ".join(s.value for s in Subject)
        raise ValidationError(f"Invalid subject {value!r}. Expected one of: {allowed}")


def parse_status(value: Any, number: Any = None) -> QuestionStatus:
    try:
        return QuestionStatus(value)
    except ValueError:
        where = f" for question {number}" if number is not None else ""
        raise ValidationError(f"Invalid status{where}: {value!r}")


def parse_outcome(raw: Any) -> QuestionOutcome:
    if isinstance(raw, QuestionOutcome):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("Each question must be an object with number, chapter and status")
    number = raw.get("number")
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValidationError(f"Question number must be a positive integer, got {number!r}")
    chapter = raw.get("chapter")
    if chapter is not None and not isinstance(chapter, str):
        raise ValidationError(f"Chapter for question {number} must be text")
    return QuestionOutcome(number=number, chapter=chapter, status=parse_status(raw.get("status"), number))


def parse_outcomes(raw: Any) -> List[QuestionOutcome]:
    if not isinstance(raw, list):
        raise ValidationError("Questions must be a list")
    if len(raw) > MAX_QUESTIONS:
        raise ValidationError(f"A test can have at most {MAX_QUESTIONS} questions")
    return [parse_outcome(q) for q in raw]


def _clean_email(value: Any, field_name: str = "Email") -> str:
    email = value.strip().lower() if isinstance(value, str) else ""
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError(f"{field_name} is not a valid email address")
    return email


def _clean_name(value: Any) -> str:
    # One line, single spaces: line breaks collapse like any other whitespace
    return " ".join(value.split()) if isinstance(value, str) else ""


def _optional_email(value: Any) -> Optional[str]:
    """Guardian email: blank clears it, anything else must look like an address."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _clean_email(value, "Guardian email")


def _chapter_rows(by_chapter: Dict[str, ChapterStats]) -> List[Dict]:
    # jsonb objects lose key order; a list keeps first-seen order
    return [{"chapter": name, **stats.to_dict()} for name, stats in by_chapter.items()]


def _chapters_from_stored(raw: Any) -> Dict[str, ChapterStats]:
    """Read by_chapter back from a row (list form) or a legacy export (object form)."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        raw = [{"chapter": name, **stats} for name, stats in raw.items()]
    chapters = {}
    for entry in raw:
        chapters[entry["chapter"]] = ChapterStats(
            correct=int(entry.get("correct", 0)),
            wrong=int(entry.get("wrong", 0)),
            not_attempted=int(entry.get("not_attempted", entry.get("notAttempted", 0))),
            score=int(entry.get("score", 0)),
        )
    return chapters


# ============= Users =============

@dataclass
class User:
    id: str
    email: str
    name: str
    guardian_email: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: Dict) -> "User":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            name=row.get("name") or "",
            guardian_email=row.get("guardian_email") or None,
            created_at=row.get("created_at") or "",
            updated_at=row.get("updated_at") or "",
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "guardian_email": self.guardian_email,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class SignupRequest:
    email: str
    password: str
    name: str
    guardian_email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "SignupRequest":
        email, password, name = data.get("email"), data.get("password"), _clean_name(data.get("name"))
        if not isinstance(email, str) or not email or not isinstance(password, str) or not password or not name:
            raise ValidationError("Email, password, and name are required")
        return cls(
            email=_clean_email(email),
            password=password,
            name=name,
            guardian_email=_optional_email(data.get("guardian_email")),
        )


@dataclass
class LoginRequest:
    email: str
    password: str

    @classmethod
    def from_dict(cls, data: Dict) -> "LoginRequest":
        email, password = data.get("email"), data.get("password")
        if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
            raise ValidationError("Email and password are required")
        return cls(email=email.strip().lower(), password=password)


@dataclass
class ProfileUpdate:
    """Only the keys present in the payload are changed; a blank guardian email removes it."""

    changes: Dict[str, Optional[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "ProfileUpdate":
        changes = {}
        name = _clean_name(data.get("name"))
        if name:
            changes["name"] = name
        if "guardian_email" in data:
            changes["guardian_email"] = _optional_email(data["guardian_email"])
        if not changes:
            raise ValidationError("Nothing to update")
        return cls(changes=changes)


# ============= Test records =============

@dataclass
class TestRecord:
    id: str
    user_id: str
    subject: Subject
    questions: List[QuestionOutcome]
    date_iso: str
    aggregate: Aggregate

    __test__ = False  # not a pytest test class

    @classmethod
    def build(cls, record_id: str, user_id: str, subject: Subject,
              questions: List[QuestionOutcome], date_iso: Optional[str] = None) -> "TestRecord":
        """New record; the aggregate is always computed from the questions."""
        return cls(
            id=record_id,
            user_id=user_id,
            subject=subject,
            questions=list(questions),
            date_iso=date_iso or utc_now_iso(),
            aggregate=compute_aggregate(questions),
        )

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def score(self) -> int:
        return self.aggregate.score

    @property
    def correct(self) -> int:
        return self.aggregate.correct

    @property
    def wrong(self) -> int:
        return self.aggregate.wrong

    @property
    def not_attempted(self) -> int:
        return self.aggregate.not_attempted

    @property
    def by_chapter(self) -> Dict[str, ChapterStats]:
        return self.aggregate.by_chapter

    def to_row(self) -> Dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subject": self.subject.value,
            "question_count": self.question_count,
            "questions": [q.to_dict() for q in self.questions],
            "date_iso": self.date_iso,
            "score": self.score,
            "correct": self.correct,
            "wrong": self.wrong,
            "not_attempted": self.not_attempted,
            "by_chapter": _chapter_rows(self.by_chapter),
        }

    @classmethod
    def from_row(cls, row: Dict) -> "TestRecord":
        questions = [
            QuestionOutcome(number=int(q["number"]), chapter=q.get("chapter"), status=QuestionStatus(q["status"]))
            for q in row.get("questions") or []
        ]
        aggregate = Aggregate(
            correct=int(row.get("correct", 0)),
            wrong=int(row.get("wrong", 0)),
            not_attempted=int(row.get("not_attempted", 0)),
            score=int(row.get("score", 0)),
            by_chapter=_chapters_from_stored(row.get("by_chapter")),
        )
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            subject=Subject(row["subject"]),
            questions=questions,
            date_iso=row["date_iso"],
            aggregate=aggregate,
        )

    def to_dict(self) -> Dict:
        out = self.to_row()
        out["by_chapter"] = self.aggregate.to_dict()["by_chapter"]
        return out


@dataclass
class CreateTestRequest:
    id: str
    subject: Subject
    questions: List[QuestionOutcome]
    date_iso: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "CreateTestRequest":
        if not data.get("id") or not data.get("subject") or data.get("questions") is None:
            raise ValidationError("Missing required fields")
        date_iso = data.get("date_iso")
        return cls(
            id=str(data["id"]),
            subject=parse_subject(data["subject"]),
            questions=parse_outcomes(data["questions"]),
            date_iso=parse_iso(date_iso) if date_iso else None,
        )


@dataclass
class UpdateTestRequest:
    subject: Optional[Subject] = None
    questions: Optional[List[QuestionOutcome]] = None
    date_iso: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "UpdateTestRequest":
        req = cls(
            subject=parse_subject(data["subject"]) if data.get("subject") is not None else None,
            questions=parse_outcomes(data["questions"]) if data.get("questions") is not None else None,
            date_iso=parse_iso(data["date_iso"]) if data.get("date_iso") is not None else None,
        )
        if req.subject is None and req.questions is None and req.date_iso is None:
            raise ValidationError("Nothing to update")
        return req

    def apply(self, record: TestRecord) -> TestRecord:
        """Return the updated record; a new question list means a fresh aggregate."""
        return TestRecord.build(
            record_id=record.id,
            user_id=record.user_id,
            subject=self.subject or record.subject,
            questions=self.questions if self.questions is not None else record.questions,
            date_iso=self.date_iso or record.date_iso,
        )


# ============= Statistics =============

@dataclass
class SubjectStats:
    subject: Subject
    count: int
    avg_score: float
    total_questions: int

    def to_dict(self) -> Dict:
        return {
            "subject": self.subject.value,
            "count": self.count,
            "avg_score": self.avg_score,
            "total_questions": self.total_questions,
        }


@dataclass
class TestStats:
    total_tests: int = 0
    total_questions: int = 0
    total_score: int = 0
    avg_score: float = 0.0
    subjects: List[Subject] = field(default_factory=list)
    by_subject: List[SubjectStats] = field(default_factory=list)

    __test__ = False

    @classmethod
    def from_records(cls, records: List[TestRecord]) -> "TestStats":
        if not records:
            return cls()
        total_score = sum(r.score for r in records)
        by_subject = []
        for subject in Subject:
            subset = [r for r in records if r.subject is subject]
            if not subset:
                continue
            by_subject.append(SubjectStats(
                subject=subject,
                count=len(subset),
                avg_score=sum(r.score for r in subset) / len(subset),
                total_questions=sum(r.question_count for r in subset),
            ))
        return cls(
            total_tests=len(records),
            total_questions=sum(r.question_count for r in records),
            total_score=total_score,
            avg_score=total_score / len(records),
            subjects=[s.subject for s in by_subject],
            by_subject=by_subject,
        )

    def to_dict(self) -> Dict:
        return {
            "overall": {
                "total_tests": self.total_tests,
                "total_questions": self.total_questions,
                "total_score": self.total_score,
                "avg_score": self.avg_score,
                "subjects": [s.value for s in self.subjects],
            },
            "by_subject": [s.to_dict() for s in self.by_subject],
        }
