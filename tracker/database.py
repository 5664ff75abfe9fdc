"""
Database operations for the NEET practice tracker.
Handles Supabase CRUD for test records and user profiles.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from tracker.chapters import Subject
from tracker.errors import ConflictError, NotFoundError, StorageError
from tracker.models import TestRecord, TestStats, UpdateTestRequest, User

logger = logging.getLogger(__name__)

RECORDS_TABLE = "test_records"
PROFILES_TABLE = "profiles"

UNIQUE_VIOLATION = "23505"


def qexec(query, action: str, conflict: str = "Record already exists") -> List[Dict]:
    """Run a PostgREST query and return its rows; DB failures become StorageError."""
    try:
        response = query.execute()
        return response.data or []
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise ConflictError(conflict) from e
        logger.error(f"Error trying to {action}: {getattr(e, 'message', e)}")
        raise StorageError(f"Failed to {action}") from e


class TestRecordStore:
    """Supabase-backed store. Every record query is scoped by the owning user."""

    __test__ = False

    def __init__(self, client: Client):
        self.client = client

    # ============= Test records =============

    def _records(self):
        return self.client.table(RECORDS_TABLE)

    def _find(self, user_id: str, record_id: str) -> Optional[Dict]:
        rows = qexec(
            self._records().select("*").eq("user_id", user_id).eq("id", record_id).limit(1),
            "fetch test",
        )
        return rows[0] if rows else None

    def create(self, user_id: str, record: TestRecord) -> TestRecord:
        """
        Insert a new record for the user.

        Raises:
            ConflictError: a record with this id already exists for the user
        """
        if self._find(user_id, record.id):
            raise ConflictError("Test record with this ID already exists")
        row = record.to_row()
        row["user_id"] = user_id
        rows = qexec(self._records().insert(row), "create test", "Test record with this ID already exists")
        saved = TestRecord.from_row(rows[0]) if rows else TestRecord.from_row(row)
        logger.info(f"Test {saved.id} saved for user {user_id}: score={saved.score}")
        return saved

    def get(self, user_id: str, record_id: str) -> TestRecord:
        row = self._find(user_id, record_id)
        if not row:
            raise NotFoundError("Test record not found")
        return TestRecord.from_row(row)

    def list(self, user_id: str, subject: Optional[Subject] = None) -> List[TestRecord]:
        """All records for the user, newest first."""
        query = self._records().select("*").eq("user_id", user_id)
        if subject is not None:
            query = query.eq("subject", subject.value)
        rows = qexec(query.order("date_iso", desc=True), "fetch tests")
        return [TestRecord.from_row(row) for row in rows]

    def update(self, user_id: str, record_id: str, changes: UpdateTestRequest) -> TestRecord:
        updated = changes.apply(self.get(user_id, record_id))
        row = updated.to_row()
        del row["id"], row["user_id"]
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = qexec(
            self._records().update(row).eq("user_id", user_id).eq("id", record_id),
            "update test",
        )
        if not rows:
            raise NotFoundError("Test record not found")
        return TestRecord.from_row(rows[0])

    def delete(self, user_id: str, record_id: str) -> None:
        rows = qexec(
            self._records().delete().eq("user_id", user_id).eq("id", record_id),
            "delete test",
        )
        if not rows:
            raise NotFoundError("Test record not found")
        logger.info(f"Deleted test {record_id} for user {user_id}")

    def delete_all(self, user_id: str) -> int:
        rows = qexec(self._records().delete().eq("user_id", user_id), "delete all tests")
        logger.info(f"Deleted {len(rows)} tests for user {user_id}")
        return len(rows)

    def upsert_many(self, user_id: str, records: List[TestRecord], chunk_size: int = 200) -> int:
        """Bulk upsert (importer). Dedupes by id so no chunk has duplicates."""
        by_id = {r.id: r for r in records}
        if len(by_id) < len(records):
            logger.info("Deduped records by id: %d -> %d", len(records), len(by_id))
        rows = []
        for record in by_id.values():
            row = record.to_row()
            row["user_id"] = user_id
            rows.append(row)
        n_chunks = (len(rows) + chunk_size - 1) // chunk_size
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i : i + chunk_size]
            logger.info("Upserting chunk %d/%d (%d rows)", i // chunk_size + 1, n_chunks, len(chunk))
            qexec(self._records().upsert(chunk, on_conflict="user_id,id"), "upsert tests")
        return len(rows)

    # ============= Analytics =============

    def stats(self, user_id: str) -> TestStats:
        """Count, score totals/averages and per-subject rollup over all the user's records."""
        return TestStats.from_records(self.list(user_id))

    # ============= Profiles =============

    def get_profile(self, user_id: str) -> Optional[User]:
        rows = qexec(
            self.client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1),
            "fetch profile",
        )
        return User.from_row(rows[0]) if rows else None

    def find_profile_by_email(self, email: str) -> Optional[User]:
        rows = qexec(
            self.client.table(PROFILES_TABLE).select("*").eq("email", email).limit(1),
            "fetch profile",
        )
        return User.from_row(rows[0]) if rows else None

    def create_profile(self, user_id: str, email: str, name: str, guardian_email: Optional[str] = None) -> User:
        now = datetime.now(timezone.utc).isoformat()
        row = {
            "id": user_id,
            "email": email,
            "name": name,
            "guardian_email": guardian_email,
            "created_at": now,
            "updated_at": now,
        }
        rows = qexec(self.client.table(PROFILES_TABLE).insert(row), "create profile", "User with this email already exists")
        return User.from_row(rows[0] if rows else row)

    def update_profile(self, user_id: str, changes: Dict[str, Optional[str]]) -> User:
        data = dict(changes)
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = qexec(
            self.client.table(PROFILES_TABLE).update(data).eq("id", user_id),
            "update profile",
        )
        if not rows:
            raise NotFoundError("User not found")
        return User.from_row(rows[0])
