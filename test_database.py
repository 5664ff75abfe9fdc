"""TestRecordStore against the in-memory Supabase fake."""
import pytest

from tracker.chapters import Subject
from tracker.errors import ConflictError, NotFoundError, StorageError
from tracker.models import TestRecord, UpdateTestRequest, parse_outcomes

USER = "user-1"
OTHER = "user-2"


def make_record(record_id, subject=Subject.PHYSICS, statuses=("correct", "wrong"), date="2026-10-19T08:00:00+00:00", user=USER):
    questions = parse_outcomes([
        {"number": i, "chapter": "Mechanics" if i % 2 else "Optics", "status": s}
        for i, s in enumerate(statuses, 1)
    ])
    return TestRecord.build(record_id, user, subject, questions, date)


def test_create_and_get(store):
    saved = store.create(USER, make_record("t1"))
    assert saved.id == "t1"
    assert saved.score == 3
    fetched = store.get(USER, "t1")
    assert fetched == saved
    assert list(fetched.by_chapter) == ["Mechanics", "Optics"]


def test_create_rejects_duplicate_id_for_same_user(store):
    store.create(USER, make_record("t1"))
    with pytest.raises(ConflictError, match="already exists"):
        store.create(USER, make_record("t1"))


def test_same_id_allowed_for_other_user(store):
    store.create(USER, make_record("t1"))
    other = store.create(OTHER, make_record("t1", user=OTHER))
    assert other.user_id == OTHER


def test_unique_violation_maps_to_conflict(store, fake_client, monkeypatch):
    store.create(USER, make_record("t1"))
    # Lose the race: the existence check sees nothing, the insert hits the constraint
    monkeypatch.setattr(store, "_find", lambda user_id, record_id: None)
    with pytest.raises(ConflictError):
        store.create(USER, make_record("t1"))


def test_records_are_scoped_by_user(store):
    store.create(USER, make_record("t1"))
    with pytest.raises(NotFoundError):
        store.get(OTHER, "t1")
    with pytest.raises(NotFoundError):
        store.delete(OTHER, "t1")
    assert store.list(OTHER) == []


def test_list_newest_first_with_subject_filter(store):
    store.create(USER, make_record("old", date="2026-01-01T00:00:00+00:00"))
    store.create(USER, make_record("new", date="2026-03-01T00:00:00+00:00"))
    store.create(USER, make_record("bio", subject=Subject.BIOLOGY, date="2026-02-01T00:00:00+00:00"))
    assert [r.id for r in store.list(USER)] == ["new", "bio", "old"]
    assert [r.id for r in store.list(USER, Subject.PHYSICS)] == ["new", "old"]


def test_update_recomputes(store):
    store.create(USER, make_record("t1"))
    change = UpdateTestRequest.from_dict({
        "subject": "Chemistry",
        "questions": [{"number": 1, "chapter": "Equilibrium", "status": "correct"}],
    })
    updated = store.update(USER, "t1", change)
    assert updated.subject is Subject.CHEMISTRY
    assert updated.score == 4
    assert list(updated.by_chapter) == ["Equilibrium"]
    assert store.get(USER, "t1").score == 4


def test_update_missing(store):
    with pytest.raises(NotFoundError):
        store.update(USER, "nope", UpdateTestRequest.from_dict({"subject": "Physics"}))


def test_delete_and_delete_all(store):
    for rid in ("a", "b", "c"):
        store.create(USER, make_record(rid))
    store.create(OTHER, make_record("x", user=OTHER))
    store.delete(USER, "a")
    with pytest.raises(NotFoundError):
        store.delete(USER, "a")
    assert store.delete_all(USER) == 2
    assert store.list(USER) == []
    assert len(store.list(OTHER)) == 1


def test_stats_rollup(store):
    store.create(USER, make_record("a", statuses=("correct", "correct")))
    store.create(USER, make_record("b", subject=Subject.BIOLOGY, statuses=("wrong",)))
    stats = store.stats(USER)
    assert stats.total_tests == 2
    assert stats.total_score == 7
    assert stats.avg_score == 3.5
    assert [s.value for s in stats.subjects] == ["Physics", "Biology"]
    assert store.stats(OTHER).total_tests == 0


def test_upsert_many_dedupes(store):
    records = [make_record("a"), make_record("a", statuses=("correct",)), make_record("b")]
    assert store.upsert_many(USER, records, chunk_size=1) == 2
    assert store.get(USER, "a").score == 4
    # Running it again does not duplicate
    store.upsert_many(USER, records)
    assert len(store.list(USER)) == 2


def test_storage_failure_raises_storage_error(store, fake_client):
    fake_client.fail_next = True
    with pytest.raises(StorageError, match="Failed to fetch tests"):
        store.list(USER)


def test_profiles(store):
    user = store.create_profile("u1", "a@b.com", "Asha", "parent@b.com")
    assert store.get_profile("u1") == user
    assert store.find_profile_by_email("a@b.com").id == "u1"
    assert store.get_profile("missing") is None
    updated = store.update_profile("u1", {"guardian_email": None})
    assert updated.guardian_email is None
    assert updated.name == "Asha"
    with pytest.raises(NotFoundError):
        store.update_profile("missing", {"name": "X"})
    with pytest.raises(ConflictError, match="email already exists"):
        store.create_profile("u2", "a@b.com", "Other")
