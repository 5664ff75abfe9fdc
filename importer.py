"""Import exported test records (.json array or .jsonl) for one user; aggregates are recomputed on the way in."""
import json
import argparse
import logging
from pathlib import Path
from uuid import uuid5, NAMESPACE_URL

from tracker.errors import ValidationError
from tracker.models import TestRecord, parse_iso, parse_outcomes, parse_subject

logger = logging.getLogger(__name__)


def parse_record(raw: dict, user_id: str) -> TestRecord | None:
    """Turn one exported record (camelCase or snake_case keys) into a TestRecord. Returns None if invalid."""
    if not isinstance(raw, dict):
        return None
    try:
        subject = parse_subject(raw.get("subject"))
        questions = parse_outcomes(raw.get("questions") or [])
        date_value = raw.get("dateISO") or raw.get("date_iso")
        date_iso = parse_iso(date_value) if date_value else None
    except ValidationError as e:
        logger.warning(f"Skipping record {raw.get('id')!r}: {e.message}")
        return None
    record_id = raw.get("id")
    if not record_id:
        # Stable id so re-running an import does not duplicate rows
        record_id = str(uuid5(NAMESPACE_URL, json.dumps(raw, sort_keys=True)))
    return TestRecord.build(str(record_id), user_id, subject, questions, date_iso)


def load_rows(path: Path) -> list:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        rows = []
        for n, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning(f"Line {n}: not valid JSON, skipped")
        return rows
    data = json.loads(text)
    return data if isinstance(data, list) else [data]


def load_and_transform(path: Path, user_id: str):
    """Read the export and yield TestRecords for the user."""
    for raw in load_rows(path):
        record = parse_record(raw, user_id)
        if record:
            yield record


def run_import(path: Path, user_id: str, chunk_size: int = 200, dry_run: bool = False, replace: bool = False):
    if not path.exists():
        raise FileNotFoundError(f"Export not found: {path}")
    records = list(load_and_transform(path, user_id))
    if dry_run:
        print(f"Dry run: would upsert {len(records)} test records from {path}")
        if records:
            print("Sample record:", records[0].to_dict())
        return records
    from db import get_store_uncached
    store = get_store_uncached()
    if replace:
        deleted = store.delete_all(user_id)
        print(f"Deleted {deleted} existing test records")
    count = store.upsert_many(user_id, records, chunk_size=chunk_size)
    print(f"Upserted {count} test records from {path}")
    return records


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import exported test records into Supabase for one user.")
    parser.add_argument("path", help="Path to .json (array of records) or .jsonl")
    parser.add_argument("--user-id", required=True, help="Owner of the imported records (Supabase auth user id)")
    parser.add_argument("--chunk-size", type=int, default=200, help="Upsert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not upsert")
    parser.add_argument("--replace", action="store_true", help="Delete the user's existing records, then upsert")
    args = parser.parse_args()
    run_import(Path(args.path), args.user_id, chunk_size=args.chunk_size, dry_run=args.dry_run, replace=args.replace)
