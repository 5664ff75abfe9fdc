"""Shared fixtures: in-memory Supabase (tables + auth) and a recording SMTP transport."""
import smtplib
from types import SimpleNamespace
from uuid import uuid4

import pytest
from postgrest.exceptions import APIError
from supabase import AuthError

from tracker.api import TrackerAPI
from tracker.auth import AuthService
from tracker.config import Settings
from tracker.database import TestRecordStore
from tracker.notify import Notifier

UNIQUE_KEYS = {
    "test_records": [("user_id", "id")],
    "profiles": [("id",), ("email",)],
}


class FakeAuthError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def select(self, *columns, count=None):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, row):
        self.op, self.payload = "update", row
        return self

    def upsert(self, rows, on_conflict=None):
        self.op, self.payload = "upsert", rows
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def _matches(self, row):
        return all(row.get(col) == val for col, val in self.filters)

    def _check_unique(self, rows, new_row, ignore=None):
        for key in UNIQUE_KEYS.get(self.table, []):
            for row in rows:
                if row is ignore:
                    continue
                if all(row.get(k) == new_row.get(k) for k in key):
                    raise APIError({"message": "duplicate key value violates unique constraint",
                                    "code": "23505", "hint": None, "details": None})

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.db.fail_next:
            self.db.fail_next = False
            raise APIError({"message": "connection refused", "code": "08006", "hint": None, "details": None})
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            new_row = dict(self.payload)
            self._check_unique(rows, new_row)
            rows.append(new_row)
            return SimpleNamespace(data=[dict(new_row)], count=None)

        if self.op == "upsert":
            out = []
            for payload in self.payload:
                existing = next((r for r in rows if r.get("user_id") == payload.get("user_id")
                                 and r.get("id") == payload.get("id")), None)
                if existing is not None:
                    existing.update(payload)
                else:
                    rows.append(dict(payload))
                out.append(dict(payload))
            return SimpleNamespace(data=out, count=None)

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column), reverse=desc)
        if self.max_rows is not None:
            matched = matched[: self.max_rows]
        return SimpleNamespace(data=[dict(r) for r in matched], count=len(matched))


class FakeAuth:
    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.confirm_email = False

    def _user(self, account):
        return SimpleNamespace(id=account["id"], email=account["email"], user_metadata=account["metadata"])

    def _session(self, account):
        token = f"token-{uuid4()}"
        self.tokens[token] = account["email"]
        return SimpleNamespace(access_token=token)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.users:
            raise FakeAuthError("User already registered")
        if len(credentials["password"]) < 6:
            raise FakeAuthError("Password should be at least 6 characters")
        account = {
            "id": str(uuid4()),
            "email": email,
            "password": credentials["password"],
            "metadata": credentials.get("options", {}).get("data", {}),
            "confirmed": not self.confirm_email,
        }
        self.users[email] = account
        session = self._session(account) if account["confirmed"] else None
        return SimpleNamespace(user=self._user(account), session=session)

    def sign_in_with_password(self, credentials):
        account = self.users.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        if not account["confirmed"]:
            raise FakeAuthError("Email not confirmed")
        return SimpleNamespace(user=self._user(account), session=self._session(account))

    def get_user(self, jwt=None):
        email = self.tokens.get(jwt)
        if email is None:
            raise FakeAuthError("invalid JWT: token is expired")
        return SimpleNamespace(user=self._user(self.users[email]))

    def expire(self, token):
        self.tokens.pop(token, None)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_next = False
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)


class FakeSMTP:
    """Stands in for smtplib.SMTP; records every message sent."""

    sent = []
    fail = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        if FakeSMTP.fail:
            raise smtplib.SMTPConnectError(421, "Service not available")
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append(message)


@pytest.fixture
def settings():
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        smtp_host="smtp.test",
        smtp_port=587,
        smtp_user="tracker@example.com",
        smtp_pass="secret",
    )


@pytest.fixture
def fake_client():
    return FakeSupabase()


@pytest.fixture
def store(fake_client):
    return TestRecordStore(fake_client)


@pytest.fixture
def smtp():
    FakeSMTP.sent = []
    FakeSMTP.fail = False
    yield FakeSMTP
    FakeSMTP.sent = []
    FakeSMTP.fail = False


@pytest.fixture
def notifier(settings, smtp):
    return Notifier(settings, smtp_factory=smtp)


@pytest.fixture
def auth_service(fake_client, store):
    return AuthService(fake_client, store)


@pytest.fixture
def api(store, auth_service, notifier):
    return TrackerAPI(store, auth_service, notifier)


@pytest.fixture
def signup_payload():
    return {
        "email": "asha@example.com",
        "password": "s3cret-pass",
        "name": "Asha",
        "guardian_email": "parent@example.com",
    }


@pytest.fixture
def session(api, signup_payload):
    resp = api.signup(signup_payload)
    assert resp.ok, resp.error
    return resp.data
