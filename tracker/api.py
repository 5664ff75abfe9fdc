"""
Operation layer: one method per user-facing operation.
Validates the request, authenticates the token, calls storage/engine/notifier
and reports the outcome as an ApiResponse. Nothing here raises to the caller.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from tracker.auth import AuthService
from tracker.database import TestRecordStore
from tracker.engine import compute_aggregate
from tracker.errors import TrackerError
from tracker.models import (
    CreateTestRequest,
    LoginRequest,
    ProfileUpdate,
    SignupRequest,
    TestRecord,
    UpdateTestRequest,
    parse_outcomes,
    parse_subject,
)
from tracker.notify import Notifier

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    status: int
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status < 400


class TrackerAPI:
    def __init__(self, store: TestRecordStore, auth: AuthService, notifier: Notifier):
        self.store = store
        self.auth = auth
        self.notifier = notifier

    def _call(self, action: str, fn: Callable[[], ApiResponse]) -> ApiResponse:
        try:
            return fn()
        except TrackerError as e:
            return ApiResponse(status=e.status, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error trying to {action}: {e}")
            return ApiResponse(status=500, error=f"Failed to {action}")

    # ============= Auth =============

    def signup(self, payload: Dict) -> ApiResponse:
        def run():
            session = self.auth.signup(SignupRequest.from_dict(payload))
            # Welcome mail is best effort
            self.notifier.send_welcome(session.user)
            return ApiResponse(status=201, data=session)
        return self._call("create user account", run)

    def login(self, payload: Dict) -> ApiResponse:
        return self._call("login", lambda: ApiResponse(200, self.auth.login(LoginRequest.from_dict(payload))))

    def get_profile(self, token: str) -> ApiResponse:
        return self._call("get user profile", lambda: ApiResponse(200, self.auth.resolve(token)))

    def update_profile(self, token: str, payload: Dict) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            update = ProfileUpdate.from_dict(payload)
            return ApiResponse(200, self.store.update_profile(user.id, update.changes))
        return self._call("update profile", run)

    # ============= Tests =============

    def list_tests(self, token: str, subject: Optional[str] = None) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            wanted = parse_subject(subject) if subject and subject != "All" else None
            return ApiResponse(200, self.store.list(user.id, wanted))
        return self._call("fetch tests", run)

    def get_test(self, token: str, record_id: str) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            return ApiResponse(200, self.store.get(user.id, record_id))
        return self._call("fetch test", run)

    def create_test(self, token: str, payload: Dict) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            request = CreateTestRequest.from_dict(payload)
            record = TestRecord.build(request.id, user.id, request.subject, request.questions, request.date_iso)
            return ApiResponse(201, self.store.create(user.id, record))
        return self._call("create test", run)

    def update_test(self, token: str, record_id: str, payload: Dict) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            return ApiResponse(200, self.store.update(user.id, record_id, UpdateTestRequest.from_dict(payload)))
        return self._call("update test", run)

    def delete_test(self, token: str, record_id: str) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            self.store.delete(user.id, record_id)
            return ApiResponse(200, {"id": record_id}, message="Test record deleted successfully")
        return self._call("delete test", run)

    def delete_all_tests(self, token: str) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            deleted = self.store.delete_all(user.id)
            return ApiResponse(200, {"deleted_count": deleted}, message="All test records deleted successfully")
        return self._call("delete all tests", run)

    def get_stats(self, token: str) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            return ApiResponse(200, self.store.stats(user.id))
        return self._call("fetch test statistics", run)

    def send_test_email(self, token: str, record_id: str) -> ApiResponse:
        def run():
            user = self.auth.resolve(token)
            record = self.store.get(user.id, record_id)
            if self.notifier.send_test_results(user, record):
                return ApiResponse(200, message="Test results sent successfully via email")
            return ApiResponse(400, error="Failed to send email. Please check if guardian email is configured.")
        return self._call("send test results email", run)

    # ============= Live preview =============

    def preview(self, questions: List[Dict]) -> ApiResponse:
        """Aggregate for the entry form as selections change. Touches no storage."""
        def run():
            return ApiResponse(200, compute_aggregate(parse_outcomes(questions)))
        return self._call("compute totals", run)
