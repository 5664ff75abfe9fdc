"""
Authentication through Supabase Auth.
Access tokens are Supabase JWTs; names and guardian emails live in `profiles`.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from supabase import AuthError, Client

from tracker.database import TestRecordStore
from tracker.errors import AuthenticationError, ConflictError, ValidationError
from tracker.models import LoginRequest, SignupRequest, User

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    """Credential handed to every protected operation. Dropped on logout."""

    token: str
    user: User


def _auth_message(e: AuthError) -> str:
    return getattr(e, "message", None) or str(e)


class AuthService:
    def __init__(self, client: Client, store: TestRecordStore):
        # Dedicated client: signing in swaps the session held by the client
        self.client = client
        self.store = store

    def _password_login(self, email: str, password: str, failure: str):
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as e:
            logger.info(f"Login rejected for {email}: {_auth_message(e)}")
            raise AuthenticationError(failure) from e
        if response.user is None or response.session is None:
            raise AuthenticationError(failure)
        return response

    def signup(self, request: SignupRequest) -> AuthSession:
        """
        Register a new account and return a session for it.

        Raises:
            ConflictError: email already registered
            ValidationError: rejected by Supabase (e.g. weak password)
            AuthenticationError: account created but no session could be issued
        """
        if self.store.find_profile_by_email(request.email):
            raise ConflictError("User with this email already exists")

        try:
            response = self.client.auth.sign_up({
                "email": request.email,
                "password": request.password,
                "options": {"data": {"name": request.name}},
            })
        except AuthError as e:
            message = _auth_message(e)
            if "already" in message.lower():
                raise ConflictError("User with this email already exists") from e
            raise ValidationError(message) from e

        if response.user is None:
            raise AuthenticationError("Failed to create user account")

        user = self.store.create_profile(str(response.user.id), request.email, request.name, request.guardian_email)
        logger.info(f"Created account {user.id} ({user.email})")

        if response.session is not None:
            return AuthSession(token=response.session.access_token, user=user)
        # Email confirmation enabled: no session until the address is confirmed
        login = self._password_login(
            request.email, request.password,
            "Account created. Confirm your email address, then log in.",
        )
        return AuthSession(token=login.session.access_token, user=user)

    def login(self, request: LoginRequest) -> AuthSession:
        response = self._password_login(request.email, request.password, "Invalid email or password")
        user_id = str(response.user.id)
        user = self.store.get_profile(user_id)
        if user is None:
            # Account made outside the app (e.g. Supabase dashboard)
            metadata = getattr(response.user, "user_metadata", None) or {}
            name = metadata.get("name") or request.email.split("@")[0]
            user = self.store.create_profile(user_id, request.email, name)
        return AuthSession(token=response.session.access_token, user=user)

    def resolve(self, token: Optional[str]) -> User:
        """
        Turn a bearer token into the user it belongs to. Runs before any data access.

        Raises:
            AuthenticationError: missing, invalid or expired token, or no profile
        """
        if not token:
            raise AuthenticationError("Access token required")
        try:
            response = self.client.auth.get_user(token)
        except AuthError as e:
            logger.info(f"Token rejected: {_auth_message(e)}")
            raise AuthenticationError("Invalid or expired token") from e
        if response is None or response.user is None:
            raise AuthenticationError("Invalid or expired token")

        user = self.store.get_profile(str(response.user.id))
        if user is None:
            raise AuthenticationError("Invalid token")
        return user
