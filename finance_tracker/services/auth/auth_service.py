"""
Email/Password Authentication

Accounts live in the `user_profiles` table. The row carries a werkzeug
password hash next to the profile columns; UserProfile never exposes it.

One AuthService holds one session at a time, like a browser client.
Listeners registered with on_auth_state_change() are told about every
change:

    SIGNED_IN     a session was opened
    SIGNED_OUT    the session was closed
    USER_UPDATED  the signed-in user changed their password

DESIGN DECISION: Listeners are plain callables called synchronously, so
a listener such as the query cache is cleared before sign_out() returns.
"""

import secrets
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import structlog
from pydantic import BaseModel, Field
from werkzeug.security import check_password_hash, generate_password_hash

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.finance import UserProfile, utcnow
from finance_tracker.services.storage.interface import RowStoreInterface

if TYPE_CHECKING:
    from finance_tracker.audit.logger import AuditLogger

logger = structlog.get_logger(__name__)

USERS_TABLE = UserProfile.table


class AuthError(Exception):
    """Sign-up, sign-in or password change was refused."""
    pass


class AuthEvent(str, Enum):
    """Auth state changes reported to listeners."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


class AuthSession(BaseModel):
    """The signed-in user and an opaque session token."""

    user: UserProfile
    access_token: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    created_at: datetime = Field(default_factory=utcnow)


AuthCallback = Callable[[AuthEvent, Optional[AuthSession]], None]


class AuthSubscription:
    """Handle returned by on_auth_state_change()."""

    def __init__(self, service: "AuthService", callback: AuthCallback):
        self._service = service
        self.callback = callback

    def unsubscribe(self) -> None:
        self._service._remove_listener(self.callback)


class AuthService:
    """
    Email/password auth over the row store.

    Usage:
        auth = AuthService(store)
        await auth.sign_up("me@example.com", "secret1")
        session = await auth.sign_in("me@example.com", "secret1")
    """

    def __init__(
        self,
        store: RowStoreInterface,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        self._store = store
        self._audit = audit_logger
        self._settings = get_settings().app
        self._session: Optional[AuthSession] = None
        self._listeners: list[AuthCallback] = []

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthCallback) -> AuthSubscription:
        """Register a listener; call unsubscribe() on the result to stop."""
        self._listeners.append(callback)
        return AuthSubscription(self, callback)

    def _remove_listener(self, callback: AuthCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, event: AuthEvent) -> None:
        for callback in list(self._listeners):
            callback(event, self._session)

    async def _audit_event(self, event_type: AuditEventType, user: Optional[UserProfile]) -> None:
        if self._audit:
            await self._audit.log_auth_event(
                event_type=event_type,
                user_id=user.id if user else None,
                email=user.email if user else None,
            )

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def _check_password(self, password: str) -> None:
        minimum = self._settings.min_password_length
        if not password or len(password) < minimum:
            raise AuthError(f"Password must be at least {minimum} characters")

    async def _find_account(self, email: str) -> Optional[dict]:
        rows = await self._store.select(
            USERS_TABLE,
            where={"email": email.strip().lower()},
            limit=1,
        )
        return rows[0] if rows else None

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> UserProfile:
        """
        Create an account.

        Does not sign in; call sign_in() afterwards.

        Raises:
            AuthError: If the email is taken or the password is too short
        """
        self._check_password(password)
        try:
            profile = UserProfile(
                email=email,
                full_name=full_name,
                currency=self._settings.default_currency,
            )
        except ValueError as e:
            raise AuthError(f"Invalid sign-up details: {e}")

        if await self._find_account(profile.email) is not None:
            raise AuthError("User already registered")

        row = profile.to_row()
        row["password_hash"] = generate_password_hash(password)
        await self._store.insert(USERS_TABLE, row)

        logger.info("user_signed_up", user_id=str(profile.id))
        await self._audit_event(AuditEventType.USER_SIGNED_UP, profile)
        return profile

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Open a session.

        Raises:
            AuthError: If the email is unknown or the password is wrong
        """
        row = await self._find_account(email)
        if row is None or not row.get("password_hash"):
            raise AuthError("Invalid login credentials")
        if not check_password_hash(row["password_hash"], password):
            raise AuthError("Invalid login credentials")

        self._session = AuthSession(user=UserProfile.from_row(row))
        logger.info("user_signed_in", user_id=str(self._session.user.id))
        await self._audit_event(AuditEventType.USER_SIGNED_IN, self._session.user)
        self._notify(AuthEvent.SIGNED_IN)
        return self._session

    async def sign_out(self) -> None:
        """Close the session. Signing out without a session is a no-op."""
        if self._session is None:
            return
        user = self._session.user
        self._session = None
        logger.info("user_signed_out", user_id=str(user.id))
        await self._audit_event(AuditEventType.USER_SIGNED_OUT, user)
        self._notify(AuthEvent.SIGNED_OUT)

    def get_current_user(self) -> Optional[UserProfile]:
        """The signed-in user, or None."""
        return self._session.user if self._session else None

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    async def update_password(self, new_password: str) -> UserProfile:
        """
        Change the signed-in user's password.

        Raises:
            AuthError: If nobody is signed in or the password is too short
        """
        if self._session is None:
            raise AuthError("Not signed in")
        self._check_password(new_password)

        user = self._session.user
        await self._store.update(
            USERS_TABLE,
            user.id,
            {"password_hash": generate_password_hash(new_password)},
        )
        logger.info("password_changed", user_id=str(user.id))
        await self._audit_event(AuditEventType.PASSWORD_CHANGED, user)
        self._notify(AuthEvent.USER_UPDATED)
        return user
