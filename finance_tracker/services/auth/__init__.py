"""Authentication package."""

from finance_tracker.services.auth.auth_service import (
    AuthError,
    AuthEvent,
    AuthService,
    AuthSession,
    AuthSubscription,
)

__all__ = [
    "AuthError",
    "AuthEvent",
    "AuthService",
    "AuthSession",
    "AuthSubscription",
]
