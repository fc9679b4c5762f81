"""
Abstract identity provider interface.

Defines the capability set both provider variants implement, so the session
engine can be handed either one without knowing which it got.

Example:
    from connect_auth.auth import IdentityProvider, MockAuth, FirebaseAuth

    def get_identity_provider(settings, storage) -> IdentityProvider:
        if settings.is_development():
            return MockAuth(storage)
        return FirebaseAuth(api_key=settings.FIREBASE_API_KEY, storage=storage)
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from connect_auth.schemas.auth import Subject, OAuthProviderConfig
from connect_auth.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

AuthStateCallback = Callable[[Optional[Subject]], None]


def validate_credentials(email: str, password: str, min_password_length: int = 0) -> None:
    """
    Reject credentials that are malformed before any provider call.

    Raises:
        ValidationError: If email or password is missing, or the password
            is shorter than ``min_password_length``
    """
    if not email or not password:
        raise ValidationError("Email and password are required", code="auth/missing-credentials")

    if "@" not in email:
        raise ValidationError("Email address is badly formatted", code="auth/invalid-email")

    if len(password) < min_password_length:
        raise ValidationError(
            f"Password must be at least {min_password_length} characters",
            code="auth/weak-password",
        )


class IdentityProvider(ABC):
    """
    Abstract identity provider.

    Subclasses own the authoritative subject and call ``_notify`` whenever
    it changes. Subscriber bookkeeping is shared here.
    """

    def __init__(self):
        self._listeners: List[AuthStateCallback] = []

    @property
    @abstractmethod
    def current_subject(self) -> Optional[Subject]:
        """Synchronous snapshot of the signed-in subject (not a subscription)."""
        pass

    def subscribe_auth_state(self, callback: AuthStateCallback) -> Callable[[], None]:
        """
        Register for auth state notifications.

        ``callback`` is invoked once immediately with the current subject,
        then again on every change. The first call does not imply a change.

        Args:
            callback: Called with a Subject or None

        Returns:
            Unsubscribe callable, safe to call more than once
        """
        self._listeners.append(callback)
        callback(self.current_subject)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def _notify(self, subject: Optional[Subject]) -> None:
        for callback in list(self._listeners):
            try:
                callback(subject)
            except Exception:
                logger.exception(f"Auth state listener failed in {type(self).__name__}")

    @abstractmethod
    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Subject:
        """
        Create an account and sign it in.

        Args:
            email: Account email address
            password: Account password
            display_name: Optional profile name

        Returns:
            The new Subject

        Raises:
            ValidationError: If email or password violate the provider policy
            AuthenticationError: If the provider rejects the account
        """
        pass

    @abstractmethod
    async def sign_in_with_credentials(self, email: str, password: str) -> Subject:
        """
        Sign in with email and password.

        Raises:
            ValidationError: If credentials are malformed
            AuthenticationError: If the provider rejects them
        """
        pass

    @abstractmethod
    async def sign_in_with_external_popup(
        self,
        provider: Optional[OAuthProviderConfig] = None,
    ) -> Subject:
        """
        Sign in through an interactive external flow.

        Raises:
            PopupClosedError: If the user dismissed the flow
            AuthenticationError: For any other failure
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Clear the signed-in subject. Signing out twice is not an error."""
        pass

    async def restore(self) -> Optional[Subject]:
        """
        Rehydrate persisted state after startup.

        Providers that load synchronously have nothing left to do.
        """
        return self.current_subject

    async def aclose(self) -> None:
        """Release channel subscriptions and other resources."""
        self._listeners.clear()
