"""
Consumer-facing auth surface.

What presentation code talks to: ``user``, ``loading`` and the five auth
operations. Operations pass through to the identity provider, keep the
session marker in step, and wait for the engine to commit the result, so
``user`` is current when an operation returns.

Example:
    async with AuthContext.from_settings(settings, local_storage, MemoryStorage()) as auth:
        if auth.user is None:
            await auth.sign_in("user@example.com", "password123")
        print(auth.user.email)
"""

import logging
from typing import Callable, Optional

import httpx

from connect_auth.auth.base import IdentityProvider
from connect_auth.auth.factory import create_identity_provider, google_provider
from connect_auth.auth.popup import PopupFlow
from connect_auth.config.base_settings import AuthSettings
from connect_auth.schemas.auth import Subject, OAuthProviderConfig, GOOGLE_PROVIDER
from connect_auth.session.engine import SessionEngine, SessionState, StateListener
from connect_auth.storage.base import KeyValueStorage
from connect_auth.storage.channel import StorageChannel
from connect_auth.storage.session_store import SessionStore

logger = logging.getLogger(__name__)


class AuthContext:
    """Auth state and operations for one browser-style context."""

    def __init__(
        self,
        provider: IdentityProvider,
        session_store: SessionStore,
        google: OAuthProviderConfig = GOOGLE_PROVIDER,
    ):
        self._provider = provider
        self._session_store = session_store
        self._google = google
        self._engine = SessionEngine(provider, session_store)

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        local_storage: KeyValueStorage,
        session_storage: KeyValueStorage,
        channel: Optional[StorageChannel] = None,
        popup_flow: Optional[PopupFlow] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AuthContext":
        """
        Build a context with the provider variant selected by settings.

        Args:
            settings: Auth settings
            local_storage: Origin-wide durable storage (shared by contexts)
            session_storage: Storage private to this context
            channel: This context's cross-context channel endpoint
            popup_flow: Interactive flow for Google sign-in
            transport: httpx transport override for Firebase
        """
        provider = create_identity_provider(
            settings,
            local_storage,
            channel=channel,
            popup_flow=popup_flow,
            transport=transport,
        )
        session_store = SessionStore(session_storage, key=settings.SESSION_STORAGE_KEY)
        return cls(provider, session_store, google=google_provider(settings))

    # -------------------------------------------------------------------------
    # Reactive fields
    # -------------------------------------------------------------------------

    @property
    def user(self) -> Optional[Subject]:
        return self._engine.user

    @property
    def loading(self) -> bool:
        return self._engine.loading

    @property
    def status(self) -> SessionState:
        return self._engine.status

    @property
    def engine(self) -> SessionEngine:
        return self._engine

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    @property
    def started(self) -> bool:
        return self._engine.started

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._engine.subscribe(listener)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the engine, then let the provider rehydrate its own state."""
        try:
            await self._engine.start()
            await self._provider.restore()
            await self._engine.settle()
        except BaseException:
            await self.close()
            raise

    async def close(self) -> None:
        try:
            await self._engine.close()
        finally:
            await self._provider.aclose()

    async def __aenter__(self) -> "AuthContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Subject:
        try:
            subject = await self._provider.create_account(email, password, display_name)
        except Exception as e:
            logger.error(f"Error signing up: {e}")
            raise

        self._engine.record_session(subject)
        await self._engine.settle()
        return subject

    async def sign_in(self, email: str, password: str) -> Subject:
        try:
            subject = await self._provider.sign_in_with_credentials(email, password)
        except Exception as e:
            logger.error(f"Error signing in: {e}")
            raise

        self._engine.record_session(subject)
        await self._engine.settle()
        return subject

    async def sign_in_with_google(self) -> Subject:
        """
        Sign in with the Google popup.

        Raises:
            PopupClosedError: If the user closed the popup (safe to re-offer)
            AuthenticationError: For any other failure
        """
        logger.info("Starting Google sign-in process")
        try:
            subject = await self._provider.sign_in_with_external_popup(self._google)
        except Exception as e:
            logger.error(f"Error signing in with Google: {e}")
            raise

        logger.info(f"Google sign-in successful: {subject.subject_id}")
        self._engine.record_session(subject)
        await self._engine.settle()
        return subject

    async def sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except Exception as e:
            logger.error(f"Error signing out: {e}")
            raise

        await self._engine.end_session()

    async def refresh_user_session(self) -> None:
        await self._engine.refresh_session()


def use_auth(context: Optional[AuthContext]) -> AuthContext:
    """
    Return ``context`` if it is running.

    Raises:
        RuntimeError: If there is no started AuthContext
    """
    if context is None or not context.started:
        raise RuntimeError("use_auth must be used within an AuthContext")
    return context
