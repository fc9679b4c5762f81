"""
Mock identity provider for development.

Keeps the signed-in subject in a shared durable slot (``mockUser``) and
broadcasts every change on the cross-context channel, which stands in for
the real provider's own cross-tab synchronization.

Google sign-in cannot be mocked meaningfully (it is an OAuth popup), so it
is always forwarded to a real provider when one is supplied.

Example:
    hub = BroadcastHub()
    shared = MemoryStorage()

    tab_a = MockAuth(shared, channel=hub.connect("a"))
    tab_b = MockAuth(shared, channel=hub.connect("b"))

    await tab_a.sign_in_with_credentials("a@x.com", "secret1")
    tab_b.current_subject.email  # "a@x.com"
"""

import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from connect_auth.auth.base import IdentityProvider, validate_credentials
from connect_auth.schemas.auth import (
    Subject,
    OAuthProviderConfig,
    GOOGLE_PROVIDER_ID,
    now_millis,
)
from connect_auth.storage.base import KeyValueStorage
from connect_auth.storage.channel import StorageChannel, StorageEvent
from connect_auth.utils.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

MOCK_USER_KEY = "mockUser"


class MockAuth(IdentityProvider):
    """
    Mock identity provider backed by local durable storage.

    Accepts any well-formed credentials and fabricates subjects for them.
    """

    DEFAULT_MIN_PASSWORD_LENGTH = 6

    def __init__(
        self,
        storage: KeyValueStorage,
        channel: Optional[StorageChannel] = None,
        google_delegate: Optional[IdentityProvider] = None,
        storage_key: str = MOCK_USER_KEY,
        min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
        clock: Callable[[], int] = now_millis,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize the mock provider and restore any persisted subject.

        Args:
            storage: Durable storage shared by all contexts of the origin
            channel: Cross-context channel endpoint for this context
            google_delegate: Real provider that handles Google popup sign-in
            storage_key: Slot holding the subject JSON
            min_password_length: Shortest accepted password
            clock: Epoch-millis source used in generated ids
            id_factory: Optional override for generated subject ids
        """
        super().__init__()
        self._storage = storage
        self._channel = channel
        self._google_delegate = google_delegate
        self._storage_key = storage_key
        self._min_password_length = min_password_length
        self._clock = clock
        self._id_factory = id_factory

        self._current: Optional[Subject] = self._parse(storage.get_item(storage_key))
        self._unsubscribe_channel = channel.subscribe(self._on_storage_event) if channel else None

    @property
    def current_subject(self) -> Optional[Subject]:
        return self._current

    # -------------------------------------------------------------------------
    # Storage plumbing
    # -------------------------------------------------------------------------

    def _parse(self, raw: Optional[str]) -> Optional[Subject]:
        if not raw:
            return None
        try:
            return Subject.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Failed to load mock user from {self._storage_key}: {e}")
            return None

    def _on_storage_event(self, event: StorageEvent) -> None:
        if event.key != self._storage_key:
            return
        subject = self._parse(event.new_value)
        self._current = subject
        self._notify(subject)

    def _commit(self, subject: Optional[Subject]) -> None:
        new_value = subject.to_json() if subject else None

        if new_value is None:
            self._storage.remove_item(self._storage_key)
        else:
            self._storage.set_item(self._storage_key, new_value)
        self._current = subject

        if self._channel:
            self._channel.publish(self._storage_key, new_value)
        self._notify(subject)

    def _new_id(self, prefix: str) -> str:
        if self._id_factory:
            return self._id_factory()
        return f"{prefix}-{self._clock()}"

    # -------------------------------------------------------------------------
    # Provider operations
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Subject:
        """Fabricate a new mock account and sign it in."""
        validate_credentials(email, password, self._min_password_length)

        subject = Subject(
            subject_id=self._new_id("mock"),
            email=email,
            display_name=display_name or email.split("@")[0],
        )
        self._commit(subject)
        logger.info(f"Mock account created for {email}")
        return subject

    async def sign_in_with_credentials(self, email: str, password: str) -> Subject:
        """Accept any well-formed credentials."""
        validate_credentials(email, password, self._min_password_length)

        subject = Subject(
            subject_id=self._new_id("mock"),
            email=email,
            display_name=email.split("@")[0],
        )
        self._commit(subject)
        return subject

    async def sign_in_with_external_popup(
        self,
        provider: Optional[OAuthProviderConfig] = None,
    ) -> Subject:
        """
        Google goes to the real provider; anything else gets a placeholder.

        Raises:
            AuthenticationError: If Google is requested with no real delegate
        """
        if provider is not None and provider.provider_id == GOOGLE_PROVIDER_ID:
            if self._google_delegate is None:
                raise AuthenticationError(
                    "Google sign-in requires a real identity provider",
                    code="auth/operation-not-supported-in-this-environment",
                )
            try:
                subject = await self._google_delegate.sign_in_with_external_popup(provider)
            except Exception as e:
                logger.error(f"Google sign-in error: {e}")
                raise

            # Mirror into the mock slot so auth state stays in one place
            self._commit(subject)
            return subject

        timestamp = self._clock()
        suffix = timestamp % 1000
        subject = Subject(
            subject_id=self._id_factory() if self._id_factory else f"mock-provider-{timestamp}",
            email=f"mock-user-{suffix}@example.com",
            display_name=f"Provider User {suffix}",
        )
        self._commit(subject)
        return subject

    async def sign_out(self) -> None:
        self._commit(None)

    async def aclose(self) -> None:
        if self._unsubscribe_channel:
            self._unsubscribe_channel()
            self._unsubscribe_channel = None
        await super().aclose()
