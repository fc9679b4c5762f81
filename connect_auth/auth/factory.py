"""
Identity provider selection.

Picks the provider variant once, from settings, and wires it to the
context's storage and channel. The engine only ever sees the
IdentityProvider interface.
"""

import logging
from enum import Enum
from typing import Optional

import httpx

from connect_auth.auth.base import IdentityProvider
from connect_auth.auth.firebase_auth import FirebaseAuth
from connect_auth.auth.mock_auth import MockAuth
from connect_auth.auth.popup import PopupFlow
from connect_auth.config.base_settings import AuthSettings
from connect_auth.schemas.auth import OAuthProviderConfig, GOOGLE_PROVIDER
from connect_auth.storage.base import KeyValueStorage
from connect_auth.storage.channel import StorageChannel

logger = logging.getLogger(__name__)


class ProviderVariant(str, Enum):
    MOCK = "mock"
    REAL = "firebase"


def google_provider(settings: AuthSettings) -> OAuthProviderConfig:
    """Google provider config with the configured account prompt."""
    return GOOGLE_PROVIDER.model_copy(
        update={"custom_parameters": {"prompt": settings.GOOGLE_PROMPT}}
    )


def _create_firebase(
    settings: AuthSettings,
    local_storage: KeyValueStorage,
    channel: Optional[StorageChannel],
    popup_flow: Optional[PopupFlow],
    transport: Optional[httpx.AsyncBaseTransport],
) -> FirebaseAuth:
    return FirebaseAuth(
        api_key=settings.FIREBASE_API_KEY,
        storage=local_storage,
        channel=channel,
        popup_flow=popup_flow,
        auth_domain=settings.FIREBASE_AUTH_DOMAIN,
        auth_url=settings.FIREBASE_AUTH_URL,
        token_url=settings.FIREBASE_TOKEN_URL,
        transport=transport,
    )


def create_identity_provider(
    settings: AuthSettings,
    local_storage: KeyValueStorage,
    channel: Optional[StorageChannel] = None,
    popup_flow: Optional[PopupFlow] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> IdentityProvider:
    """
    Build the identity provider for this process.

    Args:
        settings: Auth settings (validated here)
        local_storage: Origin-wide durable storage
        channel: This context's cross-context channel endpoint
        popup_flow: Interactive flow for Google sign-in
        transport: httpx transport override for the Firebase client

    Returns:
        MockAuth or FirebaseAuth

    Raises:
        ConfigurationError: If settings are incomplete for the variant
    """
    settings.validate_required()
    variant = ProviderVariant(settings.provider_variant())

    if variant is ProviderVariant.MOCK:
        google_delegate = None
        if settings.FIREBASE_API_KEY:
            # No channel: the mock slot is the one that syncs across contexts
            google_delegate = _create_firebase(settings, local_storage, None, popup_flow, transport)

        logger.info("Using mock identity provider (Google sign-in goes to Firebase)")
        return MockAuth(
            local_storage,
            channel=channel,
            google_delegate=google_delegate,
            storage_key=settings.MOCK_USER_KEY,
            min_password_length=settings.MOCK_MIN_PASSWORD_LENGTH,
        )

    logger.info("Using Firebase identity provider")
    return _create_firebase(settings, local_storage, channel, popup_flow, transport)
