"""
Authentication module - Pluggable identity providers (mock, Firebase).
"""

from connect_auth.auth.base import IdentityProvider, AuthStateCallback, validate_credentials
from connect_auth.auth.mock_auth import MockAuth, MOCK_USER_KEY
from connect_auth.auth.firebase_auth import FirebaseAuth
from connect_auth.auth.popup import PopupFlow, PopupFlowError
from connect_auth.auth.factory import ProviderVariant, create_identity_provider, google_provider

__all__ = [
    "IdentityProvider",
    "AuthStateCallback",
    "validate_credentials",
    "MockAuth",
    "MOCK_USER_KEY",
    "FirebaseAuth",
    "PopupFlow",
    "PopupFlowError",
    "ProviderVariant",
    "create_identity_provider",
    "google_provider",
]
