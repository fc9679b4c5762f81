"""
connect_auth - Client-side auth session state for Connect Mart.

Reconciles identity provider notifications with a local session marker and
keeps several open contexts in step.
"""

from connect_auth.auth import (
    IdentityProvider,
    MockAuth,
    FirebaseAuth,
    PopupFlow,
    PopupFlowError,
    create_identity_provider,
)
from connect_auth.config import AuthSettings
from connect_auth.schemas import Subject, SessionRecord, GOOGLE_PROVIDER
from connect_auth.session import AuthContext, SessionEngine, SessionState, EngineState, use_auth
from connect_auth.storage import (
    MemoryStorage,
    FileStorage,
    SessionStore,
    BroadcastHub,
)
from connect_auth.utils import (
    AuthException,
    ValidationError,
    AuthenticationError,
    PopupClosedError,
    RecoveryError,
    ConfigurationError,
)

__version__ = "0.1.0"

__all__ = [
    "IdentityProvider",
    "MockAuth",
    "FirebaseAuth",
    "PopupFlow",
    "PopupFlowError",
    "create_identity_provider",
    "AuthSettings",
    "Subject",
    "SessionRecord",
    "GOOGLE_PROVIDER",
    "AuthContext",
    "SessionEngine",
    "SessionState",
    "EngineState",
    "use_auth",
    "MemoryStorage",
    "FileStorage",
    "SessionStore",
    "BroadcastHub",
    "AuthException",
    "ValidationError",
    "AuthenticationError",
    "PopupClosedError",
    "RecoveryError",
    "ConfigurationError",
]
