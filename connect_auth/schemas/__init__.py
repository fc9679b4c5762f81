from connect_auth.schemas.auth import (
    Subject,
    SessionRecord,
    StoredUser,
    OAuthProviderConfig,
    OAuthCredential,
    GOOGLE_PROVIDER,
    GOOGLE_PROVIDER_ID,
    now_millis,
)

__all__ = [
    "Subject",
    "SessionRecord",
    "StoredUser",
    "OAuthProviderConfig",
    "OAuthCredential",
    "GOOGLE_PROVIDER",
    "GOOGLE_PROVIDER_ID",
    "now_millis",
]
