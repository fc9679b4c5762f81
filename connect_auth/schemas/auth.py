"""
Pydantic models for the client-side auth session.

Field aliases match the JSON written to browser-style storage slots, so a
value persisted by one context is readable by every other one.
"""

import time
from typing import Optional, Dict
from urllib.parse import urlencode
from pydantic import BaseModel, ConfigDict, Field


def now_millis() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


class Subject(BaseModel):
    """The authenticated entity as released by the identity provider."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str = Field(..., alias="uid", min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    photo_url: Optional[str] = Field(None, alias="photoURL")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SessionRecord(BaseModel):
    """Local, timestamped marker that a subject is signed in to this context."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(..., description="Epoch millis of the last write")
    subject_id: str = Field(..., alias="userId")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class StoredUser(BaseModel):
    """Signed-in user persisted by the real provider (subject plus tokens)."""

    model_config = ConfigDict(populate_by_name=True)

    subject: Subject
    id_token: str = Field(..., alias="idToken")
    refresh_token: str = Field(..., alias="refreshToken")
    expires_at: int = Field(0, alias="expiresAt", description="Epoch millis")


class OAuthProviderConfig(BaseModel):
    """An external sign-in provider for the interactive popup flow."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    scopes: tuple = ()
    custom_parameters: Dict[str, str] = Field(default_factory=dict)


class OAuthCredential(BaseModel):
    """Credential returned by a completed popup flow."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    id_token: Optional[str] = None
    access_token: Optional[str] = None

    def to_post_body(self) -> str:
        """Form-encoded body for the Identity Toolkit ``signInWithIdp`` call."""
        params = {}
        if self.id_token:
            params["id_token"] = self.id_token
        if self.access_token:
            params["access_token"] = self.access_token
        params["providerId"] = self.provider_id
        return urlencode(params)


GOOGLE_PROVIDER_ID = "google.com"

GOOGLE_PROVIDER = OAuthProviderConfig(
    provider_id=GOOGLE_PROVIDER_ID,
    scopes=("openid", "email", "profile"),
    custom_parameters={"prompt": "select_account"},
)
