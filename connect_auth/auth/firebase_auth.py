"""
Firebase Authentication provider (client side, REST API).

Signs users in through the Identity Toolkit REST API and keeps the signed-in
user in local durable storage, the way the browser SDK's local persistence
does. A persisted user is only adopted after ``restore()`` has exchanged its
refresh token, so right after startup ``current_subject`` is None even when
a user is persisted.

Example:
    auth = FirebaseAuth(api_key="...", storage=FileStorage("local.json"))
    await auth.restore()

    user = await auth.sign_in_with_credentials("user@example.com", "password123")
    print(user.subject_id)  # Firebase uid
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from connect_auth.auth.base import IdentityProvider, validate_credentials
from connect_auth.auth.popup import PopupFlow, PopupFlowError
from connect_auth.schemas.auth import (
    Subject,
    StoredUser,
    OAuthProviderConfig,
    GOOGLE_PROVIDER,
    now_millis,
)
from connect_auth.storage.base import KeyValueStorage, MemoryStorage
from connect_auth.storage.channel import StorageChannel, StorageEvent
from connect_auth.utils.exceptions import (
    AuthException,
    AuthenticationError,
    ValidationError,
    popup_error_from_code,
)

logger = logging.getLogger(__name__)


# REST error message -> (exception class, code, message)
_ERROR_MAP = {
    "INVALID_EMAIL": (ValidationError, "auth/invalid-email", "Email address is badly formatted"),
    "MISSING_EMAIL": (ValidationError, "auth/missing-email", "Email is required"),
    "MISSING_PASSWORD": (ValidationError, "auth/missing-password", "Password is required"),
    "WEAK_PASSWORD": (ValidationError, "auth/weak-password", "Password should be at least 6 characters"),
    "EMAIL_EXISTS": (AuthenticationError, "auth/email-already-in-use", "Email already registered"),
    "EMAIL_NOT_FOUND": (AuthenticationError, "auth/invalid-credential", "Invalid email or password"),
    "INVALID_PASSWORD": (AuthenticationError, "auth/invalid-credential", "Invalid email or password"),
    "INVALID_LOGIN_CREDENTIALS": (AuthenticationError, "auth/invalid-credential", "Invalid email or password"),
    "USER_DISABLED": (AuthenticationError, "auth/user-disabled", "Account has been disabled"),
    "TOO_MANY_ATTEMPTS_TRY_LATER": (
        AuthenticationError,
        "auth/too-many-requests",
        "Too many failed attempts. Please try again later.",
    ),
    "OPERATION_NOT_ALLOWED": (
        AuthenticationError,
        "auth/operation-not-allowed",
        "This sign-in method is disabled",
    ),
}


# Secure Token API answers that mean the persisted refresh token is dead
_TOKEN_REJECTIONS = {
    "TOKEN_EXPIRED",
    "INVALID_REFRESH_TOKEN",
    "INVALID_GRANT_TYPE",
    "MISSING_REFRESH_TOKEN",
    "USER_DISABLED",
    "USER_NOT_FOUND",
    "PROJECT_NUMBER_MISMATCH",
}


def _upstream_message(response: httpx.Response) -> str:
    try:
        error_data = response.json()
    except ValueError:
        return "UNKNOWN_ERROR"

    error = error_data.get("error") if isinstance(error_data, dict) else None
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else "UNKNOWN_ERROR"
    if isinstance(error, str) and error:
        # OAuth-style body: {"error": "invalid_grant"}
        return error
    return "UNKNOWN_ERROR"


def _error_from_response(response: httpx.Response) -> AuthException:
    raw_message = _upstream_message(response)
    # Messages may carry a suffix, e.g. "WEAK_PASSWORD : Password should be ..."
    error_key = raw_message.split(" : ")[0].strip()
    details = {"status": response.status_code, "reason": error_key, "upstream": raw_message}

    if error_key in _ERROR_MAP:
        exc_class, code, message = _ERROR_MAP[error_key]
        return exc_class(message, code=code, details=details)

    return AuthenticationError(
        f"Authentication failed: {raw_message}",
        code="auth/internal-error",
        details=details,
    )


def _is_token_rejection(error: AuthException) -> bool:
    """True when a refresh failure means the stored session can never work again."""
    details = error.details or {}
    if details.get("reason") in _TOKEN_REJECTIONS:
        return True

    status = details.get("status")
    if status is None or status == 429 or error.code == "auth/too-many-requests":
        return False
    return 400 <= status < 500


class FirebaseAuth(IdentityProvider):
    """
    Firebase identity provider for a browser-style client.

    Handles:
    - Email/password sign-up and sign-in
    - Popup sign-in through an injected PopupFlow
    - Local persistence and cross-context sync of the signed-in user
    """

    # Firebase REST API base URLs
    FIREBASE_AUTH_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
    FIREBASE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

    def __init__(
        self,
        api_key: str,
        storage: Optional[KeyValueStorage] = None,
        channel: Optional[StorageChannel] = None,
        popup_flow: Optional[PopupFlow] = None,
        auth_domain: Optional[str] = None,
        auth_url: Optional[str] = None,
        token_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], int] = now_millis,
    ):
        """
        Initialize Firebase auth provider.

        Args:
            api_key: Firebase Web API key
            storage: Local durable storage for the signed-in user
            channel: Cross-context channel endpoint for this context
            popup_flow: Interactive flow used for popup sign-in
            auth_domain: Firebase auth domain (used as the OAuth request URI)
            auth_url: Override for the Identity Toolkit base URL
            token_url: Override for the Secure Token URL
            transport: httpx transport override (tests, proxies)
            clock: Epoch-millis source for token expiry
        """
        super().__init__()
        if not api_key:
            raise ValueError("Firebase API key is required")

        self._api_key = api_key
        self._storage = storage or MemoryStorage()
        self._channel = channel
        self._popup_flow = popup_flow
        self._auth_domain = auth_domain
        self._auth_url = auth_url or self.FIREBASE_AUTH_URL
        self._token_url = token_url or self.FIREBASE_TOKEN_URL
        self._transport = transport
        self._clock = clock

        self._user: Optional[StoredUser] = None
        self._restored = False
        self._unsubscribe_channel = channel.subscribe(self._on_storage_event) if channel else None

    @property
    def persistence_key(self) -> str:
        return f"firebase:authUser:{self._api_key}:[DEFAULT]"

    @property
    def current_subject(self) -> Optional[Subject]:
        return self._user.subject if self._user else None

    @property
    def restored(self) -> bool:
        return self._restored

    @property
    def id_token(self) -> Optional[str]:
        return self._user.id_token if self._user else None

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._auth_url}:{endpoint}"

        try:
            async with self._client() as client:
                response = await client.post(url, params={"key": self._api_key}, json=payload)
        except httpx.HTTPError as e:
            raise AuthenticationError(
                f"Network error contacting Firebase: {e}",
                code="auth/network-request-failed",
            ) from e

        if response.status_code != 200:
            raise _error_from_response(response)

        return response.json()

    async def _refresh(self, refresh_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                self._token_url,
                params={"key": self._api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            )

        if response.status_code != 200:
            raise _error_from_response(response)

        return response.json()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _parse_stored(self, raw: Optional[str]) -> Optional[StoredUser]:
        if not raw:
            return None
        try:
            return StoredUser.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Discarding malformed persisted Firebase user: {e}")
            return None

    def _set_user(self, user: Optional[StoredUser], broadcast: bool = True) -> None:
        new_value = user.model_dump_json(by_alias=True) if user else None

        if new_value is None:
            self._storage.remove_item(self.persistence_key)
        else:
            self._storage.set_item(self.persistence_key, new_value)
        self._user = user

        if broadcast and self._channel:
            self._channel.publish(self.persistence_key, new_value)
        self._notify(user.subject if user else None)

    def _on_storage_event(self, event: StorageEvent) -> None:
        if event.key != self.persistence_key:
            return
        user = self._parse_stored(event.new_value)
        self._user = user
        self._notify(user.subject if user else None)

    async def restore(self) -> Optional[Subject]:
        """
        Rehydrate the persisted user, if any.

        The refresh token is exchanged first; a rejected token drops the
        persisted user. On network failure or a server-side error the
        persisted user is kept.

        Returns:
            The restored Subject, or None
        """
        stored = self._parse_stored(self._storage.get_item(self.persistence_key))
        self._restored = True

        if stored is None:
            return None

        try:
            data = await self._refresh(stored.refresh_token)
        except httpx.HTTPError as e:
            logger.warning(f"Could not refresh persisted Firebase user, using cached state: {e}")
            self._set_user(stored, broadcast=False)
            return stored.subject
        except AuthException as e:
            if not _is_token_rejection(e):
                logger.warning(f"Token refresh failed ({e.code}: {e.message}), using cached state")
                self._set_user(stored, broadcast=False)
                return stored.subject
            logger.info(f"Persisted Firebase user is no longer valid ({e.code}), dropping it")
            self._storage.remove_item(self.persistence_key)
            return None

        refreshed = StoredUser(
            subject=stored.subject,
            id_token=data.get("id_token", stored.id_token),
            refresh_token=data.get("refresh_token", stored.refresh_token),
            expires_at=self._expires_at(data.get("expires_in")),
        )
        self._set_user(refreshed, broadcast=False)
        logger.info(f"Restored Firebase user {refreshed.subject.subject_id}")
        return refreshed.subject

    def _expires_at(self, expires_in: Optional[str]) -> int:
        try:
            return self._clock() + int(expires_in or 0) * 1000
        except (TypeError, ValueError):
            return 0

    def _user_from_response(self, data: Dict[str, Any]) -> StoredUser:
        if not data.get("localId"):
            raise AuthenticationError("Firebase response did not include a user id")

        subject = Subject(
            subject_id=data.get("localId"),
            email=data.get("email"),
            display_name=data.get("displayName") or None,
            photo_url=data.get("photoUrl") or None,
        )
        return StoredUser(
            subject=subject,
            id_token=data.get("idToken", ""),
            refresh_token=data.get("refreshToken", ""),
            expires_at=self._expires_at(data.get("expiresIn")),
        )

    def _complete_sign_in(self, data: Dict[str, Any]) -> Subject:
        user = self._user_from_response(data)
        self._set_user(user)
        return user.subject

    # -------------------------------------------------------------------------
    # Provider operations
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Subject:
        """
        Create a Firebase user and sign it in.

        The new user is signed in even when applying ``display_name``
        fails; that error is raised after the sign-in completes.
        """
        validate_credentials(email, password)

        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        user = self._user_from_response(data)
        logger.info(f"Firebase account created: {user.subject.subject_id}")

        try:
            if display_name:
                profile = await self._post(
                    "update",
                    {
                        "idToken": data.get("idToken"),
                        "displayName": display_name,
                        "returnSecureToken": True,
                    },
                )
                user = self._user_from_response({**data, **{k: v for k, v in profile.items() if v}})
        except AuthException as e:
            logger.error(f"Failed to set display name for {user.subject.subject_id}: {e}")
            raise
        finally:
            self._set_user(user)

        return user.subject

    async def sign_in_with_credentials(self, email: str, password: str) -> Subject:
        """Sign in with email and password using the Firebase REST API."""
        validate_credentials(email, password)

        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._complete_sign_in(data)

    async def sign_in_with_external_popup(
        self,
        provider: Optional[OAuthProviderConfig] = None,
    ) -> Subject:
        """
        Run the popup flow, then exchange its credential with Firebase.

        Raises:
            PopupClosedError: If the user closed or cancelled the popup
            AuthenticationError: For every other failure
        """
        provider = provider or GOOGLE_PROVIDER

        if self._popup_flow is None:
            raise AuthenticationError(
                "Popup sign-in is not available in this environment",
                code="auth/operation-not-supported-in-this-environment",
            )

        try:
            credential = await self._popup_flow.run(provider)
        except PopupFlowError as e:
            raise popup_error_from_code(e.code, e.message) from e

        request_uri = f"https://{self._auth_domain}" if self._auth_domain else "http://localhost"
        try:
            data = await self._post(
                "signInWithIdp",
                {
                    "postBody": credential.to_post_body(),
                    "requestUri": request_uri,
                    "returnSecureToken": True,
                    "returnIdpCredential": True,
                },
            )
        except ValidationError as e:
            raise AuthenticationError(e.message, code=e.code, details=e.details) from e

        return self._complete_sign_in(data)

    async def sign_out(self) -> None:
        """Forget the signed-in user locally. Tokens simply expire."""
        self._set_user(None)

    async def aclose(self) -> None:
        if self._unsubscribe_channel:
            self._unsubscribe_channel()
            self._unsubscribe_channel = None
        await super().aclose()
