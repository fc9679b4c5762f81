"""
Authentication exceptions with error codes.

Every failure surfaced by an identity provider or by the session layer is
one of these, so callers can branch on type (or on ``code``) instead of
parsing messages.

Example:
    from connect_auth.utils import PopupClosedError, AuthenticationError

    try:
        user = await auth.sign_in_with_google()
    except PopupClosedError:
        pass  # re-offer the button, no error banner
    except AuthenticationError as e:
        show_error(e.message)
"""

from typing import Optional, Any, Dict


# Interactive flow codes that mean "the user walked away", not "it failed"
POPUP_CLOSED_CODES = frozenset({
    "auth/popup-closed-by-user",
    "auth/cancelled-popup-request",
})


class AuthException(Exception):
    """
    Base authentication exception with error code support.

    Provides a consistent error shape across both provider variants.
    """

    default_message = "Authentication error"
    default_code = "auth/internal-error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        """
        Create an auth exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (``auth/...``)
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"message": self.message, "code": self.code}

        if self.details is not None:
            detail["details"] = self.details

        return detail

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AuthException):
    """Malformed input to sign-up or credential sign-in."""

    default_message = "Invalid email or password"
    default_code = "auth/invalid-input"


class AuthenticationError(AuthException):
    """The identity provider rejected otherwise well-formed input."""

    default_message = "Authentication failed"
    default_code = "auth/internal-error"


class PopupClosedError(AuthException):
    """The user dismissed an interactive sign-in flow before it completed."""

    default_message = "Sign-in popup was closed before completing the sign-in process"
    default_code = "auth/popup-closed-by-user"


class RecoveryError(AuthException):
    """Session recovery failed. Logged by the engine, never raised to callers."""

    default_message = "Failed to refresh user session"
    default_code = "auth/recovery-failed"


class ConfigurationError(AuthException):
    """Settings are incomplete for the selected provider variant."""

    default_message = "Invalid authentication configuration"
    default_code = "auth/invalid-configuration"


def popup_error_from_code(code: str, message: Optional[str] = None) -> AuthException:
    """
    Map an interactive flow failure code to the matching exception.

    Args:
        code: Provider error code (e.g. ``auth/popup-closed-by-user``)
        message: Optional message from the provider

    Returns:
        PopupClosedError for the cancellation codes, AuthenticationError otherwise
    """
    if code in POPUP_CLOSED_CODES:
        return PopupClosedError(code=code)
    return AuthenticationError(message or f"Sign-in with popup failed: {code}", code=code)
