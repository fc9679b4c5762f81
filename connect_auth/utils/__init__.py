"""
Utilities module - Auth exceptions and logging setup.
"""

from connect_auth.utils.exceptions import (
    POPUP_CLOSED_CODES,
    AuthException,
    ValidationError,
    AuthenticationError,
    PopupClosedError,
    RecoveryError,
    ConfigurationError,
    popup_error_from_code,
)
from connect_auth.utils.log_config import configure_logging

__all__ = [
    "POPUP_CLOSED_CODES",
    "AuthException",
    "ValidationError",
    "AuthenticationError",
    "PopupClosedError",
    "RecoveryError",
    "ConfigurationError",
    "popup_error_from_code",
    "configure_logging",
]
