"""
Interactive (popup) sign-in flow port.

The flow itself (opening a browser window, waiting for the OAuth redirect)
belongs to the host application. The real provider only needs the
resulting credential, or the code describing why there is none.
"""

from abc import ABC, abstractmethod
from typing import Optional

from connect_auth.schemas.auth import OAuthProviderConfig, OAuthCredential


class PopupFlowError(Exception):
    """The interactive flow ended without a credential."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class PopupFlow(ABC):
    """Runs one interactive sign-in against an external provider."""

    @abstractmethod
    async def run(self, provider: OAuthProviderConfig) -> OAuthCredential:
        """
        Open the flow and wait for it to finish.

        Args:
            provider: Which provider to sign in with, plus its parameters

        Returns:
            The provider credential

        Raises:
            PopupFlowError: With ``auth/popup-closed-by-user`` or
                ``auth/cancelled-popup-request`` when the user abandons the
                flow, or any other code on failure
        """
        pass
