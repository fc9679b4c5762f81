"""
Settings for the client auth layer.

Uses Pydantic Settings for automatic environment variable loading.

Example:
    from connect_auth.config import AuthSettings

    settings = AuthSettings()
    settings.validate_required()
    print(settings.provider_variant())  # "mock" in development
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from connect_auth.utils.exceptions import ConfigurationError


class AuthSettings(BaseSettings):
    """
    Auth settings loaded from environment variables and ``.env``.

    The provider variant is fixed for the life of the process: mock in
    development, Firebase everywhere else, unless AUTH_PROVIDER says otherwise.
    """

    # ==========================================================================
    # Environment
    # ==========================================================================
    ENVIRONMENT: str = "development"  # development, staging, production
    AUTH_PROVIDER: str = ""  # "mock", "firebase" or empty to follow ENVIRONMENT

    # ==========================================================================
    # Firebase Settings (real provider, and Google sign-in under the mock)
    # ==========================================================================
    FIREBASE_API_KEY: Optional[str] = None
    FIREBASE_AUTH_DOMAIN: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_AUTH_URL: str = "https://identitytoolkit.googleapis.com/v1/accounts"
    FIREBASE_TOKEN_URL: str = "https://securetoken.googleapis.com/v1/token"
    GOOGLE_PROMPT: str = "select_account"

    # ==========================================================================
    # Storage Settings
    # ==========================================================================
    SESSION_STORAGE_KEY: str = "connect_mart_auth_session"
    MOCK_USER_KEY: str = "mockUser"
    MOCK_MIN_PASSWORD_LENGTH: int = 6
    STORAGE_DIR: Optional[str] = None  # unset keeps everything in memory

    # ==========================================================================
    # Logging
    # ==========================================================================
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    def provider_variant(self) -> str:
        """Resolve which identity provider to use: "mock" or "firebase"."""
        if self.AUTH_PROVIDER:
            return self.AUTH_PROVIDER.lower()
        return "mock" if self.is_development() else "firebase"

    def local_storage_path(self) -> Optional[Path]:
        """File backing origin-wide storage, or None for in-memory storage."""
        if not self.STORAGE_DIR:
            return None
        return Path(self.STORAGE_DIR).expanduser() / "local_storage.json"

    def validate_required(self) -> None:
        """
        Validate that required settings are configured.

        Raises:
            ConfigurationError: If required settings are missing
        """
        errors: List[str] = []
        variant = self.provider_variant()

        if variant not in ("mock", "firebase"):
            errors.append(f"AUTH_PROVIDER must be 'mock' or 'firebase', got '{self.AUTH_PROVIDER}'")

        if variant == "firebase" and not self.FIREBASE_API_KEY:
            errors.append("FIREBASE_API_KEY is required when using Firebase authentication")

        if self.MOCK_MIN_PASSWORD_LENGTH < 1:
            errors.append("MOCK_MIN_PASSWORD_LENGTH must be at least 1")

        if errors:
            raise ConfigurationError(
                "Configuration errors:\n- " + "\n- ".join(errors),
                details={"errors": errors},
            )
