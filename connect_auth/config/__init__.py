"""
Configuration module - Settings class for environment configuration.
"""

from connect_auth.config.base_settings import AuthSettings

__all__ = ["AuthSettings"]
