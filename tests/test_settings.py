"""Tests for AuthSettings and provider selection."""

import pytest

from connect_auth.auth.factory import ProviderVariant, create_identity_provider, google_provider
from connect_auth.auth.firebase_auth import FirebaseAuth
from connect_auth.auth.mock_auth import MockAuth
from connect_auth.config.base_settings import AuthSettings
from connect_auth.utils.exceptions import ConfigurationError, popup_error_from_code, PopupClosedError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ENVIRONMENT", "AUTH_PROVIDER", "FIREBASE_API_KEY", "STORAGE_DIR"):
        monkeypatch.delenv(name, raising=False)


def make_settings(**overrides):
    return AuthSettings(_env_file=None, **overrides)


class TestVariant:
    def test_development_uses_mock(self):
        assert make_settings(ENVIRONMENT="development").provider_variant() == "mock"

    def test_production_uses_firebase(self):
        assert make_settings(ENVIRONMENT="production").provider_variant() == "firebase"

    def test_explicit_override(self):
        settings = make_settings(ENVIRONMENT="production", AUTH_PROVIDER="Mock")
        assert settings.provider_variant() == "mock"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("FIREBASE_API_KEY", "k")
        settings = make_settings()
        assert settings.provider_variant() == "firebase"
        assert settings.FIREBASE_API_KEY == "k"


class TestValidation:
    def test_firebase_requires_api_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            make_settings(ENVIRONMENT="production").validate_required()
        assert "FIREBASE_API_KEY" in exc_info.value.message

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            make_settings(AUTH_PROVIDER="ldap").validate_required()

    def test_mock_needs_nothing(self):
        make_settings(ENVIRONMENT="development").validate_required()

    def test_storage_path(self, tmp_path):
        assert make_settings().local_storage_path() is None
        settings = make_settings(STORAGE_DIR=str(tmp_path))
        assert settings.local_storage_path() == tmp_path / "local_storage.json"


class TestFactory:
    def test_mock_without_google_delegate(self, local_storage):
        provider = create_identity_provider(make_settings(ENVIRONMENT="development"), local_storage)
        assert isinstance(provider, MockAuth)
        assert provider._google_delegate is None

    def test_mock_with_google_delegate(self, local_storage):
        settings = make_settings(ENVIRONMENT="development", FIREBASE_API_KEY="k")
        provider = create_identity_provider(settings, local_storage)
        assert isinstance(provider._google_delegate, FirebaseAuth)

    def test_real(self, local_storage, hub):
        settings = make_settings(ENVIRONMENT="production", FIREBASE_API_KEY="k")
        provider = create_identity_provider(settings, local_storage, channel=hub.connect("a"))
        assert isinstance(provider, FirebaseAuth)
        assert provider.persistence_key == "firebase:authUser:k:[DEFAULT]"

    def test_misconfigured_real(self, local_storage):
        with pytest.raises(ConfigurationError):
            create_identity_provider(make_settings(ENVIRONMENT="production"), local_storage)

    def test_variant_enum(self):
        assert ProviderVariant("firebase") is ProviderVariant.REAL

    def test_google_prompt(self):
        config = google_provider(make_settings(GOOGLE_PROMPT="consent"))
        assert config.provider_id == "google.com"
        assert config.custom_parameters == {"prompt": "consent"}


def test_popup_error_mapping():
    assert isinstance(popup_error_from_code("auth/cancelled-popup-request"), PopupClosedError)
    error = popup_error_from_code("auth/internal-error")
    assert not isinstance(error, PopupClosedError)
    assert error.to_dict() == {"message": error.message, "code": "auth/internal-error"}
