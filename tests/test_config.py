"""Tests for Pydantic Settings configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from pydantic import SecretStr

if TYPE_CHECKING:
    import pytest

from core.config import (
    DEFAULT_AGENT_BASE_URL,
    DEFAULT_SEARCH_BASE_URL,
    CatalogSettings,
    ConstructorSettings,
    Settings,
    get_settings,
)


def _clear_constructor_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ.keys()):
        if key.startswith("CONSTRUCTOR_"):
            monkeypatch.delenv(key, raising=False)


class TestConstructorSettings:
    """Tests for ConstructorSettings."""

    def test_default_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ConstructorSettings should have sensible defaults."""
        _clear_constructor_env(monkeypatch)

        settings = ConstructorSettings()

        assert settings.search_base_url == DEFAULT_SEARCH_BASE_URL
        assert settings.agent_base_url == DEFAULT_AGENT_BASE_URL
        assert settings.timeout == 30.0
        assert settings.retry_times == 2
        assert settings.retry_sleep == 100
        assert settings.agent_guard is True
        assert settings.agent_num_result_events == 5
        assert settings.agent_num_results_per_event == 4
        assert settings.is_configured is False
        assert settings.has_admin_token is False
        assert settings.has_agent_domain is False

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values should be read from CONSTRUCTOR_ variables."""
        _clear_constructor_env(monkeypatch)
        monkeypatch.setenv("CONSTRUCTOR_API_KEY", "key_live")
        monkeypatch.setenv("CONSTRUCTOR_API_TOKEN", "tok_live")
        monkeypatch.setenv("CONSTRUCTOR_AGENT_DOMAIN", "shop.example.com")
        monkeypatch.setenv("CONSTRUCTOR_SEARCH_BASE_URL", "https://ac.example.com/")

        settings = ConstructorSettings()

        assert settings.api_key == "key_live"
        assert settings.api_token.get_secret_value() == "tok_live"
        assert settings.search_base_url == "https://ac.example.com"
        assert settings.is_configured is True
        assert settings.has_admin_token is True
        assert settings.has_agent_domain is True

    def test_backend_token_falls_back_to_api_token(self) -> None:
        """resolved_backend_token should prefer backend_token."""
        settings = ConstructorSettings(api_token=SecretStr("tok"))
        assert settings.resolved_backend_token == "tok"

        settings = ConstructorSettings(
            api_token=SecretStr("tok"), backend_token=SecretStr("backend")
        )
        assert settings.resolved_backend_token == "backend"

    def test_client_identifier_derived_from_app_name(self) -> None:
        """resolved_client_identifier should be derived from app_name."""
        settings = ConstructorSettings(app_name="My Shop")

        assert settings.resolved_client_identifier == "cio-be-python-my-shop"

    def test_explicit_client_identifier(self) -> None:
        """An explicit client identifier should win."""
        settings = ConstructorSettings(client_identifier="cio-custom")

        assert settings.resolved_client_identifier == "cio-custom"

    def test_secret_is_hidden_in_repr(self) -> None:
        """The API token should not leak through repr."""
        settings = ConstructorSettings(api_token=SecretStr("tok_live"))

        assert "tok_live" not in repr(settings)


class TestCatalogSettings:
    """Tests for CatalogSettings."""

    def test_default_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CatalogSettings should have sensible defaults."""
        _clear_constructor_env(monkeypatch)

        settings = CatalogSettings()

        assert settings.default_operation == "create_or_replace"
        assert settings.force is True
        assert settings.section == "Products"
        assert settings.poll_interval == 10
        assert settings.max_attempts == 60
        assert settings.upload_timeout == 300.0


class TestSettings:
    """Tests for main Settings."""

    def test_log_level_is_upper_cased(self) -> None:
        """log_level should be normalized to upper case."""
        settings = Settings(log_level="debug")

        assert settings.log_level == "DEBUG"

    def test_get_settings_is_cached(self) -> None:
        """get_settings should return the same instance."""
        assert get_settings() is get_settings()
