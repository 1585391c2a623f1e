"""
Client configuration using Pydantic Settings.

This module provides typed and validated settings for the Constructor
clients, with support for environment variables and .env files.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Constructor API hosts
DEFAULT_SEARCH_BASE_URL = "https://ac.cnstrc.com"
DEFAULT_AGENT_BASE_URL = "https://agent.cnstrc.com"


class ConstructorSettings(BaseSettings):
    """Constructor search and agent API settings."""

    model_config = SettingsConfigDict(env_prefix="CONSTRUCTOR_")

    search_base_url: str = Field(
        default=DEFAULT_SEARCH_BASE_URL, description="Search API base URL"
    )
    agent_base_url: str = Field(default=DEFAULT_AGENT_BASE_URL, description="Agent API base URL")

    api_key: str = Field(default="", description="Public API key (search, browse, autocomplete)")
    api_token: SecretStr = Field(
        default=SecretStr(""), description="Secret API token (catalog, admin endpoints)"
    )
    backend_token: SecretStr | None = Field(
        default=None, description="Backend token sent as x-cnstrc-token (falls back to api_token)"
    )
    client_identifier: str | None = Field(
        default=None, description="Value of the 'c' query parameter for backend requests"
    )
    app_name: str = Field(default="python", description="Used to derive the client identifier")

    agent_domain: str | None = Field(default=None, description="Shopping Agent domain")
    agent_guard: bool = Field(default=True, description="Content moderation for agent replies")
    agent_num_result_events: int = Field(default=5, ge=1, description="Max agent result events")
    agent_num_results_per_event: int = Field(default=4, ge=1, description="Results per event")

    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    retry_times: int = Field(default=2, ge=0, description="Retries for idempotent reads")
    retry_sleep: int = Field(default=100, ge=0, description="Delay between retries (ms)")

    @field_validator("search_base_url", "agent_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended directly."""
        return v.rstrip("/")

    @property
    def is_configured(self) -> bool:
        """Check if the public API key is configured."""
        return bool(self.api_key)

    @property
    def has_admin_token(self) -> bool:
        """Check if the secret API token is configured."""
        return bool(self.api_token.get_secret_value())

    @property
    def has_agent_domain(self) -> bool:
        """Check if the Shopping Agent domain is configured."""
        return bool(self.agent_domain)

    @property
    def resolved_backend_token(self) -> str | None:
        """Backend token, falling back to the secret API token."""
        if self.backend_token is not None and self.backend_token.get_secret_value():
            return self.backend_token.get_secret_value()
        return self.api_token.get_secret_value() or None

    @property
    def resolved_client_identifier(self) -> str:
        """Client identifier, derived from the application name when unset."""
        if self.client_identifier:
            return self.client_identifier
        slug = re.sub(r"[^a-z0-9-]", "-", self.app_name.lower())
        return f"cio-be-python-{slug}"


class CatalogSettings(BaseSettings):
    """Catalog upload and task monitoring settings."""

    model_config = SettingsConfigDict(env_prefix="CONSTRUCTOR_CATALOG_")

    default_operation: Literal["create_or_replace", "patch"] = Field(
        default="create_or_replace", description="Upload operation when none is given"
    )
    force: bool = Field(default=True, description="Send force=true on uploads")
    section: str = Field(default="Products", description="Default catalog section")
    poll_interval: int = Field(default=10, ge=0, description="Seconds between task polls")
    max_attempts: int = Field(default=60, ge=1, description="Task polls before giving up")
    upload_timeout: float = Field(default=300.0, gt=0, description="Upload timeout in seconds")


class Settings(BaseSettings):
    """
    Main settings.

    Aggregates the Constructor and catalog sections with the logging options.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")

    # Sub-settings
    constructor: ConstructorSettings = Field(default_factory=ConstructorSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level name."""
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Configured Settings instance.
    """
    return Settings()
