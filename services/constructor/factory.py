"""Factory for creating Constructor services from settings."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from core.config import get_settings
from core.logging import get_logger
from services.agent.service import AgentService
from services.catalog.service import CatalogService
from services.constructor.context import BackendContext
from services.constructor.errors import ConfigurationError
from services.search.service import SearchService

if TYPE_CHECKING:
    from core.config import Settings

logger = get_logger(__name__)


class ConstructorClientFactory:
    """
    Builds the search, agent and catalog services from one Settings object.

    Services are created on first access and share one default attribution
    context, normally holding only the client identifier and backend token.
    End-user values (IP, cookies, user agent) go with each call as a
    ``context`` argument. Used as an async context manager, the factory
    closes every service it created.

    Example:
        >>> async with ConstructorClientFactory.from_settings() as factory:
        ...     results = await factory.search.search("shoes")
    """

    def __init__(self, settings: Settings, context: BackendContext | None = None) -> None:
        """
        Initialize the factory.

        Args:
            settings: Application settings.
            context: Default attribution context; settings fill in the client
                identifier and backend token when it lacks them.

        Raises:
            ConfigurationError: If the public api key is missing.
        """
        if not settings.constructor.is_configured:
            msg = "Constructor api_key is not configured"
            raise ConfigurationError(msg)

        self.settings = settings
        self.context = self._resolve_context(settings, context)

        self._search: SearchService | None = None
        self._agent: AgentService | None = None
        self._catalog: CatalogService | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        context: BackendContext | None = None,
    ) -> ConstructorClientFactory:
        """Create a factory, loading settings from the environment when none are given."""
        return cls(settings or get_settings(), context)

    @staticmethod
    def _resolve_context(settings: Settings, context: BackendContext | None) -> BackendContext:
        constructor = settings.constructor
        context = context or BackendContext()
        return replace(
            context,
            client_id=context.client_id or constructor.resolved_client_identifier,
            token=context.token or constructor.resolved_backend_token,
        )

    @property
    def search(self) -> SearchService:
        """Search, browse and recommendation service."""
        if self._search is None:
            self._search = SearchService.from_settings(self.settings.constructor, self.context)
        return self._search

    @property
    def agent(self) -> AgentService:
        """Shopping Agent and Product Insights service."""
        if self._agent is None:
            self._agent = AgentService.from_settings(self.settings.constructor, self.context)
        return self._agent

    @property
    def catalog(self) -> CatalogService:
        """
        Catalog upload and item indexing service.

        Raises:
            ConfigurationError: If the api token is missing.
        """
        if self._catalog is None:
            self._catalog = CatalogService.from_settings(
                self.settings.constructor, self.settings.catalog
            )
        return self._catalog

    async def close(self) -> None:
        """Close every service created so far."""
        for service in (self._search, self._agent, self._catalog):
            if service is not None:
                await service.close()
        logger.debug("Constructor clients closed")

    async def __aenter__(self) -> ConstructorClientFactory:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()
