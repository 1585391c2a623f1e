"""
Search, browse and recommendation client for Constructor.

Every operation here is a read: upstream failures are logged and turned
into the operation's empty value, so an outage degrades a page instead of
failing it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from core.logging import get_logger
from core.result import Failure
from services.constructor.client import AuthMode, ConstructorHttpClient, encode_path_segment
from services.constructor.errors import UpstreamRequestError
from services.constructor.normalizers import normalize_groups, normalize_products
from services.constructor.types import FacetType
from services.search.params import (
    ALL_CATEGORIES,
    CATEGORY_FILTER_NAME,
    COLLECTION_FILTER_NAME,
    DEFAULT_SECTION,
    RECIPES_SECTION,
    AutocompleteOptions,
    BrowseGroupsOptions,
    CollectionsOptions,
    Filters,
    RecommendationOptions,
    SearchOptions,
    ZeroStateOptions,
    build_autocomplete_params,
    build_recommendation_params,
    build_search_params,
    encode_browse_value,
)
from services.search.transformers import (
    browse_groups_payload,
    collections_from_facets,
    placeholder_collection,
    transform_admin_collections,
    transform_autocomplete_response,
    transform_collection,
    transform_recommendation_response,
    transform_search_response,
)
from services.search.types import (
    AutocompleteResultSet,
    Collection,
    FacetSummary,
    FacetValueSample,
    RecommendationResultSet,
    SearchResultSet,
)

if TYPE_CHECKING:
    from core.config import ConstructorSettings
    from services.constructor.context import BackendContext
    from services.constructor.types import CanonicalProduct, Facet, Group

logger = get_logger(__name__)

PROVIDER_NAME = "constructor"

# Query used when the caller searches for nothing
WILDCARD_QUERY = "*"

# Page size of the broad recipe search used for id lookups
RECIPE_LOOKUP_PAGE_SIZE = 100
RECIPE_LOOKUP_QUERY = "recipe"

# Products browsed per group when looking for a group image
GROUP_IMAGE_SAMPLE_SIZE = 5

# Facets never offered for navigation
HIDDEN_FACETS = frozenset({"group_id", "group_ids"})


def _first_image(products: tuple[CanonicalProduct, ...]) -> str | None:
    for product in products:
        if product.image_url:
            return product.image_url
    return None


class SearchService:
    """
    Read-side Constructor client.

    Every public operation accepts a keyword-only ``context`` naming the end
    user behind the call, so one service can be shared across users.

    Attributes:
        client: HTTP client for the search host.
    """

    def __init__(self, client: ConstructorHttpClient) -> None:
        """
        Initialize the service.

        Args:
            client: HTTP client bound to the search API host.
        """
        self.client = client

    @classmethod
    def from_settings(
        cls,
        settings: ConstructorSettings,
        context: BackendContext | None = None,
    ) -> SearchService:
        """Create a service with its own HTTP client."""
        client = ConstructorHttpClient(
            base_url=settings.search_base_url,
            api_key=settings.api_key,
            api_token=settings.api_token.get_secret_value() or None,
            timeout=settings.timeout,
            retry_times=settings.retry_times,
            retry_sleep_ms=settings.retry_sleep,
            context=context,
        )
        return cls(client)

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return PROVIDER_NAME

    @property
    def has_admin_token(self) -> bool:
        """Check if admin endpoints can be used."""
        return self.client.has_token

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.close()

    async def _fetch(
        self,
        operation: str,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        auth: AuthMode = AuthMode.PUBLIC,
        context: BackendContext | None = None,
    ) -> dict[str, Any] | None:
        """
        GET a JSON endpoint, logging and swallowing any failure.

        Returns:
            The decoded payload, or None on failure.
        """
        try:
            result = await self.client.get_json(path, params, auth=auth, context=context)
        except Exception as e:
            logger.error("Constructor read failed", operation=operation, path=path, error=str(e))
            return None

        if isinstance(result, Failure):
            logger.error(
                "Constructor read failed",
                operation=operation,
                path=path,
                error=str(result.error),
                error_code=result.error.code.value,
            )
            return None
        return result.value

    async def search(
        self,
        query: str,
        filters: Filters | None = None,
        options: SearchOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> SearchResultSet:
        """
        Search products.

        Args:
            query: Search terms; empty searches everything.
            filters: Facet filters.
            options: Pagination and sorting.
            context: End user the call is made for; the client default when None.

        Returns:
            Results, or an empty set on failure.
        """
        options = options or SearchOptions()
        path = f"/search/{encode_path_segment(query or WILDCARD_QUERY)}"

        logger.info("Searching Constructor", query=query, section=options.section)

        payload = await self._fetch(
            "search", path, build_search_params(filters, options), context=context
        )
        if payload is None:
            return SearchResultSet.empty()
        return transform_search_response(payload, options)

    async def browse(
        self,
        filter_name: str,
        filter_value: str,
        filters: Filters | None = None,
        options: SearchOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> SearchResultSet:
        """
        Browse products matching one facet value.

        Args:
            filter_name: Facet to browse by (``group_id`` for categories).
            filter_value: Facet value, not encoded.
            filters: Additional facet filters.
            options: Pagination and sorting.
            context: End user the call is made for; the client default when None.

        Returns:
            Results, or an empty set on failure.
        """
        options = options or SearchOptions()
        path = (
            f"/browse/{encode_path_segment(filter_name)}/"
            f"{encode_browse_value(filter_name, filter_value)}"
        )

        logger.info(
            "Browsing Constructor",
            filter_name=filter_name,
            filter_value=filter_value,
            section=options.section,
        )

        payload = await self._fetch(
            "browse", path, build_search_params(filters, options), context=context
        )
        if payload is None:
            return SearchResultSet.empty()

        results = transform_search_response(payload, options)
        logger.debug("Browse response", total=results.total, facets_count=len(results.facets))
        return results

    async def get_facets(
        self,
        query: str,
        filters: Filters | None = None,
        *,
        context: BackendContext | None = None,
    ) -> dict[str, Facet]:
        """Return the facets of a one-result search."""
        results = await self.search(query, filters, SearchOptions(per_page=1), context=context)
        return results.facets

    async def autocomplete(
        self,
        query: str,
        options: AutocompleteOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> AutocompleteResultSet:
        """
        Suggest terms, products and categories for a partial query.

        Returns:
            Suggestions, or an empty set on failure.
        """
        options = options or AutocompleteOptions()
        path = f"/autocomplete/{encode_path_segment(query)}"

        payload = await self._fetch(
            "autocomplete", path, build_autocomplete_params(options), context=context
        )
        if payload is None:
            return AutocompleteResultSet.empty()
        return transform_autocomplete_response(
            payload,
            include_categories_from_products=options.include_categories_from_products,
        )

    async def get_zero_state_data(
        self,
        options: ZeroStateOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> AutocompleteResultSet:
        """
        Content for an empty search box: top categories and popular products.

        Popular products come from a recommendation pod and are only fetched
        when one is configured. Trending searches are not supported upstream.
        """
        options = options or ZeroStateOptions()

        top_categories: tuple[Group, ...] = ()
        if options.show_top_categories:
            top_categories = await self.get_browse_groups(
                BrowseGroupsOptions(max_items=options.categories_limit, max_children=0),
                context=context,
            )

        popular_products: tuple[CanonicalProduct, ...] = ()
        pod_id = (options.recommendation_pod_id or "").strip()
        if options.show_popular_products and pod_id:
            popular_products = await self._popular_products(
                pod_id, options.products_limit, options.pod_params(), context
            )

        return AutocompleteResultSet.zero_state(
            popular_products=popular_products,
            top_categories=top_categories,
        )

    async def _popular_products(
        self,
        pod_id: str,
        limit: int,
        extra_params: dict[str, Any],
        context: BackendContext | None,
    ) -> tuple[CanonicalProduct, ...]:
        params = build_recommendation_params(
            RecommendationOptions(num_results=limit, extra_params=extra_params)
        )
        payload = await self._fetch(
            "popular products",
            f"/recommendations/v1/pods/{encode_path_segment(pod_id)}",
            params,
            context=context,
        )
        if payload is None:
            return ()
        response = payload.get("response")
        results = response.get("results") if isinstance(response, dict) else None
        return normalize_products(results)[:limit]

    async def get_recommendations(
        self,
        pod_id: str,
        options: RecommendationOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> RecommendationResultSet:
        """
        Products from a recommendation pod.

        Returns:
            Recommendations, or an empty set for the pod on failure.
        """
        return await self._recommendations(
            pod_id, options or RecommendationOptions(), context=context
        )

    async def get_item_recommendations(
        self,
        pod_id: str,
        item_id: str,
        options: RecommendationOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> RecommendationResultSet:
        """
        Products a pod recommends for one item.

        Returns:
            Recommendations, or an empty set for the pod on failure.
        """
        return await self._recommendations(
            pod_id, options or RecommendationOptions(), item_id=item_id, context=context
        )

    async def _recommendations(
        self,
        pod_id: str,
        options: RecommendationOptions,
        item_id: str | None = None,
        context: BackendContext | None = None,
    ) -> RecommendationResultSet:
        path = f"/recommendations/v1/pods/{encode_path_segment(pod_id)}"
        payload = await self._fetch(
            "recommendations", path, build_recommendation_params(options, item_id), context=context
        )
        if payload is None:
            return RecommendationResultSet.empty(pod_id)
        return transform_recommendation_response(pod_id, payload)

    async def get_browse_groups(
        self,
        options: BrowseGroupsOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> tuple[Group, ...]:
        """
        The category tree, top level first.

        With ``with_images``, groups lacking an image borrow the first image
        found among a few of their products.

        Returns:
            Groups, or an empty tuple on failure.
        """
        options = options or BrowseGroupsOptions()
        params: dict[str, Any] = {"section": options.section}
        if options.filters:
            params["filters"] = dict(options.filters)

        payload = await self._fetch("browse groups", "/browse/groups", params, context=context)
        if payload is None:
            return ()

        groups = normalize_groups(
            browse_groups_payload(payload),
            max_items=options.max_items,
            max_children=options.max_children,
        )
        if not options.with_images:
            return groups

        enriched: list[Group] = []
        for group in groups:
            if group.image is None and group.id:
                group = group.with_image(await self._group_image(group.id, context))
            enriched.append(group)
        return tuple(enriched)

    async def _group_image(self, group_id: str, context: BackendContext | None) -> str | None:
        # Group ids may arrive percent-encoded from /browse/groups
        results = await self.browse(
            CATEGORY_FILTER_NAME,
            unquote(group_id),
            options=SearchOptions(per_page=GROUP_IMAGE_SAMPLE_SIZE),
            context=context,
        )
        return _first_image(results.products)

    async def get_collections(
        self,
        options: CollectionsOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> tuple[Collection, ...]:
        """
        List collections.

        The admin endpoint is tried first when a token is configured; when it
        fails or returns nothing, collections are derived from the options of
        a collection-like facet on a generic search.

        Returns:
            Collections, or an empty tuple on failure.
        """
        options = options or CollectionsOptions()

        if self.has_admin_token:
            payload = await self._fetch(
                "admin collections",
                "/v1/collections",
                {"num_results": options.max_items},
                auth=AuthMode.BASIC,
                context=context,
            )
            if payload is not None:
                collections = transform_admin_collections(payload)
                if collections:
                    return collections
            logger.warning("Admin collections unavailable, falling back to facets")

        payload = await self._fetch(
            "facet collections",
            f"/search/{encode_path_segment(WILDCARD_QUERY)}",
            {"num_results_per_page": 1, "section": DEFAULT_SECTION},
            context=context,
        )
        if payload is None:
            return ()

        collections = collections_from_facets(payload, options.facet_names, options.max_items)
        if collections is None:
            logger.info("No collection facet found", searched_facet_names=list(options.facet_names))
            return ()
        return collections

    async def browse_collection(
        self,
        collection_id: str,
        filters: Filters | None = None,
        options: SearchOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> SearchResultSet:
        """
        Products in a collection.

        The admin collection-items endpoint is tried first when a token is
        configured. An empty answer from it is treated like a failure and the
        collection is browsed as a facet instead.

        Returns:
            Results, or an empty set on failure.
        """
        options = options or SearchOptions()

        if self.has_admin_token:
            params: dict[str, Any] = {
                "section": options.section,
                "num_results_per_page": options.per_page,
                "page": options.page,
            }
            if filters:
                params["filters"] = dict(filters)

            payload = await self._fetch(
                "collection items",
                f"/v1/collections/{encode_path_segment(collection_id)}/items",
                params,
                auth=AuthMode.BASIC,
                context=context,
            )
            if payload is not None:
                results = transform_search_response(payload, options)
                if results.total > 0:
                    return results

        return await self.browse(
            COLLECTION_FILTER_NAME, collection_id, filters, options, context=context
        )

    async def get_collection(
        self, collection_id: str, *, context: BackendContext | None = None
    ) -> Collection | None:
        """
        One collection.

        Returns:
            The collection from the admin endpoint; None when it answers 404;
            otherwise a placeholder named after the id.
        """
        if self.has_admin_token:
            try:
                result = await self.client.get_json(
                    f"/v1/collections/{encode_path_segment(collection_id)}",
                    {"section": DEFAULT_SECTION},
                    auth=AuthMode.BASIC,
                    context=context,
                )
            except Exception as e:
                logger.warning("Collection lookup failed", collection_id=collection_id, error=str(e))
            else:
                if not isinstance(result, Failure):
                    return transform_collection(result.value, collection_id)
                if isinstance(result.error, UpstreamRequestError) and result.error.is_not_found:
                    return None
                logger.warning(
                    "Collection lookup failed, using placeholder",
                    collection_id=collection_id,
                    error=str(result.error),
                )

        return placeholder_collection(collection_id)

    async def get_first_product_image_from_collection(
        self, collection_id: str, *, context: BackendContext | None = None
    ) -> str | None:
        """Image of the first product in a collection, if any."""
        results = await self.browse_collection(
            collection_id, options=SearchOptions(per_page=1), context=context
        )
        if results.total > 0:
            return _first_image(results.products)
        return None

    async def _browse_everything(self, context: BackendContext | None) -> SearchResultSet:
        # Wildcard searches are rejected upstream; browse the root category instead
        return await self.browse(
            CATEGORY_FILTER_NAME, ALL_CATEGORIES, options=SearchOptions(per_page=1), context=context
        )

    async def get_available_facets(
        self, *, context: BackendContext | None = None
    ) -> tuple[FacetSummary, ...]:
        """Facets usable for navigation (range and category facets excluded)."""
        results = await self._browse_everything(context)
        return tuple(
            FacetSummary(name=key, display_name=facet.display_name, type=facet.type.value)
            for key, facet in results.facets.items()
            if facet.type is not FacetType.RANGE and key not in HIDDEN_FACETS
        )

    async def get_facet_values_with_images(
        self,
        facet_name: str,
        max_items: int = 10,
        *,
        context: BackendContext | None = None,
    ) -> tuple[FacetValueSample, ...]:
        """
        The most common values of a facet, each with a sample image.

        Values are ordered by count (ties keep upstream order) and each one
        costs a single-product browse.
        """
        results = await self._browse_everything(context)
        facet = results.facets.get(facet_name)
        if facet is None:
            return ()

        top_values = sorted(facet.values.items(), key=lambda item: item[1], reverse=True)
        samples: list[FacetValueSample] = []
        for value, count in top_values[: max(max_items, 0)]:
            sample = await self.browse(
                facet_name, value, options=SearchOptions(per_page=1), context=context
            )
            samples.append(
                FacetValueSample(
                    value=value,
                    display_name=value,
                    count=count,
                    image=_first_image(sample.products),
                )
            )
        return tuple(samples)

    async def search_recipes(
        self,
        query: str,
        filters: Filters | None = None,
        options: SearchOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> SearchResultSet:
        """Search the recipes section."""
        options = (options or SearchOptions()).with_changes(section=RECIPES_SECTION)
        return await self.search(query, filters, options, context=context)

    async def browse_recipes(
        self,
        filter_name: str,
        filter_value: str,
        filters: Filters | None = None,
        options: SearchOptions | None = None,
        *,
        context: BackendContext | None = None,
    ) -> SearchResultSet:
        """Browse the recipes section."""
        options = (options or SearchOptions()).with_changes(section=RECIPES_SECTION)
        return await self.browse(filter_name, filter_value, filters, options, context=context)

    async def get_recipe(
        self, recipe_id: str, *, context: BackendContext | None = None
    ) -> CanonicalProduct | None:
        """
        Find one recipe by id.

        There is no lookup by id upstream: this searches broadly and scans a
        single page, so recipes beyond the first page are never found.
        """
        results = await self.search_recipes(
            RECIPE_LOOKUP_QUERY,
            options=SearchOptions(per_page=RECIPE_LOOKUP_PAGE_SIZE),
            context=context,
        )
        for recipe in results.products:
            if recipe.id == recipe_id:
                return recipe
        return None
