"""
Request parameters for the search client.

Builders are pure: each returns a new mapping and never mutates its input.
Object-valued parameters (``qs``, ``filters``) stay as dicts here and are
JSON-encoded by the HTTP client.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import quote

from services.search.types import DEFAULT_PER_PAGE

DEFAULT_SECTION = "Products"
RECIPES_SECTION = "Recipes"
DEFAULT_SORT_ORDER = "descending"

# Browse filter for hierarchical category ids, stored percent-encoded upstream
CATEGORY_FILTER_NAME = "group_id"
# Category value meaning "every product"
ALL_CATEGORIES = "all"

COLLECTION_FILTER_NAME = "collection_id"
DEFAULT_COLLECTION_FACET_NAMES = ("collection_id", "collection_ids", "collections", "collection")

SUGGESTIONS_SECTION = "Search Suggestions"
PRODUCTS_SECTION = "Products"
CATEGORY_SECTIONS = ("Categories", "Groups", "group_ids")

type Filters = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class RangeFilter:
    """Numeric bounds for a range facet; either bound may be open."""

    min: float | None = None
    max: float | None = None

    def to_expression(self) -> dict[str, float]:
        """Return the bounds that are set."""
        expression: dict[str, float] = {}
        if self.min is not None:
            expression["min"] = self.min
        if self.max is not None:
            expression["max"] = self.max
        return expression


@dataclass(frozen=True, slots=True)
class SearchOptions:
    """
    Options for search and browse requests.

    Attributes:
        page: 1-based page number.
        per_page: Page size.
        section: Catalog section.
        sort_by: Sort field; no sorting is requested when None.
        sort_order: Sort direction, used only with sort_by.
        range_filters: Range facet bounds keyed by facet name.
        user_id: End-user id (``ui``).
        session_id: Session id (``s``).
    """

    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    section: str = DEFAULT_SECTION
    sort_by: str | None = None
    sort_order: str = DEFAULT_SORT_ORDER
    range_filters: Mapping[str, RangeFilter] = field(default_factory=dict)
    user_id: str | None = None
    session_id: str | None = None

    def __post_init__(self) -> None:
        """Validate pagination."""
        if self.page < 1:
            msg = "page must be at least 1"
            raise ValueError(msg)
        if self.per_page < 1:
            msg = "per_page must be at least 1"
            raise ValueError(msg)

    def with_changes(self, **changes: Any) -> SearchOptions:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class AutocompleteOptions:
    """Per-section limits for autocomplete."""

    suggestions_enabled: bool = True
    suggestions_limit: int = 5
    products_enabled: bool = True
    products_limit: int = 6
    section: str | None = None
    include_categories_from_products: bool = False


@dataclass(frozen=True, slots=True)
class ZeroStateOptions:
    """
    What to show in an empty search box.

    Attributes:
        show_top_categories: Include top-level categories.
        categories_limit: Max categories.
        show_popular_products: Include products from the recommendation pod.
        recommendation_pod_id: Pod supplying popular products; none are shown without it.
        products_limit: Max popular products.
        recommendation_pod_params: Extra pod parameters as a JSON object string.
    """

    show_top_categories: bool = True
    categories_limit: int = 5
    show_popular_products: bool = True
    recommendation_pod_id: str | None = None
    products_limit: int = 6
    recommendation_pod_params: str | None = None

    def pod_params(self) -> dict[str, Any]:
        """Decode the extra pod parameters; invalid JSON counts as none."""
        if not self.recommendation_pod_params:
            return {}
        try:
            decoded = json.loads(self.recommendation_pod_params)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}


@dataclass(frozen=True, slots=True)
class RecommendationOptions:
    """Options for recommendation pods."""

    num_results: int = 8
    user_id: str | None = None
    section: str | None = None
    extra_params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BrowseGroupsOptions:
    """Options for the category tree."""

    section: str = DEFAULT_SECTION
    filters: Filters | None = None
    max_items: int = 10
    max_children: int = 5
    with_images: bool = False


@dataclass(frozen=True, slots=True)
class CollectionsOptions:
    """Options for listing collections."""

    max_items: int = 10
    facet_names: Sequence[str] = DEFAULT_COLLECTION_FACET_NAMES


def build_filter_expression(
    filters: Filters | None,
    range_filters: Mapping[str, RangeFilter] | None = None,
) -> dict[str, Any] | None:
    """
    Merge standard and range filters into one filter object.

    Standard filters map a facet to its accepted values (a scalar becomes a
    one-element list, empty values are skipped). Range filters map a facet
    to its set bounds.

    Args:
        filters: Standard facet filters.
        range_filters: Range facet bounds.

    Returns:
        The filter object, or None when nothing is filtered.
    """
    expression: dict[str, Any] = {}

    for facet, values in (filters or {}).items():
        if values is None or values == "" or (isinstance(values, (list, tuple)) and not values):
            continue
        expression[facet] = list(values) if isinstance(values, (list, tuple)) else [values]

    for facet, bounds in (range_filters or {}).items():
        range_expression = bounds.to_expression()
        if range_expression:
            expression[facet] = range_expression

    return expression or None


def build_search_params(filters: Filters | None, options: SearchOptions) -> dict[str, Any]:
    """
    Build query parameters for search and browse.

    Args:
        filters: Standard facet filters.
        options: Pagination, section, sorting, range filters and user context.

    Returns:
        Query parameters (without the api key).
    """
    params: dict[str, Any] = {
        "page": options.page,
        "num_results_per_page": options.per_page,
        "section": options.section,
    }

    if options.sort_by:
        params["sort_by"] = options.sort_by
        params["sort_order"] = options.sort_order or DEFAULT_SORT_ORDER

    expression = build_filter_expression(filters, options.range_filters)
    if expression is not None:
        params["qs"] = {"filters": expression}

    if options.user_id is not None:
        params["ui"] = options.user_id
    if options.session_id is not None:
        params["s"] = options.session_id

    return params


def build_autocomplete_params(options: AutocompleteOptions) -> dict[str, Any]:
    """Build per-section result limits for autocomplete."""
    params: dict[str, Any] = {}
    if options.suggestions_enabled:
        params[f"num_results_{SUGGESTIONS_SECTION}"] = options.suggestions_limit
    if options.products_enabled:
        params[f"num_results_{PRODUCTS_SECTION}"] = options.products_limit
    if options.section is not None:
        params["section"] = options.section
    return params


def build_recommendation_params(
    options: RecommendationOptions, item_id: str | None = None
) -> dict[str, Any]:
    """Build parameters for a recommendation pod request."""
    params: dict[str, Any] = {"num_results": options.num_results}
    if item_id is not None:
        params["item_id"] = item_id
    if options.user_id is not None:
        params["ui"] = options.user_id
    if options.section is not None:
        params["section"] = options.section
    params.update(options.extra_params)
    return params


def encode_browse_value(filter_name: str, value: str) -> str:
    """
    Percent-encode a browse filter value for the URL path.

    Category ids are stored percent-encoded upstream, so they are encoded
    twice; every other facet value is encoded once.
    """
    encoded = quote(value, safe="")
    if filter_name == CATEGORY_FILTER_NAME:
        return quote(encoded, safe="")
    return encoded
