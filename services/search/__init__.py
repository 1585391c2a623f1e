"""Constructor search, browse and recommendation package."""

from services.search.params import (
    AutocompleteOptions,
    BrowseGroupsOptions,
    CollectionsOptions,
    RangeFilter,
    RecommendationOptions,
    SearchOptions,
    ZeroStateOptions,
)
from services.search.service import SearchService
from services.search.types import (
    AutocompleteResultSet,
    Collection,
    RecommendationResultSet,
    SearchResultSet,
)

__all__ = [
    "AutocompleteOptions",
    "AutocompleteResultSet",
    "BrowseGroupsOptions",
    "Collection",
    "CollectionsOptions",
    "RangeFilter",
    "RecommendationOptions",
    "RecommendationResultSet",
    "SearchOptions",
    "SearchResultSet",
    "SearchService",
    "ZeroStateOptions",
]
