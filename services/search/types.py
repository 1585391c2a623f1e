"""Result contracts returned by the search client."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from services.constructor.types import CanonicalProduct, Facet, Group

DEFAULT_PER_PAGE = 24


def _products_to_list(products: tuple[CanonicalProduct, ...]) -> list[dict[str, Any]]:
    return [product.to_dict() for product in products]


@dataclass(frozen=True, slots=True)
class SearchResultSet:
    """
    One page of search or browse results.

    Attributes:
        products: Products on this page.
        total: Total matching products across all pages.
        page: 1-based page number.
        per_page: Page size.
        facets: Facets keyed by upstream name.
        groups: Category groups (browse responses).
        metadata: request_id and result_id.
    """

    products: tuple[CanonicalProduct, ...] = ()
    total: int = 0
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    facets: dict[str, Facet] = field(default_factory=dict)
    groups: tuple[Group, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate pagination values."""
        if self.total < 0:
            msg = "total cannot be negative"
            raise ValueError(msg)
        if self.page < 1:
            msg = "page must be at least 1"
            raise ValueError(msg)

    @classmethod
    def empty(cls, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> SearchResultSet:
        """Return a result set with no products."""
        return cls(page=page, per_page=per_page)

    def total_pages(self) -> int:
        """Number of pages needed to show every result."""
        if self.per_page <= 0:
            return 0
        return math.ceil(self.total / self.per_page)

    def has_more(self) -> bool:
        """Check if results exist beyond this page."""
        return self.page * self.per_page < self.total

    def next_page_number(self) -> int:
        """Next page number, or 0 on the last page."""
        return self.page + 1 if self.has_more() else 0

    def offset(self) -> int:
        """Index of the first product of this page across all results."""
        return (self.page - 1) * self.per_page

    def count(self) -> int:
        """Number of products on this page."""
        return len(self.products)

    def is_empty(self) -> bool:
        """Check if this page has no products."""
        return not self.products

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "products": _products_to_list(self.products),
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "facets": {key: facet.to_dict() for key, facet in self.facets.items()},
            "groups": [group.to_dict() for group in self.groups],
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class Suggestion:
    """A search-term suggestion."""

    term: str
    matched_terms: tuple[str, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {"term": self.term, "matched_terms": list(self.matched_terms), "data": self.data}


@dataclass(frozen=True, slots=True)
class CategorySuggestion:
    """A category suggested by autocomplete."""

    id: str
    name: str
    path: str | None = None
    count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {"id": self.id, "name": self.name, "path": self.path, "count": self.count}


@dataclass(frozen=True, slots=True)
class AutocompleteResultSet:
    """
    Autocomplete results.

    Query-driven results fill suggestions, products and categories; the
    zero-state entry point fills trending, popular_products and
    top_categories instead.
    """

    suggestions: tuple[Suggestion, ...] = ()
    products: tuple[CanonicalProduct, ...] = ()
    categories: tuple[CategorySuggestion, ...] = ()
    trending: tuple[Suggestion, ...] = ()
    popular_products: tuple[CanonicalProduct, ...] = ()
    top_categories: tuple[Group, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> AutocompleteResultSet:
        """Return a result set with nothing in it."""
        return cls()

    @classmethod
    def zero_state(
        cls,
        *,
        trending: tuple[Suggestion, ...] = (),
        popular_products: tuple[CanonicalProduct, ...] = (),
        top_categories: tuple[Group, ...] = (),
    ) -> AutocompleteResultSet:
        """Return a zero-state result set."""
        return cls(
            trending=trending,
            popular_products=popular_products,
            top_categories=top_categories,
        )

    def has_suggestions(self) -> bool:
        """Check for term suggestions."""
        return bool(self.suggestions)

    def has_products(self) -> bool:
        """Check for product suggestions."""
        return bool(self.products)

    def has_categories(self) -> bool:
        """Check for category suggestions."""
        return bool(self.categories)

    def has_zero_state_data(self) -> bool:
        """Check for any zero-state content."""
        return bool(self.trending or self.popular_products or self.top_categories)

    def is_autocomplete_empty(self) -> bool:
        """Check the query-driven results only."""
        return not (self.suggestions or self.products or self.categories)

    def is_empty(self) -> bool:
        """Check both query-driven and zero-state results."""
        return self.is_autocomplete_empty() and not self.has_zero_state_data()

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
            "products": _products_to_list(self.products),
            "categories": [category.to_dict() for category in self.categories],
            "trending": [suggestion.to_dict() for suggestion in self.trending],
            "popular_products": _products_to_list(self.popular_products),
            "top_categories": [group.to_dict() for group in self.top_categories],
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class RecommendationResultSet:
    """
    Products returned by a recommendation pod.

    Attributes:
        pod_id: The requested pod id, echoed as given.
        title: Pod display name.
        products: Recommended products.
        total: Total results reported upstream.
        metadata: request_id and the upstream pod object.
    """

    pod_id: str
    title: str = ""
    products: tuple[CanonicalProduct, ...] = ()
    total: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls, pod_id: str) -> RecommendationResultSet:
        """Return an empty result set for a pod."""
        return cls(pod_id=pod_id)

    def is_empty(self) -> bool:
        """Check if the pod returned no products."""
        return not self.products

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "pod_id": self.pod_id,
            "title": self.title,
            "products": _products_to_list(self.products),
            "total": self.total,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class Collection:
    """A curated product collection."""

    id: str
    name: str
    description: str | None = None
    image: str | None = None
    count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys; count only when known."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image": self.image,
        }
        if self.count is not None:
            data["count"] = self.count
        return data


@dataclass(frozen=True, slots=True)
class FacetSummary:
    """A facet offered for navigation."""

    name: str
    display_name: str
    type: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {"name": self.name, "display_name": self.display_name, "type": self.type}


@dataclass(frozen=True, slots=True)
class FacetValueSample:
    """A facet value with a sample product image."""

    value: str
    display_name: str
    count: int
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "value": self.value,
            "display_name": self.display_name,
            "count": self.count,
            "image": self.image,
        }
