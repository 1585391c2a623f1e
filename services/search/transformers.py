"""Assemble result contracts from raw Constructor responses."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from services.constructor.normalizers import (
    as_int,
    as_text,
    get_path,
    humanize,
    normalize_facets,
    normalize_groups,
    normalize_products,
    resolve,
)
from services.search.params import (
    CATEGORY_SECTIONS,
    PRODUCTS_SECTION,
    SUGGESTIONS_SECTION,
    SearchOptions,
)
from services.search.types import (
    AutocompleteResultSet,
    CategorySuggestion,
    Collection,
    RecommendationResultSet,
    SearchResultSet,
    Suggestion,
)

# Categories derived from product groups when autocomplete returns none
MAX_PRODUCT_CATEGORIES = 5


def _response_section(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    section = payload.get("response")
    return section if isinstance(section, Mapping) else payload


def _request_id(payload: Mapping[str, Any]) -> str | None:
    return as_text(get_path(payload, ("request", "request_id")))


def transform_search_response(
    payload: Mapping[str, Any], options: SearchOptions
) -> SearchResultSet:
    """
    Build a SearchResultSet from a search, browse or collection-items response.

    Args:
        payload: Decoded response.
        options: Options of the request (page and page size are echoed).

    Returns:
        The result set.
    """
    response = _response_section(payload)
    products = normalize_products(response.get("results"))
    total = as_int(response.get("total_num_results"), default=len(products))

    return SearchResultSet(
        products=products,
        total=max(total, 0),
        page=options.page,
        per_page=options.per_page,
        facets=normalize_facets(response.get("facets")),
        groups=normalize_groups(response.get("groups"), flatten_root=False),
        metadata={
            "request_id": _request_id(payload),
            "result_id": as_text(resolve(payload, [("result_id",), ("response", "result_id")])),
        },
    )


def _suggestion(raw: Mapping[str, Any]) -> Suggestion:
    matched = raw.get("matched_terms")
    data = raw.get("data")
    return Suggestion(
        term=as_text(raw.get("value")) or "",
        matched_terms=tuple(str(term) for term in matched) if isinstance(matched, list) else (),
        data=dict(data) if isinstance(data, Mapping) else {},
    )


def _category_suggestion(raw: Mapping[str, Any]) -> CategorySuggestion:
    count = get_path(raw, ("data", "count"))
    return CategorySuggestion(
        id=as_text(resolve(raw, [("data", "id"), ("value",)])) or "",
        name=as_text(resolve(raw, [("value",), ("data", "name")])) or "",
        path=as_text(get_path(raw, ("data", "path"))),
        count=as_int(count) if count is not None else None,
    )


def extract_categories_from_products(
    products: Sequence[Any], limit: int = MAX_PRODUCT_CATEGORIES
) -> tuple[CategorySuggestion, ...]:
    """
    Derive category suggestions from the groups attached to products.

    Categories are unique by id and keep first-seen order.
    """
    categories: dict[str, CategorySuggestion] = {}
    for product in products:
        groups = product.raw.get("groups")
        if not isinstance(groups, list):
            continue
        for group in groups:
            if not isinstance(group, Mapping):
                continue
            group_id = as_text(group.get("group_id"))
            if not group_id or group_id in categories:
                continue
            categories[group_id] = CategorySuggestion(
                id=group_id,
                name=as_text(group.get("display_name")) or group_id,
                path=as_text(group.get("path")),
            )
    return tuple(categories.values())[:limit]


def transform_autocomplete_response(
    payload: Mapping[str, Any], *, include_categories_from_products: bool = False
) -> AutocompleteResultSet:
    """
    Build an AutocompleteResultSet from an autocomplete response.

    Categories come from the first category-like section present; when none
    is and include_categories_from_products is set, from product groups.
    """
    sections = payload.get("sections")
    if not isinstance(sections, Mapping):
        sections = {}

    raw_suggestions = sections.get(SUGGESTIONS_SECTION)
    suggestions = tuple(
        _suggestion(raw)
        for raw in (raw_suggestions if isinstance(raw_suggestions, list) else [])
        if isinstance(raw, Mapping)
    )
    products = normalize_products(sections.get(PRODUCTS_SECTION))

    categories: tuple[CategorySuggestion, ...] = ()
    for name in CATEGORY_SECTIONS:
        raw_categories = sections.get(name)
        if isinstance(raw_categories, list):
            categories = tuple(
                _category_suggestion(raw) for raw in raw_categories if isinstance(raw, Mapping)
            )
            break

    if not categories and include_categories_from_products:
        categories = extract_categories_from_products(products)

    return AutocompleteResultSet(
        suggestions=suggestions,
        products=products,
        categories=categories,
        metadata={
            "request_id": _request_id(payload),
            "result_id": as_text(payload.get("result_id")),
        },
    )


def transform_recommendation_response(
    pod_id: str, payload: Mapping[str, Any]
) -> RecommendationResultSet:
    """Build a RecommendationResultSet; the pod id is the requested one."""
    pod = payload.get("pod")
    pod = dict(pod) if isinstance(pod, Mapping) else {}
    response = payload.get("response")
    response = response if isinstance(response, Mapping) else {}

    products = normalize_products(response.get("results"))
    return RecommendationResultSet(
        pod_id=pod_id,
        title=as_text(pod.get("display_name")) or "",
        products=products,
        total=max(as_int(response.get("total_num_results"), default=len(products)), 0),
        metadata={"request_id": _request_id(payload), "pod": pod},
    )


def browse_groups_payload(payload: Mapping[str, Any]) -> Any:
    """Return the raw group list of a /browse/groups response."""
    return resolve(payload, [("response", "groups"), ("groups",)], default=[])


def _collection(raw: Mapping[str, Any], fallback_id: str = "") -> Collection:
    return Collection(
        id=as_text(raw.get("id")) or fallback_id,
        name=as_text(resolve(raw, [("display_name",), ("name",)])) or "",
        description=as_text(raw.get("description")),
        image=as_text(raw.get("image_url")),
    )


def transform_admin_collections(payload: Mapping[str, Any]) -> tuple[Collection, ...]:
    """Build collections from the admin collections endpoint."""
    items = resolve(payload, [("collections",), ("response", "collections")], default=[])
    if not isinstance(items, list):
        return ()
    return tuple(_collection(item) for item in items if isinstance(item, Mapping))


def transform_collection(payload: Mapping[str, Any], collection_id: str) -> Collection:
    """Build one collection from the admin single-collection endpoint."""
    raw = payload.get("collection")
    return _collection(raw if isinstance(raw, Mapping) else payload, fallback_id=collection_id)


def collections_from_facets(
    payload: Mapping[str, Any], facet_names: Sequence[str], max_items: int
) -> tuple[Collection, ...] | None:
    """
    Derive collections from the options of a collection-like facet.

    Returns:
        The collections, or None when no facet carries one of facet_names.
    """
    facets = _response_section(payload).get("facets")
    if not isinstance(facets, list):
        return None
    for facet in facets:
        if not isinstance(facet, Mapping) or facet.get("name") not in facet_names:
            continue
        options = facet.get("options")
        options = options if isinstance(options, list) else []
        return tuple(
            Collection(
                id=as_text(option.get("value")) or "",
                name=as_text(resolve(option, [("display_name",), ("value",)])) or "",
                count=as_int(option.get("count")),
            )
            for option in options[: max(max_items, 0)]
            if isinstance(option, Mapping)
        )
    return None


def placeholder_collection(collection_id: str) -> Collection:
    """Synthesize a renderable collection from its id alone."""
    return Collection(id=collection_id, name=humanize(collection_id))
