"""Tests for search response transformers."""

from __future__ import annotations

from services.constructor.normalizers import normalize_products
from services.search.params import SearchOptions
from services.search.transformers import (
    collections_from_facets,
    extract_categories_from_products,
    placeholder_collection,
    transform_admin_collections,
    transform_autocomplete_response,
    transform_recommendation_response,
    transform_search_response,
)

SEARCH_PAYLOAD = {
    "request": {"request_id": "req-1"},
    "result_id": "res-1",
    "response": {
        "results": [
            {"value": "Red Shoe", "data": {"id": "s1", "price": 50}},
            {"value": "Blue Shoe", "data": {"id": "s2", "price": 60}},
        ],
        "total_num_results": 42,
        "facets": [
            {"name": "color", "options": [{"value": "red", "count": 20}]},
            {"name": "empty", "options": []},
        ],
        "groups": [{"group_id": "shoes", "display_name": "Shoes", "count": 42}],
    },
}


class TestTransformSearchResponse:
    """Tests for transform_search_response."""

    def test_maps_response(self) -> None:
        """Products, totals, facets, groups and metadata are mapped."""
        results = transform_search_response(SEARCH_PAYLOAD, SearchOptions(page=2, per_page=2))

        assert [product.id for product in results.products] == ["s1", "s2"]
        assert results.total == 42
        assert results.page == 2
        assert results.per_page == 2
        assert list(results.facets) == ["color"]
        assert results.groups[0].id == "shoes"
        assert results.metadata == {"request_id": "req-1", "result_id": "res-1"}

    def test_missing_total_falls_back_to_count(self) -> None:
        """Without total_num_results the product count is used."""
        results = transform_search_response(
            {"response": {"results": [{"value": "A"}]}}, SearchOptions()
        )

        assert results.total == 1


class TestTransformAutocompleteResponse:
    """Tests for transform_autocomplete_response."""

    def test_sections(self) -> None:
        """Suggestions, products and categories come from their sections."""
        results = transform_autocomplete_response(
            {
                "sections": {
                    "Search Suggestions": [{"value": "shoes", "matched_terms": ["sho"]}],
                    "Products": [{"value": "Red Shoe", "data": {"id": "s1"}}],
                    "Categories": [{"value": "Footwear", "data": {"id": "footwear"}}],
                }
            }
        )

        assert results.suggestions[0].term == "shoes"
        assert results.suggestions[0].matched_terms == ("sho",)
        assert results.products[0].id == "s1"
        assert results.categories[0].id == "footwear"
        assert results.categories[0].name == "Footwear"

    def test_categories_from_products(self) -> None:
        """Product groups supply categories when asked."""
        payload = {
            "sections": {
                "Products": [
                    {
                        "value": "Red Shoe",
                        "data": {
                            "id": "s1",
                            "groups": [
                                {"group_id": "shoes", "display_name": "Shoes"},
                                {"group_id": "sale", "display_name": "Sale"},
                            ],
                        },
                    },
                    {
                        "value": "Blue Shoe",
                        "data": {"id": "s2", "groups": [{"group_id": "shoes"}]},
                    },
                ]
            }
        }

        assert transform_autocomplete_response(payload).categories == ()

        results = transform_autocomplete_response(payload, include_categories_from_products=True)

        assert [category.id for category in results.categories] == ["shoes", "sale"]

    def test_extract_categories_limit(self) -> None:
        """Derived categories are capped."""
        products = normalize_products(
            [{"data": {"groups": [{"group_id": str(i)} for i in range(8)]}}]
        )

        assert len(extract_categories_from_products(products, limit=3)) == 3


class TestTransformRecommendationResponse:
    """Tests for transform_recommendation_response."""

    def test_maps_pod(self) -> None:
        """The requested pod id is echoed and the title read from the pod."""
        results = transform_recommendation_response(
            "pdp_similar",
            {
                "pod": {"id": "other", "display_name": "You may also like"},
                "response": {"results": [{"value": "A", "data": {"id": "a"}}], "total_num_results": 9},
            },
        )

        assert results.pod_id == "pdp_similar"
        assert results.title == "You may also like"
        assert results.total == 9
        assert results.products[0].id == "a"


class TestCollections:
    """Tests for collection transformers."""

    def test_admin_collections(self) -> None:
        """Admin collections map display_name, description and image."""
        collections = transform_admin_collections(
            {
                "collections": [
                    {"id": "summer", "display_name": "Summer", "image_url": "https://img/s.jpg"},
                    {"id": "winter", "name": "Winter"},
                ]
            }
        )

        assert [(c.id, c.name) for c in collections] == [("summer", "Summer"), ("winter", "Winter")]
        assert collections[0].image == "https://img/s.jpg"

    def test_collections_from_facets(self) -> None:
        """A collection-like facet supplies collections with counts."""
        payload = {
            "response": {
                "facets": [
                    {"name": "color", "options": [{"value": "red"}]},
                    {
                        "name": "collection_id",
                        "options": [
                            {"value": "summer", "display_name": "Summer", "count": 5},
                            {"value": "winter", "count": 2},
                        ],
                    },
                ]
            }
        }

        collections = collections_from_facets(payload, ("collection_id",), max_items=10)

        assert collections is not None
        assert [(c.id, c.name, c.count) for c in collections] == [
            ("summer", "Summer", 5),
            ("winter", "winter", 2),
        ]

    def test_no_collection_facet(self) -> None:
        """Without a matching facet the result is None."""
        assert collections_from_facets({"response": {"facets": []}}, ("collection_id",), 10) is None

    def test_placeholder_collection(self) -> None:
        """Placeholders are named after the id."""
        collection = placeholder_collection("summer-sale_2024")

        assert collection.id == "summer-sale_2024"
        assert collection.name == "Summer Sale 2024"
