"""Tests for search request parameter builders."""

from __future__ import annotations

import pytest

from services.search.params import (
    AutocompleteOptions,
    RangeFilter,
    RecommendationOptions,
    SearchOptions,
    ZeroStateOptions,
    build_autocomplete_params,
    build_filter_expression,
    build_recommendation_params,
    build_search_params,
    encode_browse_value,
)


class TestSearchOptions:
    """Tests for SearchOptions validation."""

    def test_defaults(self) -> None:
        """Defaults should match the upstream defaults."""
        options = SearchOptions()

        assert options.page == 1
        assert options.per_page == 24
        assert options.section == "Products"

    @pytest.mark.parametrize("field", ["page", "per_page"])
    def test_rejects_non_positive(self, field: str) -> None:
        """Pagination values below 1 should raise ValueError."""
        with pytest.raises(ValueError, match="must be at least 1"):
            SearchOptions(**{field: 0})

    def test_with_changes_returns_copy(self) -> None:
        """with_changes should not mutate the original."""
        options = SearchOptions(page=2)

        changed = options.with_changes(section="Recipes")

        assert changed.section == "Recipes"
        assert changed.page == 2
        assert options.section == "Products"


class TestBuildFilterExpression:
    """Tests for build_filter_expression."""

    def test_scalars_become_lists_and_empties_are_skipped(self) -> None:
        """Scalar values are wrapped and empty values dropped."""
        expression = build_filter_expression(
            {"color": "red", "size": ["S", "M"], "brand": [], "material": ""},
            {"price": RangeFilter(min=10), "rating": RangeFilter()},
        )

        assert expression == {"color": ["red"], "size": ["S", "M"], "price": {"min": 10}}

    def test_nothing_to_filter(self) -> None:
        """No filters should give None."""
        assert build_filter_expression(None) is None
        assert build_filter_expression({"color": None}) is None


class TestBuildSearchParams:
    """Tests for build_search_params."""

    def test_full_params(self) -> None:
        """Every option should map to its upstream parameter."""
        params = build_search_params(
            {"color": "red"},
            SearchOptions(
                page=3,
                per_page=12,
                sort_by="price",
                sort_order="ascending",
                user_id="u-1",
                session_id="4",
            ),
        )

        assert params == {
            "page": 3,
            "num_results_per_page": 12,
            "section": "Products",
            "sort_by": "price",
            "sort_order": "ascending",
            "qs": {"filters": {"color": ["red"]}},
            "ui": "u-1",
            "s": "4",
        }

    def test_minimal_params(self) -> None:
        """Unset options should be omitted."""
        params = build_search_params(None, SearchOptions())

        assert params == {"page": 1, "num_results_per_page": 24, "section": "Products"}

    def test_does_not_mutate_filters(self) -> None:
        """Builders must not touch their input."""
        filters = {"color": "red"}

        build_search_params(filters, SearchOptions())

        assert filters == {"color": "red"}


class TestOtherBuilders:
    """Tests for autocomplete and recommendation builders."""

    def test_autocomplete_params(self) -> None:
        """Enabled sections get a result limit."""
        params = build_autocomplete_params(
            AutocompleteOptions(suggestions_limit=3, products_enabled=False, section="Products")
        )

        assert params == {"num_results_Search Suggestions": 3, "section": "Products"}

    def test_recommendation_params(self) -> None:
        """item_id and ui are only sent when given."""
        assert build_recommendation_params(RecommendationOptions()) == {"num_results": 8}

        params = build_recommendation_params(
            RecommendationOptions(num_results=4, user_id="u", extra_params={"term": "x"}),
            item_id="sku-1",
        )

        assert params == {"num_results": 4, "item_id": "sku-1", "ui": "u", "term": "x"}

    def test_zero_state_pod_params(self) -> None:
        """Pod params decode from JSON; invalid JSON counts as none."""
        assert ZeroStateOptions(recommendation_pod_params='{"a": 1}').pod_params() == {"a": 1}
        assert ZeroStateOptions(recommendation_pod_params="{bad").pod_params() == {}
        assert ZeroStateOptions(recommendation_pod_params="[1]").pod_params() == {}


class TestEncodeBrowseValue:
    """Tests for encode_browse_value."""

    def test_category_ids_are_double_encoded(self) -> None:
        """group_id values are encoded twice."""
        assert encode_browse_value("group_id", "men&women") == "men%2526women"

    def test_other_facets_are_encoded_once(self) -> None:
        """Any other facet value is encoded once."""
        assert encode_browse_value("brand", "men&women") == "men%26women"
        assert encode_browse_value("color", "navy blue") == "navy%20blue"
