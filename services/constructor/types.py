"""Canonical records shared by the search and agent clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FacetType(str, Enum):
    """Facet widget types exposed to callers."""

    SINGLE_SELECT = "single_select"
    CHECKBOX_LIST = "checkbox_list"
    RANGE = "range"


@dataclass(frozen=True, slots=True)
class CanonicalProduct:
    """
    A product normalized from any upstream result shape.

    Attributes:
        id: Product identifier (None when upstream provides neither id nor value).
        name: Display name, never None.
        description: Product description.
        url: Product page URL.
        image_url: Main image URL.
        price: Current price.
        original_price: Price before discount.
        sku: Stock keeping unit.
        brand: Brand name.
        categories: Category names in upstream order.
        facets: Facet data attached to the product.
        metadata: Free-form upstream metadata.
        raw: The upstream ``data`` object (or whole record) for custom fields.
    """

    id: str | None = None
    name: str = ""
    description: str | None = None
    url: str | None = None
    image_url: str | None = None
    price: float | None = None
    original_price: float | None = None
    sku: str | None = None
    brand: str | None = None
    categories: tuple[str, ...] = ()
    facets: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def has_discount(self) -> bool:
        """Check if the product is sold below its original price."""
        return (
            self.price is not None
            and self.original_price is not None
            and self.original_price > self.price
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "image_url": self.image_url,
            "price": self.price,
            "original_price": self.original_price,
            "sku": self.sku,
            "brand": self.brand,
            "categories": list(self.categories),
            "facets": dict(self.facets),
            "metadata": dict(self.metadata),
            "raw": dict(self.raw),
        }


@dataclass(frozen=True, slots=True)
class Facet:
    """
    A filterable facet with its option counts.

    Attributes:
        key: Upstream facet name, unique within a result set.
        display_name: Human-readable name.
        type: Widget type.
        values: Option value to count, in upstream option order.
        min: Lower bound (range facets only).
        max: Upper bound (range facets only).
    """

    key: str
    display_name: str
    type: FacetType
    values: dict[str, int]
    min: float | None = None
    max: float | None = None

    @property
    def is_range(self) -> bool:
        """Check if this is a numeric range facet."""
        return self.type is FacetType.RANGE

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys; bounds only when set."""
        data: dict[str, Any] = {
            "name": self.display_name,
            "type": self.type.value,
            "values": dict(self.values),
        }
        if self.min is not None and self.max is not None:
            data["min"] = self.min
            data["max"] = self.max
        return data


@dataclass(frozen=True, slots=True)
class GroupChild:
    """A direct child of a category group."""

    id: str
    name: str
    count: int = 0
    has_children: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "id": self.id,
            "name": self.name,
            "count": self.count,
            "has_children": self.has_children,
        }


@dataclass(frozen=True, slots=True)
class Group:
    """
    A category node.

    Attributes:
        id: Group identifier (may itself be percent-encoded upstream).
        name: Display name.
        count: Number of products in the group.
        image: Image URL if any.
        children: Direct children, bounded by the caller.
    """

    id: str
    name: str
    count: int = 0
    image: str | None = None
    children: tuple[GroupChild, ...] = ()

    def with_image(self, image: str | None) -> Group:
        """Return a copy carrying the given image."""
        return Group(
            id=self.id, name=self.name, count=self.count, image=image, children=self.children
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys."""
        return {
            "id": self.id,
            "name": self.name,
            "count": self.count,
            "image": self.image,
            "children": [child.to_dict() for child in self.children],
        }
