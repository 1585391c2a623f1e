"""
Normalization of upstream records into canonical types.

Constructor answers with loosely typed JSON whose field names vary per
endpoint. Each canonical field is resolved from an ordered list of paths;
the first path holding a non-null value wins. The orders are module
constants so they can be pinned by tests.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from services.constructor.types import (
    CanonicalProduct,
    Facet,
    FacetType,
    Group,
    GroupChild,
)

type FieldPath = tuple[str, ...]

# Product resolution orders, evaluated against {"value": ..., "data": ...}
PRODUCT_ID_PATHS: tuple[FieldPath, ...] = (("data", "id"), ("value",))
PRODUCT_NAME_PATHS: tuple[FieldPath, ...] = (("value",), ("data", "name"))

# Fields read from the data object only
PRODUCT_TEXT_FIELDS = ("description", "url", "image_url", "sku", "brand")

GROUP_ID_PATHS: tuple[FieldPath, ...] = (("group_id",), ("id",))
GROUP_NAME_PATHS: tuple[FieldPath, ...] = (("display_name",), ("name",))

QUESTION_TEXT_KEYS = ("value", "question", "text")
FOLLOW_UP_TEXT_KEYS = ("value",)

FACET_TYPE_MAP: dict[str, FacetType] = {
    "single": FacetType.SINGLE_SELECT,
    "range": FacetType.RANGE,
}


def get_path(data: Any, path: FieldPath) -> Any:
    """Follow a key path through nested mappings; None when any step is missing."""
    current = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def resolve(data: Any, paths: Sequence[FieldPath], default: Any = None) -> Any:
    """
    Return the first non-null value found along the given paths.

    Args:
        data: Mapping to read from.
        paths: Candidate paths, in order of preference.
        default: Value returned when every path is missing or null.

    Returns:
        The first value found, or default.
    """
    for path in paths:
        value = get_path(data, path)
        if value is not None:
            return value
    return default


def humanize(key: str) -> str:
    """Turn a machine key into a label: separators become spaces, words capitalized."""
    words = key.replace("_", " ").replace("-", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def as_text(value: Any) -> str | None:
    """Coerce scalars to str, anything else to None."""
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def as_number(value: Any) -> float | None:
    """Coerce finite numbers and numeric strings to float, anything else to None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    # NaN and Infinity parse from JSON and strings but are not usable amounts
    return number if math.isfinite(number) else None


def as_int(value: Any, default: int = 0) -> int:
    """Coerce counts to int."""
    number = as_number(value)
    return int(number) if number is not None else default


def _as_mapping(value: Any) -> dict[str, Any]:
    """Coerce mappings and lists of {name|key, value|values} pairs to a dict."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, list):
        result: dict[str, Any] = {}
        for entry in value:
            if not isinstance(entry, Mapping):
                continue
            name = entry.get("name", entry.get("key"))
            if name is None:
                continue
            result[str(name)] = entry.get("values", entry.get("value"))
        return result
    return {}


def _as_categories(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    names: list[str] = []
    for entry in value:
        if isinstance(entry, Mapping):
            entry = resolve(entry, GROUP_NAME_PATHS)
        text = as_text(entry)
        if text:
            names.append(text)
    return tuple(names)


def product_data(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return the record's data object, or the whole record for the flat agent shape."""
    data = record.get("data")
    if isinstance(data, Mapping):
        return dict(data)
    return dict(record)


def normalize_product(record: Mapping[str, Any]) -> CanonicalProduct:
    """
    Normalize one upstream result into a CanonicalProduct.

    Accepts both the search shape ``{value, data: {...}}`` and the flat agent
    shape where fields sit alongside ``value``. Never raises: every field has
    a typed default.

    Args:
        record: One upstream result record.

    Returns:
        The canonical product.
    """
    data = product_data(record)
    view = {"value": record.get("value"), "data": data}

    text_fields = {name: as_text(data.get(name)) for name in PRODUCT_TEXT_FIELDS}

    return CanonicalProduct(
        id=as_text(resolve(view, PRODUCT_ID_PATHS)),
        name=as_text(resolve(view, PRODUCT_NAME_PATHS)) or "",
        price=as_number(data.get("price")),
        original_price=as_number(data.get("original_price")),
        categories=_as_categories(data.get("categories")),
        facets=_as_mapping(data.get("facets")),
        metadata=_as_mapping(data.get("metadata")),
        raw=data,
        **text_fields,
    )


def normalize_products(records: Any) -> tuple[CanonicalProduct, ...]:
    """Normalize a list of upstream results, skipping entries that are not objects."""
    if not isinstance(records, list):
        return ()
    return tuple(normalize_product(record) for record in records if isinstance(record, Mapping))


def normalize_facet(raw: Mapping[str, Any]) -> Facet | None:
    """
    Normalize one upstream facet.

    Returns:
        The facet, or None when it carries no option values.
    """
    key = as_text(raw.get("name")) or ""
    display_name = as_text(raw.get("display_name")) or humanize(key)
    facet_type = FACET_TYPE_MAP.get(str(raw.get("type", "")), FacetType.CHECKBOX_LIST)

    values: dict[str, int] = {}
    options = raw.get("options")
    if isinstance(options, list):
        for option in options:
            if not isinstance(option, Mapping):
                continue
            values[as_text(option.get("value")) or ""] = as_int(option.get("count"))

    if not values:
        return None

    lower = upper = None
    if facet_type is FacetType.RANGE and raw.get("min") is not None and raw.get("max") is not None:
        lower = as_number(raw["min"])
        upper = as_number(raw["max"])

    return Facet(
        key=key,
        display_name=display_name,
        type=facet_type,
        values=values,
        min=lower,
        max=upper,
    )


def normalize_facets(raw_facets: Any) -> dict[str, Facet]:
    """
    Normalize an upstream facet list into a mapping keyed by facet name.

    Facets without values are dropped.
    """
    facets: dict[str, Facet] = {}
    if not isinstance(raw_facets, list):
        return facets
    for raw in raw_facets:
        if not isinstance(raw, Mapping):
            continue
        facet = normalize_facet(raw)
        if facet is not None:
            facets[facet.key] = facet
    return facets


def _group_id(raw: Mapping[str, Any]) -> str:
    return as_text(resolve(raw, GROUP_ID_PATHS)) or ""


def _group_name(raw: Mapping[str, Any]) -> str:
    return as_text(resolve(raw, GROUP_NAME_PATHS)) or ""


def _children(raw: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    children = raw.get("children")
    if not isinstance(children, list):
        return []
    return [child for child in children if isinstance(child, Mapping)]


def normalize_group(raw: Mapping[str, Any], *, max_children: int | None = None) -> Group:
    """Normalize one group; children are capped at max_children when given."""
    children = _children(raw)
    if max_children is not None:
        children = children[: max(max_children, 0)]

    data = raw.get("data")
    image = as_text(data.get("image_url")) if isinstance(data, Mapping) else None

    return Group(
        id=_group_id(raw),
        name=_group_name(raw),
        count=as_int(raw.get("count")),
        image=image,
        children=tuple(
            GroupChild(
                id=_group_id(child),
                name=_group_name(child),
                count=as_int(child.get("count")),
                has_children=bool(_children(child)),
            )
            for child in children
        ),
    )


def normalize_groups(
    raw_groups: Any,
    *,
    max_items: int | None = None,
    max_children: int | None = None,
    flatten_root: bool = True,
) -> tuple[Group, ...]:
    """
    Normalize an upstream group list.

    When the list holds exactly one group that has children, that group is a
    synthetic root and its children become the top level.

    Args:
        raw_groups: Upstream groups.
        max_items: Cap on top-level groups.
        max_children: Cap on children per group.
        flatten_root: Unwrap a single synthetic root group.

    Returns:
        Normalized groups in upstream order.
    """
    if not isinstance(raw_groups, list):
        return ()
    groups = [group for group in raw_groups if isinstance(group, Mapping)]

    if flatten_root and len(groups) == 1 and _children(groups[0]):
        groups = _children(groups[0])

    if max_items is not None:
        groups = groups[: max(max_items, 0)]

    return tuple(normalize_group(group, max_children=max_children) for group in groups)


def normalize_question_list(
    items: Any,
    keys: Sequence[str] = QUESTION_TEXT_KEYS,
) -> tuple[str, ...]:
    """
    Normalize a heterogeneous question list to plain strings.

    Entries are bare strings or objects carrying the text under one of keys.
    Empty entries are dropped.
    """
    if not isinstance(items, list):
        return ()
    questions: list[str] = []
    for item in items:
        if isinstance(item, str):
            text: Any = item
        elif isinstance(item, Mapping):
            text = resolve(item, [(key,) for key in keys])
        else:
            continue
        if isinstance(text, str) and text:
            questions.append(text)
    return tuple(questions)
