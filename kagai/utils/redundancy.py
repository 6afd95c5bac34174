"""
Filter store products the user effectively already owns.

A store product is redundant when some wardrobe item shares its category or
type AND either has the same color or an overlapping name (one lowercased
name contained in the other). Blank fields never match anything.

Works on pydantic models or raw Supabase rows interchangeably.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _norm(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


def _kinds(record: Any) -> set[str]:
    """Category and type of a record, normalized."""
    return {k for k in (_norm(_field(record, "category")), _norm(_field(record, "type"))) if k}


def _color(record: Any) -> Optional[str]:
    color = _norm(_field(record, "color"))
    if color:
        return color
    # Uploaded wardrobe items carry color as the first analysis tag
    tags = _field(record, "tags") or []
    if tags and isinstance(tags, list):
        return _norm(tags[0])
    return None


def _names_overlap(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a in b or b in a


def is_redundant(product: Any, wardrobe_item: Any) -> bool:
    """True if ``wardrobe_item`` makes ``product`` a duplicate purchase."""
    if not (_kinds(product) & _kinds(wardrobe_item)):
        return False

    product_color = _color(product)
    if product_color and product_color == _color(wardrobe_item):
        return True

    return _names_overlap(_norm(_field(product, "name")), _norm(_field(wardrobe_item, "name")))


def filter_redundant_products(wardrobe_items: Iterable[Any], products: Iterable[Any]) -> list:
    """Return the products not made redundant by any wardrobe item, in input order."""
    wardrobe = list(wardrobe_items)
    return [
        product
        for product in products
        if not any(is_redundant(product, item) for item in wardrobe)
    ]
