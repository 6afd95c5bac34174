"""Unit tests for the redundancy filter, LLM JSON repair and the bounded cache."""

import pytest

from kagai.models import Product, WardrobeItem
from kagai.utils.cache import BoundedCache
from kagai.utils.json_repair import (
    extract_json_block,
    parse_analysis_fallback,
    parse_llm_json,
    repair_json,
)
from kagai.utils.redundancy import filter_redundant_products, is_redundant


# ---------------------------------------------------------------------------
# Redundancy
# ---------------------------------------------------------------------------

WHITE_SHIRT = {"id": "w1", "type": "shirt", "tags": ["white", "solid", "formal", "slim-fit"]}


def test_same_type_and_color_from_first_tag_is_redundant() -> None:
    product = {"id": "p1", "name": "Oxford Shirt", "category": "tops", "type": "shirt", "color": "White"}
    assert is_redundant(product, WHITE_SHIRT)


def test_same_type_different_color_and_name_is_not_redundant() -> None:
    product = {"id": "p2", "name": "Oxford Shirt", "type": "shirt", "color": "blue"}
    assert not is_redundant(product, WHITE_SHIRT)


def test_overlapping_names_are_redundant_even_with_different_colors() -> None:
    product = {"name": "Slim Jeans", "type": "jeans", "color": "black"}
    wardrobe = {"name": "slim jeans dark wash", "type": "jeans", "color": "indigo"}
    assert is_redundant(product, wardrobe)


def test_different_kind_is_never_redundant() -> None:
    product = {"name": "White Jacket", "type": "jacket", "color": "white"}
    assert not is_redundant(product, WHITE_SHIRT)


def test_blank_fields_do_not_match() -> None:
    product = {"name": "", "category": "", "type": None, "color": ""}
    wardrobe = {"name": "", "category": "", "type": None, "tags": []}
    assert not is_redundant(product, wardrobe)


def test_category_matches_wardrobe_type() -> None:
    product = {"name": "Hoodie", "category": "hoodie", "color": "grey"}
    wardrobe = {"type": "hoodie", "tags": ["grey"]}
    assert is_redundant(product, wardrobe)


def test_filter_preserves_order_and_accepts_models() -> None:
    wardrobe = [WardrobeItem(user_id="u1", type="shirt", tags=["white"])]
    products = [
        Product(id="a", name="Linen Trousers", type="trousers", color="white"),
        Product(id="b", name="Poplin Shirt", type="shirt", color="white"),
        Product(id="c", name="Denim Shirt", type="shirt", color="blue"),
    ]
    remaining = filter_redundant_products(wardrobe, products)
    assert [p.id for p in remaining] == ["a", "c"]


def test_filter_with_empty_wardrobe_keeps_everything() -> None:
    products = [{"id": "x", "type": "shirt"}, {"id": "y", "type": "shoes"}]
    assert filter_redundant_products([], products) == products


# ---------------------------------------------------------------------------
# JSON repair
# ---------------------------------------------------------------------------


def test_parse_plain_json() -> None:
    assert parse_llm_json('{"type": "shirt", "tags": []}') == {"type": "shirt", "tags": []}


def test_parse_fenced_json_with_prose() -> None:
    text = 'Here is the outfit:\n```json\n{"outfit": {"items": []}}\n```\nEnjoy!'
    assert parse_llm_json(text) == {"outfit": {"items": []}}


def test_trailing_commas_are_removed() -> None:
    assert parse_llm_json('{"items": [1, 2,], }') == {"items": [1, 2]}


def test_truncated_response_is_closed() -> None:
    text = 'Sure! {"outfit": {"items": [{"id": "1"'
    assert parse_llm_json(text) == {"outfit": {"items": [{"id": "1"}]}}


def test_python_literals_and_single_quotes() -> None:
    assert parse_llm_json("{'type': 'shirt', 'ok': True}") == {"type": "shirt", "ok": True}


def test_unquoted_keys() -> None:
    assert parse_llm_json('{type: "shirt", tags: ["a"]}') == {"type": "shirt", "tags": ["a"]}


def test_line_comments_are_stripped_but_urls_kept() -> None:
    text = '{"url": "http://x.com/a", // the link\n "b": 2}'
    assert parse_llm_json(text) == {"url": "http://x.com/a", "b": 2}


def test_smart_quotes() -> None:
    assert parse_llm_json("{“type”: “dress”}") == {"type": "dress"}


def test_unrecoverable_response_raises() -> None:
    with pytest.raises(ValueError):
        parse_llm_json("I cannot help with that.")
    with pytest.raises(ValueError):
        parse_llm_json("   ")


def test_extract_json_block() -> None:
    assert extract_json_block("no json here") is None
    assert extract_json_block('x {"a": {"b": 1}} y') == '{"a": {"b": 1}}'


def test_repair_json_returns_loadable_text() -> None:
    assert repair_json('```\n{"a": 1,}\n```') == '{"a": 1}'


def test_analysis_fallback_scrapes_type_and_tags() -> None:
    result = parse_analysis_fallback("type: Jacket\ntags: [Black, Solid, Casual, Regular-Fit, Extra]")
    assert result == {"type": "jacket", "tags": ["black", "solid", "casual", "regular-fit"]}


def test_analysis_fallback_defaults() -> None:
    assert parse_analysis_fallback("nothing useful") == {"type": "unknown", "tags": []}


# ---------------------------------------------------------------------------
# Bounded cache
# ---------------------------------------------------------------------------


def test_cache_evicts_oldest() -> None:
    cache = BoundedCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert "a" not in cache
    assert cache.get("b") == 2 and cache.get("c") == 3
    assert len(cache) == 2


def test_cache_reset_refreshes_position_but_get_does_not() -> None:
    cache = BoundedCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("a", 10)
    cache.set("c", 3)
    assert "b" not in cache
    assert cache.get("a") == 10


def test_cache_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        BoundedCache(max_entries=0)


def test_cache_clear() -> None:
    cache = BoundedCache()
    cache.set("k", "v")
    cache.clear()
    assert len(cache) == 0
    assert cache.get("k", "missing") == "missing"
