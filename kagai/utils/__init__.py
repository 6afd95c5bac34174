"""Utility modules for the KAG wardrobe service."""

from .cache import BoundedCache
from .cart import Cart, calculate_total
from .json_repair import extract_json_block, parse_analysis_fallback, parse_llm_json, repair_json
from .redundancy import filter_redundant_products, is_redundant

__all__ = [
    "BoundedCache",
    "Cart",
    "calculate_total",
    "extract_json_block",
    "filter_redundant_products",
    "is_redundant",
    "parse_analysis_fallback",
    "parse_llm_json",
    "repair_json",
]
