"""
Validated records for wardrobe, store, recommendation and chat data.

Rows come back from Supabase as plain dicts; these models clean them up the
same way every time (lowercase tags, trimmed strings, sane defaults) so the
rest of the code can rely on the shape.
"""

import re
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> str:
    """ISO timestamp used for created_at / last_message_at columns."""
    return datetime.now(timezone.utc).isoformat()


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = re.sub(r"\s+", " ", str(v)).strip()
    return v or None


def _clean_tag_list(v: Optional[list]) -> list[str]:
    if not v:
        return []
    seen = set()
    result = []
    for item in v:
        if not isinstance(item, str):
            continue
        cleaned = item.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class Profile(BaseModel):
    """User profile; body_type and gender drive recommendations."""

    model_config = ConfigDict(extra="ignore")

    id: str
    body_type: Optional[str] = None
    gender: Optional[str] = None
    role: Literal["user", "admin"] = "user"
    full_name: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        return v or "user"

    def missing_fields(self) -> list[str]:
        return [name for name in ("body_type", "gender") if not getattr(self, name)]


class WardrobeItem(BaseModel):
    """A clothing item the user owns."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    image_url: Optional[str] = None
    type: str = "unknown"
    tags: list[str] = Field(default_factory=list)
    status: Literal["processing", "completed", "failed"] = "completed"
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    brand: Optional[str] = None
    # "purchased" for items added at checkout; uploads leave it unset
    source: Optional[str] = None
    created_at: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def clean_type(cls, v) -> str:
        return (_clean_text(v) or "unknown").lower()

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v) -> list[str]:
        return _clean_tag_list(v)

    @field_validator("name", "description", "category", "color", "brand")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class Product(BaseModel):
    """Store catalog row."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: float = 0.0
    size: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    gender: Optional[str] = None
    style: Optional[str] = None
    pattern: Optional[str] = None
    fit: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    type: Optional[str] = None
    brand: Optional[str] = None
    stock: int = 0
    in_stock: Optional[bool] = None
    created_at: Optional[str] = None

    @field_validator("name")
    @classmethod
    def clean_name(cls, v: str) -> str:
        v = _clean_text(v)
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("price")
    @classmethod
    def non_negative_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("price must be >= 0")
        return round(v, 2)


class Event(BaseModel):
    """Occasion the user wants an outfit for."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    title: str
    description: str
    event_type: str = "casual"
    date: Optional[str] = None

    @field_validator("title", "description")
    @classmethod
    def required_text(cls, v: str) -> str:
        v = _clean_text(v)
        if not v:
            raise ValueError("must not be empty")
        return v


class OutfitItem(BaseModel):
    """One piece of a recommended outfit."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = "item"
    styling_notes: str = ""
    image_url: Optional[str] = None
    source: Literal["wardrobe", "store"] = "wardrobe"
    name: Optional[str] = None
    price: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v) -> str:
        return str(v)


class Outfit(BaseModel):
    items: list[OutfitItem] = Field(default_factory=list)
    description: str = ""
    styling_tips: list[str] = Field(default_factory=list)

    @field_validator("styling_tips", mode="before")
    @classmethod
    def tips_as_list(cls, v) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(t) for t in v if t]


class OutfitRecommendation(BaseModel):
    id: Optional[str] = None
    event_id: str
    user_id: str
    recommendation: Outfit
    created_at: str = Field(default_factory=utc_now)


class OutfitChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    outfit_id: Optional[str] = None
    title: str
    created_at: str = Field(default_factory=utc_now)
    last_message_at: str = Field(default_factory=utc_now)


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant"]
    content: str
    chat_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


class CartItem(BaseModel):
    """A product in the cart with the shopper's selections."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: float
    quantity: int = 1
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None
    images: list[str] = Field(default_factory=list)

    @field_validator("quantity")
    @classmethod
    def positive_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("quantity must be at least 1")
        return v

    @property
    def primary_image(self) -> Optional[str]:
        return self.image_url or (self.images[0] if self.images else None)


OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    items: list[CartItem]
    total: float
    status: OrderStatus = "pending"
    shipping_address: str
    created_at: str = Field(default_factory=utc_now)


class ClothingAnalysis(BaseModel):
    """Output of the vision classifier: a type plus [color, pattern, style, fit]."""

    type: str = "unknown"
    tags: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def clean_type(cls, v) -> str:
        if not isinstance(v, str):
            return "unknown"
        return v.strip().lower() or "unknown"

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v) -> list[str]:
        if not isinstance(v, list):
            return []
        tags = [t.strip().lower() for t in v if isinstance(t, str) and t.strip()]
        return tags[:4]


class TryOnRecord(BaseModel):
    user_id: str
    top_image_url: Optional[str] = None
    bottom_image_url: Optional[str] = None
    result_image_url: str
    created_at: str = Field(default_factory=utc_now)
    metadata: dict = Field(default_factory=dict)
