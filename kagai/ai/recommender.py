"""
Outfit Recommender - event-driven outfit suggestions

Combines the user's completed wardrobe items with store products they do not
effectively own yet, asks the LLM for one outfit in a fixed JSON shape and
stores the result in ``outfit_recommendations``.

Usage:
    from kagai.ai import OutfitRecommender

    recommender = OutfitRecommender(store)
    result = await recommender.recommend(user_id, event_id)
    # {"outfit": {"items": [...], "description": "...", "styling_tips": [...]},
    #  "recommendation_id": "..."}
"""

import asyncio
import json
from typing import Any, Optional

from rich.console import Console

from config.settings import RecommendationConfig, config
from kagai.ai.openai_client import GroqClient
from kagai.errors import (
    AIResponseError,
    AITimeoutError,
    NotFoundError,
    RecommendationError,
    ValidationError,
)
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import Outfit, OutfitItem, OutfitRecommendation, Profile
from kagai.utils.json_repair import parse_llm_json
from kagai.utils.redundancy import filter_redundant_products

console = Console()

WARDROBE_PROMPT_FIELDS = ("id", "type", "tags", "category", "color", "name", "image_url")
STORE_PROMPT_FIELDS = ("id", "name", "type", "category", "color", "style", "pattern", "fit", "price")

RECOMMENDATION_PROMPT = """As a fashion expert, create an outfit recommendation based on the following:

Event Details:
{title}
{description}
Type: {event_type}
Date: {date}

User Profile:
Body Type: {body_type}
Gender: {gender}

Available Wardrobe Items:
{wardrobe_json}

Store Items the user does not own yet (suggest one only if it clearly completes the outfit):
{store_json}

Provide recommendations in the following JSON format:
{{
  "outfit": {{
    "items": [
      {{
        "id": "item_id",
        "type": "item_type",
        "source": "wardrobe or store",
        "styling_notes": "how to wear"
      }}
    ],
    "description": "overall outfit description",
    "styling_tips": ["tip1", "tip2", "tip3"]
  }}
}}

Only use ids from the lists above. Respond with the JSON object only."""


def _prompt_rows(rows: list[dict], fields: tuple) -> list[dict]:
    return [{k: row.get(k) for k in fields if row.get(k) not in (None, "", [])} for row in rows]


def build_prompt(
    event: dict,
    profile: dict,
    wardrobe_items: list[dict],
    store_items: list[dict],
) -> str:
    """Assemble the single recommendation prompt."""
    store_rows = _prompt_rows(store_items, STORE_PROMPT_FIELDS)
    return RECOMMENDATION_PROMPT.format(
        title=event.get("title") or "",
        description=event.get("description") or "",
        event_type=event.get("event_type") or "casual",
        date=event.get("date") or "unspecified",
        body_type=profile.get("body_type"),
        gender=profile.get("gender"),
        wardrobe_json=json.dumps(_prompt_rows(wardrobe_items, WARDROBE_PROMPT_FIELDS), indent=2),
        store_json=json.dumps(store_rows, indent=2) if store_rows else "None available.",
    )


def normalize_outfit(
    data: Any,
    wardrobe_items: list[dict],
    store_items: list[dict],
) -> Outfit:
    """
    Validate the model's outfit against the items it was given.

    Image URLs and prices are taken from the source rows rather than trusted
    from the model; items whose id is not in either list are dropped.

    Raises:
        AIResponseError: if the answer has no usable items
    """
    if isinstance(data, dict) and isinstance(data.get("outfit"), dict):
        data = data["outfit"]
    if not isinstance(data, dict):
        raise AIResponseError("Failed to generate recommendation", details="Unexpected response shape")

    wardrobe_by_id = {str(row.get("id")): row for row in wardrobe_items if row.get("id") is not None}
    store_by_id = {str(row.get("id")): row for row in store_items if row.get("id") is not None}

    items: list[OutfitItem] = []
    for raw in data.get("items") or []:
        if not isinstance(raw, dict) or raw.get("id") is None:
            continue
        item_id = str(raw["id"])
        notes = str(raw.get("styling_notes") or "")
        if item_id in wardrobe_by_id:
            row = wardrobe_by_id[item_id]
            items.append(
                OutfitItem(
                    id=item_id,
                    type=row.get("type") or raw.get("type") or "item",
                    styling_notes=notes,
                    image_url=row.get("image_url"),
                    source="wardrobe",
                    name=row.get("name"),
                )
            )
        elif item_id in store_by_id:
            row = store_by_id[item_id]
            images = row.get("images") or []
            items.append(
                OutfitItem(
                    id=item_id,
                    type=row.get("type") or row.get("category") or raw.get("type") or "item",
                    styling_notes=notes,
                    image_url=row.get("image_url") or (images[0] if images else None),
                    source="store",
                    name=row.get("name"),
                    price=row.get("price"),
                )
            )
        else:
            console.print(f"[yellow]Dropping unknown item id from recommendation: {item_id}[/yellow]")

    if not items:
        raise AIResponseError("Failed to generate recommendation", details="No valid items in response")

    return Outfit(
        items=items,
        description=str(data.get("description") or ""),
        styling_tips=data.get("styling_tips"),
    )


class OutfitRecommender:
    """
    Generates and stores one outfit recommendation per request.

    Preconditions are checked in order (profile, event, wardrobe) and each
    failure raises before any model call is made.
    """

    def __init__(
        self,
        store: SupabaseStore,
        ai_client: Optional[GroqClient] = None,
        recommendation_config: Optional[RecommendationConfig] = None,
    ):
        self.store = store
        self.client = ai_client
        self.config = recommendation_config or config.recommendation

    def _get_client(self) -> GroqClient:
        if self.client is None:
            self.client = GroqClient()
        return self.client

    async def validate_profile(self, user_id: str) -> dict:
        row = await self.store.get_profile(user_id)
        if not row:
            raise RecommendationError(RecommendationError.PROFILE_NOT_FOUND)
        missing = Profile.model_validate(row).missing_fields()
        if missing:
            raise RecommendationError(
                RecommendationError.PROFILE_INCOMPLETE,
                details=f"Missing: {', '.join(missing)}",
            )
        return row

    async def validate_wardrobe(self, user_id: str) -> list[dict]:
        items = await self.store.get_wardrobe_items(user_id, status="completed")
        if not items:
            raise RecommendationError(RecommendationError.WARDROBE_EMPTY)
        return items

    async def get_store_items(self, wardrobe_items: list[dict]) -> list[dict]:
        """In-stock products minus those redundant with the wardrobe."""
        products = await self.store.get_products(in_stock_only=True)
        candidates = filter_redundant_products(wardrobe_items, products)
        console.print(
            f"[dim]Store items: {len(products)} in stock, "
            f"{len(products) - len(candidates)} redundant with wardrobe[/dim]"
        )
        return candidates[: self.config.max_store_items]

    async def _ask_model(self, prompt: str) -> str:
        client = self._get_client()
        try:
            return await asyncio.wait_for(
                client.generate(
                    prompt,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AITimeoutError(
                "Outfit recommendation timed out",
                details=f"No response within {self.config.timeout_seconds:.0f}s",
            ) from e

    async def recommend(self, user_id: str, event_id: str) -> dict:
        """
        Generate an outfit for an event.

        Args:
            user_id: Requesting user
            event_id: Event to dress for

        Returns:
            {"outfit": {...}, "recommendation_id": str | None}

        Raises:
            ValidationError: missing parameters
            RecommendationError: PROFILE_NOT_FOUND / PROFILE_INCOMPLETE / WARDROBE_EMPTY
            NotFoundError: unknown event
            AITimeoutError: model did not answer in time
            AIResponseError: model answer could not be parsed
        """
        if not user_id or not event_id:
            raise ValidationError("Missing required parameters")

        profile = await self.validate_profile(user_id)
        console.print("[dim]Profile validated[/dim]")

        event = await self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found")

        wardrobe_items = await self.validate_wardrobe(user_id)
        console.print(f"[dim]Found {len(wardrobe_items)} wardrobe items[/dim]")

        store_items = await self.get_store_items(wardrobe_items)
        prompt = build_prompt(event, profile, wardrobe_items, store_items)

        response = await self._ask_model(prompt)
        try:
            data = parse_llm_json(response)
        except ValueError as e:
            console.print(f"[red]Error parsing AI response: {e}[/red]")
            raise AIResponseError("Failed to generate recommendation", details=str(e)) from e

        outfit = normalize_outfit(data, wardrobe_items, store_items)
        recommendation_id = await self._save(user_id, event_id, outfit)

        console.print(
            f"[green]✓ Recommendation ready: {len(outfit.items)} items for event {event_id}[/green]"
        )
        return {"outfit": outfit.model_dump(), "recommendation_id": recommendation_id}

    async def _save(self, user_id: str, event_id: str, outfit: Outfit) -> Optional[str]:
        """Persist the outfit; a failed save is logged and the outfit still returned."""
        record = OutfitRecommendation(event_id=event_id, user_id=user_id, recommendation=outfit)
        try:
            row = await self.store.insert_recommendation(record.model_dump(exclude={"id"}))
        except Exception as e:
            console.print(f"[yellow]Warning: could not save recommendation: {e}[/yellow]")
            return None
        return row.get("id")
