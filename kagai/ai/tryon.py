"""
Virtual try-on via fal.ai's ``fashn/tryon`` model.

A top garment is applied to the user's photo first; when a bottom garment is
also given, it is applied to the result of the top pass so both end up on the
same image.
"""

import os
import random
from typing import Optional

import httpx
from rich.console import Console

from config.settings import TryOnConfig, config
from kagai.errors import TryOnError, ValidationError
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import TryOnRecord

console = Console()


def _short(url: Optional[str], limit: int = 100) -> str:
    if not url:
        return "-"
    return url[:limit] + ("..." if len(url) > limit else "")


class TryOnService:
    """Chains fal.ai try-on calls and records the result."""

    def __init__(
        self,
        store: SupabaseStore,
        tryon_config: Optional[TryOnConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
    ):
        self.store = store
        self.config = tryon_config or config.tryon
        self._http_client = http_client
        self.api_key = api_key or self.config.api_key or os.getenv("FAL_KEY")
        if not self.api_key:
            console.print("[yellow]FAL_KEY environment variable is not set[/yellow]")

    def _build_input(self, model_image: str, garment_image: str, category: str) -> dict:
        payload = {
            "model_image": model_image,
            "garment_image": garment_image,
            "category": category,
            "garment_photo_type": "auto",
            "nsfw_filter": True,
            "guidance_scale": self.config.guidance_scale,
            "timesteps": self.config.timesteps,
            "seed": random.randrange(1000),
            "num_samples": 1,
            "restore_clothes": True,
            "restore_background": True,
        }
        if category == "tops":
            payload["adjust_hands"] = True
        else:
            payload["cover_feet"] = True
        return payload

    async def _run(self, payload: dict) -> dict:
        """POST to the fal endpoint and return the first generated image."""
        if not self.api_key:
            raise ValueError("FAL_KEY is not configured")

        headers = {"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"}
        if self._http_client is not None:
            resp = await self._http_client.post(
                self.config.endpoint, json=payload, headers=headers, timeout=self.config.timeout_seconds
            )
        else:
            async with httpx.AsyncClient() as http_client:
                resp = await http_client.post(
                    self.config.endpoint, json=payload, headers=headers, timeout=self.config.timeout_seconds
                )
        resp.raise_for_status()

        images = resp.json().get("images") or []
        if not images or not images[0].get("url"):
            raise ValueError("No images in try-on response")
        return images[0]

    async def _stage(self, name: str, model_image: str, garment_image: str, category: str) -> dict:
        console.print(f"[cyan]Processing {name} image...[/cyan]")
        try:
            image = await self._run(self._build_input(model_image, garment_image, category))
        except Exception as e:
            console.print(f"[red]Error processing {name} image: {e}[/red]")
            raise TryOnError(
                "Failed to generate try-on image",
                details=f"{name.capitalize()} image processing failed: {e}",
            ) from e
        console.print(f"[green]{name.capitalize()} image processed successfully[/green]")
        return image

    async def generate(
        self,
        user_id: str,
        user_image_url: str,
        top_image_url: Optional[str] = None,
        bottom_image_url: Optional[str] = None,
    ) -> dict:
        """
        Dress the user's photo in the given garments.

        Args:
            user_id: Owner of the try-on
            user_image_url: Photo of the user
            top_image_url: Top garment image (optional)
            bottom_image_url: Bottom garment image (optional)

        Returns:
            {"success": True, "tryOn": record, "resultImage": image}
        """
        if not user_id or not user_image_url or not (top_image_url or bottom_image_url):
            raise ValidationError("Missing required parameters")

        console.print(
            f"[cyan]Starting try-on for {user_id}: user={_short(user_image_url)} "
            f"top={_short(top_image_url)} bottom={_short(bottom_image_url)}[/cyan]"
        )

        top_result = None
        if top_image_url:
            top_result = await self._stage("top", user_image_url, top_image_url, "tops")

        bottom_result = None
        if bottom_image_url:
            model_image = top_result["url"] if top_result else user_image_url
            bottom_result = await self._stage("bottom", model_image, bottom_image_url, "bottoms")

        result_image = bottom_result or top_result
        record = TryOnRecord(
            user_id=user_id,
            top_image_url=top_image_url,
            bottom_image_url=bottom_image_url,
            result_image_url=result_image["url"],
            metadata={
                "top_processed": top_result is not None,
                "bottom_processed": bottom_result is not None,
                "settings_used": {
                    "guidance_scale": self.config.guidance_scale,
                    "timesteps": self.config.timesteps,
                },
            },
        ).model_dump()

        try:
            saved = await self.store.insert_tryon(record)
        except Exception as e:
            # The generated image is still returned when the row can't be stored
            console.print(f"[yellow]Warning: could not save try-on: {e}[/yellow]")
            saved = record

        console.print(f"[green]✓ Try-on complete: {_short(result_image['url'])}[/green]")
        return {"success": True, "tryOn": saved, "resultImage": result_image}
