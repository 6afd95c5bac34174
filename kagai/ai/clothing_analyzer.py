"""
Clothing Analyzer - Vision-based classification of uploaded clothing photos

Asks the vision model for the garment type and four descriptive tags
(color, pattern, style, fit), e.g.:

    {"type": "hoodie", "tags": ["black", "solid", "casual", "regular-fit"]}

Usage:
    from kagai.ai import ClothingAnalyzer

    analyzer = ClothingAnalyzer()
    analysis = await analyzer.analyze(image_url)
"""

from typing import Optional

from rich.console import Console

from kagai.ai.openai_client import GroqClient, ImageFetchError
from kagai.errors import ValidationError
from kagai.models import ClothingAnalysis
from kagai.utils.cache import BoundedCache
from kagai.utils.json_repair import parse_analysis_fallback, parse_llm_json

console = Console()

# Vocabulary the prompt steers towards (the model may still answer outside it)
WARDROBE_CATEGORIES = {
    "types": [
        "shirt",
        "t-shirt",
        "hoodie",
        "sweater",
        "jacket",
        "pants",
        "jeans",
        "shorts",
        "dress",
        "skirt",
        "shoes",
        "accessories",
    ],
    "patterns": ["solid", "striped", "plaid", "floral", "checkered", "printed", "textured"],
    "styles": ["casual", "formal", "business", "sporty", "vintage", "streetwear"],
    "fits": ["regular-fit", "slim-fit", "loose-fit", "oversized", "fitted", "relaxed"],
}

ANALYZE_PROMPT = """Analyze this clothing item and output ONLY a JSON object with two fields:
1. "type": a single word or short phrase describing the main clothing type
2. "tags": an array with exactly 4 elements: [color, pattern, style, fit]

Prefer these values where they fit:
- types: {types}
- patterns: {patterns}
- styles: {styles}
- fits: {fits}

Example:
{{
  "type": "hoodie",
  "tags": ["black", "solid", "casual", "regular-fit"]
}}"""


class ClothingAnalyzer:
    """
    Vision classifier for wardrobe uploads.

    Results are cached per image URL so re-analysing the same upload does
    not hit the API again.
    """

    temperature = 0.1
    max_tokens = 100

    def __init__(
        self,
        ai_client: Optional[GroqClient] = None,
        cache: Optional[BoundedCache] = None,
        cache_size: int = 100,
    ):
        self.client = ai_client
        self.cache = cache if cache is not None else BoundedCache(cache_size)

    def _get_client(self) -> GroqClient:
        if self.client is None:
            self.client = GroqClient()
        return self.client

    @staticmethod
    def build_prompt() -> str:
        return ANALYZE_PROMPT.format(
            **{key: ", ".join(values) for key, values in WARDROBE_CATEGORIES.items()}
        )

    @staticmethod
    def parse_response(response: str) -> ClothingAnalysis:
        """Turn the raw model answer into a ClothingAnalysis."""
        try:
            data = parse_llm_json(response)
            if not isinstance(data, dict) or not data.get("type") or not isinstance(data.get("tags"), list):
                raise ValueError("Invalid response structure")
        except ValueError as e:
            console.print(f"[yellow]Unstructured analysis response ({e}), using fallback parse[/yellow]")
            data = parse_analysis_fallback(response)
        return ClothingAnalysis.model_validate(data)

    async def analyze(self, image_url: str) -> ClothingAnalysis:
        """
        Classify the clothing item in an image.

        Args:
            image_url: Public URL of the image

        Returns:
            ClothingAnalysis with lowercase type and at most 4 tags

        Raises:
            ValidationError: if the URL is missing or the image cannot be fetched
        """
        if not image_url or not isinstance(image_url, str):
            raise ValidationError("Invalid or missing image URL")

        cached = self.cache.get(image_url)
        if cached is not None:
            return cached

        client = self._get_client()
        try:
            response = await client.generate_with_image(
                self.build_prompt(),
                image_url,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except ImageFetchError as e:
            console.print(f"[red]Error processing image: {e}[/red]")
            raise ValidationError("Failed to process image", details=str(e)) from e

        analysis = self.parse_response(response)
        self.cache.set(image_url, analysis)
        console.print(f"[dim]Analyzed image: {analysis.type} {analysis.tags}[/dim]")
        return analysis
