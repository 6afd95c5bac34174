"""
AI Service Module for KAG

Provides AI-powered features using Groq (OpenAI-compatible API) and fal.ai:
- Clothing classification from uploaded photos
- Event-based outfit recommendations
- Outfit chat assistant
- Virtual try-on

Configuration:
- Set GROQ_API_KEY and FAL_KEY in .env file
"""

from .chat import OutfitChatService
from .clothing_analyzer import ClothingAnalyzer
from .openai_client import GroqClient, ImageFetchError, resolve_ai_config
from .recommender import OutfitRecommender, build_prompt, normalize_outfit
from .tryon import TryOnService

__all__ = [
    # Clients
    "GroqClient",
    "ImageFetchError",
    "resolve_ai_config",
    # Services
    "ClothingAnalyzer",
    "OutfitRecommender",
    "OutfitChatService",
    "TryOnService",
    # Helpers
    "build_prompt",
    "normalize_outfit",
]
