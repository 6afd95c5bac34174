"""
Configuration settings for the KAG wardrobe service.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")


@dataclass
class AIConfig:
    """Configuration for the Groq (OpenAI-compatible) client."""

    api_key: Optional[str] = None
    base_url: str = "https://api.groq.com/openai/v1"

    # Model selections (override via env: GROQ_CHAT_MODEL, GROQ_VISION_MODEL)
    chat_model: str = "llama-3.3-70b-versatile"
    vision_model: str = "llama-3.2-90b-vision-preview"

    # Timeouts
    timeout_seconds: float = 60.0
    image_fetch_timeout: float = 30.0

    # Generation settings
    temperature: float = 0.7
    max_tokens: int = 1024


@dataclass
class SupabaseConfig:
    """Supabase project settings (URL/key come from SUPABASE_URL / SUPABASE_KEY)."""

    url: Optional[str] = None
    key: Optional[str] = None
    wardrobe_bucket: str = "wardrobe"
    products_prefix: str = "products"


@dataclass
class UploadConfig:
    """Configuration for the wardrobe upload pipeline."""

    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_extensions: tuple = (".jpg", ".jpeg", ".png")
    allowed_content_types: tuple = ("image/jpeg", "image/png")
    max_concurrent: int = 2
    cache_control: str = "3600"


@dataclass
class RecommendationConfig:
    """Configuration for outfit recommendations."""

    timeout_seconds: float = 30.0
    temperature: float = 0.7
    max_tokens: int = 1024
    max_store_items: int = 25


@dataclass
class ChatConfig:
    """Configuration for the outfit chat."""

    temperature: float = 0.7
    max_tokens: int = 256
    title_length: int = 50


@dataclass
class TryOnConfig:
    """Configuration for fal.ai virtual try-on."""

    api_key: Optional[str] = None
    endpoint: str = "https://fal.run/fashn/tryon"
    guidance_scale: float = 2.5
    timesteps: int = 50
    timeout_seconds: float = 180.0


@dataclass
class StorageConfig:
    """Configuration for local (fallback) storage."""

    base_dir: Path = field(
        default_factory=lambda: Path(__file__).parent.parent / "data" / "local"
    )

    def ensure_dirs(self) -> None:
        """Create necessary directories if they don't exist."""
        self.base_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class CacheConfig:
    """Configuration for in-memory caches."""

    analysis_max_entries: int = 100


@dataclass
class ServerConfig:
    """Configuration for the Flask API server."""

    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False


@dataclass
class AppConfig:
    """Main configuration combining all settings."""

    ai: AIConfig = field(default_factory=AIConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    tryon: TryOnConfig = field(default_factory=TryOnConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def __post_init__(self):
        """Ensure all necessary directories exist."""
        self.storage.ensure_dirs()


# Default configuration instance
config = AppConfig()
