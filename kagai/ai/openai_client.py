"""
Groq API Client

Async wrapper around Groq's OpenAI-compatible endpoint using the OpenAI SDK.
Supports text generation, vision (image + prompt) and multi-turn chat.

Usage:
    from kagai.ai import GroqClient

    client = GroqClient()

    # Text generation
    response = await client.generate("What is fashion?")

    # Vision (with image)
    response = await client.generate_with_image("Describe this clothing", image_url)
"""

import asyncio
import base64
import dataclasses
import os
from pathlib import Path
from typing import Optional, Union

import httpx
from openai import AsyncOpenAI
from rich.console import Console

from config.settings import AIConfig
from config.settings import config as app_config

console = Console()


class ImageFetchError(Exception):
    """The image could not be downloaded or read."""


def resolve_ai_config(base: Optional[AIConfig] = None) -> AIConfig:
    """Copy of ``base`` (default: ``config.ai``) with GROQ_*_MODEL env overrides applied."""
    resolved = dataclasses.replace(base or app_config.ai)
    if os.getenv("GROQ_VISION_MODEL"):
        resolved.vision_model = os.getenv("GROQ_VISION_MODEL")
    if os.getenv("GROQ_CHAT_MODEL"):
        resolved.chat_model = os.getenv("GROQ_CHAT_MODEL")
    return resolved


class GroqClient:
    """
    Async client for Groq chat completions.

    API errors are raised to the caller; nothing is retried.

    The underlying ``AsyncOpenAI`` connection pool belongs to the event loop
    it was opened on, so one is kept per running loop. ``close()`` releases
    the pool of the current loop; the next call on a new loop opens a fresh one.
    """

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        client: Optional[AsyncOpenAI] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = resolve_ai_config(config)
        self._http_client = http_client
        self._injected = client
        self._clients: dict[asyncio.AbstractEventLoop, AsyncOpenAI] = {}

        self.api_key = self.config.api_key or os.getenv("GROQ_API_KEY")
        if client is None and not self.api_key:
            raise ValueError("Groq API key not found. Set GROQ_API_KEY environment variable.")

    @property
    def _client(self) -> AsyncOpenAI:
        if self._injected is not None:
            return self._injected
        loop = asyncio.get_running_loop()
        client = self._clients.get(loop)
        if client is None:
            client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
            )
            self._clients[loop] = client
        return client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the connection pool opened on the running loop (injected clients are left alone)."""
        client = self._clients.pop(asyncio.get_running_loop(), None)
        if client is not None:
            await client.close()

    async def is_available(self) -> bool:
        """Check if the Groq API is accessible."""
        try:
            await self._client.models.list()
            return True
        except Exception as e:
            console.print(f"[red]Groq API not available: {e}[/red]")
            return False

    async def _complete(self, messages: list[dict], model: str, temperature: float, max_tokens: int) -> str:
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text response from a prompt.

        Args:
            prompt: The user prompt
            model: Model to use (defaults to chat_model)
            system: Optional system prompt
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text response
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        return await self._complete(
            messages,
            model=model or self.config.chat_model,
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens,
        )

    async def generate_with_image(
        self,
        prompt: str,
        image: Union[str, Path, bytes],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text response from a prompt and image.

        Args:
            prompt: The user prompt describing what to analyze
            image: Image as URL, file path, or bytes
            model: Vision model to use (defaults to vision_model)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text response

        Raises:
            ImageFetchError: if the image cannot be loaded
        """
        image_content = await self._prepare_image_for_api(image)
        messages = [
            {
                "role": "user",
                "content": [{"type": "text", "text": prompt}, image_content],
            }
        ]
        return await self._complete(
            messages,
            model=model or self.config.vision_model,
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens,
        )

    async def chat(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Multi-turn chat conversation.

        Args:
            messages: List of {"role": "user/assistant/system", "content": "..."}
            model: Model to use
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Assistant's response
        """
        return await self._complete(
            messages,
            model=model or self.config.chat_model,
            temperature=self.config.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.config.max_tokens,
        )

    async def fetch_image_as_data_url(self, url: str) -> str:
        """Download an image and return it as a base64 ``data:`` URL."""
        try:
            if self._http_client is not None:
                resp = await self._http_client.get(url, timeout=self.config.image_fetch_timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as http_client:
                    resp = await http_client.get(url, timeout=self.config.image_fetch_timeout)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageFetchError(f"Could not fetch image: {e}") from e

        ct = (resp.headers.get("content-type") or "").split(";")[0].strip().lower()
        mime = ct if ct.startswith("image/") and ct != "image/" else "image/jpeg"
        b64 = base64.b64encode(resp.content).decode("utf-8")
        return f"data:{mime};base64,{b64}"

    async def _prepare_image_for_api(self, image: Union[str, Path, bytes]) -> dict:
        """Convert image to the chat-completions ``image_url`` content part."""
        if isinstance(image, str) and image.startswith(("http://", "https://")):
            data_url = await self.fetch_image_as_data_url(image)
            return {"type": "image_url", "image_url": {"url": data_url}}

        if isinstance(image, str) and image.startswith("data:"):
            return {"type": "image_url", "image_url": {"url": image}}

        if isinstance(image, bytes):
            image_b64 = base64.b64encode(image).decode("utf-8")
            return {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}}

        image_path = Path(image)
        if not image_path.exists():
            raise ImageFetchError(f"Image not found: {image_path}")

        image_b64 = base64.b64encode(image_path.read_bytes()).decode("utf-8")
        mime_type = {
            ".jpg": "image/jpeg",
            ".jpeg": "image/jpeg",
            ".png": "image/png",
            ".gif": "image/gif",
            ".webp": "image/webp",
        }.get(image_path.suffix.lower(), "image/jpeg")
        return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_b64}"}}


async def smoke_test():
    """Smoke-test the Groq client against the live API."""
    from dotenv import load_dotenv

    load_dotenv()
    console.print("\n[bold cyan]Testing Groq Client[/bold cyan]\n")

    try:
        async with GroqClient() as client:
            available = await client.is_available()
            console.print(f"Groq API available: {'✓' if available else '✗'}")
            if not available:
                console.print("[red]Please check your GROQ_API_KEY[/red]")
                return

            console.print("\n[cyan]Testing text generation...[/cyan]")
            response = await client.generate(
                "Name 3 key pieces of a smart casual outfit. Be brief.",
                temperature=0.5,
            )
            console.print(f"Response: {response[:500]}")
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")


if __name__ == "__main__":
    asyncio.run(smoke_test())
