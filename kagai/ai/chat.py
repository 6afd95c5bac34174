"""
Outfit Chat - conversation about a recommended outfit

Each chat is a row in ``outfit_chats`` (optionally tied to a recommendation)
with its turns stored in ``chat_messages``.

Usage:
    from kagai.ai import OutfitChatService

    service = OutfitChatService(store)
    reply = await service.send_message(
        user_id="...",
        message="What shoes go with this?",
        outfit_id=recommendation_id,
        outfit_details=outfit,
    )
    # {"chatId": "...", "message": "..."}
"""

import json
from typing import Any, Iterable, Optional

from rich.console import Console

from config.settings import ChatConfig, config
from kagai.ai.openai_client import GroqClient
from kagai.errors import ValidationError
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import ChatMessage, OutfitChat, utc_now

console = Console()


SYSTEM_PROMPT = """You are a fashion assistant helping with outfit recommendations. Keep responses concise and focused on the current outfit:
{outfit}

Focus on:
- Styling advice for the recommended outfit
- Answering questions about outfit combinations
- Suggesting alternatives
- Practical wearing and accessorizing tips"""


def chat_title(message: str, length: int = 50) -> str:
    return message[:length] + "..."


class OutfitChatService:
    """Stores chat turns and asks the LLM for the assistant's reply."""

    def __init__(
        self,
        store: SupabaseStore,
        ai_client: Optional[GroqClient] = None,
        chat_config: Optional[ChatConfig] = None,
    ):
        self.store = store
        self.client = ai_client
        self.config = chat_config or config.chat

    def _get_client(self) -> GroqClient:
        if self.client is None:
            self.client = GroqClient()
        return self.client

    @staticmethod
    def build_messages(
        message: str,
        previous_messages: Iterable[dict] = (),
        outfit_details: Any = None,
    ) -> list[dict]:
        """System prompt, then prior turns, then the new user message."""
        system = SYSTEM_PROMPT.format(outfit=json.dumps(outfit_details, indent=2, default=str))
        history = [
            {"role": msg["role"], "content": msg["content"]}
            for msg in previous_messages
            if msg.get("role") in ("user", "assistant") and msg.get("content")
        ]
        return [{"role": "system", "content": system}, *history, {"role": "user", "content": message}]

    async def send_message(
        self,
        user_id: str,
        message: str,
        outfit_id: Optional[str] = None,
        chat_id: Optional[str] = None,
        previous_messages: Iterable[dict] = (),
        outfit_details: Any = None,
    ) -> dict:
        """
        Send a user message and store the assistant's reply.

        Args:
            user_id: Author of the message
            message: The user's message
            outfit_id: Recommendation the chat is about (used when creating a chat)
            chat_id: Existing chat to continue; a new chat is created when omitted
            previous_messages: Earlier turns as {"role", "content"} dicts
            outfit_details: Outfit JSON embedded in the system prompt

        Returns:
            {"chatId": str, "message": str}
        """
        if not user_id:
            raise ValidationError("Missing required parameters")
        if not message or not message.strip():
            raise ValidationError("Message must not be empty")

        if not chat_id:
            chat = OutfitChat(
                user_id=user_id,
                outfit_id=outfit_id,
                title=chat_title(message, self.config.title_length),
            )
            row = await self.store.create_chat(chat.model_dump(exclude={"id"}))
            chat_id = row["id"]
            console.print(f"[dim]Started chat {chat_id}[/dim]")

        await self.store.insert_chat_message(
            ChatMessage(chat_id=chat_id, user_id=user_id, content=message, role="user").model_dump()
        )

        reply = await self._get_client().chat(
            self.build_messages(message, previous_messages, outfit_details),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

        await self.store.insert_chat_message(
            ChatMessage(chat_id=chat_id, user_id=user_id, content=reply, role="assistant").model_dump()
        )
        await self.store.touch_chat(chat_id, utc_now())

        return {"chatId": chat_id, "message": reply}

    async def list_chats(self, user_id: str) -> list[dict]:
        return await self.store.list_chats(user_id)

    async def get_messages(self, chat_id: str) -> list[dict]:
        return await self.store.get_chat_messages(chat_id)
