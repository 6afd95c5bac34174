"""
Supabase store for wardrobe, catalog, recommendation, chat and order data.

Rows live in Postgres (via PostgREST), images in Supabase Storage. Writes to
``wardrobe_items`` and ``orders`` fall back to local JSON files when those
tables have not been created yet.
"""

import os
from typing import Any, Optional

from rich.console import Console
from supabase import Client, create_client

from config.settings import SupabaseConfig, config
from kagai.loaders.local_store import LocalStore

console = Console()

# PostgREST / Postgres error codes
NO_ROWS_CODE = "PGRST116"
MISSING_TABLE_CODES = ("PGRST205", "42P01")


def _error_code(exc: Exception) -> str:
    return str(getattr(exc, "code", None) or "").upper()


def is_no_rows_error(exc: Exception) -> bool:
    """``.single()`` found no row."""
    return _error_code(exc) == NO_ROWS_CODE or NO_ROWS_CODE.lower() in str(exc).lower()


def is_missing_table_error(exc: Exception) -> bool:
    """The queried table does not exist in the schema."""
    if _error_code(exc) in MISSING_TABLE_CODES:
        return True
    msg = (getattr(exc, "message", None) or str(exc) or "").lower()
    return (
        any(code.lower() in msg for code in MISSING_TABLE_CODES)
        or ("relation" in msg and "does not exist" in msg)
        or "could not find the table" in msg
    )


class SupabaseStore:
    """
    Data access for every table the service touches.

    - Rows -> PostgreSQL database
    - Clothing and product images -> Supabase Storage bucket
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        client: Optional[Client] = None,
        local_store: Optional[LocalStore] = None,
        supabase_config: Optional[SupabaseConfig] = None,
    ):
        """
        Initialize the store.

        Args:
            supabase_url: Supabase project URL (or set SUPABASE_URL env var)
            supabase_key: Supabase anon/service key (or set SUPABASE_KEY env var)
            client: Pre-built Supabase client (skips credential lookup)
            local_store: Fallback storage for missing tables
            supabase_config: Bucket settings
        """
        self.config = supabase_config or config.supabase
        if client is None:
            url = supabase_url or self.config.url or os.getenv("SUPABASE_URL")
            key = supabase_key or self.config.key or os.getenv("SUPABASE_KEY")
            if not url or not key:
                raise ValueError(
                    "Supabase credentials not found. Set SUPABASE_URL and SUPABASE_KEY environment variables."
                )
            client = create_client(url, key)

        self.client = client
        self.local = local_store or LocalStore()
        self.bucket_name = self.config.wardrobe_bucket

    def _single(self, table: str, column: str, value: Any) -> Optional[dict]:
        """Fetch exactly one row, returning None when it does not exist."""
        try:
            result = self.client.table(table).select("*").eq(column, value).single().execute()
        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise
        return result.data

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[dict]:
        return self._single("profiles", "id", user_id)

    async def list_profiles(self) -> list[dict]:
        result = (
            self.client.table("profiles").select("*").order("created_at", desc=True).execute()
        )
        return result.data or []

    async def update_profile_role(self, user_id: str, role: str) -> list[dict]:
        result = self.client.table("profiles").update({"role": role}).eq("id", user_id).execute()
        return result.data or []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def create_event(self, record: dict) -> dict:
        result = self.client.table("events").insert(record).execute()
        return result.data[0] if result.data else record

    async def get_event(self, event_id: str) -> Optional[dict]:
        return self._single("events", "id", event_id)

    async def delete_event(self, event_id: str) -> None:
        self.client.table("events").delete().eq("id", event_id).execute()

    # ------------------------------------------------------------------
    # Wardrobe
    # ------------------------------------------------------------------

    async def get_wardrobe_items(
        self,
        user_id: str,
        status: Optional[str] = None,
        item_type: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[dict]:
        """
        Retrieve a user's wardrobe items.

        Args:
            user_id: Owner of the items
            status: Only items with this processing status (e.g. "completed")
            item_type: Filter by clothing type
            category: Filter by category

        Returns:
            List of wardrobe item records, newest first
        """
        filters = {"user_id": user_id}
        if status:
            filters["status"] = status
        if item_type:
            filters["type"] = item_type
        if category:
            filters["category"] = category

        query = self.client.table("wardrobe_items").select("*")
        for column, value in filters.items():
            query = query.eq(column, value)

        try:
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            if not is_missing_table_error(e):
                raise
            console.print("[yellow]wardrobe_items table missing - reading local wardrobe[/yellow]")
            return await self.local.read_records("wardrobe_items", **filters)
        return result.data or []

    async def insert_wardrobe_item(self, record: dict) -> dict:
        try:
            result = self.client.table("wardrobe_items").insert(record).execute()
        except Exception as e:
            if not is_missing_table_error(e):
                raise
            console.print("[yellow]wardrobe_items table missing - saving item locally[/yellow]")
            return await self.local.append_record("wardrobe_items", record)
        return result.data[0] if result.data else record

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def get_products(
        self,
        in_stock_only: bool = False,
        category: Optional[str] = None,
        limit: int = 200,
    ) -> list[dict]:
        query = self.client.table("products").select("*")
        if category:
            query = query.eq("category", category)
        if in_stock_only:
            query = query.gt("stock", 0)
        result = query.order("created_at", desc=True).limit(limit).execute()
        return result.data or []

    async def get_product(self, product_id: str) -> Optional[dict]:
        return self._single("products", "id", product_id)

    async def create_product(self, record: dict) -> dict:
        result = self.client.table("products").insert(record).execute()
        return result.data[0] if result.data else record

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    async def insert_recommendation(self, record: dict) -> dict:
        result = self.client.table("outfit_recommendations").insert(record).execute()
        return result.data[0] if result.data else record

    async def get_recommendation(self, recommendation_id: str) -> Optional[dict]:
        return self._single("outfit_recommendations", "id", recommendation_id)

    async def delete_recommendation_cascade(self, recommendation_id: str) -> Optional[dict]:
        """
        Delete a recommendation with its chats, messages and event.

        Runs as separate statements in dependency order (messages -> chats ->
        recommendation -> event); a failure part-way leaves earlier deletes
        applied.

        Returns:
            Counts of deleted rows, or None if the recommendation does not exist
        """
        recommendation = await self.get_recommendation(recommendation_id)
        if not recommendation:
            return None

        chats = (
            self.client.table("outfit_chats")
            .select("id")
            .eq("outfit_id", recommendation_id)
            .execute()
        )
        chat_ids = [row["id"] for row in chats.data or []]

        deleted_messages = 0
        if chat_ids:
            messages = self.client.table("chat_messages").delete().in_("chat_id", chat_ids).execute()
            deleted_messages = len(messages.data or [])
            self.client.table("outfit_chats").delete().in_("id", chat_ids).execute()

        self.client.table("outfit_recommendations").delete().eq("id", recommendation_id).execute()

        event_id = recommendation.get("event_id")
        if event_id:
            await self.delete_event(event_id)

        console.print(
            f"[green]Deleted recommendation {recommendation_id} "
            f"({len(chat_ids)} chats, {deleted_messages} messages)[/green]"
        )
        return {
            "recommendation_id": recommendation_id,
            "event_id": event_id,
            "chats_deleted": len(chat_ids),
            "messages_deleted": deleted_messages,
        }

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def create_chat(self, record: dict) -> dict:
        result = self.client.table("outfit_chats").insert(record).execute()
        return result.data[0]

    async def insert_chat_message(self, record: dict) -> dict:
        result = self.client.table("chat_messages").insert(record).execute()
        return result.data[0] if result.data else record

    async def touch_chat(self, chat_id: str, timestamp: str) -> None:
        self.client.table("outfit_chats").update({"last_message_at": timestamp}).eq(
            "id", chat_id
        ).execute()

    async def list_chats(self, user_id: str) -> list[dict]:
        result = (
            self.client.table("outfit_chats")
            .select("*")
            .eq("user_id", user_id)
            .order("last_message_at", desc=True)
            .execute()
        )
        return result.data or []

    async def get_chat_messages(self, chat_id: str) -> list[dict]:
        result = (
            self.client.table("chat_messages")
            .select("*")
            .eq("chat_id", chat_id)
            .order("created_at")
            .execute()
        )
        return result.data or []

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(self, record: dict) -> dict:
        try:
            result = self.client.table("orders").insert(record).execute()
        except Exception as e:
            if not is_missing_table_error(e):
                raise
            console.print("[yellow]orders table missing - saving order locally[/yellow]")
            return await self.local.append_record("orders", record)
        return result.data[0] if result.data else record

    async def list_orders(self, user_id: Optional[str] = None) -> list[dict]:
        query = self.client.table("orders").select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        result = query.order("created_at", desc=True).execute()
        return result.data or []

    async def update_order_status(self, order_id: str, status: str) -> Optional[dict]:
        result = self.client.table("orders").update({"status": status}).eq("id", order_id).execute()
        return result.data[0] if result.data else None

    # ------------------------------------------------------------------
    # Try-ons
    # ------------------------------------------------------------------

    async def insert_tryon(self, record: dict) -> dict:
        result = self.client.table("outfit_tryons").insert(record).execute()
        return result.data[0] if result.data else record

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        storage_path: str,
        data: bytes,
        content_type: str,
        bucket: Optional[str] = None,
        cache_control: str = "3600",
    ) -> str:
        """
        Upload bytes to Supabase Storage.

        Args:
            storage_path: Path within the bucket, e.g. ``<user_id>/<file>.jpg``
            data: File content
            content_type: MIME type stored with the object
            bucket: Bucket name (defaults to the wardrobe bucket)
            cache_control: Cache-Control max-age in seconds

        Returns:
            Public URL of the uploaded object
        """
        bucket = bucket or self.bucket_name
        self.client.storage.from_(bucket).upload(
            storage_path,
            data,
            {"content-type": content_type, "cache-control": cache_control, "upsert": "false"},
        )
        return self.get_public_url(storage_path, bucket)

    def get_public_url(self, storage_path: str, bucket: Optional[str] = None) -> str:
        return self.client.storage.from_(bucket or self.bucket_name).get_public_url(storage_path)

    async def remove_files(self, storage_paths: list[str], bucket: Optional[str] = None) -> None:
        if storage_paths:
            self.client.storage.from_(bucket or self.bucket_name).remove(storage_paths)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def get_user_id_from_token(self, access_token: str) -> Optional[str]:
        """Resolve a Supabase access token (JWT) to a user id."""
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            console.print(f"[yellow]Could not verify access token: {e}[/yellow]")
            return None
        user = getattr(response, "user", None)
        return getattr(user, "id", None) if user else None
