"""
Admin-only management: user roles, catalog products and order status.

Every operation first checks that the requesting user's profile has the
``admin`` role.
"""

import secrets
import time
from pathlib import PurePath
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from config.settings import SupabaseConfig, config
from kagai.errors import NotFoundError, UnauthorizedError, ValidationError
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import ORDER_STATUSES, Product

console = Console()

ROLES = ("user", "admin")


class AdminService:
    def __init__(self, store: SupabaseStore, supabase_config: Optional[SupabaseConfig] = None):
        self.store = store
        self.config = supabase_config or config.supabase

    async def require_admin(self, requesting_user_id: Optional[str]) -> dict:
        if not requesting_user_id:
            raise UnauthorizedError()
        profile = await self.store.get_profile(requesting_user_id)
        if not profile or profile.get("role") != "admin":
            raise UnauthorizedError()
        return profile

    async def update_user_role(self, requesting_user_id: Optional[str], user_id: str, role: str) -> dict:
        await self.require_admin(requesting_user_id)
        if not user_id or role not in ROLES:
            raise ValidationError("userId and a valid role (user/admin) are required")

        updated = await self.store.update_profile_role(user_id, role)
        if not updated:
            raise NotFoundError("User not found")
        console.print(f"[green]✓ Role for {user_id} set to {role}[/green]")
        return {"success": True}

    async def list_users(self, requesting_user_id: Optional[str]) -> list[dict]:
        await self.require_admin(requesting_user_id)
        return await self.store.list_profiles()

    async def create_product(
        self,
        requesting_user_id: Optional[str],
        fields: dict,
        image: Optional[tuple] = None,
    ) -> dict:
        """
        Add a catalog product, optionally uploading its image.

        Args:
            requesting_user_id: Must be an admin
            fields: Product columns (name, price, stock, ...)
            image: Optional (filename, bytes, content_type)
        """
        await self.require_admin(requesting_user_id)
        try:
            product = Product.model_validate(fields)
        except PydanticValidationError as e:
            raise ValidationError("Invalid product", details=str(e)) from e

        record = product.model_dump(exclude_none=True, exclude={"id", "in_stock"})
        if image:
            filename, content, content_type = image
            ext = PurePath(filename).suffix.lower() or ".jpg"
            path = f"{self.config.products_prefix}/{int(time.time() * 1000)}-{secrets.token_hex(5)}{ext}"
            public_url = await self.store.upload_file(path, content, content_type)
            record["image_url"] = public_url
            record["images"] = [public_url, *record.get("images", [])]

        saved = await self.store.create_product(record)
        console.print(f"[green]✓ Product created: {product.name}[/green]")
        return saved

    async def list_orders(self, requesting_user_id: Optional[str]) -> list[dict]:
        await self.require_admin(requesting_user_id)
        return await self.store.list_orders()

    async def update_order_status(
        self, requesting_user_id: Optional[str], order_id: str, status: str
    ) -> dict:
        await self.require_admin(requesting_user_id)
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Expected one of: {', '.join(ORDER_STATUSES)}")
        updated = await self.store.update_order_status(order_id, status)
        if not updated:
            raise NotFoundError("Order not found")
        return updated
