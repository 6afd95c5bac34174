"""
Store checkout: turn cart lines into an order and add the purchases to the
buyer's wardrobe.
"""

from typing import Iterable, Optional, Union

from rich.console import Console

from kagai.errors import ValidationError
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import CartItem, Order, WardrobeItem
from kagai.utils.cart import calculate_total

console = Console()


class StoreService:
    def __init__(self, store: SupabaseStore):
        self.store = store

    async def list_products(self, category: Optional[str] = None) -> list[dict]:
        return await self.store.get_products(category=category)

    async def checkout(
        self,
        user_id: str,
        items: Iterable[Union[CartItem, dict]],
        shipping_address: str,
    ) -> dict:
        """
        Place an order for ``items``.

        The order and the wardrobe inserts are separate writes; a wardrobe
        insert failing after the order was created is logged, not rolled back.

        Returns:
            The stored order row
        """
        if not user_id:
            raise ValidationError("Please sign in to complete your purchase")
        if not shipping_address or not shipping_address.strip():
            raise ValidationError("Please provide a shipping address")

        try:
            cart_items = [i if isinstance(i, CartItem) else CartItem.model_validate(i) for i in items]
        except ValueError as e:
            raise ValidationError("Invalid cart items", details=str(e)) from e
        if not cart_items:
            raise ValidationError("Your cart is empty")

        order = Order(
            user_id=user_id,
            items=cart_items,
            total=calculate_total(cart_items),
            shipping_address=shipping_address.strip(),
        )
        saved = await self.store.create_order(order.model_dump(exclude={"id"}))
        console.print(f"[green]✓ Order placed: {saved.get('id')} (${order.total:.2f})[/green]")

        for item in cart_items:
            wardrobe_item = WardrobeItem(
                user_id=user_id,
                name=item.name,
                description=item.description,
                category=item.category,
                type=item.type or item.category,
                color=item.selected_color or item.color,
                size=item.selected_size,
                brand=item.brand,
                image_url=item.primary_image,
                source="purchased",
                status="completed",
            )
            try:
                await self.store.insert_wardrobe_item(
                    wardrobe_item.model_dump(exclude_none=True, exclude={"id"})
                )
            except Exception as e:
                console.print(f"[yellow]Warning: could not add {item.name} to wardrobe: {e}[/yellow]")

        return saved
