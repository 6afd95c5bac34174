"""
Shopping cart kept in local storage, one JSON blob per user.

The cart only reaches the database at checkout (see StoreService.checkout).
"""

from typing import Any, Iterable, Union

from kagai.loaders.local_store import LocalStore
from kagai.models import CartItem

CartLike = Union[CartItem, dict]


def calculate_total(items: Iterable[CartLike]) -> float:
    """Sum of price * quantity, rounded to cents."""
    total = 0.0
    for item in items:
        if isinstance(item, dict):
            price = float(item.get("price") or 0)
            quantity = int(item.get("quantity") or 0)
        else:
            price, quantity = item.price, item.quantity
        total += price * quantity
    return round(total, 2)


class Cart:
    """A user's cart persisted under the ``cart_<user_id>`` key."""

    def __init__(self, user_id: str, store: LocalStore):
        self.user_id = user_id
        self.store = store

    @property
    def key(self) -> str:
        return f"cart_{self.user_id}"

    async def items(self) -> list[CartItem]:
        raw = await self.store.read_key(self.key, default=[])
        return [CartItem.model_validate(row) for row in raw]

    async def _save(self, items: list[CartItem]) -> None:
        await self.store.write_key(self.key, [item.model_dump() for item in items])

    async def add(self, item: Union[CartItem, dict[str, Any]]) -> list[CartItem]:
        """Add an item, merging quantities with an existing line for the same product."""
        new_item = item if isinstance(item, CartItem) else CartItem.model_validate(item)
        items = await self.items()
        for existing in items:
            if existing.id == new_item.id:
                existing.quantity += new_item.quantity
                break
        else:
            items.append(new_item)
        await self._save(items)
        return items

    async def remove(self, product_id: str) -> list[CartItem]:
        items = [item for item in await self.items() if item.id != product_id]
        await self._save(items)
        return items

    async def update_quantity(self, product_id: str, quantity: int) -> list[CartItem]:
        """Set a line's quantity; values below 1 are ignored."""
        items = await self.items()
        if quantity < 1:
            return items
        for item in items:
            if item.id == product_id:
                item.quantity = quantity
        await self._save(items)
        return items

    async def total(self) -> float:
        return calculate_total(await self.items())

    async def clear(self) -> None:
        await self.store.delete_key(self.key)
