"""
Per-conversation shopping cart keyed by (service_id, vendor_id).

A second add with the same key increments the existing line's
quantity instead of adding a duplicate row.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from vendor_assistant.schemas.memory_schema import CartItem
from vendor_assistant.utils import best_match

logger = logging.getLogger(__name__)


class CartStore:
    """Quantity-merging cart. All mutations stay inside the store."""

    def __init__(self) -> None:
        self._items: dict[tuple[int, int], CartItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: CartItem) -> CartItem:
        """Add a line or merge into the existing one. Returns the stored line."""
        existing = self._items.get(item.identity_key)
        if existing is not None:
            existing.quantity += max(1, item.quantity or 1)
            logger.debug(
                "Cart merge: service %s vendor %s now x%d",
                item.service_id, item.vendor_id, existing.quantity,
            )
            return existing.model_copy()

        stored = item.model_copy(update={
            "quantity": max(1, item.quantity or 1),
            "added_at": datetime.now(timezone.utc),
        })
        self._items[item.identity_key] = stored
        logger.debug("Cart add: service %s vendor %s", item.service_id, item.vendor_id)
        return stored.model_copy()

    def remove(self, service_id: int, vendor_id: int) -> bool:
        """Delete the matching line. Returns False (and does nothing) if absent."""
        return self._items.pop((service_id, vendor_id), None) is not None

    def update_quantity(self, service_id: int, vendor_id: int, quantity: int) -> bool:
        """Set a line's quantity; zero or less removes it. Returns whether the line existed."""
        key = (service_id, vendor_id)
        if key not in self._items:
            return False
        if quantity <= 0:
            del self._items[key]
        else:
            self._items[key].quantity = quantity
        return True

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> list[CartItem]:
        """Copies of the current lines in insertion order."""
        return [item.model_copy() for item in self._items.values()]

    def total(self) -> float:
        return sum(item.line_total for item in self._items.values())

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def find_by_name(self, name: str) -> Optional[CartItem]:
        """Fuzzy-match a requested service name against the cart lines."""
        match = best_match(name, self._items.values(), lambda i: i.service_name)
        return match.model_copy() if match is not None else None
