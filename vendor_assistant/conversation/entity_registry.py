"""
Bounded, deduplicated memory of vendors, services, and categories.

Entries are keyed by (type, id, lowercased name). A write with a
matching key replaces the stored entry in place. When the registry
grows past its bound, the least recently mentioned entries are evicted.

Usage:
    registry = EntityRegistry()
    registry.upsert(StoreItem(type=EntityType.VENDOR, id=7, name="Spice Route"))
    assert registry.find_id_by_name(EntityType.VENDOR, "spice route") == 7
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from vendor_assistant.config import settings
from vendor_assistant.schemas.memory_schema import EntityType, StoreItem
from vendor_assistant.utils import normalize_name

logger = logging.getLogger(__name__)

_EntityKey = tuple[EntityType, int, str]


class EntityRegistry:
    """Per-conversation entity memory with LRU-by-mention eviction."""

    def __init__(self, max_items: Optional[int] = None) -> None:
        self._max_items = max_items if max_items is not None else settings.memory.max_entities
        self._items: dict[_EntityKey, StoreItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    @property
    def max_items(self) -> int:
        return self._max_items

    def upsert(self, item: StoreItem) -> None:
        """Insert or replace by identity key, then enforce the size bound."""
        self._items[item.identity_key] = item.model_copy()
        if len(self._items) > self._max_items:
            self._evict()

    def _evict(self) -> None:
        ranked = sorted(self._items.values(), key=lambda i: i.last_mentioned, reverse=True)
        kept = ranked[: self._max_items]
        logger.debug(
            "Entity registry over capacity: evicting %d entries", len(ranked) - len(kept)
        )
        self._items = {item.identity_key: item for item in kept}

    def find_id_by_name(self, entity_type: EntityType, name: str) -> Optional[int]:
        """Exact lookup on normalised names. The most recently mentioned entry wins."""
        target = normalize_name(name)
        matches = [
            item
            for item in self._items.values()
            if item.type == entity_type and normalize_name(item.name) == target
        ]
        if not matches:
            return None
        return max(matches, key=lambda i: i.last_mentioned).id

    def items_by_type(self, entity_type: EntityType) -> list[StoreItem]:
        return [item for item in self._items.values() if item.type == entity_type]

    def items_by_vendor(self, vendor_id: int) -> list[StoreItem]:
        return [item for item in self._items.values() if item.vendor_id == vendor_id]

    def get(self, entity_type: EntityType, entity_id: int) -> Optional[StoreItem]:
        """Most recently mentioned entry with this type and id."""
        matches = [
            item
            for item in self._items.values()
            if item.type == entity_type and item.id == entity_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda i: i.last_mentioned)

    def most_recent_vendor(self) -> Optional[StoreItem]:
        vendors = self.items_by_type(EntityType.VENDOR)
        if not vendors:
            return None
        return max(vendors, key=lambda i: i.last_mentioned)

    def remember_vendors(self, vendors: Iterable[dict]) -> int:
        """Register catalog vendor rows by (id, store_name). Returns how many were stored."""
        now = datetime.now(timezone.utc)
        stored = 0
        for row in vendors:
            vendor_id = row.get("id")
            store_name = row.get("store_name")
            if vendor_id is None or not store_name:
                continue
            self.upsert(StoreItem(
                type=EntityType.VENDOR, id=vendor_id, name=store_name, last_mentioned=now,
            ))
            stored += 1
        return stored

    def remember_services(self, vendor_id: int, services: Iterable[dict]) -> int:
        """Register a vendor's service rows and the categories they belong to."""
        now = datetime.now(timezone.utc)
        stored = 0
        for row in services:
            service_id = row.get("id")
            name = row.get("name")
            if service_id is None or not name:
                continue
            category_id = row.get("category_id")
            self.upsert(StoreItem(
                type=EntityType.SERVICE,
                id=service_id,
                name=name,
                vendor_id=vendor_id,
                category_id=category_id,
                last_mentioned=now,
            ))
            stored += 1
            category_name = row.get("category_name")
            if category_id is not None and category_name:
                self.upsert(StoreItem(
                    type=EntityType.CATEGORY,
                    id=category_id,
                    name=category_name,
                    vendor_id=vendor_id,
                    category_id=category_id,
                    last_mentioned=now,
                ))
        return stored

    def clear(self) -> None:
        self._items.clear()
