"""Conversation memory data models: messages, entities, cart lines, shown services."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class EntityType(str, Enum):
    VENDOR = "vendor"
    SERVICE = "service"
    CATEGORY = "category"


class ChatMessage(BaseModel):
    """A single message in a conversation."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class UserLocation(BaseModel):
    """Resolved location with coordinates."""

    latitude: float
    longitude: float
    name: str


class StoreItem(BaseModel):
    """An entity mentioned during a conversation."""

    type: EntityType
    id: int
    name: str
    vendor_id: Optional[int] = None
    category_id: Optional[int] = None
    last_mentioned: datetime = Field(default_factory=_utcnow)

    @property
    def identity_key(self) -> tuple[EntityType, int, str]:
        return (self.type, self.id, self.name.lower())


class CartItem(BaseModel):
    """One cart line, unique per (service_id, vendor_id)."""

    service_id: int
    vendor_id: int
    service_name: str
    vendor_name: str
    price: float = 0.0
    quantity: int = 1
    added_at: datetime = Field(default_factory=_utcnow)
    discount: Optional[float] = None
    discount_type: Optional[str] = None
    veg: Optional[bool] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None

    @property
    def identity_key(self) -> tuple[int, int]:
        return (self.service_id, self.vendor_id)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class ShownService(BaseModel):
    """Snapshot of a service presented to the user."""

    service_id: int
    service_name: str
    vendor_id: int
    vendor_name: str
    price: float = 0.0
    discount: Optional[float] = None
    discount_type: Optional[str] = None
    veg: Optional[bool] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    shown_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_discount(self) -> bool:
        return self.discount is not None and self.discount > 0

    def to_cart_item(self, quantity: int = 1) -> CartItem:
        """Build a cart line carrying this snapshot's full pricing details."""
        return CartItem(
            service_id=self.service_id,
            vendor_id=self.vendor_id,
            service_name=self.service_name,
            vendor_name=self.vendor_name,
            price=self.price,
            quantity=quantity,
            discount=self.discount,
            discount_type=self.discount_type,
            veg=self.veg,
            category_id=self.category_id,
            category_name=self.category_name,
        )
