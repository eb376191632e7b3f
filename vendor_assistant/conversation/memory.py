"""
Per-session conversation memory.

A ``Conversation`` owns everything remembered about one session: the
bounded message history, saved location, pagination cursor, the last
shown services, and its own EntityRegistry and CartStore.

``ConversationMemory`` is the session store. It creates conversations
lazily and hands out one ``asyncio.Lock`` per session so that turns of
the same session run serially while different sessions stay independent.

Usage:
    memory = ConversationMemory()
    async with memory.session("chat-42") as conversation:
        conversation.append_message(Role.USER, "show me pizza places")
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from vendor_assistant.config import settings
from vendor_assistant.conversation.cart_store import CartStore
from vendor_assistant.conversation.entity_registry import EntityRegistry
from vendor_assistant.schemas.memory_schema import (
    ChatMessage,
    EntityType,
    Role,
    ShownService,
    UserLocation,
)
from vendor_assistant.utils import best_match

logger = logging.getLogger(__name__)


class Conversation:
    """State of one session. Not safe for unsynchronized concurrent turns."""

    def __init__(
        self,
        session_id: str,
        max_messages: Optional[int] = None,
        max_entities: Optional[int] = None,
    ) -> None:
        self.session_id = session_id
        self.entities = EntityRegistry(max_items=max_entities)
        self.cart = CartStore()
        self._messages: deque[ChatMessage] = deque(
            maxlen=max_messages if max_messages is not None else settings.memory.max_messages
        )
        self._location: Optional[UserLocation] = None
        self._page_cursor: int = 0
        self._last_shown: list[ShownService] = []

    # ------------------------------------------------------------------ #
    # Message history
    # ------------------------------------------------------------------ #

    def append_message(self, role: Role, content: str) -> None:
        """Append a message; the oldest one is dropped past the bound."""
        self._messages.append(ChatMessage(role=role, content=content))

    def history(self, limit: int = 20) -> list[ChatMessage]:
        """Return the last ``limit`` messages, most recent last."""
        if limit <= 0:
            return []
        return list(self._messages)[-limit:]

    @property
    def message_count(self) -> int:
        return len(self._messages)

    # ------------------------------------------------------------------ #
    # Location, pagination, last shown
    # ------------------------------------------------------------------ #

    @property
    def location(self) -> Optional[UserLocation]:
        return self._location

    def set_location(self, location: UserLocation) -> None:
        self._location = location

    def clear_location(self) -> None:
        self._location = None

    @property
    def page_cursor(self) -> int:
        return self._page_cursor

    def set_page_cursor(self, page: int) -> None:
        if page < 0:
            raise ValueError(f"Page cursor must be >= 0, got {page}")
        self._page_cursor = page

    @property
    def last_shown(self) -> list[ShownService]:
        return list(self._last_shown)

    def set_last_shown(self, services: Iterable[ShownService]) -> None:
        """Replace (never merge) the last shown services."""
        self._last_shown = list(services)

    def last_shown_with_discount(self) -> list[ShownService]:
        return [s for s in self._last_shown if s.has_discount]

    # ------------------------------------------------------------------ #
    # Name resolution
    # ------------------------------------------------------------------ #

    def resolve_name(self, entity_type: EntityType, name: str) -> Optional[int]:
        """Resolve a name to an id: exact registry match, then fuzzy containment.

        The fuzzy tier ranks candidates most recently mentioned first, so
        ties between equally close names go to the newer entity.
        """
        exact = self.entities.find_id_by_name(entity_type, name)
        if exact is not None:
            return exact
        candidates = sorted(
            self.entities.items_by_type(entity_type),
            key=lambda i: i.last_mentioned,
            reverse=True,
        )
        match = best_match(name, candidates, lambda i: i.name)
        return match.id if match is not None else None


class ConversationMemory:
    """Session store: session id -> Conversation, with per-session locks."""

    def __init__(
        self,
        max_messages: Optional[int] = None,
        max_entities: Optional[int] = None,
    ) -> None:
        self._max_messages = max_messages
        self._max_entities = max_entities
        self._conversations: dict[str, Conversation] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._conversations

    def ensure(self, session_id: str) -> Conversation:
        """Return the session's conversation, creating it on first reference."""
        conversation = self._conversations.get(session_id)
        if conversation is None:
            conversation = Conversation(
                session_id,
                max_messages=self._max_messages,
                max_entities=self._max_entities,
            )
            self._conversations[session_id] = conversation
            logger.debug("Conversation created: %s", session_id)
        return conversation

    def get(self, session_id: str) -> Optional[Conversation]:
        return self._conversations.get(session_id)

    async def clear(self, session_id: str) -> bool:
        """Forget a session once any running turn finishes. Returns whether it existed.

        The session lock is kept, so turns queued behind the clear and turns
        that arrive later still serialise on the same lock.
        """
        async with self.lock_for(session_id):
            removed = self._conversations.pop(session_id, None) is not None
        if removed:
            logger.info("Conversation cleared: %s", session_id)
        return removed

    def session_ids(self) -> list[str]:
        return list(self._conversations.keys())

    def lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[Conversation]:
        """Hold the session's lock for one turn and yield its conversation."""
        async with self.lock_for(session_id):
            yield self.ensure(session_id)
