from vendor_assistant.conversation.cart_store import CartStore
from vendor_assistant.conversation.entity_registry import EntityRegistry
from vendor_assistant.conversation.memory import Conversation, ConversationMemory

__all__ = [
    "ConversationMemory",
    "Conversation",
    "EntityRegistry",
    "CartStore",
]
