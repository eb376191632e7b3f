"""
Workflow handler contract and the per-turn context passed to handlers.

A handler declares whether it can take a turn (``can_handle``) and
produces either a finished ``FlowOutput`` or a ``NarrationPayload`` that
still has to be rendered for the user.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from vendor_assistant.conversation.memory import Conversation
from vendor_assistant.schemas.flow_schema import WorkflowOutput
from vendor_assistant.schemas.intent_schema import CartIntent, ExploreIntent, Intent, QueryAnalysis
from vendor_assistant.schemas.memory_schema import UserLocation


@dataclass
class WorkflowContext:
    """Everything a handler needs for one turn."""

    query: str
    analysis: QueryAnalysis
    intent: Intent
    conversation: Conversation
    session_id: Optional[str] = None
    location: Optional[UserLocation] = None
    history_text: str = ""

    @property
    def is_cart(self) -> bool:
        return isinstance(self.intent, CartIntent)

    @property
    def is_explore(self) -> bool:
        return isinstance(self.intent, ExploreIntent)


class WorkflowHandler(ABC):
    """Base class for routable workflows."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def can_handle(self, context: WorkflowContext) -> bool:
        ...

    @abstractmethod
    async def execute(self, context: WorkflowContext) -> WorkflowOutput:
        ...
