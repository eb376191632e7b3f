"""
Cart workflow: view, clear, add, remove, and update cart lines.

Adds resolve service names in three tiers:
    1. "discount" in the query -> first recently shown service with a discount
    2. a generic "add this / add it" with no names -> first recently shown service
    3. each named service -> recently shown services, then the entity registry

Names that cannot be resolved are reported back in ``CartUpdate.not_found``;
they never fail the turn.
"""

from typing import Optional

from vendor_assistant.conversation.memory import Conversation
from vendor_assistant.logging_context import get_session_logger
from vendor_assistant.schemas.flow_schema import (
    CartUpdate,
    FlowOutput,
    NarrationPayload,
    PayloadKind,
    WorkflowOutput,
)
from vendor_assistant.schemas.intent_schema import CartAction, CartIntent
from vendor_assistant.schemas.memory_schema import CartItem, EntityType
from vendor_assistant.utils import best_match
from vendor_assistant.workflows.base import WorkflowContext, WorkflowHandler

logger = get_session_logger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"

DISCOUNT_KEYWORDS = ("discount", "discounted")
GENERIC_ADD_PATTERNS = (
    "add this",
    "add that",
    "add it",
    "add them",
    "add these",
    "add to cart",
    "put in cart",
    "add item",
    "add service",
)

CART_CLEARED = "Your cart has been cleared."
ADD_PROMPT = (
    "I couldn't find the services you want to add. "
    "Please specify which services you'd like to add to your cart."
)
REMOVE_PROMPT = "Please specify which items you'd like to remove from your cart."
UPDATE_PROMPT = "Please specify which items you'd like to update in your cart."
UNKNOWN_ACTION = "I'm not sure what you'd like to do with your cart."


def is_discount_request(query: str) -> bool:
    lowered = query.lower()
    return any(keyword in lowered for keyword in DISCOUNT_KEYWORDS)


def is_generic_add_request(query: str) -> bool:
    lowered = query.lower().strip()
    return any(pattern in lowered for pattern in GENERIC_ADD_PATTERNS)


def _prompt(text: str) -> FlowOutput:
    return FlowOutput(voice_text=text, rich_text=f"❓ {text}")


class CartWorkflow(WorkflowHandler):
    """Handles every cart intent for a known session."""

    def can_handle(self, context: WorkflowContext) -> bool:
        return context.is_cart and bool(context.session_id)

    async def execute(self, context: WorkflowContext) -> WorkflowOutput:
        intent: CartIntent = context.intent  # type: ignore[assignment]
        logger.info(
            "Cart workflow: action=%s services=%s",
            intent.action.value if intent.action else None, list(intent.service_names),
        )

        if intent.action == CartAction.VIEW:
            return self._view(context.conversation)
        if intent.action == CartAction.CLEAR:
            return self._clear(context.conversation)
        if intent.action == CartAction.ADD:
            return self._add(context, intent)
        if intent.action == CartAction.REMOVE:
            return self._remove(context.conversation, intent)
        if intent.action == CartAction.UPDATE:
            return self._update(context.conversation, intent)
        return _prompt(UNKNOWN_ACTION)

    # ------------------------------------------------------------------ #
    # View / clear
    # ------------------------------------------------------------------ #

    def _view(self, conversation: Conversation) -> NarrationPayload:
        logger.info("Viewing cart: %d lines", len(conversation.cart))
        return self._payload(conversation, update=None)

    def _clear(self, conversation: Conversation) -> FlowOutput:
        conversation.cart.clear()
        logger.info("Cart cleared")
        return FlowOutput(voice_text=CART_CLEARED, rich_text=f"🛒 {CART_CLEARED}")

    # ------------------------------------------------------------------ #
    # Add
    # ------------------------------------------------------------------ #

    def _add(self, context: WorkflowContext, intent: CartIntent) -> WorkflowOutput:
        conversation = context.conversation
        first_quantity = intent.quantity_at(0) or 1

        if is_discount_request(context.query):
            discounted = conversation.last_shown_with_discount()
            if discounted:
                service = discounted[0]
                conversation.cart.add(service.to_cart_item(quantity=first_quantity))
                logger.info("Added discounted service %s", service.service_name)
                return self._payload(
                    conversation, CartUpdate(action="add", added=[service.service_name])
                )

        if is_generic_add_request(context.query) and not intent.service_names:
            shown = conversation.last_shown
            if shown:
                service = shown[0]
                conversation.cart.add(service.to_cart_item(quantity=first_quantity))
                logger.info("Generic add resolved to last shown %s", service.service_name)
                return self._payload(
                    conversation, CartUpdate(action="add", added=[service.service_name])
                )

        if not intent.service_names:
            return _prompt(ADD_PROMPT)

        update = CartUpdate(action="add")
        for index, requested in enumerate(intent.service_names):
            if not requested:
                continue
            quantity = intent.quantity_at(index) or 1
            item = self._resolve_for_add(conversation, requested, quantity)
            if item is None:
                update.not_found.append(requested)
                logger.warning("Service not found in memory: %s", requested)
                continue
            conversation.cart.add(item)
            update.added.append(item.service_name)

        return self._payload(conversation, update)

    def _resolve_for_add(
        self, conversation: Conversation, requested: str, quantity: int
    ) -> Optional[CartItem]:
        shown = best_match(requested, conversation.last_shown, lambda s: s.service_name)
        if shown is not None:
            return shown.to_cart_item(quantity=quantity)

        registry = conversation.entities
        candidates = sorted(
            (s for s in registry.items_by_type(EntityType.SERVICE) if s.vendor_id is not None),
            key=lambda s: s.last_mentioned,
            reverse=True,
        )
        entry = best_match(requested, candidates, lambda s: s.name)
        if entry is None:
            return None

        vendor = registry.get(EntityType.VENDOR, entry.vendor_id)
        logger.warning(
            "Service %s resolved from registry without price; defaulting to 0", entry.name
        )
        return CartItem(
            service_id=entry.id,
            vendor_id=entry.vendor_id,
            service_name=entry.name,
            vendor_name=vendor.name if vendor is not None else UNKNOWN_VENDOR,
            price=0.0,
            quantity=quantity,
            category_id=entry.category_id,
        )

    # ------------------------------------------------------------------ #
    # Remove / update
    # ------------------------------------------------------------------ #

    def _remove(self, conversation: Conversation, intent: CartIntent) -> WorkflowOutput:
        if not intent.service_names:
            return _prompt(REMOVE_PROMPT)

        update = CartUpdate(action="remove")
        for requested in intent.service_names:
            line = conversation.cart.find_by_name(requested)
            if line is None:
                update.not_found.append(requested)
                logger.warning("Service not found in cart: %s", requested)
                continue
            conversation.cart.remove(line.service_id, line.vendor_id)
            update.removed.append(line.service_name)

        return self._payload(conversation, update)

    def _update(self, conversation: Conversation, intent: CartIntent) -> WorkflowOutput:
        if not intent.service_names:
            return _prompt(UPDATE_PROMPT)

        update = CartUpdate(action="update")
        for index, requested in enumerate(intent.service_names):
            line = conversation.cart.find_by_name(requested)
            if line is None:
                update.not_found.append(requested)
                logger.warning("Service not found in cart for update: %s", requested)
                continue

            quantity = intent.quantity_at(index)
            if quantity is None:
                quantity = line.quantity
            conversation.cart.update_quantity(line.service_id, line.vendor_id, quantity)
            if quantity <= 0:
                update.updated.append(f"{line.service_name} (removed)")
            else:
                update.updated.append(f"{line.service_name} (quantity: {quantity})")

        return self._payload(conversation, update)

    # ------------------------------------------------------------------ #

    def _payload(
        self, conversation: Conversation, update: Optional[CartUpdate]
    ) -> NarrationPayload:
        return NarrationPayload(
            kind=PayloadKind.CART,
            data=[item.model_dump(mode="json") for item in conversation.cart.snapshot()],
            message=update.summary() if update else "Cart items",
            cart_update=update,
        )
