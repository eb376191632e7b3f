"""
Narration: turning workflow payloads into a spoken line and a markdown body.

In production, a language model writes both versions from the payload,
the conversation history, and the cart. ``FallbackNarrator`` is the
deterministic renderer used when no model is configured or when the
model call fails.
"""

import logging
import re
from typing import Any, Optional, Protocol, Sequence

from vendor_assistant.config import settings
from vendor_assistant.resilience import CollaboratorError, call_collaborator
from vendor_assistant.schemas.flow_schema import NarratedReply, NarrationPayload, PayloadKind
from vendor_assistant.schemas.intent_schema import QueryAnalysis
from vendor_assistant.schemas.memory_schema import CartItem, UserLocation

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = "Data retrieved, but unable to generate response."
NO_RESULTS_VOICE = "I couldn't find any results for your query. Please try again."
NO_RESULTS_MARKDOWN = (
    "## No Results Found\n\n"
    "I couldn't find any results matching your query. "
    "Please try rephrasing or check your location."
)

_MARKDOWN_SYMBOLS = re.compile(r"[*_`#>\[\]-]")


class Narrator(Protocol):
    async def render(
        self,
        query: str,
        payload: NarrationPayload,
        location: Optional[UserLocation],
        history_text: str,
        cart: Sequence[CartItem],
        analysis: Optional[QueryAnalysis],
    ) -> NarratedReply: ...


def clean_voice_text(text: str) -> str:
    """Strip markdown symbols and escaped newlines so text reads well aloud."""
    text = _MARKDOWN_SYMBOLS.sub(" ", text)
    text = text.replace("\\n", " ")
    return re.sub(r"\s+", " ", text).strip()


def _money(amount: float, symbol: str) -> str:
    return f"{symbol}{amount:.2f}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_cart_markdown(cart: Sequence[CartItem], currency: Optional[str] = None) -> str:
    """Numbered cart listing with per-line quantity, price, and a total."""
    if not cart:
        return ""
    symbol = currency or settings.catalog.currency_symbol
    total = sum(item.line_total for item in cart)
    count = sum(item.quantity for item in cart)

    lines = [
        "---",
        "",
        f"🛒 **Your Cart** ({count} {'item' if count == 1 else 'items'}, "
        f"Total: **{_money(total, symbol)}**)",
        "",
    ]
    for index, item in enumerate(cart, start=1):
        lines.append(f"{index}. **{item.service_name}** ({item.vendor_name})")
        lines.append(f"   - Quantity: {item.quantity}")
        lines.append(f"   - Price: {_money(item.price, symbol)} each")
        if item.quantity > 1:
            lines.append(f"   - Subtotal: {_money(item.line_total, symbol)}")
        if item.veg is not None:
            lines.append(f"   - {'🟢 Veg' if item.veg else '🔴 Non-Veg'}")
        lines.append("")
    lines.append(f"**Total: {_money(total, symbol)}**")
    return "\n".join(lines) + "\n"


def _vendor_line(vendor: dict[str, Any]) -> str:
    line = f"- **{vendor.get('store_name') or vendor.get('name') or 'Unknown'}**"
    distance = vendor.get("distance_km")
    if distance is not None:
        line += " (at your location)" if distance < 0.1 else f" (approx. {distance:.1f} km away)"
    rating = vendor.get("vendor_rating")
    if rating is not None:
        line += f" - Rating: {rating} stars"
    return line


def _service_line(service: dict[str, Any], symbol: str) -> str:
    price = service.get("price") or 0.0
    discount = service.get("discount") or 0.0
    line = f"- **{service.get('name') or 'Unknown'}** - {_money(price - discount, symbol)}"
    if discount > 0:
        line += f" (Original: {_money(price, symbol)}, Save: {_money(discount, symbol)})"
    return line


class FallbackNarrator:
    """Template renderer for vendor lists, grouped services, and cart changes."""

    def __init__(self, currency: Optional[str] = None) -> None:
        self.currency = currency or settings.catalog.currency_symbol

    async def render(
        self,
        query: str,
        payload: NarrationPayload,
        location: Optional[UserLocation] = None,
        history_text: str = "",
        cart: Sequence[CartItem] = (),
        analysis: Optional[QueryAnalysis] = None,
    ) -> NarratedReply:
        return self.render_sync(payload, cart)

    def render_sync(self, payload: NarrationPayload, cart: Sequence[CartItem] = ()) -> NarratedReply:
        if payload.kind == PayloadKind.CART:
            voice, markdown = self._render_cart(payload, cart)
        elif not payload.data:
            voice, markdown = payload.message or NO_RESULTS_VOICE, NO_RESULTS_MARKDOWN
        elif payload.kind == PayloadKind.SERVICES:
            voice, markdown = self._render_services(payload)
        else:
            voice, markdown = self._render_vendors(payload)

        if cart and payload.kind != PayloadKind.CART:
            markdown += "\n\n" + format_cart_markdown(cart, self.currency)

        return NarratedReply(
            voice_text=voice or EMPTY_RESPONSE,
            rich_text=markdown or EMPTY_RESPONSE,
        )

    def _render_vendors(self, payload: NarrationPayload) -> tuple[str, str]:
        vendors = payload.data
        voice = f"I found {_plural(len(vendors), 'vendor')} near you."
        lines = ["## Nearby Vendors", ""] + [_vendor_line(v) for v in vendors]
        return voice, "\n".join(lines)

    def _render_services(self, payload: NarrationPayload) -> tuple[str, str]:
        count = sum(len(group.get("services", [])) for group in payload.data)
        where = f" at {payload.vendor_name}" if payload.vendor_name else ""
        if payload.is_pagination:
            voice = f"Here are the next {_plural(count, 'service')}{where}."
        else:
            voice = f"I found {_plural(count, 'service')}{where}."
        voice += " Which one would you like to add to your cart?"

        lines = [f"## Available Services{where}", ""]
        for group in payload.data:
            lines.append(f"### {group.get('category_name') or 'Other'}")
            lines.extend(_service_line(s, self.currency) for s in group.get("services", []))
            lines.append("")
        lines.append("Which service would you like to add to your cart?")
        return voice, "\n".join(lines)

    def _render_cart(self, payload: NarrationPayload, cart: Sequence[CartItem]) -> tuple[str, str]:
        summary = payload.cart_update.summary() if payload.cart_update else ""
        if not cart:
            tail = "Your cart is empty."
            voice = f"{summary} {tail}".strip()
            return voice, f"{summary}\n\n🛒 {tail}".strip()

        count = sum(item.quantity for item in cart)
        tail = f"You have {_plural(count, 'item')} in your cart."
        voice = f"{summary} {tail}".strip()
        markdown = format_cart_markdown(cart, self.currency)
        if summary:
            markdown = f"{summary}\n\n{markdown}"
        return voice, markdown


async def narrate_safely(
    narrator: Narrator,
    fallback: FallbackNarrator,
    query: str,
    payload: NarrationPayload,
    location: Optional[UserLocation],
    history_text: str,
    cart: Sequence[CartItem],
    analysis: Optional[QueryAnalysis],
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> NarratedReply:
    """Render with the narrator; on failure or empty output use the fallback."""
    try:
        reply = await call_collaborator(
            "narrator",
            lambda: narrator.render(query, payload, location, history_text, cart, analysis),
            max_retries=max_retries,
            initial_delay=initial_delay,
        )
    except CollaboratorError as e:
        logger.error("Narrator failed, using fallback rendering: %s", e)
        return fallback.render_sync(payload, cart)

    voice = clean_voice_text(reply.voice_text)
    if not voice or not reply.rich_text:
        logger.warning("Narrator returned an empty reply, using fallback rendering")
        return fallback.render_sync(payload, cart)
    return NarratedReply(voice_text=voice, rich_text=reply.rich_text)
