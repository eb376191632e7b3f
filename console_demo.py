"""
Offline console demo: runs a full ordering conversation without any API keys.

The assistant runs with its real memory, cart, router, and workflows
against the in-memory catalog and static geocoder. A small keyword
classifier stands in for the language model. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario browse
    python console_demo.py --scenario cart
"""

import argparse
import asyncio
import re
from typing import Any, Optional

from vendor_assistant.assistant import OrderingAssistant
from vendor_assistant.config import settings
from vendor_assistant.schemas.flow_schema import FlowInput
from vendor_assistant.tools.catalog import InMemoryCatalog
from vendor_assistant.tools.geocoder import KNOWN_PLACES, StaticGeocoder
from vendor_assistant.tools.narrator import FallbackNarrator

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

GENERIC_NAMES = {"this", "that", "it", "them", "these", "the discounted one", "item", "service"}

_ADD = re.compile(r"^(?:add|put)\s+(?:(\d+)\s+)?(.+?)(?:\s+(?:to|in)\s+(?:my\s+)?cart)?$")
_REMOVE = re.compile(r"^(?:remove|delete)\s+(.+?)(?:\s+from\s+(?:my\s+)?cart)?$")
_UPDATE = re.compile(r"^(?:update|change|set)\s+(.+?)\s+to\s+(\d+)$")
_VENDOR = re.compile(r"(?:menu|services|items)\s+(?:of|at|from)\s+(.+)$")


class KeywordClassifier:
    """Rule-based stand-in for the model classifier. Returns camelCase output."""

    async def classify(self, query: str, history_text: str) -> dict[str, Any]:
        text = query.strip().rstrip("?.!").lower()
        analysis: dict[str, Any] = {
            "correctedQuery": query,
            "needsLocation": True,
            "locationName": self._place(text),
            "queryType": "vendor search",
        }
        cart = self._cart(text)
        if cart is not None:
            analysis.update(cart)
            analysis["needsLocation"] = False
            analysis["queryType"] = "cart operation"
            return analysis

        vendor = _VENDOR.search(text)
        analysis.update({
            "vendorName": vendor.group(1).strip() if vendor else None,
            "wantsServices": any(w in text for w in ("menu", "services", "items")),
            "isPaginationRequest": "more" in text or "next" in text,
        })
        return analysis

    @staticmethod
    def _place(text: str) -> Optional[str]:
        for place in KNOWN_PLACES:
            if place in text:
                return place.title()
        return None

    @staticmethod
    def _cart(text: str) -> Optional[dict[str, Any]]:
        if "cart" in text and any(w in text for w in ("view", "show", "what")):
            return {"isCartOperation": True, "cartAction": "view"}
        if text.startswith(("clear", "empty")):
            return {"isCartOperation": True, "cartAction": "clear"}

        match = _UPDATE.match(text)
        if match:
            return {
                "isCartOperation": True, "cartAction": "update",
                "serviceNames": [match.group(1)], "quantities": [int(match.group(2))],
            }
        match = _REMOVE.match(text)
        if match:
            return {"isCartOperation": True, "cartAction": "remove", "serviceNames": [match.group(1)]}
        match = _ADD.match(text)
        if match:
            name = match.group(2)
            generic = name in GENERIC_NAMES or "discount" in name
            return {
                "isCartOperation": True, "cartAction": "add",
                "serviceNames": [] if generic else [name],
                "quantities": [int(match.group(1))] if match.group(1) else [],
            }
        return None


class ConsoleSession:
    """Drives the assistant from the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "browse": [
            "Show me places to eat",
            "I'm in Kanpur",
            "Show me the menu of spice route",
            "Show more services",
            "Add the discounted one to my cart",
            "View my cart",
        ],
        "cart": [
            "Food places in Kanpur",
            "Show me the menu at pizza planet",
            "Add 2 margherita pizza",
            "Add garlic bread",
            "Add margherita",
            "Update margherita pizza to 1",
            "Remove garlic bread",
            "Remove tiramisu",
            "View my cart",
            "Clear my cart",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, session_id: str = "console") -> None:
        self.session_id = session_id
        self.assistant = OrderingAssistant(
            classifier=KeywordClassifier(),
            catalog=InMemoryCatalog(),
            geocoder=StaticGeocoder(),
            narrator=FallbackNarrator(),
        )

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Assistant]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.assistant_name.upper()} - {title}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def say(self, text: str) -> None:
        reply = await self.assistant.handle_turn(
            FlowInput(query=text, session_id=self.session_id)
        )
        if reply.error and not reply.voice_text:
            print(f"{RED}{reply.error}{RESET}")
            return
        self.agent_say(reply.voice_text or "")
        if reply.rich_text:
            for line in reply.rich_text.splitlines():
                self.system_log(line)
        if reply.error_kind:
            self.system_log(f"error_kind: {reply.error_kind.value}")

    def _state_summary(self) -> str:
        conversation = self.assistant.memory.get(self.session_id)
        if conversation is None:
            return "no conversation"
        location = conversation.location.name if conversation.location else "none"
        return (
            f"location={location} page={conversation.page_cursor} "
            f"entities={len(conversation.entities)} cart_lines={len(conversation.cart)} "
            f"messages={conversation.message_count}"
        )

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self.banner(f"Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[User] {RESET}{step}")
            await self.say(step)
            self.system_log(self._state_summary())

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self.banner("Console Demo")
        print(f"{BOLD}  Type 'quit' to exit{RESET}")
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[User] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            await self.say(user_input)
            self.system_log(self._state_summary())


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
