"""Shared test fixtures and helpers."""

from typing import Any, Optional, Union

import pytest

from vendor_assistant.config import AppConfig, RetryConfig
from vendor_assistant.conversation.memory import Conversation, ConversationMemory
from vendor_assistant.resilience import TransientCollaboratorError
from vendor_assistant.schemas.intent_schema import QueryAnalysis
from vendor_assistant.schemas.memory_schema import ShownService, UserLocation
from vendor_assistant.tools.catalog import ServiceFilter
from vendor_assistant.workflows.base import WorkflowContext

KANPUR = UserLocation(latitude=26.4499, longitude=80.3319, name="Kanpur")

FAST_CONFIG = AppConfig(retry=RetryConfig(max_retries=1, initial_delay_sec=0.0))


@pytest.fixture
def conversation():
    return Conversation("test-session", max_messages=100, max_entities=500)


@pytest.fixture
def memory():
    return ConversationMemory(max_messages=100, max_entities=500)


@pytest.fixture
def kanpur():
    return KANPUR


def make_shown(
    name: str,
    service_id: int,
    vendor_id: int = 2,
    price: float = 100.0,
    discount: Optional[float] = None,
    vendor_name: str = "Spice Route",
    veg: Optional[bool] = None,
) -> ShownService:
    """Helper to create a ShownService snapshot."""
    return ShownService(
        service_id=service_id,
        service_name=name,
        vendor_id=vendor_id,
        vendor_name=vendor_name,
        price=price,
        discount=discount,
        veg=veg,
    )


def make_analysis(**kwargs: Any) -> QueryAnalysis:
    """Helper to create a QueryAnalysis with browse defaults."""
    kwargs.setdefault("corrected_query", "show me vendors")
    kwargs.setdefault("needs_location", False)
    return QueryAnalysis(**kwargs)


def make_context(
    conversation: Conversation,
    query: str = "show me vendors",
    session_id: Optional[str] = "test-session",
    location: Optional[UserLocation] = KANPUR,
    **analysis_fields: Any,
) -> WorkflowContext:
    """Build a WorkflowContext whose intent is derived from the analysis."""
    analysis = make_analysis(corrected_query=query, **analysis_fields)
    return WorkflowContext(
        query=query,
        analysis=analysis,
        intent=analysis.to_intent(),
        conversation=conversation,
        session_id=session_id,
        location=location,
    )


class RecordingCatalog:
    """Catalog double that records calls and can be told to fail."""

    def __init__(
        self,
        vendors: Optional[list[dict]] = None,
        services: Optional[dict[int, list[dict]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.vendors = vendors or []
        self.services = services or {}
        self.error = error
        self.vendor_calls: list[tuple] = []
        self.service_calls: list[dict] = []

    async def nearby_vendors(self, latitude, longitude, vendor_type, limit):
        self.vendor_calls.append((latitude, longitude, vendor_type, limit))
        if self.error:
            raise self.error
        return [dict(v) for v in self.vendors[:limit]]

    async def vendor_services(self, vendor_id, limit, page=1, service_filter=ServiceFilter.ALL):
        self.service_calls.append(
            {"vendor_id": vendor_id, "limit": limit, "page": page, "filter": service_filter}
        )
        if self.error:
            raise self.error
        offset = (page - 1) * limit
        return [dict(s) for s in self.services.get(vendor_id, [])[offset:offset + limit]]


class ScriptedClassifier:
    """Classifier double returning queued outputs; exceptions in the queue are raised."""

    def __init__(self, *outputs: Union[QueryAnalysis, dict, str, Exception]) -> None:
        self.outputs = list(outputs)
        self.calls: list[tuple[str, str]] = []

    async def classify(self, query: str, history_text: str):
        self.calls.append((query, history_text))
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(output, Exception):
            raise output
        return output


class FailingNarrator:
    """Narrator that is always overloaded."""

    def __init__(self) -> None:
        self.calls = 0

    async def render(self, query, payload, location, history_text, cart, analysis):
        self.calls += 1
        raise TransientCollaboratorError("model overloaded", status=503)


def service_rows(count: int, start_id: int = 1, category_id: int = 1) -> list[dict]:
    """Generate simple priced catalog service rows."""
    return [
        {
            "id": start_id + i,
            "name": f"Dish {start_id + i}",
            "price": 100.0 + i,
            "category_id": category_id,
            "category_name": "Mains",
        }
        for i in range(count)
    ]
