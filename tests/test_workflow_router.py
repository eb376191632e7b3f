"""Tests for ordered workflow dispatch."""

import pytest

from vendor_assistant.schemas.flow_schema import FlowOutput, NarrationPayload, PayloadKind
from vendor_assistant.schemas.intent_schema import CartIntent, ExploreIntent
from vendor_assistant.workflows import (
    CartWorkflow,
    ExplorationWorkflow,
    RouterConfigurationError,
    WorkflowHandler,
    WorkflowRouter,
)
from tests.conftest import RecordingCatalog, make_context


class _Never(WorkflowHandler):
    def can_handle(self, context):
        return False

    async def execute(self, context):
        raise AssertionError("should not execute")


class _Always(WorkflowHandler):
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.executed = 0

    def can_handle(self, context):
        return True

    async def execute(self, context):
        self.executed += 1
        return FlowOutput(voice_text=self.reply)


class TestConstruction:
    def test_default_order(self):
        router = WorkflowRouter.default(RecordingCatalog())
        assert [h.name for h in router.handlers] == ["CartWorkflow", "ExplorationWorkflow"]

    def test_cart_after_exploration_rejected(self):
        with pytest.raises(RouterConfigurationError):
            WorkflowRouter([ExplorationWorkflow(RecordingCatalog()), CartWorkflow()])


class TestDispatch:
    @pytest.mark.asyncio
    async def test_first_match_wins(self, conversation):
        first, second = _Always("first"), _Always("second")
        router = WorkflowRouter([_Never(), first, second])
        result = await router.route(make_context(conversation))
        assert result.voice_text == "first"
        assert first.executed == 1
        assert second.executed == 0

    @pytest.mark.asyncio
    async def test_unhandled_returns_none(self, conversation):
        router = WorkflowRouter([_Never()])
        assert await router.route(make_context(conversation)) is None

    @pytest.mark.asyncio
    async def test_cart_intent_goes_to_cart_workflow(self, conversation):
        catalog = RecordingCatalog(vendors=[{"id": 1, "store_name": "A"}])
        router = WorkflowRouter.default(catalog)
        context = make_context(
            conversation, query="show my cart", is_cart_operation=True, cart_action="view",
        )
        assert isinstance(context.intent, CartIntent)

        result = await router.route(context)

        assert isinstance(result, NarrationPayload)
        assert result.kind == PayloadKind.CART
        assert catalog.vendor_calls == []

    @pytest.mark.asyncio
    async def test_browse_intent_goes_to_exploration(self, conversation):
        catalog = RecordingCatalog(vendors=[{"id": 1, "store_name": "A"}])
        router = WorkflowRouter.default(catalog)
        context = make_context(conversation)
        assert isinstance(context.intent, ExploreIntent)

        result = await router.route(context)

        assert result.kind == PayloadKind.VENDORS
        assert len(catalog.vendor_calls) == 1

    @pytest.mark.asyncio
    async def test_cart_intent_without_session_is_unhandled(self, conversation):
        router = WorkflowRouter.default(RecordingCatalog())
        context = make_context(
            conversation, session_id=None, is_cart_operation=True, cart_action="view",
        )
        assert await router.route(context) is None
