"""Tests for cart operations: view, clear, add tiers, remove, update."""

import pytest

from vendor_assistant.schemas.flow_schema import FlowOutput, NarrationPayload, PayloadKind
from vendor_assistant.schemas.memory_schema import EntityType, StoreItem
from vendor_assistant.workflows.cart_workflow import (
    CART_CLEARED,
    CartWorkflow,
    is_discount_request,
    is_generic_add_request,
)
from tests.conftest import make_context, make_shown


def _cart_context(conversation, query="add to cart", **fields):
    fields.setdefault("is_cart_operation", True)
    return make_context(conversation, query=query, **fields)


class TestPredicates:
    def test_discount_keywords(self):
        assert is_discount_request("Add the DISCOUNTED one")
        assert not is_discount_request("add paneer tikka")

    def test_generic_patterns(self):
        assert is_generic_add_request("please add this")
        assert is_generic_add_request("Put in cart")
        assert not is_generic_add_request("add paneer tikka")

    def test_can_handle_requires_session(self, conversation):
        workflow = CartWorkflow()
        assert workflow.can_handle(_cart_context(conversation, cart_action="view"))
        assert not workflow.can_handle(
            _cart_context(conversation, cart_action="view", session_id=None)
        )

    def test_can_handle_rejects_browse(self, conversation):
        assert not CartWorkflow().can_handle(make_context(conversation))


class TestViewAndClear:
    @pytest.mark.asyncio
    async def test_view_returns_snapshot_payload(self, conversation):
        conversation.cart.add(make_shown("Paneer Tikka", 5).to_cart_item())
        result = await CartWorkflow().execute(_cart_context(conversation, cart_action="view"))
        assert isinstance(result, NarrationPayload)
        assert result.kind == PayloadKind.CART
        assert result.data[0]["service_name"] == "Paneer Tikka"
        assert result.cart_update is None
        assert len(conversation.cart) == 1

    @pytest.mark.asyncio
    async def test_clear_is_finished_reply(self, conversation):
        conversation.cart.add(make_shown("Paneer Tikka", 5).to_cart_item())
        result = await CartWorkflow().execute(_cart_context(conversation, cart_action="clear"))
        assert isinstance(result, FlowOutput)
        assert result.voice_text == CART_CLEARED
        assert len(conversation.cart) == 0

    @pytest.mark.asyncio
    async def test_unknown_action(self, conversation):
        result = await CartWorkflow().execute(_cart_context(conversation, cart_action=None))
        assert isinstance(result, FlowOutput)
        assert "not sure" in result.voice_text


class TestAddByName:
    @pytest.mark.asyncio
    async def test_add_from_last_shown(self, conversation):
        conversation.set_last_shown([make_shown("Paneer Tikka", 5, vendor_id=2, price=220)])
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="add paneer tikka",
            cart_action="add", service_names=["Paneer Tikka"],
        ))
        lines = conversation.cart.snapshot()
        assert len(lines) == 1
        assert (lines[0].service_id, lines[0].vendor_id) == (5, 2)
        assert lines[0].quantity == 1
        assert lines[0].price == 220
        assert result.cart_update.added == ["Paneer Tikka"]

    @pytest.mark.asyncio
    async def test_adding_twice_merges(self, conversation):
        conversation.set_last_shown([make_shown("Paneer Tikka", 5, vendor_id=2, price=220)])
        workflow = CartWorkflow()
        for _ in range(2):
            await workflow.execute(_cart_context(
                conversation, query="add paneer tikka",
                cart_action="add", service_names=["Paneer Tikka"],
            ))
        lines = conversation.cart.snapshot()
        assert len(lines) == 1
        assert lines[0].quantity == 2

    @pytest.mark.asyncio
    async def test_positional_quantities(self, conversation):
        conversation.set_last_shown([
            make_shown("Butter Naan", 1), make_shown("Dal Makhani", 2),
        ])
        await CartWorkflow().execute(_cart_context(
            conversation, query="add naan and dal",
            cart_action="add", service_names=["butter naan", "dal makhani"], quantities=[3],
        ))
        quantities = {i.service_name: i.quantity for i in conversation.cart.snapshot()}
        assert quantities == {"Butter Naan": 3, "Dal Makhani": 1}

    @pytest.mark.asyncio
    async def test_partial_success_reports_not_found(self, conversation):
        conversation.set_last_shown([make_shown("Paneer Tikka", 5)])
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="add paneer tikka and tiramisu",
            cart_action="add", service_names=["Paneer Tikka", "Tiramisu"],
        ))
        assert result.cart_update.added == ["Paneer Tikka"]
        assert result.cart_update.not_found == ["Tiramisu"]
        assert "Could not find: Tiramisu." in result.message

    @pytest.mark.asyncio
    async def test_registry_fallback_defaults_price_to_zero(self, conversation):
        conversation.entities.upsert(StoreItem(type=EntityType.VENDOR, id=9, name="Green Bowl"))
        conversation.entities.upsert(
            StoreItem(type=EntityType.SERVICE, id=70, name="Quinoa Bowl", vendor_id=9)
        )
        await CartWorkflow().execute(_cart_context(
            conversation, query="add quinoa bowl",
            cart_action="add", service_names=["quinoa"],
        ))
        line = conversation.cart.snapshot()[0]
        assert line.price == 0
        assert line.vendor_name == "Green Bowl"
        assert line.service_id == 70

    @pytest.mark.asyncio
    async def test_registry_fallback_unknown_vendor(self, conversation):
        conversation.entities.upsert(
            StoreItem(type=EntityType.SERVICE, id=70, name="Quinoa Bowl", vendor_id=9)
        )
        await CartWorkflow().execute(_cart_context(
            conversation, query="add quinoa bowl",
            cart_action="add", service_names=["Quinoa Bowl"],
        ))
        assert conversation.cart.snapshot()[0].vendor_name == "Unknown Vendor"

    @pytest.mark.asyncio
    async def test_nothing_named_and_nothing_shown_prompts(self, conversation):
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="add this", cart_action="add",
        ))
        assert isinstance(result, FlowOutput)
        assert "specify which services" in result.voice_text


class TestAddTiers:
    @pytest.mark.asyncio
    async def test_discount_request_picks_first_discounted(self, conversation):
        conversation.set_last_shown([
            make_shown("Plain", 1),
            make_shown("Deal One", 2, discount=10),
            make_shown("Deal Two", 3, discount=30),
        ])
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="add the discounted item", cart_action="add",
        ))
        assert [i.service_name for i in conversation.cart.snapshot()] == ["Deal One"]
        assert result.cart_update.added == ["Deal One"]

    @pytest.mark.asyncio
    async def test_discount_request_without_discounts_falls_through(self, conversation):
        conversation.set_last_shown([make_shown("Plain", 1)])
        await CartWorkflow().execute(_cart_context(
            conversation, query="add discounted plain", cart_action="add", service_names=["plain"],
        ))
        assert [i.service_name for i in conversation.cart.snapshot()] == ["Plain"]

    @pytest.mark.asyncio
    async def test_generic_add_uses_first_shown(self, conversation):
        conversation.set_last_shown([make_shown("First", 1), make_shown("Second", 2)])
        await CartWorkflow().execute(_cart_context(
            conversation, query="add this", cart_action="add", quantities=[2],
        ))
        lines = conversation.cart.snapshot()
        assert [(i.service_name, i.quantity) for i in lines] == [("First", 2)]

    @pytest.mark.asyncio
    async def test_generic_phrase_with_named_service_uses_name(self, conversation):
        conversation.set_last_shown([make_shown("First", 1), make_shown("Second", 2)])
        await CartWorkflow().execute(_cart_context(
            conversation, query="add second to cart", cart_action="add", service_names=["second"],
        ))
        assert [i.service_name for i in conversation.cart.snapshot()] == ["Second"]


class TestRemoveAndUpdate:
    def _fill(self, conversation):
        for shown in (make_shown("Butter Naan", 1), make_shown("Garlic Naan", 2)):
            conversation.cart.add(shown.to_cart_item(quantity=2))

    @pytest.mark.asyncio
    async def test_remove_reports_removed_and_missing(self, conversation):
        self._fill(conversation)
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="remove garlic naan and tiramisu",
            cart_action="remove", service_names=["garlic naan", "tiramisu"],
        ))
        assert [i.service_name for i in conversation.cart.snapshot()] == ["Butter Naan"]
        assert result.cart_update.removed == ["Garlic Naan"]
        assert result.cart_update.not_found == ["tiramisu"]
        assert "Could not find in cart: tiramisu." in result.message

    @pytest.mark.asyncio
    async def test_remove_without_names_prompts(self, conversation):
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="remove", cart_action="remove",
        ))
        assert isinstance(result, FlowOutput)

    @pytest.mark.asyncio
    async def test_update_sets_quantity(self, conversation):
        self._fill(conversation)
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="make it 5 butter naan",
            cart_action="update", service_names=["butter naan"], quantities=[5],
        ))
        quantities = {i.service_name: i.quantity for i in conversation.cart.snapshot()}
        assert quantities == {"Butter Naan": 5, "Garlic Naan": 2}
        assert result.cart_update.updated == ["Butter Naan (quantity: 5)"]

    @pytest.mark.asyncio
    async def test_update_zero_removes(self, conversation):
        self._fill(conversation)
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="no garlic naan",
            cart_action="update", service_names=["garlic naan"], quantities=[0],
        ))
        assert [i.service_name for i in conversation.cart.snapshot()] == ["Butter Naan"]
        assert result.cart_update.updated == ["Garlic Naan (removed)"]

    @pytest.mark.asyncio
    async def test_update_without_quantity_keeps_existing(self, conversation):
        self._fill(conversation)
        await CartWorkflow().execute(_cart_context(
            conversation, query="update butter naan",
            cart_action="update", service_names=["butter naan"],
        ))
        assert conversation.cart.snapshot()[0].quantity == 2

    @pytest.mark.asyncio
    async def test_update_missing_item(self, conversation):
        self._fill(conversation)
        result = await CartWorkflow().execute(_cart_context(
            conversation, query="update pizza",
            cart_action="update", service_names=["pizza"], quantities=[3],
        ))
        assert result.cart_update.not_found == ["pizza"]
        assert conversation.cart.item_count() == 4
