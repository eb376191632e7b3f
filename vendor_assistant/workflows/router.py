"""
Ordered dispatch of a classified turn to the first workflow that accepts it.

Cart handling must be registered ahead of exploration: exploration
accepts every non-cart turn, and a cart turn must never be reinterpreted
as a browse request.

Usage:
    router = WorkflowRouter.default(catalog)
    result = await router.route(context)   # None when nothing matched
"""

import logging
from typing import Iterable, Optional

from vendor_assistant.schemas.flow_schema import WorkflowOutput
from vendor_assistant.tools.catalog import Catalog
from vendor_assistant.workflows.base import WorkflowContext, WorkflowHandler
from vendor_assistant.workflows.cart_workflow import CartWorkflow
from vendor_assistant.workflows.exploration_workflow import ExplorationWorkflow

logger = logging.getLogger(__name__)


class RouterConfigurationError(Exception):
    """Handlers were registered in an order that breaks dispatch precedence."""


class WorkflowRouter:
    """Fixed, ordered handler list. First match wins; no fallthrough."""

    def __init__(self, handlers: Iterable[WorkflowHandler]) -> None:
        self._handlers: tuple[WorkflowHandler, ...] = tuple(handlers)
        self._check_order()

    @classmethod
    def default(cls, catalog: Catalog) -> "WorkflowRouter":
        return cls([CartWorkflow(), ExplorationWorkflow(catalog)])

    @property
    def handlers(self) -> tuple[WorkflowHandler, ...]:
        return self._handlers

    def _check_order(self) -> None:
        seen_exploration = False
        for handler in self._handlers:
            if isinstance(handler, ExplorationWorkflow):
                seen_exploration = True
            elif isinstance(handler, CartWorkflow) and seen_exploration:
                raise RouterConfigurationError(
                    "CartWorkflow must be registered before ExplorationWorkflow"
                )

    async def route(self, context: WorkflowContext) -> Optional[WorkflowOutput]:
        """Execute the first handler whose predicate accepts the context."""
        for handler in self._handlers:
            if handler.can_handle(context):
                logger.info(
                    "Workflow routed: %s (query_type=%s)",
                    handler.name, context.analysis.query_type,
                )
                return await handler.execute(context)

        logger.warning(
            "No workflow handler for turn (query_type=%s, cart=%s)",
            context.analysis.query_type, context.is_cart,
        )
        return None
