"""
Exploration workflow: nearby vendors and a vendor's services.

Every non-cart turn lands here. With a vendor in context (named, implied
by "show me the menu", or a "show more" pagination request) the vendor's
services are fetched one page at a time and become the conversation's
last shown services. Otherwise nearby vendors are listed and remembered.

Results are returned as narration payloads; rendering happens elsewhere.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from vendor_assistant.config import settings
from vendor_assistant.logging_context import get_session_logger
from vendor_assistant.resilience import (
    CollaboratorError,
    call_collaborator,
    user_friendly_error_message,
)
from vendor_assistant.schemas.flow_schema import (
    ErrorKind,
    FlowOutput,
    NarrationPayload,
    PayloadKind,
    WorkflowOutput,
)
from vendor_assistant.schemas.intent_schema import ExploreIntent
from vendor_assistant.schemas.memory_schema import EntityType, ShownService, StoreItem
from vendor_assistant.tools.catalog import Catalog, ServiceFilter, ServiceRow, VendorRow
from vendor_assistant.utils import best_match
from vendor_assistant.workflows.base import WorkflowContext, WorkflowHandler

logger = get_session_logger(__name__)

LOCATION_REQUIRED = "Location is required to find nearby vendors. Please provide your location."


class ExplorationWorkflow(WorkflowHandler):
    """Browses the catalog around the user's location."""

    def __init__(
        self,
        catalog: Catalog,
        vendor_type: Optional[str] = None,
        vendor_limit: Optional[int] = None,
        page_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        initial_delay: Optional[float] = None,
    ) -> None:
        self._catalog = catalog
        self._vendor_type = vendor_type or settings.catalog.vendor_type
        self._vendor_limit = vendor_limit or settings.catalog.vendor_limit
        self._page_size = page_size or settings.catalog.service_page_size
        self._max_retries = max_retries
        self._initial_delay = initial_delay

    def can_handle(self, context: WorkflowContext) -> bool:
        return not context.is_cart

    async def execute(self, context: WorkflowContext) -> WorkflowOutput:
        if context.location is None:
            logger.warning("Exploration without a location")
            return FlowOutput(
                voice_text=LOCATION_REQUIRED,
                rich_text=f"📍 {LOCATION_REQUIRED}",
                error=LOCATION_REQUIRED,
                error_kind=ErrorKind.PRECONDITION_MISSING,
            )

        intent: ExploreIntent = context.intent  # type: ignore[assignment]
        try:
            fetched: Optional[list[VendorRow]] = None
            if intent.wants_vendor_context:
                vendor, fetched = await self._resolve_vendor(context, intent)
                if vendor is not None:
                    return await self._show_services(context, intent, *vendor)
            if fetched is None:
                fetched = await self._fetch_vendors(context)
            return self._vendors_payload(fetched)
        except CollaboratorError as e:
            message = user_friendly_error_message(e.__cause__ or e)
            logger.error("Catalog unavailable: %s", e)
            return FlowOutput(
                voice_text=message,
                rich_text=(
                    f"## Unable to Process Request\n\n{message}\n\n"
                    "Please try again in a few moments."
                ),
                error=message,
                error_kind=ErrorKind.COLLABORATOR_FAILURE,
            )

    # ------------------------------------------------------------------ #
    # Vendor resolution
    # ------------------------------------------------------------------ #

    async def _resolve_vendor(
        self, context: WorkflowContext, intent: ExploreIntent
    ) -> tuple[Optional[tuple[int, str]], Optional[list[VendorRow]]]:
        """Find the vendor in context. Also returns any vendor rows fetched on the way."""
        conversation = context.conversation

        if intent.vendor_name:
            vendor_id = conversation.resolve_name(EntityType.VENDOR, intent.vendor_name)
            if vendor_id is not None:
                known = conversation.entities.get(EntityType.VENDOR, vendor_id)
                return (vendor_id, known.name if known else intent.vendor_name), None

            fetched = await self._fetch_vendors(context)
            match = best_match(intent.vendor_name, fetched, lambda v: v["store_name"])
            if match is not None:
                return (match["id"], match["store_name"]), fetched
            logger.info("Vendor '%s' not found nearby", intent.vendor_name)
            return None, fetched

        recent = conversation.entities.most_recent_vendor()
        if recent is not None:
            return (recent.id, recent.name), None
        logger.info("Services requested but no vendor in context")
        return None, None

    # ------------------------------------------------------------------ #
    # Catalog calls
    # ------------------------------------------------------------------ #

    async def _fetch_vendors(self, context: WorkflowContext) -> list[VendorRow]:
        location = context.location
        rows = await call_collaborator(
            "catalog",
            lambda: self._catalog.nearby_vendors(
                location.latitude, location.longitude, self._vendor_type, self._vendor_limit
            ),
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
        )
        stored = context.conversation.entities.remember_vendors(rows)
        logger.info("Fetched %d nearby vendors, remembered %d", len(rows), stored)
        return rows

    async def _show_services(
        self,
        context: WorkflowContext,
        intent: ExploreIntent,
        vendor_id: int,
        vendor_name: str,
    ) -> NarrationPayload:
        conversation = context.conversation
        if intent.is_pagination_request:
            offset = (conversation.page_cursor + 1) * self._page_size
        else:
            offset = 0
        page = offset // self._page_size + 1

        rows: list[ServiceRow] = await call_collaborator(
            "catalog",
            lambda: self._catalog.vendor_services(
                vendor_id,
                limit=self._page_size,
                page=page,
                service_filter=ServiceFilter.ALL,
            ),
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
        )
        logger.info("Vendor %s page %d: %d services", vendor_id, page, len(rows))

        conversation.entities.upsert(StoreItem(
            type=EntityType.VENDOR,
            id=vendor_id,
            name=vendor_name,
            last_mentioned=datetime.now(timezone.utc),
        ))
        conversation.entities.remember_services(vendor_id, rows)

        groups = group_by_category(rows)
        if rows:
            conversation.set_last_shown(
                _shown(service, vendor_id, vendor_name)
                for group in groups
                for service in group["services"]
            )
            conversation.set_page_cursor(offset // self._page_size)

        return NarrationPayload(
            kind=PayloadKind.SERVICES,
            data=groups,
            message=f"Services from {vendor_name}" if rows else f"No more services from {vendor_name}",
            vendor_name=vendor_name,
            page=page,
            is_pagination=intent.is_pagination_request,
        )

    def _vendors_payload(self, rows: list[VendorRow]) -> NarrationPayload:
        return NarrationPayload(
            kind=PayloadKind.VENDORS,
            data=[dict(row) for row in rows],
            message="Vendors retrieved successfully" if rows else "No vendors found nearby",
        )


def group_by_category(rows: list[ServiceRow]) -> list[dict[str, Any]]:
    """Group service rows by category, keeping first-seen category order."""
    groups: dict[Optional[int], dict[str, Any]] = {}
    for row in rows:
        key = row.get("category_id")
        group = groups.setdefault(key, {
            "category_id": key,
            "category_name": row.get("category_name") or "Other",
            "services": [],
        })
        group["services"].append(dict(row))
    return list(groups.values())


def _shown(service: dict[str, Any], vendor_id: int, vendor_name: str) -> ShownService:
    return ShownService(
        service_id=service["id"],
        service_name=service["name"],
        vendor_id=vendor_id,
        vendor_name=vendor_name,
        price=service.get("price") or 0.0,
        discount=service.get("discount"),
        discount_type=service.get("discount_type"),
        veg=service.get("veg"),
        category_id=service.get("category_id"),
        category_name=service.get("category_name"),
    )
