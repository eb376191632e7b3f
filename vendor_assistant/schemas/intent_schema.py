"""Classified intent models.

``QueryAnalysis`` mirrors the classifier's structured output (camelCase
keys are accepted). It is converted once, at the classifier boundary,
into a closed tagged union ``CartIntent | ExploreIntent`` that workflow
predicates match on.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CartAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    VIEW = "view"
    CLEAR = "clear"
    UPDATE = "update"


class QueryAnalysis(BaseModel):
    """Structured classification of one user query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    corrected_query: Optional[str] = None
    needs_location: bool = True
    location_name: Optional[str] = None
    query_type: str = "general query"
    is_cart_operation: bool = False
    cart_action: Optional[CartAction] = None
    service_names: list[str] = Field(default_factory=list)
    quantities: list[Optional[int]] = Field(default_factory=list)
    vendor_name: Optional[str] = None
    wants_services: bool = False
    is_pagination_request: bool = False

    @field_validator("service_names", "quantities", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("is_cart_operation", "wants_services", "is_pagination_request", mode="before")
    @classmethod
    def _none_as_false(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def safe_default(cls, query: str) -> "QueryAnalysis":
        """Analysis used when the classifier fails: ask for a location, no cart action."""
        return cls(
            corrected_query=query,
            needs_location=True,
            location_name=None,
            query_type="general query",
        )

    def to_intent(self) -> "Intent":
        if self.is_cart_operation:
            return CartIntent(
                action=self.cart_action,
                service_names=tuple(self.service_names),
                quantities=tuple(self.quantities),
            )
        return ExploreIntent(
            vendor_name=self.vendor_name,
            wants_services=self.wants_services,
            is_pagination_request=self.is_pagination_request,
        )


class CartIntent(BaseModel):
    """A request to view or change the cart."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["cart"] = "cart"
    action: Optional[CartAction] = None
    service_names: tuple[str, ...] = ()
    quantities: tuple[Optional[int], ...] = ()

    def quantity_at(self, index: int) -> Optional[int]:
        """Quantity paired positionally with service_names[index], if given."""
        if index < len(self.quantities):
            return self.quantities[index]
        return None


class ExploreIntent(BaseModel):
    """A request to browse vendors or a vendor's services."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["explore"] = "explore"
    vendor_name: Optional[str] = None
    wants_services: bool = False
    is_pagination_request: bool = False

    @property
    def wants_vendor_context(self) -> bool:
        return bool(self.vendor_name) or self.wants_services or self.is_pagination_request


Intent = Annotated[Union[CartIntent, ExploreIntent], Field(discriminator="kind")]
