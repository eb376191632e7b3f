"""Turn input/output and workflow result models."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PRECONDITION_MISSING = "precondition_missing"
    COLLABORATOR_FAILURE = "collaborator_failure"


class PayloadKind(str, Enum):
    VENDORS = "vendors"
    SERVICES = "services"
    CART = "cart"


class FlowInput(BaseModel):
    """One inbound user turn."""

    query: str
    session_id: Optional[str] = None
    location_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FlowOutput(BaseModel):
    """A finished, user-facing reply."""

    voice_text: Optional[str] = None
    rich_text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class CartUpdate(BaseModel):
    """Partial success/failure lists from one cart operation."""

    action: str
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    not_found: list[str] = Field(default_factory=list)

    def summary(self) -> str:
        parts: list[str] = []
        if self.added:
            parts.append(f"Added {', '.join(self.added)} to your cart.")
        if self.removed:
            parts.append(f"Removed {', '.join(self.removed)} from your cart.")
        if self.updated:
            parts.append(f"Updated: {', '.join(self.updated)}.")
        if self.not_found:
            where = "" if self.action == "add" else " in cart"
            parts.append(f"Could not find{where}: {', '.join(self.not_found)}.")
        return " ".join(parts)


class NarrationPayload(BaseModel):
    """Raw structured results that still need to be rendered for the user."""

    needs_narration: bool = True
    kind: PayloadKind
    data: list[dict[str, Any]] = Field(default_factory=list)
    message: str = ""
    vendor_name: Optional[str] = None
    page: Optional[int] = None
    is_pagination: bool = False
    cart_update: Optional[CartUpdate] = None

    @property
    def total_found(self) -> int:
        return len(self.data)


class NarratedReply(BaseModel):
    """Narrator output: speech-friendly text plus a rich markdown body."""

    voice_text: str
    rich_text: str


WorkflowOutput = Union[FlowOutput, NarrationPayload]
