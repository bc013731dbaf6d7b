"""
Pydantic Schemas for Reimbursements.

Coercion of the amount values of accepted expense entries, and the
response shapes of the API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reimbursement.core.enums import ActorRole, ReimbursementEvent, ReimbursementState


# =============================================================================
# Nested Attribute Schemas
# =============================================================================


class ExpenseAmountsUpdate(BaseModel):
    """Values of one expense entry that already passed the key allow-list."""

    model_config = ConfigDict(extra="forbid")

    id: int
    total_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    authorized_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class AttachmentAttributes(BaseModel):
    """One entry of attachments_attributes, after unknown keys were stripped."""

    id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    file_name: Optional[str] = Field(None, max_length=255)
    destroy: bool = Field(False, alias="_destroy")


# =============================================================================
# Response Schemas
# =============================================================================


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject: str
    total_amount: Optional[Decimal] = None
    authorized_amount: Optional[Decimal] = None
    currency: str


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: Optional[str] = None
    file_name: Optional[str] = None


class ReimbursementResponse(BaseModel):
    """Schema for reimbursement response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    user_id: int
    state: ReimbursementState
    description: Optional[str] = None
    requester_notes: Optional[str] = None
    tsp_notes: Optional[str] = None
    administrative_notes: Optional[str] = None

    incomplete_since: Optional[datetime] = None
    tsp_pending_since: Optional[datetime] = None
    tsp_approved_since: Optional[datetime] = None
    payment_pending_since: Optional[datetime] = None
    payed_since: Optional[datetime] = None
    completed_since: Optional[datetime] = None
    canceled_since: Optional[datetime] = None

    editable_by_requester: bool
    editable_by_tsp: bool
    editable_by_administrative: bool
    available_events: list[ReimbursementEvent] = Field(default_factory=list)

    expenses: list[ExpenseResponse] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)


class TransitionResponse(BaseModel):
    id: int
    event: ReimbursementEvent
    state: ReimbursementState


class EditabilityResponse(BaseModel):
    role: ActorRole
    editable: bool


class UpdateResultResponse(BaseModel):
    """Outcome of an attribute update."""

    model_config = ConfigDict(from_attributes=True)

    applied_fields: list[str]
    ignored_fields: list[str]
    attachments_created: int
    attachments_removed: int
    expenses_updated: list[int]
