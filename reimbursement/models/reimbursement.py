"""
Reimbursement Model.

A reimbursement tracks the payment of the expenses of one request through
technical-support review, administrative authorization and settlement.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from reimbursement.core.enums import ActorRole, ReimbursementState
from reimbursement.models.base import Base, TimeStampedModel, UTCDateTime
from reimbursement.models.request import Expense, Request
from reimbursement.services.editability import editable_by


class Reimbursement(Base, TimeStampedModel):
    """
    Reimbursement for a given request.

    user_id always mirrors request.user_id; it is never assigned from input.
    """

    __tablename__ = "reimbursements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("requests.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        comment="Reimbursed request",
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Copy of the request owner",
    )

    state: Mapped[ReimbursementState] = mapped_column(
        Enum(ReimbursementState),
        default=ReimbursementState.INCOMPLETE,
        nullable=False,
        index=True,
        comment="Current lifecycle state",
    )

    # Free text
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requester_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tsp_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    administrative_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Last entry into each state
    incomplete_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    tsp_pending_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    tsp_approved_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    payment_pending_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    payed_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    completed_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    canceled_since: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    # Optimistic lock: UPDATEs match on the loaded version
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False)

    request: Mapped["Request"] = relationship()
    attachments: Mapped[list["ReimbursementAttachment"]] = relationship(
        back_populates="reimbursement",
        cascade="all, delete-orphan",
        order_by="ReimbursementAttachment.id",
    )

    __mapper_args__ = {"version_id_col": lock_version}

    def __repr__(self) -> str:
        return f"<Reimbursement(id={self.id}, request_id={self.request_id}, state='{self.state}')>"

    @validates("request")
    def _copy_request_user(self, key: str, request: Optional[Request]) -> Optional[Request]:
        if request is not None:
            self.user_id = request.user_id
        return request

    def sync_user_id(self) -> bool:
        """
        Copy the user from the associated request.

        Returns:
            False when there is no request to copy from
        """
        if self.request is None:
            return False
        self.user_id = self.request.user_id
        return True

    @property
    def expenses(self) -> list[Expense]:
        """Expenses of the associated request."""
        return self.request.expenses if self.request is not None else []

    def entered_state_at(self, state: ReimbursementState) -> Optional[datetime]:
        """When the reimbursement last entered the given state."""
        return getattr(self, state.timestamp_field)

    @property
    def editable_by_requester(self) -> bool:
        return editable_by(ActorRole.REQUESTER, self.state)

    @property
    def editable_by_tsp(self) -> bool:
        return editable_by(ActorRole.TSP, self.state)

    @property
    def editable_by_administrative(self) -> bool:
        return editable_by(ActorRole.ADMINISTRATIVE, self.state)


class ReimbursementAttachment(Base, TimeStampedModel):
    """Supporting document of a reimbursement; the file itself lives in external storage."""

    __tablename__ = "reimbursement_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reimbursement_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reimbursements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Key of the file in attachment storage",
    )

    reimbursement: Mapped["Reimbursement"] = relationship(back_populates="attachments")

    def __repr__(self) -> str:
        return f"<ReimbursementAttachment(id={self.id}, title='{self.title}')>"
