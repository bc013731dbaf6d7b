"""
Request and Expense Models.

The request being reimbursed and its expense line items. Both are owned by
the wider application; the reimbursement workflow only reads the request's
user and updates the two amount columns of its expenses.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reimbursement.models.base import Base, TimeStampedModel


class Request(Base, TimeStampedModel):
    """Request whose expenses are reimbursed."""

    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Owner of the request",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    expenses: Mapped[list["Expense"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Expense.id",
    )

    def __repr__(self) -> str:
        return f"<Request(id={self.id}, user_id={self.user_id})>"

    def find_expense(self, expense_id: int) -> Optional["Expense"]:
        """Get one of this request's expenses by id."""
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        return None


class Expense(Base, TimeStampedModel):
    """
    Expense line item of a request.

    total_amount and authorized_amount are the only columns the
    reimbursement process may change.
    """

    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    estimated_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Amount estimated when the request was made",
    )
    total_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Amount actually spent, set by the requester",
    )
    authorized_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Amount authorized for payment",
    )
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)

    request: Mapped["Request"] = relationship(back_populates="expenses")

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, request_id={self.request_id}, subject='{self.subject}')>"
