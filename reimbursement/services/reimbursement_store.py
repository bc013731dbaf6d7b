"""
Reimbursement Store.

Loads reimbursements with their request, expenses and attachments, and
commits changes. Concurrent writers are serialized twice: loads for writes
take a row lock where the backend supports it, and every UPDATE matches on
``lock_version`` so a stale write fails instead of overwriting.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from reimbursement.core.exceptions import ConcurrentModification, ReimbursementNotFound
from reimbursement.models.reimbursement import Reimbursement
from reimbursement.models.request import Request
from reimbursement.utils.logging import get_logger

logger = get_logger(__name__)


class ReimbursementStore:
    """Persistence adapter for the workflow service."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, reimbursement_id: int, for_update: bool = False) -> Reimbursement:
        """
        Load a reimbursement by id.

        Args:
            reimbursement_id: Reimbursement primary key
            for_update: Lock the row until commit/rollback

        Raises:
            ReimbursementNotFound: If no such reimbursement exists
        """
        stmt = (
            select(Reimbursement)
            .where(Reimbursement.id == reimbursement_id)
            .options(
                selectinload(Reimbursement.request).selectinload(Request.expenses),
                selectinload(Reimbursement.attachments),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Reimbursement)

        result = await self.session.execute(stmt)
        reimbursement = result.scalar_one_or_none()
        if reimbursement is None:
            raise ReimbursementNotFound(reimbursement_id)
        return reimbursement

    async def get_request(self, request_id: int) -> Optional[Request]:
        """Load a request with its expenses, or None."""
        result = await self.session.execute(
            select(Request)
            .where(Request.id == request_id)
            .options(selectinload(Request.expenses))
        )
        return result.scalar_one_or_none()

    def add(self, reimbursement: Reimbursement) -> None:
        self.session.add(reimbursement)

    async def commit(self) -> None:
        """
        Commit the unit of work.

        Raises:
            ConcurrentModification: If the row was changed by someone else
                since it was loaded. Nothing is written.
        """
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            logger.warning(f"Stale reimbursement write rejected: {e}")
            raise ConcurrentModification("Reimbursement was modified concurrently") from e

    async def rollback(self) -> None:
        await self.session.rollback()
