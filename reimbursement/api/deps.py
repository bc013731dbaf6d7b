"""
FastAPI Dependencies
Acting-role resolution and workflow service construction
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reimbursement.core.config import get_settings
from reimbursement.core.enums import ActorRole
from reimbursement.db.connection import get_session
from reimbursement.services.workflow_service import ReimbursementWorkflowService
from reimbursement.utils.errors import AuthenticationError


async def get_actor_role(request: Request) -> ActorRole:
    """
    Resolve the acting role.

    Identity is established upstream (auth gateway); the resolved role
    arrives in the configured header.

    Raises:
        AuthenticationError: If the header is missing or names no known role
    """
    header = get_settings().ROLE_HEADER
    value = request.headers.get(header)
    if not value:
        raise AuthenticationError(f"Missing {header} header")
    try:
        return ActorRole(value.strip().lower())
    except ValueError as err:
        raise AuthenticationError(f"Unknown role: {value}") from err


async def get_workflow_service(
    session: AsyncSession = Depends(get_session),
) -> ReimbursementWorkflowService:
    return ReimbursementWorkflowService(session)
