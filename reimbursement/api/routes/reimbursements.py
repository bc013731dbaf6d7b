"""
Reimbursement Workflow API Endpoints.

Provides:
- Reimbursement retrieval
- Lifecycle events
- Gated attribute updates
- Editability checks for the acting role
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from reimbursement.core.config import get_settings
from reimbursement.core.enums import ActorRole
from reimbursement.core.exceptions import (
    ConcurrentModification,
    EditNotAllowed,
    InvalidUpdatePayload,
    InvariantViolation,
    NestedUpdateRejected,
    ReimbursementNotFound,
    TransitionNotAllowed,
)
from reimbursement.models.reimbursement import Reimbursement
from reimbursement.schemas.reimbursement import (
    EditabilityResponse,
    ReimbursementResponse,
    TransitionResponse,
    UpdateResultResponse,
)
from reimbursement.api.deps import get_actor_role, get_workflow_service
from reimbursement.services.reimbursement_state_machine import available_events
from reimbursement.services.workflow_service import ReimbursementWorkflowService
from reimbursement.utils.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from reimbursement.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix=f"{get_settings().API_PREFIX}/reimbursements",
    tags=["reimbursements"],
)


def _to_response(reimbursement: Reimbursement) -> ReimbursementResponse:
    response = ReimbursementResponse.model_validate(reimbursement)
    return response.model_copy(update={"available_events": available_events(reimbursement.state)})


@router.get("/{reimbursement_id}", response_model=ReimbursementResponse)
async def get_reimbursement(
    reimbursement_id: int,
    service: ReimbursementWorkflowService = Depends(get_workflow_service),
) -> ReimbursementResponse:
    """Get a reimbursement with its timestamps, expenses and attachments."""
    try:
        reimbursement = await service.get(reimbursement_id)
    except ReimbursementNotFound as e:
        raise NotFoundError(str(e)) from e
    return _to_response(reimbursement)


@router.post("/{reimbursement_id}/events/{event}", response_model=TransitionResponse)
async def fire_event(
    reimbursement_id: int,
    event: str,
    service: ReimbursementWorkflowService = Depends(get_workflow_service),
) -> TransitionResponse:
    """
    Fire a lifecycle event.

    409 when the event is not allowed in the current state or the
    reimbursement changed concurrently.
    """
    try:
        state = await service.fire(reimbursement_id, event)
    except ReimbursementNotFound as e:
        raise NotFoundError(str(e)) from e
    except (TransitionNotAllowed, ConcurrentModification) as e:
        raise ConflictError(str(e)) from e
    except InvariantViolation as e:
        logger.error(f"Invariant violated firing {event} on {reimbursement_id}: {e}")
        raise ConflictError(str(e)) from e

    return TransitionResponse(id=reimbursement_id, event=event, state=state)


@router.patch("/{reimbursement_id}", response_model=UpdateResultResponse)
async def update_reimbursement(
    reimbursement_id: int,
    payload: dict[str, Any] = Body(...),
    role: ActorRole = Depends(get_actor_role),
    service: ReimbursementWorkflowService = Depends(get_workflow_service),
) -> UpdateResultResponse:
    """
    Update reimbursement attributes as the acting role.

    When the request/expenses subtree is refused the other fields are still
    saved and the response is 422 listing both.
    """
    try:
        result = await service.apply_update(reimbursement_id, payload, role=role)
    except ReimbursementNotFound as e:
        raise NotFoundError(str(e)) from e
    except EditNotAllowed as e:
        raise PermissionDeniedError(str(e)) from e
    except NestedUpdateRejected as e:
        raise ValidationError(
            {
                "message": "Nested request update rejected; other fields were saved",
                "reason": e.reason,
                "rejected_paths": e.rejected_paths,
                "committed_fields": e.committed_fields,
            }
        ) from e
    except InvalidUpdatePayload as e:
        raise ValidationError(str(e)) from e
    except (ConcurrentModification, InvariantViolation) as e:
        raise ConflictError(str(e)) from e

    return UpdateResultResponse.model_validate(result)


@router.get("/{reimbursement_id}/editable", response_model=EditabilityResponse)
async def get_editability(
    reimbursement_id: int,
    role: ActorRole = Depends(get_actor_role),
    service: ReimbursementWorkflowService = Depends(get_workflow_service),
) -> EditabilityResponse:
    """Check whether the acting role may edit the reimbursement now."""
    try:
        editable = await service.can_edit(reimbursement_id, role)
    except ReimbursementNotFound as e:
        raise NotFoundError(str(e)) from e
    return EditabilityResponse(role=role, editable=editable)
