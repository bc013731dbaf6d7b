"""
Reimbursement Workflow Service.

Provides:
- Reimbursement creation for an existing request
- Lifecycle events (submit, approve, authorize, confirm, complete, reject, cancel)
- Gated attribute updates, including the nested request/expenses subtree
- Editability checks per acting role

The user of a reimbursement is copied from its request before every
commit. A rejected nested subtree does not stop the remaining fields of the
same update from being committed; NestedUpdateRejected is raised afterwards.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from reimbursement.core.attributes import (
    ACCESSIBLE_ATTRIBUTES,
    ATTACHMENTS_ATTRIBUTES_KEY,
    REIMBURSEMENT_TEXT_FIELDS,
    REQUEST_ATTRIBUTES_KEY,
)
from reimbursement.core.enums import ActorRole, ReimbursementEvent, ReimbursementState
from reimbursement.core.exceptions import (
    EditNotAllowed,
    InvalidUpdatePayload,
    InvariantViolation,
    NestedUpdateRejected,
    ReimbursementNotFound,
    TransitionNotAllowed,
)
from reimbursement.models.reimbursement import Reimbursement, ReimbursementAttachment
from reimbursement.schemas.reimbursement import AttachmentAttributes
from reimbursement.services.clock import Clock, SystemClock
from reimbursement.services.editability import editable_by
from reimbursement.services.nested_update_filter import indexed_entries, resolve_expense_updates
from reimbursement.services.reimbursement_state_machine import (
    INITIAL_STATE,
    ReimbursementStateMachine,
    available_events,
    get_state_machine,
)
from reimbursement.services.reimbursement_store import ReimbursementStore
from reimbursement.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class UpdateResult:
    """What an attribute update changed."""

    applied_fields: list[str] = field(default_factory=list)
    ignored_fields: list[str] = field(default_factory=list)
    attachments_created: int = 0
    attachments_removed: int = 0
    expenses_updated: list[int] = field(default_factory=list)


@dataclass
class _AttachmentPlan:
    create: list[AttachmentAttributes] = field(default_factory=list)
    update: list[tuple[ReimbursementAttachment, AttachmentAttributes]] = field(default_factory=list)
    remove: list[ReimbursementAttachment] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.create or self.update or self.remove)


class ReimbursementWorkflowService:
    """
    Service for reimbursement lifecycle operations.

    One instance works within one database session; each public operation
    reads, decides and commits as a single unit.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        state_machine: Optional[ReimbursementStateMachine] = None,
    ):
        self.store = ReimbursementStore(session)
        self.clock = clock or SystemClock()
        self.state_machine = state_machine or get_state_machine()

    # =========================================================================
    # Create / Read
    # =========================================================================

    async def create(self, request_id: int, **fields: Optional[str]) -> Reimbursement:
        """
        Create an incomplete reimbursement for a request.

        Args:
            request_id: Request being reimbursed
            **fields: Initial free-text fields (description, notes)

        Raises:
            InvariantViolation: If the request does not exist
            InvalidUpdatePayload: If a field is not a free-text field
        """
        unknown = sorted(set(fields) - set(REIMBURSEMENT_TEXT_FIELDS))
        if unknown:
            raise InvalidUpdatePayload(f"Unknown reimbursement fields: {', '.join(unknown)}")

        request = await self.store.get_request(request_id)
        if request is None:
            raise InvariantViolation(f"Request {request_id} not found")

        reimbursement = Reimbursement(
            request=request,
            state=INITIAL_STATE,
            attachments=[],
            **fields,
        )
        setattr(reimbursement, INITIAL_STATE.timestamp_field, self.clock.now())
        self.store.add(reimbursement)
        await self._commit(reimbursement)

        logger.info(f"Reimbursement {reimbursement.id} created for request {request_id}")
        return reimbursement

    async def get(self, reimbursement_id: int) -> Reimbursement:
        """Get a reimbursement with its request, expenses and attachments."""
        return await self.store.get(reimbursement_id)

    # =========================================================================
    # Events
    # =========================================================================

    async def fire(
        self,
        reimbursement_id: int,
        event: Union[ReimbursementEvent, str],
    ) -> ReimbursementState:
        """
        Fire a lifecycle event.

        Returns:
            The new state

        Raises:
            ReimbursementNotFound: If the reimbursement does not exist
            TransitionNotAllowed: If the event is not valid in the current state
            ConcurrentModification: If another writer got there first
        """
        reimbursement = await self._load_for_write(reimbursement_id)
        try:
            result = self.state_machine.fire(reimbursement, event, self.clock.now())
        except TransitionNotAllowed:
            await self.store.rollback()
            raise

        await self._commit(reimbursement)
        return result.to_state

    async def submit(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.SUBMIT)

    async def approve(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.APPROVE)

    async def authorize(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.AUTHORIZE)

    async def confirm(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.CONFIRM)

    async def complete(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.COMPLETE)

    async def reject(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.REJECT)

    async def cancel(self, reimbursement_id: int) -> ReimbursementState:
        return await self.fire(reimbursement_id, ReimbursementEvent.CANCEL)

    async def available_events(self, reimbursement_id: int) -> list[ReimbursementEvent]:
        """Events that can be fired from the current state."""
        reimbursement = await self.store.get(reimbursement_id)
        return available_events(reimbursement.state)

    # =========================================================================
    # Editability
    # =========================================================================

    async def can_edit(self, reimbursement_id: int, role: Union[ActorRole, str]) -> bool:
        """Check whether a role may edit the reimbursement right now."""
        reimbursement = await self.store.get(reimbursement_id)
        return editable_by(role, reimbursement.state)

    # =========================================================================
    # Attribute Updates
    # =========================================================================

    async def apply_update(
        self,
        reimbursement_id: int,
        payload: Mapping[str, Any],
        role: Optional[Union[ActorRole, str]] = None,
    ) -> UpdateResult:
        """
        Apply an attribute update.

        Keys outside the accessible attributes are ignored. The request
        subtree is applied all-or-nothing; if it is refused, the other
        fields are still committed and NestedUpdateRejected is raised.

        Args:
            reimbursement_id: Reimbursement to update
            payload: Update payload
            role: Acting role; when given the update is refused unless that
                role may edit in the current state

        Raises:
            ReimbursementNotFound: If the reimbursement does not exist
            EditNotAllowed: If the acting role may not edit now
            InvalidUpdatePayload: If a sibling field is malformed (nothing committed)
            InvariantViolation: If the reimbursement has no request
            NestedUpdateRejected: After committing the other fields, when the
                request subtree was discarded
        """
        if not isinstance(payload, Mapping):
            raise InvalidUpdatePayload("Update payload must be an object")

        reimbursement = await self._load_for_write(reimbursement_id)

        if role is not None and not editable_by(role, reimbursement.state):
            # Rollback expires the loaded row; build the error first
            error = EditNotAllowed(str(getattr(role, "value", role)), reimbursement.state.value)
            await self.store.rollback()
            raise error

        if reimbursement.request is None:
            await self.store.rollback()
            raise InvariantViolation(f"Reimbursement {reimbursement_id} has no request")

        result = UpdateResult()
        accessible = ACCESSIBLE_ATTRIBUTES["reimbursement"]
        result.ignored_fields = [str(key) for key in payload if key not in accessible]
        if result.ignored_fields:
            logger.warning(
                f"Ignoring inaccessible attributes for reimbursement {reimbursement_id}: "
                f"{', '.join(result.ignored_fields)}"
            )

        # Validate everything before mutating anything
        try:
            text_values = self._text_values(payload)
            attachment_plan = self._plan_attachments(
                reimbursement, payload.get(ATTACHMENTS_ATTRIBUTES_KEY), result
            )
        except InvalidUpdatePayload:
            await self.store.rollback()
            raise

        rejection: Optional[NestedUpdateRejected] = None
        expense_updates = []
        if REQUEST_ATTRIBUTES_KEY in payload:
            try:
                expense_updates = resolve_expense_updates(
                    reimbursement.request, payload[REQUEST_ATTRIBUTES_KEY]
                )
            except NestedUpdateRejected as e:
                rejection = e
                logger.warning(
                    f"Discarding nested request update for reimbursement {reimbursement_id}: {e}"
                )

        for name, value in text_values.items():
            setattr(reimbursement, name, value)
            result.applied_fields.append(name)

        if attachment_plan:
            self._apply_attachments(reimbursement, attachment_plan, result)
            result.applied_fields.append(ATTACHMENTS_ATTRIBUTES_KEY)

        if REQUEST_ATTRIBUTES_KEY in payload and rejection is None:
            for expense, data in expense_updates:
                for name in sorted(data.model_fields_set - {"id"}):
                    setattr(expense, name, getattr(data, name))
                result.expenses_updated.append(expense.id)
            result.applied_fields.append(REQUEST_ATTRIBUTES_KEY)

        # Bump the row so lock_version guards updates that only touch children
        reimbursement.updated_at = self.clock.now()
        await self._commit(reimbursement)

        if rejection is not None:
            raise NestedUpdateRejected(
                rejection.rejected_paths,
                committed_fields=list(result.applied_fields),
                reason=rejection.reason,
            )
        return result

    # =========================================================================
    # Internal helpers
    # =========================================================================

    async def _commit(self, reimbursement: Reimbursement) -> None:
        """Resynchronize user_id from the request, then commit."""
        if not reimbursement.sync_user_id():
            error = InvariantViolation(
                f"Reimbursement {reimbursement.id} has no request to take the user from"
            )
            await self.store.rollback()
            raise error
        await self.store.commit()

    async def _load_for_write(self, reimbursement_id: int) -> Reimbursement:
        """Load and lock a reimbursement; nothing stays open when it is missing."""
        try:
            return await self.store.get(reimbursement_id, for_update=True)
        except ReimbursementNotFound:
            await self.store.rollback()
            raise

    @staticmethod
    def _text_values(payload: Mapping[str, Any]) -> dict[str, Optional[str]]:
        values = {}
        for name in REIMBURSEMENT_TEXT_FIELDS:
            if name not in payload:
                continue
            value = payload[name]
            if value is not None and not isinstance(value, str):
                raise InvalidUpdatePayload(f"{name} must be a string")
            values[name] = value
        return values

    @staticmethod
    def _plan_attachments(
        reimbursement: Reimbursement,
        collection: Any,
        result: UpdateResult,
    ) -> _AttachmentPlan:
        plan = _AttachmentPlan()
        if collection is None:
            return plan

        entries = indexed_entries(collection)
        if entries is None:
            raise InvalidUpdatePayload(f"{ATTACHMENTS_ATTRIBUTES_KEY} must be an object or a list")

        accessible = ACCESSIBLE_ATTRIBUTES["attachment"]
        existing = {attachment.id: attachment for attachment in reimbursement.attachments}

        for label, entry in entries:
            path = f"{ATTACHMENTS_ATTRIBUTES_KEY}.{label}"
            if not isinstance(entry, Mapping):
                raise InvalidUpdatePayload(f"{path} must be an object")

            ignored = [f"{path}.{key}" for key in entry if key not in accessible]
            result.ignored_fields.extend(ignored)
            try:
                data = AttachmentAttributes.model_validate(
                    {key: value for key, value in entry.items() if key in accessible}
                )
            except ValidationError as e:
                raise InvalidUpdatePayload(f"{path} is invalid") from e

            if data.id is None:
                if not data.destroy:
                    plan.create.append(data)
                continue

            attachment = existing.get(data.id)
            if attachment is None:
                raise InvalidUpdatePayload(
                    f"Attachment {data.id} does not belong to reimbursement {reimbursement.id}"
                )
            if data.destroy:
                plan.remove.append(attachment)
            else:
                plan.update.append((attachment, data))

        return plan

    @staticmethod
    def _apply_attachments(
        reimbursement: Reimbursement,
        plan: _AttachmentPlan,
        result: UpdateResult,
    ) -> None:
        for attachment, data in plan.update:
            for name in ("title", "file_name"):
                if name in data.model_fields_set:
                    setattr(attachment, name, getattr(data, name))

        for attachment in plan.remove:
            reimbursement.attachments.remove(attachment)
            result.attachments_removed += 1

        for data in plan.create:
            reimbursement.attachments.append(
                ReimbursementAttachment(title=data.title, file_name=data.file_name)
            )
            result.attachments_created += 1
