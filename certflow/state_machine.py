"""Workflow status transitions with role checks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional

from .constants import (
    ADMIN_ROLE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_EXPIRED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_ON_HOLD,
    STATUS_PENDING_APPROVAL,
    STATUS_REVISION,
)
from .contracts import TransitionResult
from .errors import InvalidTransitionError, PermissionDeniedError
from .persistence import TransitionAuditRecord, WorkflowInstance, WorkflowRepository

logger = logging.getLogger(__name__)


class WorkflowEvent(str, Enum):
    START = "Start"
    SUBMIT = "Submit"
    APPROVE = "Approve"
    REJECT = "Reject"
    SEND_BACK = "SendBack"
    CANCEL = "Cancel"
    RESUME = "Resume"
    HOLD = "Hold"
    COMPLETE = "Complete"
    FAIL = "Fail"
    EXPIRE = "Expire"
    RESET = "Reset"


class TransitionDefinition(NamedTuple):
    from_state: str
    event: WorkflowEvent
    to_state: str
    required_role: Optional[str] = None
    description: str = ""


E = WorkflowEvent

WORKFLOW_TRANSITIONS: tuple[TransitionDefinition, ...] = (
    TransitionDefinition(STATUS_DRAFT, E.START, STATUS_IN_PROGRESS, None, "Start the workflow"),
    TransitionDefinition(STATUS_DRAFT, E.CANCEL, STATUS_CANCELLED, None, "Cancel before starting"),
    TransitionDefinition(STATUS_IN_PROGRESS, E.SUBMIT, STATUS_PENDING_APPROVAL, "customer", "Submit for review"),
    TransitionDefinition(STATUS_IN_PROGRESS, E.HOLD, STATUS_ON_HOLD, None, "Put workflow on hold"),
    TransitionDefinition(STATUS_IN_PROGRESS, E.CANCEL, STATUS_CANCELLED, None, "Cancel workflow"),
    TransitionDefinition(STATUS_IN_PROGRESS, E.COMPLETE, STATUS_COMPLETED, None, "Mark as complete"),
    TransitionDefinition(STATUS_IN_PROGRESS, E.FAIL, STATUS_FAILED, None, "Mark as failed"),
    TransitionDefinition(STATUS_PENDING_APPROVAL, E.APPROVE, STATUS_IN_PROGRESS, "reviewer", "Approve and continue"),
    TransitionDefinition(STATUS_PENDING_APPROVAL, E.REJECT, STATUS_REVISION, "reviewer", "Reject - needs revision"),
    TransitionDefinition(STATUS_PENDING_APPROVAL, E.SEND_BACK, STATUS_REVISION, "reviewer", "Send back for changes"),
    TransitionDefinition(STATUS_PENDING_APPROVAL, E.COMPLETE, STATUS_COMPLETED, "reviewer", "Final approval - complete"),
    TransitionDefinition(STATUS_PENDING_APPROVAL, E.CANCEL, STATUS_CANCELLED, ADMIN_ROLE, "Cancel pending workflow"),
    TransitionDefinition(STATUS_ON_HOLD, E.RESUME, STATUS_IN_PROGRESS, None, "Resume workflow"),
    TransitionDefinition(STATUS_ON_HOLD, E.CANCEL, STATUS_CANCELLED, None, "Cancel while on hold"),
    TransitionDefinition(STATUS_ON_HOLD, E.EXPIRE, STATUS_EXPIRED, None, "Expired due to timeout"),
    TransitionDefinition(STATUS_REVISION, E.SUBMIT, STATUS_PENDING_APPROVAL, "customer", "Resubmit after revision"),
    TransitionDefinition(STATUS_REVISION, E.CANCEL, STATUS_CANCELLED, None, "Cancel during revision"),
    TransitionDefinition(STATUS_REVISION, E.START, STATUS_IN_PROGRESS, None, "Continue editing"),
    TransitionDefinition(STATUS_FAILED, E.RESET, STATUS_DRAFT, ADMIN_ROLE, "Reset failed workflow"),
    TransitionDefinition(STATUS_EXPIRED, E.RESET, STATUS_DRAFT, ADMIN_ROLE, "Reset expired workflow"),
    TransitionDefinition(STATUS_CANCELLED, E.RESET, STATUS_DRAFT, ADMIN_ROLE, "Restore cancelled workflow"),
)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class WorkflowStateMachine:
    """Apply status transitions from a fixed table.

    ``can_transition`` and ``available_transitions`` let the admin role
    through any role gate; ``try_transition`` requires the exact role.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        transitions: tuple[TransitionDefinition, ...] = WORKFLOW_TRANSITIONS,
    ) -> None:
        self._repository = repository
        self._transitions = transitions

    def find_transition(
        self, status: str, event: WorkflowEvent | str
    ) -> TransitionDefinition | None:
        event = WorkflowEvent(event)
        for transition in self._transitions:
            if transition.from_state == status.lower() and transition.event is event:
                return transition
        return None

    def can_transition(
        self,
        instance: WorkflowInstance,
        event: WorkflowEvent | str,
        role: Optional[str] = None,
    ) -> bool:
        transition = self.find_transition(instance.status, event)
        if transition is None:
            return False
        if transition.required_role is None:
            return True
        return _same(role, transition.required_role) or _same(role, ADMIN_ROLE)

    def available_transitions(
        self, instance: WorkflowInstance, role: Optional[str] = None
    ) -> list[TransitionDefinition]:
        return [
            t
            for t in self._transitions
            if t.from_state == instance.status.lower()
            and (
                t.required_role is None
                or _same(role, ADMIN_ROLE)
                or _same(role, t.required_role)
            )
        ]

    async def try_transition(
        self,
        instance: WorkflowInstance,
        event: WorkflowEvent | str,
        triggered_by: str,
        role: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> TransitionResult:
        """Apply ``event`` to ``instance``, record it and save the instance."""
        event = WorkflowEvent(event)
        current = instance.status.lower()
        transition = self.find_transition(current, event)
        if transition is None:
            message = f"Invalid transition: Cannot {event.value} from state '{current}'"
            logger.warning(message)
            return TransitionResult.fail(message)

        if transition.required_role and not _same(role, transition.required_role):
            message = (
                f"Insufficient permissions: {event.value} requires role "
                f"'{transition.required_role}'"
            )
            logger.warning(message)
            return TransitionResult.fail(message)

        previous = instance.status
        instance.status = transition.to_state
        if transition.to_state == STATUS_COMPLETED:
            instance.completed_at = datetime.now(timezone.utc)
        instance.transitions.append(
            TransitionAuditRecord(
                from_state=previous,
                to_state=transition.to_state,
                event=event.value,
                triggered_by=triggered_by,
                triggered_by_role=role,
                comments=comments,
            )
        )
        await self._repository.save_instance(instance)

        logger.info(
            f"Workflow transition: {instance.id} [{previous}] --{event.value}--> "
            f"[{transition.to_state}]"
        )
        return TransitionResult.ok(previous, transition.to_state, transition.description)

    async def transition(
        self,
        instance: WorkflowInstance,
        event: WorkflowEvent | str,
        triggered_by: str,
        role: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> WorkflowInstance:
        """Like :meth:`try_transition` but raise when the transition is refused."""
        result = await self.try_transition(instance, event, triggered_by, role, comments)
        if not result.success:
            if result.error_message and result.error_message.startswith("Insufficient"):
                raise PermissionDeniedError(result.error_message)
            raise InvalidTransitionError(result.error_message)
        return instance
