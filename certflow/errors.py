"""Exception hierarchy for certflow."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import ValidationResult


class CertflowError(Exception):
    """Base error for certflow."""


class NotFoundError(CertflowError, LookupError):
    """A definition, step or instance does not exist."""


class DefinitionNotFoundError(NotFoundError):
    def __init__(self, definition_id: str) -> None:
        super().__init__(f"Workflow definition not found: {definition_id}")
        self.definition_id = definition_id


class StepNotFoundError(NotFoundError):
    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step definition not found: {step_id}")
        self.step_id = step_id


class InstanceNotFoundError(NotFoundError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"Workflow instance not found: {instance_id}")
        self.instance_id = instance_id


class InvalidOperationError(CertflowError, ValueError):
    """The requested operation is not allowed in the current state."""


class InvalidStepError(InvalidOperationError):
    """Submitted step id does not match the instance's current step."""

    def __init__(self, step_id: str, current_step: str) -> None:
        super().__init__(
            f"Invalid step {step_id!r}. Current step is {current_step!r}"
        )
        self.step_id = step_id
        self.current_step = current_step


class ValidationFailedError(InvalidOperationError):
    """Submitted data failed one or more validation rules."""

    def __init__(self, result: "ValidationResult") -> None:
        super().__init__(f"Validation failed: {result.error_message}")
        self.result = result


class InvalidTransitionError(InvalidOperationError):
    """No status transition exists for the event in the current status."""


class PermissionDeniedError(InvalidOperationError):
    """The acting role may not trigger the requested transition."""


class ConcurrencyError(CertflowError):
    """The instance was modified by someone else since it was loaded."""

    def __init__(self, instance_id: str, expected_version: int) -> None:
        super().__init__(
            f"Workflow instance {instance_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.instance_id = instance_id
        self.expected_version = expected_version


class MalformedStepError(CertflowError, ValueError):
    """A step definition declares a constraint that cannot be interpreted."""
