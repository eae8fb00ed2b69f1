"""Value types exchanged between the workflow engine and its callers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, computed_field


class RuleViolation(BaseModel):
    """A single failed check: which rule, which field, and why."""

    rule_id: Optional[str] = None
    field: Optional[str] = None
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating submitted form data.

    A result is valid exactly when it carries no violations.
    """

    errors: list[RuleViolation] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error_message(self) -> Optional[str]:
        """Message of the first violation, if any."""
        return self.errors[0].message if self.errors else None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(
        cls,
        message: str,
        rule_id: Optional[str] = None,
        field: Optional[str] = None,
    ) -> "ValidationResult":
        return cls(errors=[RuleViolation(rule_id=rule_id, field=field, message=message)])

    @classmethod
    def from_violations(cls, violations: Iterable[RuleViolation]) -> "ValidationResult":
        return cls(errors=list(violations))

    @classmethod
    def combine(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        """Concatenate the violations of ``results`` in order."""
        errors: list[RuleViolation] = []
        for result in results:
            errors.extend(result.errors)
        return cls(errors=errors)


class FieldChange(BaseModel):
    """Old and new value of one field between two submissions."""

    old_value: Any = None
    new_value: Any = None


class WorkflowSubmission(BaseModel):
    """Form data submitted to complete the current step."""

    step_id: str
    form_data: dict[str, Any] = Field(default_factory=dict)
    submitted_by: str = ""
    decision: Optional[str] = None  # approve, reject, send_back, clarification
    comments: Optional[str] = None


class TransitionResult(BaseModel):
    """Outcome of a workflow status transition attempt."""

    success: bool
    error_message: Optional[str] = None
    previous_state: Optional[str] = None
    new_state: Optional[str] = None
    description: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def ok(
        cls, previous: str, new: str, description: Optional[str] = None
    ) -> "TransitionResult":
        return cls(
            success=True, previous_state=previous, new_state=new, description=description
        )

    @classmethod
    def fail(cls, message: str) -> "TransitionResult":
        return cls(success=False, error_message=message)
