"""certflow: certificate-application workflow engine."""

from .contracts import (
    FieldChange,
    RuleViolation,
    TransitionResult,
    ValidationResult,
    WorkflowSubmission,
)
from .definitions import get_definition_provider
from .engine import WorkflowEngine
from .models import WorkflowDefinition, WorkflowStep
from .persistence import StepHistoryEntry, WorkflowInstance, get_repository
from .state_machine import WorkflowEvent, WorkflowStateMachine
from .validation import BusinessRuleRegistry, RuleFactory

__version__ = "0.1.0"
__all__ = [
    "BusinessRuleRegistry",
    "FieldChange",
    "RuleFactory",
    "RuleViolation",
    "StepHistoryEntry",
    "TransitionResult",
    "ValidationResult",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowEvent",
    "WorkflowInstance",
    "WorkflowStateMachine",
    "WorkflowStep",
    "WorkflowSubmission",
    "get_definition_provider",
    "get_repository",
]
