"""Workflow engine: create instances, validate and submit steps."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Sequence

from pydantic import TypeAdapter

from .changes import track_field_changes
from .config import CertflowConfig, load_config
from .constants import (
    COMPLETED_STEP,
    EDITABLE_STATUSES,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
)
from .contracts import ValidationResult, WorkflowSubmission
from .definitions import DefinitionProvider, get_definition_provider
from .errors import (
    DefinitionNotFoundError,
    InstanceNotFoundError,
    InvalidOperationError,
    InvalidStepError,
    ValidationFailedError,
)
from .models import StepReference, WorkflowDefinition, WorkflowStep
from .persistence import (
    StepHistoryEntry,
    WorkflowInstance,
    WorkflowRepository,
    get_repository,
)
from .transitions import StepTransitionResolver
from .validation import BusinessRuleRegistry, RuleFactory, default_business_rules

logger = logging.getLogger(__name__)

_form_data_adapter = TypeAdapter(dict[str, Any])


def _as_stored(form_data: Mapping[str, Any]) -> dict[str, Any]:
    """Form data in the JSON types every repository backend stores."""
    return _form_data_adapter.dump_python(dict(form_data), mode="json")


class WorkflowEngine:
    """Drives workflow instances through the linear step sequence of their definition.

    Every operation is a single read-modify-write against the repository.
    Nothing is saved when an operation fails, and the repository rejects
    saves made from a stale copy of an instance.
    """

    def __init__(
        self,
        definitions: DefinitionProvider | None = None,
        repository: WorkflowRepository | None = None,
        rule_factory: RuleFactory | None = None,
        business_rules: BusinessRuleRegistry | None = None,
        config: CertflowConfig | None = None,
    ) -> None:
        self._config = config or load_config()
        self._definitions = definitions or get_definition_provider(config=config)
        self._repository = repository or get_repository(config=config)
        self._rule_factory = rule_factory or RuleFactory()
        self._business_rules = (
            business_rules if business_rules is not None else default_business_rules()
        )
        self.resolver = StepTransitionResolver(
            self._definitions,
            legacy_suffix_matching=self._config.legacy_suffix_matching,
        )

    # ------------------------------------------------------------------
    # Lookups
    async def _require_definition(self, definition_id: str) -> WorkflowDefinition:
        definition = await self._definitions.get_definition(definition_id)
        if definition is None:
            logger.warning(f"Workflow definition not found: {definition_id}")
            raise DefinitionNotFoundError(definition_id)
        return definition

    async def _require_instance(self, instance_id: str) -> WorkflowInstance:
        instance = await self._repository.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        return instance

    @staticmethod
    def _require_editable(instance: WorkflowInstance) -> None:
        if instance.status not in EDITABLE_STATUSES:
            raise InvalidOperationError(
                f"Workflow instance {instance.id} is {instance.status} and cannot be changed"
            )

    @property
    def repository(self) -> WorkflowRepository:
        return self._repository

    @property
    def definitions(self) -> DefinitionProvider:
        return self._definitions

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        return await self._definitions.get_definition(definition_id)

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        return await self._repository.get_instance(instance_id)

    async def list_definitions(self) -> list[WorkflowDefinition]:
        return await self._definitions.list_definitions()

    async def get_workflows_by_status(
        self, status: str, actor: Optional[str] = None
    ) -> list[WorkflowInstance]:
        return await self._repository.list_by_status(status, actor)

    async def get_workflows_by_creator(self, created_by: str) -> list[WorkflowInstance]:
        return await self._repository.list_by_creator(created_by)

    async def list_instances(self) -> list[WorkflowInstance]:
        return await self._repository.list_instances()

    # ------------------------------------------------------------------
    # Lifecycle
    async def create_instance(
        self,
        definition_id: str,
        created_by: str,
        priority: Optional[int] = None,
        tags: Sequence[str] = (),
    ) -> WorkflowInstance:
        """Start a new instance positioned on the definition's first step."""
        definition = await self._require_definition(definition_id)
        reference, first_step = await self.resolver.first_step(definition)

        now = datetime.now(timezone.utc)
        instance = WorkflowInstance(
            definition_id=definition_id,
            current_step=first_step.step_id,
            status=STATUS_IN_PROGRESS,
            assigned_actor=first_step.actor or reference.actor,
            started_at=now,
            created_by=created_by,
            priority=(
                priority if priority is not None else self._config.engine.default_priority
            ),
            tags=list(tags),
        )
        if definition.sla_config.total_sla_days > 0:
            instance.sla_deadline = now + timedelta(days=definition.sla_config.total_sla_days)

        await self._repository.save_instance(instance)
        logger.info(f"Created workflow instance {instance.id} for {definition_id}")
        return instance

    async def _validate(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        step_id: str,
        form_data: Mapping[str, Any],
    ) -> tuple[ValidationResult, StepReference, WorkflowStep]:
        if instance.current_step != step_id:
            logger.warning(
                f"Rejected step {step_id} for instance {instance.id}: "
                f"current step is {instance.current_step}"
            )
            raise InvalidStepError(step_id, instance.current_step)

        reference, step = await self.resolver.load_step(definition, step_id)
        rules = self._rule_factory.create_rules_from_step(step)
        context = {
            "_workflow_id": instance.id,
            "_certificate_type": instance.definition_id,
            "_current_data": instance.current_data,
        }
        results = [rule.validate(form_data, context) for rule in rules]
        results.append(
            self._business_rules.evaluate(step_id, form_data, instance.current_data)
        )
        return ValidationResult.combine(results), reference, step

    async def validate_step(
        self, instance_id: str, step_id: str, form_data: Mapping[str, Any]
    ) -> ValidationResult:
        """Run every rule for ``step_id`` against ``form_data``.

        Violations are returned, not raised. A missing instance or a step
        that is not the instance's current step raise.
        """
        instance = await self._require_instance(instance_id)
        definition = await self._require_definition(instance.definition_id)
        result, _, _ = await self._validate(instance, definition, step_id, form_data)
        return result

    async def submit_step(
        self, instance_id: str, submission: WorkflowSubmission
    ) -> WorkflowInstance:
        """Validate, merge and record ``submission`` then advance the instance."""
        instance = await self._require_instance(instance_id)
        self._require_editable(instance)
        definition = await self._require_definition(instance.definition_id)

        result, _, step = await self._validate(
            instance, definition, submission.step_id, submission.form_data
        )
        if not result.is_valid:
            logger.warning(
                f"Validation failed for instance {instance.id} step {submission.step_id}: "
                f"{len(result.errors)} violation(s)"
            )
            raise ValidationFailedError(result)

        transition = await self.resolver.resolve_next(definition, submission.step_id, step)

        form_data = _as_stored(submission.form_data)
        changed_fields = track_field_changes(instance.current_data, form_data)
        instance.current_data.update(form_data)
        instance.step_history.append(
            StepHistoryEntry(
                step_id=submission.step_id,
                completed_by=submission.submitted_by,
                actor_role=self.resolver.actor_for(definition, submission.step_id, step),
                data_snapshot=dict(instance.current_data),
                changed_fields=changed_fields,
                decision=submission.decision,
                comments=submission.comments,
            )
        )

        if transition.completed:
            instance.status = STATUS_COMPLETED
            instance.current_step = COMPLETED_STEP
            instance.completed_at = datetime.now(timezone.utc)
        else:
            instance.current_step = transition.step.step_id
            instance.assigned_actor = transition.step.actor or transition.reference.actor

        await self._repository.save_instance(instance)
        if transition.completed:
            logger.info(f"Workflow instance {instance.id} completed")
        else:
            logger.info(
                f"Workflow instance {instance.id} moved to step {instance.current_step}"
            )
        return instance

    async def save_draft(
        self, instance_id: str, form_data: Mapping[str, Any]
    ) -> WorkflowInstance:
        """Merge ``form_data`` into the instance without validating or advancing."""
        instance = await self._require_instance(instance_id)
        self._require_editable(instance)
        instance.current_data.update(_as_stored(form_data))
        await self._repository.save_instance(instance)
        logger.info(f"Saved draft data for workflow instance {instance_id}")
        return instance

    async def go_to_previous_step(
        self, instance_id: str, previous_step_id: str
    ) -> WorkflowInstance:
        """Move the instance back to an earlier step of its definition."""
        instance = await self._require_instance(instance_id)
        self._require_editable(instance)
        definition = await self._require_definition(instance.definition_id)

        target = self.resolver.index_of(definition, previous_step_id)
        current = self.resolver.index_of(definition, instance.current_step)
        if target >= current:
            raise InvalidOperationError(
                f"Step {previous_step_id} does not precede {instance.current_step}"
            )

        reference, step = await self.resolver.load_step(definition, previous_step_id)
        instance.current_step = step.step_id
        instance.assigned_actor = step.actor or reference.actor
        await self._repository.save_instance(instance)
        logger.info(
            f"Moved workflow instance {instance_id} back to step {instance.current_step}"
        )
        return instance

    async def get_step_history(
        self, instance_id: str, step_id: str
    ) -> StepHistoryEntry | None:
        """Most recent history entry recorded for ``step_id``."""
        instance = await self._require_instance(instance_id)
        entries = [entry for entry in instance.step_history if entry.step_id == step_id]
        # Later entries win ties on completion time.
        return max(reversed(entries), key=lambda entry: entry.completed_at, default=None)
