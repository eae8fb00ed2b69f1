"""Step lookup and next-step resolution over a workflow definition."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from .constants import COMPLETED_STEP, SYSTEM_ACTOR
from .definitions import DefinitionProvider
from .errors import StepNotFoundError
from .models import StepReference, WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)


class Transition(BaseModel):
    """Where a workflow goes after a step is completed."""

    completed: bool
    reference: Optional[StepReference] = None
    step: Optional[WorkflowStep] = None

    @property
    def step_id(self) -> str:
        return self.step.step_id if self.step else COMPLETED_STEP


class StepTransitionResolver:
    """Resolve step identifiers against a definition's ordered step list.

    A step id matches a reference when it equals the reference's ``step_id``
    or the last path segment of its ``step_ref``. With
    ``legacy_suffix_matching`` enabled, a plain ``endswith`` on the full
    reference path is accepted as a last resort.
    """

    def __init__(
        self, provider: DefinitionProvider, legacy_suffix_matching: bool = False
    ) -> None:
        self._provider = provider
        self.legacy_suffix_matching = legacy_suffix_matching

    def _find_index(self, definition: WorkflowDefinition, step_id: str) -> int | None:
        for index, reference in enumerate(definition.steps):
            if reference.step_id == step_id or reference.ref_tail == step_id:
                return index
        if self.legacy_suffix_matching:
            for index, reference in enumerate(definition.steps):
                if reference.step_ref.endswith(step_id):
                    logger.warning(
                        f"Step {step_id!r} matched {reference.step_ref!r} by suffix only"
                    )
                    return index
        return None

    def find_reference(
        self, definition: WorkflowDefinition, step_id: str
    ) -> StepReference | None:
        index = self._find_index(definition, step_id)
        return definition.steps[index] if index is not None else None

    def index_of(self, definition: WorkflowDefinition, step_id: str) -> int:
        index = self._find_index(definition, step_id)
        if index is None:
            raise StepNotFoundError(step_id)
        return index

    def actor_for(
        self,
        definition: WorkflowDefinition,
        step_id: str,
        step: Optional[WorkflowStep] = None,
    ) -> str:
        reference = self.find_reference(definition, step_id)
        if reference is not None and reference.actor:
            return reference.actor
        if step is not None and step.actor:
            return step.actor
        return SYSTEM_ACTOR

    async def load_reference(self, reference: StepReference) -> WorkflowStep:
        step = await self._provider.get_step(reference.step_ref)
        if step is None:
            raise StepNotFoundError(reference.step_ref)
        return step

    async def load_step(
        self, definition: WorkflowDefinition, step_id: str
    ) -> tuple[StepReference, WorkflowStep]:
        reference = self.find_reference(definition, step_id)
        if reference is None:
            raise StepNotFoundError(step_id)
        return reference, await self.load_reference(reference)

    async def first_step(
        self, definition: WorkflowDefinition
    ) -> tuple[StepReference, WorkflowStep]:
        if not definition.steps or not definition.steps[0].step_ref:
            raise StepNotFoundError(f"{definition.certification_id} (first step)")
        reference = definition.steps[0]
        return reference, await self.load_reference(reference)

    def next_target(
        self,
        definition: WorkflowDefinition,
        step_id: str,
        step: Optional[WorkflowStep] = None,
    ) -> str:
        """Identifier of the step after ``step_id``, or ``"completed"``.

        Precedence: the reference's ``overrides.nextStep``, the step
        document's ``stepConfig.nextStep``, then the following reference in
        definition order. The last step completes the workflow.
        """
        index = self.index_of(definition, step_id)
        reference = definition.steps[index]
        if reference.next_step_override:
            return reference.next_step_override
        if step is not None and step.step_config.next_step:
            return step.step_config.next_step
        if index + 1 < len(definition.steps):
            following = definition.steps[index + 1]
            return following.step_id or following.ref_tail
        return COMPLETED_STEP

    async def resolve_next(
        self,
        definition: WorkflowDefinition,
        step_id: str,
        step: Optional[WorkflowStep] = None,
    ) -> Transition:
        target = self.next_target(definition, step_id, step)
        if target == COMPLETED_STEP:
            return Transition(completed=True)
        reference, next_step = await self.load_step(definition, target)
        return Transition(completed=False, reference=reference, step=next_step)
