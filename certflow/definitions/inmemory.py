"""In-memory definition provider."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping

from ..models import WorkflowDefinition, WorkflowStep
from .provider import DefinitionProvider


class InMemoryDefinitionProvider(DefinitionProvider):
    """Serve definitions and steps registered in process.

    Steps are keyed by the ``stepRef`` that definitions use to point at them.
    """

    def __init__(
        self,
        definitions: Iterable[WorkflowDefinition] = (),
        steps: Mapping[str, WorkflowStep] | None = None,
    ) -> None:
        self._definitions: Dict[str, WorkflowDefinition] = {
            d.certification_id: d for d in definitions
        }
        self._steps: Dict[str, WorkflowStep] = dict(steps or {})

    def add_definition(self, definition: WorkflowDefinition) -> None:
        self._definitions[definition.certification_id] = definition

    def add_step(self, step_ref: str, step: WorkflowStep) -> None:
        self._steps[step_ref] = step

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        return self._definitions.get(definition_id)

    async def get_step(self, step_ref: str) -> WorkflowStep | None:
        return self._steps.get(step_ref)

    async def list_definitions(self) -> list[WorkflowDefinition]:
        return list(self._definitions.values())
