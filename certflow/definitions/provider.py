"""Provider abstraction for workflow and step definitions."""

from __future__ import annotations

from typing import Protocol

from ..models import WorkflowDefinition, WorkflowStep


class DefinitionProvider(Protocol):
    """Protocol for sources of static workflow configuration."""

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        """Return the definition with ``definition_id`` or ``None``."""

    async def get_step(self, step_ref: str) -> WorkflowStep | None:
        """Return the step document referenced by ``step_ref`` or ``None``."""

    async def list_definitions(self) -> list[WorkflowDefinition]:
        """Return every available definition."""
