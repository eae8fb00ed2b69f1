"""Repository abstraction for workflow instance persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from .models import WorkflowInstance


class WorkflowRepository(Protocol):
    """Protocol for workflow instance persistence backends."""

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Retrieve the workflow instance by id."""

    async def save_instance(self, instance: WorkflowInstance) -> None:
        """Insert or update ``instance`` atomically.

        Compares ``instance.version`` with the stored version and raises
        :class:`~certflow.errors.ConcurrencyError` on mismatch. On success
        ``instance.version`` is incremented.
        """

    async def list_by_status(
        self, status: str, actor: Optional[str] = None
    ) -> list[WorkflowInstance]:
        """Return instances in ``status``, optionally assigned to ``actor``."""

    async def list_by_creator(self, created_by: str) -> list[WorkflowInstance]:
        """Return instances started by ``created_by``."""

    async def list_instances(self) -> list[WorkflowInstance]:
        """Return all persisted instances."""
