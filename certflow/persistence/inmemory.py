"""In-memory implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional

from ..errors import ConcurrencyError
from .models import WorkflowInstance
from .repository import WorkflowRepository

logger = logging.getLogger(__name__)


def _newest_first(instances: Iterable[WorkflowInstance]) -> list[WorkflowInstance]:
    return sorted(instances, key=lambda wf: wf.started_at, reverse=True)


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Instances are copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, WorkflowInstance] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        stored = self._instances.get(instance_id)
        return stored.model_copy(deep=True) if stored else None

    async def save_instance(self, instance: WorkflowInstance) -> None:
        async with self._lock:
            stored = self._instances.get(instance.id)
            stored_version = stored.version if stored else 0
            if stored_version != instance.version:
                raise ConcurrencyError(instance.id, instance.version)
            instance.version += 1
            self._instances[instance.id] = instance.model_copy(deep=True)
        logger.debug(f"Saved workflow instance {instance.id} (version {instance.version})")

    async def list_by_status(
        self, status: str, actor: Optional[str] = None
    ) -> list[WorkflowInstance]:
        return _newest_first(
            wf.model_copy(deep=True)
            for wf in self._instances.values()
            if wf.status == status and (not actor or wf.assigned_actor == actor)
        )

    async def list_by_creator(self, created_by: str) -> list[WorkflowInstance]:
        return _newest_first(
            wf.model_copy(deep=True)
            for wf in self._instances.values()
            if wf.created_by == created_by
        )

    async def list_instances(self) -> list[WorkflowInstance]:
        return _newest_first(wf.model_copy(deep=True) for wf in self._instances.values())
