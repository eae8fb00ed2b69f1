"""Data models for persisted workflow state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_PRIORITY, DEFAULT_WORKFLOW_TYPE, STATUS_IN_PROGRESS
from ..contracts import FieldChange


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepHistoryEntry(BaseModel):
    """Audit record of one completed step. Never edited once appended."""

    step_id: str
    completed_at: datetime = Field(default_factory=_utcnow)
    completed_by: str = ""
    actor_role: str = ""
    data_snapshot: dict[str, Any] = Field(default_factory=dict)
    changed_fields: dict[str, FieldChange] = Field(default_factory=dict)
    decision: Optional[str] = None
    comments: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TransitionAuditRecord(BaseModel):
    """Audit record of a workflow status transition."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    from_state: str
    to_state: str
    event: str
    triggered_by: str = ""
    triggered_by_role: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    comments: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class WorkflowInstance(BaseModel):
    """Persisted workflow instance data.

    ``version`` is 0 until the instance is first saved and is incremented by
    the repository on every successful save.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    definition_id: str
    workflow_type: str = DEFAULT_WORKFLOW_TYPE
    current_step: str
    status: str = STATUS_IN_PROGRESS
    assigned_actor: Optional[str] = None
    current_data: dict[str, Any] = Field(default_factory=dict)
    step_history: list[StepHistoryEntry] = Field(default_factory=list)
    transitions: list[TransitionAuditRecord] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    sla_deadline: Optional[datetime] = None
    created_by: str = ""
    priority: int = DEFAULT_PRIORITY
    tags: list[str] = Field(default_factory=list)
    version: int = 0
