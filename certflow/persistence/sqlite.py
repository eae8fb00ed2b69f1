"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ..errors import ConcurrencyError
from .models import WorkflowInstance
from .repository import WorkflowRepository

logger = logging.getLogger(__name__)

# Columns holding JSON documents rather than scalars.
JSON_COLUMNS = ("current_data", "step_history", "transitions", "tags")
COLUMNS = (
    "id",
    "definition_id",
    "workflow_type",
    "current_step",
    "status",
    "assigned_actor",
    "current_data",
    "step_history",
    "transitions",
    "started_at",
    "completed_at",
    "sla_deadline",
    "created_by",
    "priority",
    "tags",
    "version",
)
SELECT_COLUMNS = ", ".join(COLUMNS)


def instance_to_row(instance: WorkflowInstance, version: int) -> dict[str, Any]:
    """Flatten ``instance`` into column values, JSON-encoding nested data."""
    data = instance.model_dump(mode="json")
    data["version"] = version
    for column in JSON_COLUMNS:
        data[column] = json.dumps(data[column])
    return data


def row_to_instance(row: Any) -> WorkflowInstance:
    data = {column: row[column] for column in COLUMNS}
    for column in JSON_COLUMNS:
        value = data[column]
        data[column] = json.loads(value) if isinstance(value, str) else value
    return WorkflowInstance.model_validate(data)


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                id TEXT PRIMARY KEY,
                definition_id TEXT NOT NULL,
                workflow_type TEXT NOT NULL,
                current_step TEXT NOT NULL,
                status TEXT NOT NULL,
                assigned_actor TEXT,
                current_data TEXT NOT NULL,
                step_history TEXT NOT NULL,
                transitions TEXT NOT NULL,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                sla_deadline TEXT,
                created_by TEXT NOT NULL,
                priority INTEGER NOT NULL,
                tags TEXT NOT NULL,
                version INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_workflow_instances_status "
            "ON workflow_instances (status, assigned_actor)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        try:
            cur.execute(query, params)
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _insert(self, row: dict[str, Any]) -> int:
        placeholders = ", ".join("?" for _ in COLUMNS)
        try:
            return self._execute(
                f"INSERT INTO workflow_instances ({SELECT_COLUMNS}) VALUES ({placeholders})",
                *(row[column] for column in COLUMNS),
            )
        except sqlite3.IntegrityError:
            return 0

    def _update(self, row: dict[str, Any], expected_version: int) -> int:
        assignments = ", ".join(f"{column} = ?" for column in COLUMNS[1:])
        return self._execute(
            f"UPDATE workflow_instances SET {assignments} WHERE id = ? AND version = ?",
            *(row[column] for column in COLUMNS[1:]),
            row["id"],
            expected_version,
        )

    # ------------------------------------------------------------------
    # Repository API
    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances WHERE id = ?",
            instance_id,
        )
        return row_to_instance(row) if row else None

    async def save_instance(self, instance: WorkflowInstance) -> None:
        row = instance_to_row(instance, instance.version + 1)
        if instance.version == 0:
            updated = await asyncio.to_thread(self._insert, row)
        else:
            updated = await asyncio.to_thread(self._update, row, instance.version)
        if not updated:
            raise ConcurrencyError(instance.id, instance.version)
        instance.version += 1
        logger.debug(f"Saved workflow instance {instance.id} (version {instance.version})")

    async def list_by_status(
        self, status: str, actor: Optional[str] = None
    ) -> list[WorkflowInstance]:
        if actor:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
                "WHERE status = ? AND assigned_actor = ? ORDER BY started_at DESC",
                status,
                actor,
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
                "WHERE status = ? ORDER BY started_at DESC",
                status,
            )
        return [row_to_instance(r) for r in rows]

    async def list_by_creator(self, created_by: str) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
            "WHERE created_by = ? ORDER BY started_at DESC",
            created_by,
        )
        return [row_to_instance(r) for r in rows]

    async def list_instances(self) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances ORDER BY started_at DESC",
        )
        return [row_to_instance(r) for r in rows]
