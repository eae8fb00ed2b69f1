"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import asyncpg

from ..errors import ConcurrencyError
from .models import WorkflowInstance
from .repository import WorkflowRepository
from .sqlite import COLUMNS, JSON_COLUMNS, SELECT_COLUMNS, row_to_instance

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMNS = ("started_at", "completed_at", "sla_deadline")


def _params(instance: WorkflowInstance, version: int) -> list[Any]:
    """Column values in ``COLUMNS`` order, keeping timestamps as datetimes."""
    dumped = instance.model_dump(mode="json")
    values: list[Any] = []
    for column in COLUMNS:
        if column == "version":
            values.append(version)
        elif column in TIMESTAMP_COLUMNS:
            values.append(getattr(instance, column))
        elif column in JSON_COLUMNS:
            values.append(json.dumps(dumped[column]))
        else:
            values.append(dumped[column])
    return values


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                id TEXT PRIMARY KEY,
                definition_id TEXT NOT NULL,
                workflow_type TEXT NOT NULL,
                current_step TEXT NOT NULL,
                status TEXT NOT NULL,
                assigned_actor TEXT,
                current_data JSONB NOT NULL,
                step_history JSONB NOT NULL,
                transitions JSONB NOT NULL,
                started_at TIMESTAMPTZ NOT NULL,
                completed_at TIMESTAMPTZ,
                sla_deadline TIMESTAMPTZ,
                created_by TEXT NOT NULL,
                priority INTEGER NOT NULL,
                tags JSONB NOT NULL,
                version INTEGER NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_workflow_instances_status "
            "ON workflow_instances (status, assigned_actor)"
        )

    async def _fetch(self, query: str, *params: Any) -> list[WorkflowInstance]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(query, *params)
        finally:
            await conn.close()
        return [row_to_instance(r) for r in rows]

    # ------------------------------------------------------------------
    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        found = await self._fetch(
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances WHERE id = $1",
            instance_id,
        )
        return found[0] if found else None

    async def save_instance(self, instance: WorkflowInstance) -> None:
        params = _params(instance, instance.version + 1)
        conn = await self._connect()
        try:
            if instance.version == 0:
                placeholders = ", ".join(f"${i}" for i in range(1, len(COLUMNS) + 1))
                status = await conn.execute(
                    f"INSERT INTO workflow_instances ({SELECT_COLUMNS}) "
                    f"VALUES ({placeholders}) ON CONFLICT (id) DO NOTHING",
                    *params,
                )
            else:
                assignments = ", ".join(
                    f"{column} = ${i}" for i, column in enumerate(COLUMNS[1:], start=2)
                )
                n = len(COLUMNS)
                status = await conn.execute(
                    f"UPDATE workflow_instances SET {assignments} "
                    f"WHERE id = $1 AND version = ${n + 1}",
                    *params,
                    instance.version,
                )
        finally:
            await conn.close()

        # asyncpg returns the command tag, e.g. "UPDATE 1" or "INSERT 0 1".
        if status.rsplit(" ", 1)[-1] == "0":
            raise ConcurrencyError(instance.id, instance.version)
        instance.version += 1
        logger.debug(f"Saved workflow instance {instance.id} (version {instance.version})")

    async def list_by_status(
        self, status: str, actor: Optional[str] = None
    ) -> list[WorkflowInstance]:
        if actor:
            return await self._fetch(
                f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
                "WHERE status = $1 AND assigned_actor = $2 ORDER BY started_at DESC",
                status,
                actor,
            )
        return await self._fetch(
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
            "WHERE status = $1 ORDER BY started_at DESC",
            status,
        )

    async def list_by_creator(self, created_by: str) -> list[WorkflowInstance]:
        return await self._fetch(
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances "
            "WHERE created_by = $1 ORDER BY started_at DESC",
            created_by,
        )

    async def list_instances(self) -> list[WorkflowInstance]:
        return await self._fetch(
            f"SELECT {SELECT_COLUMNS} FROM workflow_instances ORDER BY started_at DESC"
        )
