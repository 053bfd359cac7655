"""Postgres storage backend for tasks."""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List

import psycopg
from psycopg.rows import dict_row
from pydantic import ValidationError

from ..models import Task, TaskStatus
from ..rpc import SendResult

logger = logging.getLogger(__name__)


def row_to_task(row: Dict[str, Any]) -> Task:
    created_at = row["created_at"]
    if isinstance(created_at, datetime):
        created_at = int(created_at.timestamp())
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        status=TaskStatus(row["status"]),
        created_at=int(created_at),
        assigned_to=row.get("assigned_to"),
    )


class PostgresTaskStore:
    """Stores tasks in a ``task_manager_tasks`` table.

    The schema is created on first use rather than in ``__init__`` so an
    unreachable database shows up as an ``Offline`` outcome instead of a startup
    failure.
    """

    def __init__(self, db_url: str) -> None:
        self.db_url = db_url
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.db_url, row_factory=dict_row)

    def _ensure_schema(self) -> None:
        with self._schema_lock:
            if self._schema_ready:
                return
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS task_manager_tasks (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL,
                        status TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        assigned_to TEXT,
                        updated_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS task_manager_tasks_status_idx ON task_manager_tasks(status)"
                )
                conn.commit()
            self._schema_ready = True

    def upsert_task(self, task: Task) -> None:
        self._ensure_schema()
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_manager_tasks (
                    id, title, description, status, created_at, assigned_to, updated_at
                ) VALUES (%s,%s,%s,%s,%s,%s,%s)
                ON CONFLICT (id) DO UPDATE SET
                    title=excluded.title,
                    description=excluded.description,
                    status=excluded.status,
                    assigned_to=excluded.assigned_to,
                    updated_at=excluded.updated_at
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    task.status.value,
                    datetime.fromtimestamp(task.created_at, tz=timezone.utc),
                    task.assigned_to,
                    now,
                ),
            )
            conn.commit()

    def list_tasks(self, status: TaskStatus, limit: int = 1000) -> List[Dict[str, Any]]:
        self._ensure_schema()
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, title, description, status, created_at, assigned_to
                FROM task_manager_tasks
                WHERE status = %s
                ORDER BY created_at ASC
                LIMIT %s
                """,
                (status.value, limit),
            ).fetchall()
        return list(rows)

    async def add_task(self, task: Task, *, timeout: float) -> SendResult[bool]:
        try:
            await asyncio.wait_for(asyncio.to_thread(self.upsert_task, task), timeout)
        except asyncio.TimeoutError:
            return SendResult.timeout(f"no reply within {timeout}s")
        except psycopg.Error as exc:
            logger.warning("Postgres rejected task %s: %s", task.id, exc)
            return SendResult.offline(str(exc))
        return SendResult.success(True)

    async def get_tasks_by_status(self, status: TaskStatus, *, timeout: float) -> SendResult[List[Task]]:
        try:
            rows = await asyncio.wait_for(asyncio.to_thread(self.list_tasks, status), timeout)
        except asyncio.TimeoutError:
            return SendResult.timeout(f"no reply within {timeout}s")
        except psycopg.Error as exc:
            logger.warning("Postgres query for %s tasks failed: %s", status.value, exc)
            return SendResult.offline(str(exc))
        try:
            return SendResult.success([row_to_task(row) for row in rows])
        except (KeyError, ValueError, ValidationError) as exc:
            return SendResult.deserialization_error(str(exc))

    async def close(self) -> None:
        return None
