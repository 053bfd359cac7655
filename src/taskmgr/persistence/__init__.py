"""Storage backends and the persistence bridge."""

from __future__ import annotations

from typing import Optional

from ..config import Settings
from .base import DEFAULT_STORAGE_TIMEOUT, PersistenceBridge, TaskStorage


def build_storage(settings: Settings) -> Optional[TaskStorage]:
    """Return the storage backend named by ``settings.storage.backend``."""
    spec = settings.storage
    if spec.backend == "none":
        return None
    if spec.backend == "postgres":
        from .postgres import PostgresTaskStore

        return PostgresTaskStore(spec.db_url or "")
    from ..clients import TaskStorageClient

    return TaskStorageClient(spec.url)


__all__ = ["DEFAULT_STORAGE_TIMEOUT", "PersistenceBridge", "TaskStorage", "build_storage"]
