"""In-memory task registry that owns the authoritative task collection."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional

from .models import Task, TaskManagerStats, TaskStatus

IdFactory = Callable[[], str]
Clock = Callable[[], float]


class TaskNotFound(KeyError):
    """Raised when a task identifier is not in the registry."""

    def __init__(self, task_id: str) -> None:
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task {self.task_id} not found"


class DuplicateTaskError(RuntimeError):
    """Raised when the id factory yields an identifier that is already registered."""


def new_task_id() -> str:
    return str(uuid.uuid4())


class TaskRegistry:
    """Keyed task collection plus creation and request counters.

    Every operation holds the registry lock for its duration, so mutations never
    interleave. Returned tasks are copies; the only way to change a stored task
    is through :meth:`update_status`.
    """

    def __init__(self, *, id_factory: Optional[IdFactory] = None, clock: Optional[Clock] = None) -> None:
        self._id_factory = id_factory or new_task_id
        self._clock = clock or time.time
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.RLock()
        self.creation_count = 0
        self.request_count = 0

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def _now(self) -> int:
        return int(self._clock())

    def create(self, title: str, description: str, assigned_to: Optional[str] = None) -> Task:
        with self._lock:
            self.request_count += 1
            task_id = self._id_factory()
            if task_id in self._tasks:
                raise DuplicateTaskError(f"Task id {task_id} already registered")
            task = Task(
                id=task_id,
                title=title,
                description=description,
                status=TaskStatus.PENDING,
                created_at=self._now(),
                assigned_to=assigned_to,
            )
            self._tasks[task_id] = task
            self.creation_count += 1
            return task.model_copy()

    def seed(self, title: str, description: str) -> Task:
        """Insert the built-in welcome task without counting it as a request."""
        with self._lock:
            task_id = self._id_factory()
            if task_id in self._tasks:
                raise DuplicateTaskError(f"Task id {task_id} already registered")
            task = Task(id=task_id, title=title, description=description, created_at=self._now())
            self._tasks[task_id] = task
            return task.model_copy()

    def restore(self, tasks: Iterable[Task]) -> int:
        """Insert previously persisted tasks, replacing entries with the same id."""
        count = 0
        with self._lock:
            for task in tasks:
                self._tasks[task.id] = task.model_copy()
                count += 1
        return count

    def get_all(self) -> List[Task]:
        with self._lock:
            self.request_count += 1
            return [task.model_copy() for task in self._tasks.values()]

    def get(self, task_id: str) -> Task:
        with self._lock:
            self.request_count += 1
            try:
                return self._tasks[task_id].model_copy()
            except KeyError:
                raise TaskNotFound(task_id) from None

    def update_status(self, task_id: str, new_status: TaskStatus) -> Task:
        # Any status may follow any other.
        with self._lock:
            self.request_count += 1
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFound(task_id)
            task.status = new_status
            return task.model_copy()

    def get_by_status(self, status: TaskStatus) -> List[Task]:
        with self._lock:
            return [task.model_copy() for task in self._tasks.values() if task.status == status]

    def statistics(self) -> TaskManagerStats:
        # Full scan on every call; fine for small registries.
        with self._lock:
            tasks = list(self._tasks.values())
            return TaskManagerStats(
                total_tasks=len(tasks),
                pending_tasks=sum(1 for task in tasks if task.status == TaskStatus.PENDING),
                completed_tasks=sum(1 for task in tasks if task.status == TaskStatus.COMPLETED),
                creation_count=self.creation_count,
                request_count=self.request_count,
            )
