from __future__ import annotations

import pytest

from taskmgr.config import Settings
from taskmgr.registry import TaskRegistry
from taskmgr.service import TaskManager

from .fakes import FakeStorage, RecordingSender, SequentialIds


@pytest.fixture()
def settings() -> Settings:
    return Settings.from_yaml(
        """
name: test-manager
storage:
  backend: none
  timeout: 0.2
"""
    )


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def registry() -> TaskRegistry:
    return TaskRegistry(id_factory=SequentialIds(), clock=lambda: 1_700_000_000.5)


@pytest.fixture()
def manager(settings: Settings, storage: FakeStorage, sender: RecordingSender, registry: TaskRegistry) -> TaskManager:
    return TaskManager(settings, sender=sender, storage=storage, registry=registry)
