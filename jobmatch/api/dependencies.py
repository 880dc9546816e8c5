"""
FastAPI dependencies shared by the routes.
"""

from typing import Any

from jobmatch.database import AsyncSessionLocal
from jobmatch.services.repository.base import ProfileJobRepository
from jobmatch.services.repository.sql_repository import SqlProfileJobRepository


def get_repository() -> ProfileJobRepository:
    return SqlProfileJobRepository(AsyncSessionLocal)


class CeleryTaskQueue:
    """Hands dispatch rounds to the Celery workers."""

    def enqueue(self, task, *args: Any) -> str:
        result = task.delay(*args)
        return result.id


def get_task_queue() -> CeleryTaskQueue:
    return CeleryTaskQueue()
