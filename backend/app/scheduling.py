"""Registry of recurring background tasks.

Tasks are declared here with their cron expression and timezone; the actual
triggering is done from outside the process (Airflow DAG or system cron
calling ``POST /api/jobs/{name}``).
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecurringTask:
    """A named job with its schedule.

    Attributes:
        name: Unique job name (used in the trigger URL)
        cron: Five-field cron expression
        timezone: IANA timezone the cron expression is evaluated in
        callback: Coroutine function run when the job fires
    """

    name: str
    cron: str
    timezone: str
    callback: Callable[[], Awaitable[Any]]


class UnknownTaskError(KeyError):
    """No task registered under the requested name."""


class TaskRegistry:
    def __init__(self) -> None:
        self._tasks: dict[str, RecurringTask] = {}

    def register(self, task: RecurringTask) -> None:
        if task.name in self._tasks:
            raise ValueError(f"Task already registered: {task.name}")
        self._tasks[task.name] = task
        logger.debug(f"Registered task {task.name} ({task.cron} {task.timezone})")

    def get(self, name: str) -> RecurringTask:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name) from None

    def all(self) -> list[RecurringTask]:
        return list(self._tasks.values())

    async def run(self, name: str) -> Any:
        """Run a task now.

        Failures are logged and reported as None so a broken job never takes
        down the trigger endpoint.

        Raises:
            UnknownTaskError: no task with that name
        """
        task = self.get(name)
        logger.info(f"Running task {name}")
        try:
            result = await task.callback()
        except Exception:
            logger.exception(f"Task {name} failed")
            return None
        logger.info(f"Task {name} finished")
        return result
