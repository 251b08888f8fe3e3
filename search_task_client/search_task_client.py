import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from loguru import logger as default_logger
from search_task_client.exceptions import TaskTimeoutError, TransientTransportError
from search_task_client.models import Task, TaskId, WaitConfig
from search_task_client.task_source import TaskStatusSource


class TaskWaiter:
    """Waits for asynchronous search-engine tasks by polling their status"""

    def __init__(
        self,
        source: TaskStatusSource,
        config: Optional[WaitConfig] = None,
        logger: Any = default_logger,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.config = config or WaitConfig()
        self.logger = logger
        self.sleep = sleep

    def _resolve_config(
        self, timeout_ms: Optional[int], interval_ms: Optional[int]
    ) -> WaitConfig:
        return WaitConfig(
            timeout_ms=self.config.timeout_ms if timeout_ms is None else timeout_ms,
            interval_ms=self.config.interval_ms if interval_ms is None else interval_ms,
        )

    async def wait_for_task(
        self,
        task_id: TaskId,
        timeout_ms: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> Task:
        """Poll a task until it reaches a terminal status or the timeout elapses"""
        config = self._resolve_config(timeout_ms, interval_ms)
        interval = config.effective_interval_ms
        elapsed = 0
        last_status = "unknown"

        self.logger.info(
            f"Waiting for task {task_id} (timeout: {config.timeout_ms} ms, interval: {interval} ms)"
        )

        while elapsed < config.timeout_ms:
            try:
                task = await self.source.fetch(task_id)

                if task.status.is_terminal:
                    self.logger.info(
                        f"Task {task_id} completed with status: {task.status.value} after {elapsed} ms"
                    )
                    return task

                last_status = task.status.value
            except TransientTransportError as e:
                self.logger.warning(
                    f"Task {task_id} after {elapsed} ms ran into an idle timeout, retrying: {e}"
                )

            elapsed += interval
            await self.sleep(interval / 1000)

            self.logger.debug(
                f"Iteration done, current timeout: {elapsed} of {config.timeout_ms} ms"
            )

        raise TaskTimeoutError(task_id, config.timeout_ms, elapsed, last_status)

    async def wait_for_tasks(
        self,
        task_ids: Iterable[TaskId],
        timeout_ms: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> List[Task]:
        """Wait for each task in turn; every task gets the full timeout"""
        tasks = []
        for task_id in task_ids:
            tasks.append(await self.wait_for_task(task_id, timeout_ms, interval_ms))
        return tasks
