from typing import Optional, Union


class TaskClientError(Exception):
    """Base class for errors raised by the task client"""


class TransientTransportError(TaskClientError):
    """The connection to the status endpoint was dropped while idle; the task itself is unaffected"""


class TaskSourceError(TaskClientError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TaskTimeoutError(TaskClientError, TimeoutError):
    def __init__(
        self,
        task_id: Union[int, str],
        timeout_ms: int,
        elapsed_ms: int,
        last_status: str = "unknown",
    ):
        self.task_id = task_id
        self.timeout_ms = timeout_ms
        self.elapsed_ms = elapsed_ms
        self.last_status = last_status
        super().__init__(
            f"Task {task_id} did not complete within the timeout of {timeout_ms} ms, "
            f"waited {elapsed_ms} ms - last known status: {last_status}."
        )
