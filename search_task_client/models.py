from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

MIN_INTERVAL_MS = 500

TaskId = Union[int, str]


class TaskStatus(str, Enum):
    enqueued = "enqueued"
    processing = "processing"
    succeeded = "succeeded"
    failed = "failed"
    canceled = "canceled"
    unknown = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.enqueued, TaskStatus.processing)


class Task(BaseModel):
    uid: TaskId
    status: TaskStatus
    raw_response: dict

    @field_validator("status", mode="before")
    @classmethod
    def _canonicalize_status(cls, value: Any) -> Any:
        # Statuses the server adds later are kept terminal
        if isinstance(value, TaskStatus):
            return value
        try:
            return TaskStatus(value)
        except ValueError:
            return TaskStatus.unknown

    @classmethod
    def from_payload(cls, data: Dict[str, Any], task_id: Optional[TaskId] = None) -> "Task":
        return cls(
            uid=data.get("uid", task_id),
            status=data["status"],
            raw_response=data,
        )


class WaitConfig(BaseModel):
    timeout_ms: int = Field(default=5000, ge=0)
    interval_ms: int = 50

    @property
    def effective_interval_ms(self) -> int:
        """Poll spacing actually used, never below MIN_INTERVAL_MS"""
        return max(self.interval_ms, MIN_INTERVAL_MS)


class TasksQuery(BaseModel):
    uids: Optional[List[TaskId]] = None
    statuses: Optional[List[TaskStatus]] = None
    types: Optional[List[str]] = None
    index_uids: Optional[List[str]] = None
    limit: Optional[int] = None
    from_: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        """Query-string parameters for the task list endpoint, unset fields omitted"""
        lists = {
            "uids": self.uids,
            "statuses": [s.value for s in self.statuses] if self.statuses else None,
            "types": self.types,
            "indexUids": self.index_uids,
        }
        params = {key: ",".join(str(v) for v in values) for key, values in lists.items() if values}

        if self.limit is not None:
            params["limit"] = str(self.limit)
        if self.from_ is not None:
            params["from"] = str(self.from_)
        return params
