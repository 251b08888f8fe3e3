import asyncio
from typing import Any, Dict, List, Optional, Protocol

import aiohttp
from loguru import logger
from search_task_client.exceptions import TaskSourceError, TransientTransportError
from search_task_client.models import Task, TaskId, TasksQuery

# Raised when a kept-alive connection is dropped, stalls or is cut mid-body; the task may still be running
IDLE_TRANSPORT_ERRORS = (
    aiohttp.ServerDisconnectedError,
    aiohttp.ClientPayloadError,
    aiohttp.ServerTimeoutError,
    asyncio.TimeoutError,
)


class TaskStatusSource(Protocol):
    async def fetch(self, task_id: TaskId) -> Task:
        ...


class HttpTaskStatusSource:
    PATH = "/tasks"

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.logger = logger
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "HttpTaskStatusSource":
        if self._session is None:
            self._session = self._new_session()
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    def _new_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.request_timeout)
        )

    async def _get_json(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Issues a GET against the API and decodes the JSON body, classifying failures"""
        url = f"{self.base_url}{path}"

        if self._session is None:
            async with self._new_session() as session:
                return await self._request(session, url, params)
        return await self._request(self._session, url, params)

    async def _request(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Optional[Dict[str, str]],
    ) -> Dict[str, Any]:
        try:
            async with session.get(url, params=params) as response:
                response.raise_for_status()
                return await response.json()
        except IDLE_TRANSPORT_ERRORS as e:
            self.logger.warning(f"Connection to {url} went idle: {e!r}")
            raise TransientTransportError(f"Idle timeout reached for {url}") from e
        except aiohttp.ContentTypeError as e:
            self.logger.error(f"Invalid JSON from {url}: {e.message}")
            raise TaskSourceError(f"Invalid JSON from {url}: {e.message}") from e
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise TaskSourceError(f"HTTP error {e.status} at {url}: {e.message}", status=e.status) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Request to {url} failed: {e!r}")
            raise TaskSourceError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            self.logger.error(f"Invalid JSON from {url}: {e}")
            raise TaskSourceError(f"Invalid JSON from {url}: {e}") from e

    async def fetch(self, task_id: TaskId) -> Task:
        """Fetches the current state of a single task"""
        data = await self._get_json(f"{self.PATH}/{task_id}")
        try:
            return Task.from_payload(data, task_id)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TaskSourceError(f"Malformed task payload for {task_id}: {data!r}") from e

    async def get_tasks(self, query: Optional[TasksQuery] = None) -> List[Task]:
        """Lists tasks, optionally filtered"""
        query = query or TasksQuery()
        data = await self._get_json(self.PATH, query.to_params())
        try:
            return [Task.from_payload(item) for item in data["results"]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TaskSourceError(f"Malformed task list payload: {data!r}") from e
