import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from aiohttp import web
from loguru import logger


@dataclass
class FakeTask:
    uid: int
    completion_time: float
    final_status: str = "succeeded"
    enqueued_time: float = 0.0
    start_time: Optional[datetime] = None
    fetches: int = 0


class TaskServer:
    """Serves the task endpoints of a search engine for tasks that finish after a set time"""

    def __init__(self, stall_seconds: float = 0.0, stalled_requests: int = 0):
        self.tasks: Dict[int, FakeTask] = {}
        self.stall_seconds = stall_seconds
        self.stalled_requests = stalled_requests
        self.runner: Optional[web.AppRunner] = None
        self.raw_responses: Dict[str, Tuple[str, str]] = {}
        self.requests: Dict[str, int] = {}
        self.app = web.Application(middlewares=[self.serve_raw])
        self.app.router.add_get("/tasks", self.handle_list)
        self.app.router.add_get("/tasks/{uid}", self.handle_task)
        self.logger = logger

    def add_task(
        self,
        uid: int,
        completion_time: float = 1.0,
        final_status: str = "succeeded",
        enqueued_time: float = 0.0,
    ) -> FakeTask:
        task = FakeTask(uid, completion_time, final_status, enqueued_time)
        self.tasks[uid] = task
        return task

    def set_raw_response(
        self, path: str, body: str, content_type: str = "application/json"
    ) -> None:
        """Answers every request to path with body verbatim"""
        self.raw_responses[path] = (body, content_type)

    @web.middleware
    async def serve_raw(self, request, handler):
        self.requests[request.path] = self.requests.get(request.path, 0) + 1
        if request.path in self.raw_responses:
            body, content_type = self.raw_responses[request.path]
            self.logger.info(f"Returning raw {content_type} body for {request.path}")
            return web.Response(text=body, content_type=content_type)
        return await handler(request)

    def _status_of(self, task: FakeTask) -> str:
        if task.start_time is None:
            task.start_time = datetime.now()

        elapsed = (datetime.now() - task.start_time).total_seconds()
        if elapsed >= task.completion_time:
            return task.final_status
        if elapsed >= task.enqueued_time:
            return "processing"
        return "enqueued"

    def _payload(self, task: FakeTask) -> dict:
        status = self._status_of(task)
        payload = {
            "uid": task.uid,
            "indexUid": "movies",
            "status": status,
            "type": "documentAdditionOrUpdate",
            "enqueuedAt": task.start_time.isoformat(),
        }
        if status == "failed":
            payload["error"] = {"message": "Document has no primary key", "code": "index_primary_key_no_candidate_found"}
        return payload

    async def handle_task(self, request):
        if self.stalled_requests > 0:
            self.stalled_requests -= 1
            self.logger.info(f"Stalling request for {self.stall_seconds}s")
            await asyncio.sleep(self.stall_seconds)

        try:
            task = self.tasks[int(request.match_info["uid"])]
        except (KeyError, ValueError):
            self.logger.info(f"Task {request.match_info['uid']} not found")
            return web.json_response(
                {"message": "Task not found.", "code": "task_not_found"}, status=404
            )

        task.fetches += 1
        payload = self._payload(task)
        self.logger.info(f"Returning {payload['status']} status for task {task.uid}")
        return web.json_response(payload)

    async def handle_list(self, request):
        tasks = list(self.tasks.values())

        if "uids" in request.query:
            uids = {int(uid) for uid in request.query["uids"].split(",")}
            tasks = [t for t in tasks if t.uid in uids]

        results = [self._payload(t) for t in tasks]
        if "statuses" in request.query:
            statuses = set(request.query["statuses"].split(","))
            results = [r for r in results if r["status"] in statuses]

        limit = int(request.query.get("limit", 20))
        return web.json_response({"results": results[:limit], "limit": limit})

    async def start(self, port: int = 7700):
        runner = web.AppRunner(self.app)
        await runner.setup()
        self.runner = runner
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        """Waits for in-flight requests, then releases the port"""
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
