import asyncio

from search_task_client.exceptions import TaskSourceError, TaskTimeoutError
from search_task_client.models import TasksQuery, TaskStatus, WaitConfig
from search_task_client.search_task_client import TaskWaiter
from search_task_client.task_source import HttpTaskStatusSource
from task_server import TaskServer


async def main():
    PORT = 7700
    server = TaskServer()
    server.add_task(1, completion_time=2.0, enqueued_time=0.5)
    server.add_task(2, completion_time=4.0, final_status="failed")
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = WaitConfig(timeout_ms=10000, interval_ms=500)

    async with HttpTaskStatusSource(f"http://localhost:{PORT}") as source:
        waiter = TaskWaiter(source, config)

        try:
            for task in await waiter.wait_for_tasks([1, 2]):
                print(f"Task {task.uid} finished: {task.status.value}")
                if task.status == TaskStatus.failed:
                    print(f"Error: {task.raw_response['error']['message']}")

            await waiter.wait_for_task(42)
        except TaskTimeoutError as e:
            print(f"Polling timed out: {e}")
        except TaskSourceError as e:
            print(f"Status source failed ({e.status}): {e}")

        succeeded = await source.get_tasks(TasksQuery(statuses=[TaskStatus.succeeded]))
        print(f"Succeeded tasks: {[task.uid for task in succeeded]}")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
