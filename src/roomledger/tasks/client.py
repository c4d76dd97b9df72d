"""Tasks client with idempotent enqueue.

Provides multiple backends selectable via TASKS_BACKEND env var:
- inline (default): records tasks locally without executing them (dev/tests)
- http: sends tasks to worker via HTTP POST
- cloud_tasks: sends tasks to Google Cloud Tasks
"""

import os
from datetime import datetime


class TasksClient:
    """Tasks client with idempotent enqueue by task_id.

    Backend selection via TASKS_BACKEND env var (read when the client is
    created). Tracks task_ids so that the same task_id enqueued twice
    through one client is a no-op.
    """

    def __init__(self, backend: str | None = None) -> None:
        self._executed_ids: set[str] = set()
        self._scheduled_tasks: list[dict] = []
        self._backend = backend or os.environ.get("TASKS_BACKEND", "inline")

    @property
    def backend(self) -> str:
        return self._backend

    def enqueue_http(
        self,
        task_id: str,
        url_path: str,
        payload: dict,
        correlation_id: str | None = None,
        schedule_time: datetime | None = None,
    ) -> bool:
        """Enqueue task for HTTP-based execution on the worker.

        Args:
            task_id: Unique identifier for idempotency.
            url_path: Worker endpoint path (e.g., "/tasks/bookings/invoice").
            payload: Task data (must not contain PII).
            correlation_id: Optional correlation ID for tracing.
            schedule_time: Optional future execution time.

        Returns:
            True if task was enqueued (new task_id).
            False if no-op (task_id already seen) or the backend rejected it.

        Raises:
            ValueError: If TASKS_BACKEND is unknown.
        """
        if task_id in self._executed_ids:
            return False

        self._executed_ids.add(task_id)

        if self._backend == "inline":
            self._scheduled_tasks.append({
                "task_id": task_id,
                "url_path": url_path,
                "payload": payload,
                "correlation_id": correlation_id,
                "schedule_time": schedule_time,
            })
            return True

        elif self._backend == "http":
            from roomledger.tasks.http_backend import enqueue_http
            return enqueue_http(
                task_id, url_path, payload, correlation_id, schedule_time
            )

        elif self._backend == "cloud_tasks":
            from roomledger.tasks.cloud_tasks_backend import enqueue_cloud_task
            return enqueue_cloud_task(
                task_id, url_path, payload, correlation_id, schedule_time
            )

        else:
            raise ValueError(f"Unknown TASKS_BACKEND: {self._backend}")

    def was_executed(self, task_id: str) -> bool:
        """Check if task_id was already enqueued through this client."""
        return task_id in self._executed_ids

    def get_scheduled_tasks(self) -> list[dict]:
        """Get list of recorded tasks (inline backend; useful for testing)."""
        return list(self._scheduled_tasks)

    def clear(self) -> None:
        """Clear seen task_ids and recorded tasks (useful for testing)."""
        self._executed_ids.clear()
        self._scheduled_tasks.clear()


_default_client: TasksClient | None = None


def get_tasks_client() -> TasksClient:
    """Return the process-wide TasksClient, creating it on first use."""
    global _default_client
    if _default_client is None:
        _default_client = TasksClient()
    return _default_client


def set_tasks_client(client: TasksClient | None) -> None:
    """Replace the process-wide TasksClient (tests inject their own)."""
    global _default_client
    _default_client = client
