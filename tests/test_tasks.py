"""Tests for tasks subsystem."""

from unittest.mock import patch

import pytest

from roomledger.tasks.client import TasksClient, get_tasks_client, set_tasks_client


class TestTasksClient:
    """Tests for TasksClient."""

    def test_inline_records_task(self):
        """Inline backend should record the task and return True."""
        client = TasksClient(backend="inline")

        result = client.enqueue_http(
            task_id="task-1",
            url_path="/tasks/bookings/create-invoice",
            payload={"reservation_id": "res-1"},
            correlation_id="corr-1",
        )

        assert result is True
        tasks = client.get_scheduled_tasks()
        assert len(tasks) == 1
        assert tasks[0]["url_path"] == "/tasks/bookings/create-invoice"
        assert tasks[0]["payload"] == {"reservation_id": "res-1"}
        assert tasks[0]["correlation_id"] == "corr-1"

    def test_enqueue_idempotent_same_task_id(self):
        """Enqueue with same task_id should be no-op."""
        client = TasksClient(backend="inline")

        assert client.enqueue_http("same-id", "/tasks/x", {"x": 1}) is True
        assert client.enqueue_http("same-id", "/tasks/x", {"x": 2}) is False
        assert client.enqueue_http("same-id", "/tasks/x", {"x": 3}) is False

        tasks = client.get_scheduled_tasks()
        assert len(tasks) == 1
        assert tasks[0]["payload"] == {"x": 1}

    def test_enqueue_different_task_ids(self):
        client = TasksClient(backend="inline")

        client.enqueue_http("task-a", "/tasks/x", {})
        client.enqueue_http("task-b", "/tasks/x", {})
        client.enqueue_http("task-c", "/tasks/x", {})

        assert len(client.get_scheduled_tasks()) == 3

    def test_was_executed(self):
        client = TasksClient(backend="inline")

        assert client.was_executed("task-1") is False
        client.enqueue_http("task-1", "/tasks/x", {})
        assert client.was_executed("task-1") is True

    def test_clear(self):
        client = TasksClient(backend="inline")
        client.enqueue_http("task-1", "/tasks/x", {})

        client.clear()

        assert client.was_executed("task-1") is False
        assert client.get_scheduled_tasks() == []
        assert client.enqueue_http("task-1", "/tasks/x", {}) is True

    def test_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKS_BACKEND", "http")
        assert TasksClient().backend == "http"

    def test_default_backend_is_inline(self, monkeypatch):
        monkeypatch.delenv("TASKS_BACKEND", raising=False)
        assert TasksClient().backend == "inline"

    def test_unknown_backend_raises(self):
        client = TasksClient(backend="carrier-pigeon")
        with pytest.raises(ValueError, match="Unknown TASKS_BACKEND"):
            client.enqueue_http("task-1", "/tasks/x", {})

    def test_http_backend_delegates(self):
        client = TasksClient(backend="http")
        with patch("roomledger.tasks.http_backend.enqueue_http", return_value=True) as mock_send:
            assert client.enqueue_http("task-1", "/tasks/x", {"a": 1}, "corr-1") is True
        mock_send.assert_called_once_with("task-1", "/tasks/x", {"a": 1}, "corr-1", None)

    def test_cloud_tasks_backend_delegates(self):
        client = TasksClient(backend="cloud_tasks")
        with patch(
            "roomledger.tasks.cloud_tasks_backend.enqueue_cloud_task", return_value=True
        ) as mock_send:
            assert client.enqueue_http("task-1", "/tasks/x", {}) is True
        mock_send.assert_called_once()


class TestDefaultClient:
    def test_set_and_get(self):
        client = TasksClient(backend="inline")
        set_tasks_client(client)
        assert get_tasks_client() is client

    def test_created_on_first_use(self, monkeypatch):
        monkeypatch.delenv("TASKS_BACKEND", raising=False)
        set_tasks_client(None)
        client = get_tasks_client()
        assert client.backend == "inline"
        assert get_tasks_client() is client
