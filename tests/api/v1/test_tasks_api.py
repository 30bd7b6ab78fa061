"""Task and failed message API integration tests."""

from httpx import AsyncClient

from relay.exceptions import BackendError

from conftest import activate_config


async def _failed_send(client: AsyncClient, pipeline, text="hello") -> dict:
    pipeline.backend.outcomes.append(BackendError("backend down"))
    response = await client.post("/api/v1/conversations/x/send", json={"content": text})
    return response.json()


class TestTaskAPI:
    """Task endpoint tests."""

    async def test_force_flush(self, client: AsyncClient, pipeline):
        """Force processing should seal every buffer."""
        activate_config(pipeline.settings_provider)
        await client.post("/api/v1/conversations/x/messages", json={"content": "A"})
        await client.post("/api/v1/conversations/y/messages", json={"content": "B"})

        response = await client.post("/api/v1/tasks/flush")
        assert response.status_code == 200
        assert response.json()["total"] == 2

    async def test_list_and_get(self, client: AsyncClient, pipeline):
        """Failed tasks should be listed and retrievable."""
        activate_config(pipeline.settings_provider)
        task = await _failed_send(client, pipeline)
        assert task["status"] == "failed"

        response = await client.get("/api/v1/tasks", params={"status": "failed"})
        assert [t["task_id"] for t in response.json()["tasks"]] == [task["task_id"]]

        response = await client.get(f"/api/v1/tasks/{task['task_id']}")
        assert response.status_code == 200
        assert response.json()["error_message"] == "backend down"

    async def test_list_invalid_status(self, client: AsyncClient):
        """Only pending and failed are accepted as status filters."""
        response = await client.get("/api/v1/tasks", params={"status": "bogus"})
        assert response.status_code == 422

    async def test_get_unknown(self, client: AsyncClient):
        """Unknown tasks should return 404."""
        assert (await client.get("/api/v1/tasks/missing")).status_code == 404

    async def test_retry_task(self, client: AsyncClient, pipeline):
        """Retrying a failed task should complete it."""
        activate_config(pipeline.settings_provider)
        task = await _failed_send(client, pipeline)

        response = await client.post(f"/api/v1/tasks/{task['task_id']}/retry")
        assert response.status_code == 200
        assert response.json()["success"] is True

    async def test_retry_task_without_failures(self, client: AsyncClient, pipeline):
        """A task without failed messages should report success false with 200."""
        activate_config(pipeline.settings_provider)
        response = await client.post("/api/v1/conversations/x/send", json={"content": "ok"})
        task_id = response.json()["task_id"]

        response = await client.post(f"/api/v1/tasks/{task_id}/retry")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["message"].startswith("No failed messages found")


class TestFailedMessageAPI:
    """Failed message endpoint tests."""

    async def test_list(self, client: AsyncClient, pipeline):
        """Unretried failed messages should be listed."""
        activate_config(pipeline.settings_provider)
        task = await _failed_send(client, pipeline)

        response = await client.get("/api/v1/failed-messages")
        data = response.json()
        assert data["total"] == 1
        assert data["failed_messages"][0]["request_task_id"] == task["task_id"]

    async def test_retry_one(self, client: AsyncClient, pipeline):
        """Retrying one failed message should return its result."""
        activate_config(pipeline.settings_provider)
        await _failed_send(client, pipeline)
        failed_id = (await client.get("/api/v1/failed-messages")).json()["failed_messages"][0]["id"]

        response = await client.post(f"/api/v1/failed-messages/{failed_id}/retry")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["failed_message_id"] == failed_id

    async def test_retry_unknown(self, client: AsyncClient, pipeline):
        """Unknown failed messages should return 404."""
        activate_config(pipeline.settings_provider)
        response = await client.post("/api/v1/failed-messages/999/retry")
        assert response.status_code == 404

    async def test_retry_budget_exhausted(self, client: AsyncClient, pipeline):
        """Retrying past the budget should return 409."""
        activate_config(pipeline.settings_provider, max_retries=0)
        await _failed_send(client, pipeline)
        failed_id = (await client.get("/api/v1/failed-messages")).json()["failed_messages"][0]["id"]

        response = await client.post(f"/api/v1/failed-messages/{failed_id}/retry")
        assert response.status_code == 409
        assert response.json()["error"] == "RetryBudgetExhaustedError"

    async def test_retry_many(self, client: AsyncClient, pipeline):
        """Several ids should be retried with per-id results."""
        activate_config(pipeline.settings_provider)
        await _failed_send(client, pipeline)
        failed_id = (await client.get("/api/v1/failed-messages")).json()["failed_messages"][0]["id"]

        response = await client.post("/api/v1/failed-messages/retry", json={"ids": [failed_id, 999]})
        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == 1
        assert data["failed"] == 1
