"""Settings and maintenance API integration tests."""

from httpx import AsyncClient


SETTING = {
    "name": "primary",
    "base_url": "http://backend.test/v1",
    "api_key": "app-1234567890abcdef",
    "batch_threshold": 3,
}


class TestSettingsAPI:
    """Delivery setting endpoint tests."""

    async def test_no_active(self, client: AsyncClient):
        """Without an active configuration the endpoint should return 503."""
        response = await client.get("/api/v1/settings/active")
        assert response.status_code == 503

    async def test_save_and_activate(self, client: AsyncClient):
        """A saved setting should become active on request, with a masked key."""
        response = await client.post("/api/v1/settings", json={**SETTING, "activate": True})
        assert response.status_code == 201
        data = response.json()
        assert data["is_active"] is True
        assert data["api_key"] == "app-1234...cdef"

        response = await client.get("/api/v1/settings/active")
        assert response.status_code == 200
        assert response.json()["batch_threshold"] == 3

    async def test_activate_switches(self, client: AsyncClient):
        """Activating another setting should deactivate the first."""
        await client.post("/api/v1/settings", json={**SETTING, "activate": True})
        await client.post("/api/v1/settings", json={**SETTING, "name": "backup"})

        response = await client.post("/api/v1/settings/backup/activate")
        assert response.status_code == 200
        assert response.json()["is_active"] is True

        listing = (await client.get("/api/v1/settings")).json()
        assert {s["name"]: s["is_active"] for s in listing} == {"primary": False, "backup": True}

    async def test_activate_unknown(self, client: AsyncClient):
        """Unknown names should return 404."""
        response = await client.post("/api/v1/settings/missing/activate")
        assert response.status_code == 404

    async def test_invalid_threshold(self, client: AsyncClient):
        """A zero batch threshold should be rejected."""
        response = await client.post("/api/v1/settings", json={**SETTING, "batch_threshold": 0})
        assert response.status_code == 422


class TestMaintenanceAPI:
    """Health and cleanup endpoint tests."""

    async def test_health_unconfigured(self, client: AsyncClient):
        """The health report should flag the missing configuration."""
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "unhealthy"
        assert any(c["name"] == "configuration" and c["status"] == "error" for c in data["checks"])

    async def test_health_configured(self, client: AsyncClient):
        """A configured pipeline with a reachable backend should be healthy."""
        await client.post("/api/v1/settings", json={**SETTING, "activate": True})
        response = await client.get("/api/v1/health")
        assert response.json()["status"] == "healthy"

    async def test_cleanup(self, client: AsyncClient):
        """Cleanup should report the applied threshold."""
        response = await client.post("/api/v1/maintenance/cleanup", json={"days": 7})
        assert response.status_code == 200
        assert response.json() == {"days": 7, "request_tasks": 0, "failed_messages": 0}

    async def test_cleanup_default_days(self, client: AsyncClient):
        """Without days the configured retention should be used."""
        response = await client.post("/api/v1/maintenance/cleanup", json={})
        assert response.json()["days"] == 30
