"""Route tests for /api/logs."""

import pytest

pytestmark = pytest.mark.integration


async def _post(client, count: int, day: str | None = None):
    body = {"count": count}
    if day is not None:
        body["date"] = day
    return await client.post("/api/logs", json=body)


class TestLogRoutes:
    async def test_requires_user_header(self, unauthenticated_client):
        response = await unauthenticated_client.get("/api/logs")
        assert response.status_code == 401

    async def test_oversized_user_header_is_rejected(self, unauthenticated_client):
        response = await unauthenticated_client.get("/api/logs", headers={"X-User-Id": "x" * 300})
        assert response.status_code == 401

    async def test_create_and_list(self, client):
        response = await _post(client, 25)
        assert response.status_code == 201
        created = response.json()
        assert created["count"] == 25

        listing = (await client.get("/api/logs")).json()
        assert listing["total"] == 25
        assert [log["id"] for log in listing["logs"]] == [created["id"]]

    async def test_create_with_date(self, client):
        response = await _post(client, 10, "2024-01-05")
        assert response.status_code == 201
        assert response.json()["timestamp"].startswith("2024-01-05")

    @pytest.mark.parametrize("count", [0, -3, "ten"])
    async def test_invalid_count(self, client, count):
        response = await client.post("/api/logs", json={"count": count})
        assert response.status_code == 422
        assert (await client.get("/api/logs")).json()["logs"] == []

    async def test_delete_one(self, client):
        log_id = (await _post(client, 10)).json()["id"]

        response = await client.delete(f"/api/logs/{log_id}")
        assert response.status_code == 204

        response = await client.delete(f"/api/logs/{log_id}")
        assert response.status_code == 404

    async def test_logs_are_private(self, client, app):
        log_id = (await _post(client, 10)).json()["id"]

        from httpx import ASGITransport, AsyncClient

        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"X-User-Id": "someone_else"},
        ) as other:
            assert (await other.get("/api/logs")).json()["logs"] == []
            assert (await other.delete(f"/api/logs/{log_id}")).status_code == 404

    async def test_delete_day(self, client):
        await _post(client, 10, "2024-01-05")
        await _post(client, 15, "2024-01-05")
        await _post(client, 20, "2024-01-06")

        response = await client.delete("/api/logs/day/2024-01-05")
        assert response.status_code == 200
        assert response.json() == {"deleted": 2}
        assert (await client.get("/api/logs")).json()["total"] == 20

    async def test_clear_all(self, client):
        await _post(client, 10)
        await _post(client, 10)

        response = await client.delete("/api/logs")
        assert response.json() == {"deleted": 2}
        assert (await client.get("/api/logs")).json()["total"] == 0
