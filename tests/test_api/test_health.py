"""Tests for the /health endpoint."""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    """GET /health should return healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["postgres"] == "ok"
    assert data["redis"] == "ok"


@pytest.mark.asyncio
async def test_health_check_reports_unreachable_channel(client, channel, monkeypatch):
    def down():
        raise ConnectionError("redis is down")

    monkeypatch.setattr(channel, "ping", down)

    response = await client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["postgres"] == "ok"
    assert data["redis"] == "unreachable"
