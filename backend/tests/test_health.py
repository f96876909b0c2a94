"""Tests for the health endpoints."""

import pytest


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "Kanvaro"
