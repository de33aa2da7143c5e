import pytest

from stallmates.settings import settings


@pytest.mark.asyncio
async def test_liveness(api_client):
    response = await api_client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_readiness_with_memory_store(api_client):
    response = await api_client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"] == {"redis": "ok"}


@pytest.mark.asyncio
async def test_metrics_exposed(api_client):
    await api_client.get("/health/live")
    response = await api_client.get("/metrics")
    assert response.status_code == 200
    assert "stallmates_" in response.text


@pytest.mark.asyncio
async def test_private_metrics_need_the_admin_token(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    monkeypatch.setattr(settings, "obs_admin_token", "s3cret")
    assert (await api_client.get("/metrics")).status_code == 403
    allowed = await api_client.get("/metrics", headers={"X-Admin-Token": "s3cret"})
    assert allowed.status_code == 200
