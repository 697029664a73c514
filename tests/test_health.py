import importlib.util
from pathlib import Path

import httpx
import pytest

from liveroom.core import celery, database, redis


async def up():
    return True


async def down():
    return False


@pytest.mark.asyncio
async def test_health_shape(api_client, monkeypatch):
    monkeypatch.setattr(database, "check_connection", up)
    monkeypatch.setattr(redis, "check_connection", up)
    monkeypatch.setattr(celery, "check_connection", up)

    r = await api_client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["services"] == {"database": True, "redis": True, "broker": True}
    assert body["notify_backend"] == "local"


@pytest.mark.asyncio
async def test_health_broker_down(api_client, monkeypatch):
    monkeypatch.setattr(database, "check_connection", up)
    monkeypatch.setattr(redis, "check_connection", up)
    monkeypatch.setattr(celery, "check_connection", down)

    r = await api_client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "degraded"
    assert r.json()["services"]["broker"] is False


def load_health_script():
    path = Path(__file__).resolve().parents[1] / "scripts" / "health_check.py"
    spec = importlib.util.spec_from_file_location("health_check", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def health_transport(services):
    def handler(request):
        status = "healthy" if all(services.values()) else "degraded"
        return httpx.Response(
            200,
            json={"status": status, "services": services, "version": "1.0.0", "notify_backend": "redis"},
        )

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_health_script_reports_down_services(capsys):
    script = load_health_script()

    assert await script.check_health(script.DEFAULT_URL, health_transport({"database": True, "redis": True}))
    assert not await script.check_health(script.DEFAULT_URL, health_transport({"database": True, "redis": False}))
    assert "down: redis" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_health_script_unreachable():
    script = load_health_script()

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert not await script.check_health("http://localhost:1/health", httpx.MockTransport(refuse))
