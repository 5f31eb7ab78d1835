"""Integration tests exercising the full API with the mock executor."""

from __future__ import annotations

import json
import stat

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from pvedash.dependencies import build_services
from pvedash.main import create_app
from tests.mock_executor import HOST, container_destination


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["cached_entries"] == 0


@pytest.mark.asyncio
async def test_system_overview(client):
    resp = await client.get("/overview/system")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_containers"] == 3
    assert data["running_containers"] == 2
    assert [c["name"] for c in data["containers"]] == ["WireGuard", "Sonarr", "Plex"]
    assert data["containers"][0]["status"] == "Running"


@pytest.mark.asyncio
async def test_overview_is_cached(client, mock_executor):
    await client.get("/overview/system")
    calls = len(mock_executor.calls)
    await client.get("/overview/system")
    assert len(mock_executor.calls) == calls
    await client.get("/overview/system", params={"refresh": "true"})
    assert len(mock_executor.calls) > calls


@pytest.mark.asyncio
async def test_overview_partial_when_host_partly_down(client, mock_executor):
    mock_executor.fail_launch(HOST, "pct status 214 --verbose")
    resp = await client.get("/overview/system")
    assert resp.status_code == 200
    assert resp.json()["total_containers"] == 2


@pytest.mark.asyncio
async def test_maintenance_overview(client, mock_executor):
    mock_executor.add_response(HOST, "systemctl status nginx", "Active: active (running)\n")
    resp = await client.get("/overview/maintenance")
    assert resp.status_code == 200
    data = resp.json()
    assert data["active_services"] == 1
    assert data["system_health"]["network_status"] == "Connected"


@pytest.mark.asyncio
async def test_unknown_overview_kind(client):
    resp = await client.get("/overview/everything")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_target_status(client):
    resp = await client.get("/targets/status", params={"vm_id": 500})
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Home Assistant"
    assert data["kind"] == "vm"


@pytest.mark.asyncio
async def test_both_ids_rejected(client):
    resp = await client.get("/targets/status", params={"container_id": 100, "vm_id": 500})
    assert resp.status_code == 422
    assert resp.json()["code"] == "ambiguous_target"


@pytest.mark.asyncio
async def test_status_needs_a_guest(client):
    resp = await client.get("/targets/status")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unreachable_host_is_503(client, mock_executor):
    mock_executor.fail_launch(HOST)
    resp = await client.get("/targets/status", params={"container_id": 100})
    assert resp.status_code == 503
    assert resp.json()["code"] == "launch_failure"


@pytest.mark.asyncio
async def test_remote_failure_is_502(client, mock_executor):
    mock_executor.add_response(HOST, "pct status 404 --verbose", succeeded=False, stderr="does not exist")
    resp = await client.get("/targets/status", params={"container_id": 404})
    assert resp.status_code == 502
    assert "does not exist" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_target_detail(client):
    resp = await client.get("/targets/detail", params={"container_id": 100})
    assert resp.status_code == 200
    data = resp.json()
    assert data["os_info"] == "Debian GNU/Linux 12 (bookworm)"
    assert data["memory_mb"] == 2048


@pytest.mark.asyncio
async def test_control_target_invalidates_overview(client, mock_executor, cache):
    await client.get("/overview/system")
    assert cache.get("system_overview") is not None
    mock_executor.add_response(HOST, "pct start 214")
    resp = await client.post("/targets/actions/start", params={"container_id": 214})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Container 214 started successfully"}
    assert cache.get("system_overview") is None


@pytest.mark.asyncio
async def test_container_reset_rejected(client, mock_executor):
    resp = await client.post("/targets/actions/reset", params={"container_id": 100})
    assert resp.status_code == 422
    assert mock_executor.calls == []


@pytest.mark.asyncio
async def test_host_health_and_info(client):
    health = await client.get("/host/health")
    assert health.status_code == 200
    assert health.json()["disk_usage"] == 43.0
    info = await client.get("/host/info")
    assert info.json()["hostname"] == "pve"
    metrics = await client.get("/host/metrics")
    assert len(metrics.json()["storage"]) == 2


@pytest.mark.asyncio
async def test_service_status_in_container(client, mock_executor):
    dest = container_destination(230)
    mock_executor.add_response(dest, "systemctl status plexmediaserver", "Active: active (running)\n")
    mock_executor.add_response(dest, "systemctl is-enabled plexmediaserver", "enabled\n")
    resp = await client.get("/services/plexmediaserver", params={"container_id": 230})
    assert resp.status_code == 200
    data = resp.json()
    assert data["active"] is True
    assert data["enabled"] is True
    assert data["container_id"] == 230


@pytest.mark.asyncio
async def test_control_service(client, mock_executor):
    mock_executor.add_response(HOST, "systemctl reload nginx")
    resp = await client.post("/services/nginx/reload")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Service nginx reload successfully"


@pytest.mark.asyncio
async def test_binary_not_found(client):
    resp = await client.get("/binaries/ghost")
    assert resp.status_code == 200
    assert resp.json()["path"] == "Not found"
    assert resp.json()["version"] == "N/A"


@pytest.mark.asyncio
async def test_config_check_and_read(client, mock_executor):
    mock_executor.add_response(HOST, "test -f /etc/hosts")
    mock_executor.add_response(HOST, "cat /etc/hosts", "127.0.0.1 localhost\n")
    check = await client.get("/configs/check", params={"path": "/etc/hosts"})
    assert check.json()["exists"] is True
    read = await client.get("/configs/content", params={"path": "/etc/hosts"})
    assert read.json() == {"path": "/etc/hosts", "content": "127.0.0.1 localhost\n"}


@pytest.mark.asyncio
async def test_config_write(client, mock_executor):
    dest = container_destination(214)
    path = "/config/config.xml"
    mock_executor.add_response(dest, f"test -f {path}")
    mock_executor.add_fragment_response(dest, "cp -p")
    mock_executor.add_response(dest, f'sh -c cat > "$1" sh {path}')
    resp = await client.put(
        "/configs/content",
        json={"path": path, "content": "<Config/>", "container_id": 214},
    )
    assert resp.status_code == 200
    assert resp.json()["backup_path"].startswith(f"{path}.backup.")


@pytest.mark.asyncio
async def test_config_write_negative_id(client):
    resp = await client.put("/configs/content", json={"path": "/x", "content": "", "vm_id": -1})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_health_counts_only_fresh_entries(client, clock, cache):
    await client.get("/overview/system")
    assert (await client.get("/health")).json()["cached_entries"] == 1
    clock.advance(3600)
    assert (await client.get("/health")).json()["cached_entries"] == 0
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_clear_cache(client):
    await client.get("/overview/system")
    resp = await client.delete("/cache")
    assert resp.json()["cleared"] == 1
    assert (await client.get("/health")).json()["cached_entries"] == 0


# ── scripts ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_scripts(client):
    resp = await client.get("/scripts")
    assert resp.status_code == 200
    data = resp.json()
    assert {s["script_id"] for s in data} == {
        "system_cleanup", "optimize_containers", "update_host", "backup_configs", "check_disks",
    }
    assert not any(s["available"] for s in data)


@pytest.mark.asyncio
async def test_run_missing_script(client):
    resp = await client.post("/scripts/check_disks")
    assert resp.status_code == 404
    assert resp.json()["code"] == "script_not_found"


@pytest.mark.asyncio
async def test_run_script(client, settings, tmp_path):
    scripts_dir = tmp_path / "scripts"
    scripts_dir.mkdir(exist_ok=True)
    script = scripts_dir / "check-disks.sh"
    script.write_text("#!/bin/sh\necho disks ok\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)

    resp = await client.post("/scripts/check_disks")
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["output"] == "disks ok\n"


@pytest.mark.asyncio
async def test_unknown_script_id(client):
    resp = await client.post("/scripts/rm_rf")
    assert resp.status_code == 422


# ── suggestions ───────────────────────────────────────────────────────────


def _llm_app(settings, mock_executor, cache, handler):
    services = build_services(
        settings,
        executor=mock_executor,
        cache=cache,
        llm_transport=httpx.MockTransport(handler),
    )
    return create_app(services=services)


@pytest.mark.asyncio
async def test_suggestions(settings, mock_executor, cache):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "Prune old images.\n\nEnable backups."})

    app = _llm_app(settings, mock_executor, cache, handler)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.post("/suggestions", json={"topic": "storage", "include_overview": True})

    assert resp.status_code == 200
    data = resp.json()
    assert [s["title"] for s in data["suggestions"]] == ["Suggestion 1", "Suggestion 2"]
    assert seen["url"].endswith("/api/generate")
    assert seen["body"]["stream"] is False
    assert "total_containers" in seen["body"]["prompt"]


@pytest.mark.asyncio
async def test_suggestions_unavailable(settings, mock_executor, cache):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="model not loaded")

    app = _llm_app(settings, mock_executor, cache, handler)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.post("/suggestions", json={"topic": "storage"})
    assert resp.status_code == 502
    assert resp.json()["code"] == "suggestion_unavailable"


# ── auth ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_api_key_required(settings, mock_executor, cache):
    cfg = settings.model_copy(update={"pve_api_key": "s3cret"})
    app = create_app(services=build_services(cfg, executor=mock_executor, cache=cache))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        assert (await ac.get("/health")).status_code == 200
        assert (await ac.get("/host/info")).status_code == 401
        resp = await ac.get("/host/info", headers={"X-API-Key": "s3cret"})
        assert resp.status_code == 200
