"""Tests for the admin agent client reached through the instance tunnel."""

import json
from types import SimpleNamespace

import httpx
import pytest

from astrid.core.exceptions import AdminApiError
from astrid.models.enums import InstanceStatus
from astrid.services.admin_api import AdminApiClient, require_admin_target, tunnel_url

BASE = "https://user-012-abc.tunnel.getastrid.ai"


def client_with(handler) -> AdminApiClient:
    return AdminApiClient(BASE, "gw-token", httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_tunnel_url():
    assert tunnel_url("abc.tunnel.getastrid.ai") == "https://abc.tunnel.getastrid.ai"
    assert tunnel_url("https://abc.tunnel.getastrid.ai/") == "https://abc.tunnel.getastrid.ai"


async def test_request_sends_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"projects": []})

    data = await client_with(handler).request("GET", "/projects")

    assert data == {"projects": []}
    assert str(seen[0].url) == f"{BASE}/api/admin/projects"
    assert seen[0].headers["Authorization"] == "Bearer gw-token"


async def test_empty_body_is_none():
    assert await client_with(lambda r: httpx.Response(204)).request("DELETE", "/inbox/x-0") is None


async def test_upstream_error_keeps_status():
    with pytest.raises(AdminApiError) as exc:
        await client_with(lambda r: httpx.Response(404, json={"error": "nope"})).request("GET", "/tasks/x")
    assert (exc.value.status_code, exc.value.code) == (404, "ADMIN_API_ERROR")


async def test_timeout_is_504():
    def handler(request):
        raise httpx.ReadTimeout("slow")

    with pytest.raises(AdminApiError) as exc:
        await client_with(handler).request("GET", "/tasks")
    assert (exc.value.status_code, exc.value.code) == (504, "TIMEOUT")


async def test_connection_error_is_502():
    def handler(request):
        raise httpx.ConnectError("refused")

    with pytest.raises(AdminApiError) as exc:
        await client_with(handler).request("GET", "/tasks")
    assert (exc.value.status_code, exc.value.code) == (502, "CONNECTION_ERROR")


@pytest.mark.parametrize(
    "response,expected",
    [
        (httpx.Response(200, json={"status": "ok"}), True),
        (httpx.Response(200, json={"status": "starting"}), False),
        (httpx.Response(502, text="bad gateway"), False),
        (httpx.Response(200, text="<html>"), False),
    ],
)
async def test_health(response, expected):
    assert await client_with(lambda r: response).health() is expected


async def test_agent_hook_targets_gateway():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202)

    await client_with(handler).send_agent_hook("hello", to="424242")

    assert str(seen[0].url) == f"{BASE}/hooks/agent"
    body = json.loads(seen[0].content)
    assert body == {"message": "hello", "name": "Welcome", "deliver": True, "channel": "telegram", "to": "424242"}


class TestTarget:
    def inst(self, **kw):
        values = {"status": InstanceStatus.active, "tunnel_hostname": BASE, "gateway_token": "gw"}
        values.update(kw)
        return SimpleNamespace(**values)

    def test_active_instance(self):
        assert require_admin_target(self.inst()) == (BASE, "gw")

    def test_missing_instance(self):
        with pytest.raises(AdminApiError) as exc:
            require_admin_target(None)
        assert exc.value.status_code == 404

    def test_not_active(self):
        with pytest.raises(AdminApiError) as exc:
            require_admin_target(self.inst(status=InstanceStatus.configuring))
        assert (exc.value.status_code, exc.value.code) == (503, "INSTANCE_NOT_ACTIVE")

    def test_no_tunnel(self):
        with pytest.raises(AdminApiError) as exc:
            require_admin_target(self.inst(tunnel_hostname=None))
        assert exc.value.code == "INSTANCE_NOT_CONFIGURED"
