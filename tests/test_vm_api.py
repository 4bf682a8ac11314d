"""API tests for the /vm admin-agent proxy."""

import pytest

from conftest import load_instance

from astrid.core.exceptions import AdminApiError


async def test_requires_instance(client, admin):
    r = await client.get("/vm/tasks")

    assert r.status_code == 404
    assert r.json()["error_code"] == "instance_not_found"
    assert admin.calls == []


async def test_requires_active_instance(client, created_instance, admin):
    r = await client.get("/vm/projects")

    assert r.status_code == 503
    assert r.json()["error_code"] == "instance_not_active"
    assert admin.calls == []


async def test_list_uses_tunnel_and_gateway_token(client, active_instance, admin):
    admin.response = {"tasks": [{"id": "t-0", "title": "Ship it"}]}

    r = await client.get("/vm/tasks")

    assert r.status_code == 200
    assert r.json() == {"tasks": [{"id": "t-0", "title": "Ship it"}]}
    inst = await load_instance()
    assert admin.targets[-1] == ("https://user-012-abc.tunnel.getastrid.ai", inst.gateway_token)
    assert admin.calls == [("GET", "/tasks", None)]


@pytest.mark.parametrize(
    "method,url,expected",
    [
        ("post", "/vm/ideas", ("POST", "/ideas")),
        ("patch", "/vm/projects/website-0", ("PATCH", "/projects/website-0")),
        ("post", "/vm/inbox/call-mom-2/process", ("POST", "/inbox/call-mom-2/process")),
        ("post", "/vm/tasks/buy-milk-1/promote", ("POST", "/tasks/buy-milk-1/promote")),
        ("post", "/vm/projects/website-0/tasks", ("POST", "/projects/website-0/tasks")),
        ("patch", "/vm/projects/website-0/tasks/copy-1", ("PATCH", "/projects/website-0/tasks/copy-1")),
    ],
)
async def test_writes_are_forwarded(client, active_instance, admin, method, url, expected):
    r = await client.request(method.upper(), url, json={"title": "x"})

    assert r.status_code == 200
    assert admin.calls == [(*expected, {"title": "x"})]


async def test_delete_is_forwarded(client, active_instance, admin):
    admin.response = None
    r = await client.delete("/vm/inbox/call-mom-2")

    assert r.status_code == 200
    assert r.json() == {}
    assert admin.calls == [("DELETE", "/inbox/call-mom-2", None)]


async def test_unknown_collection(client, active_instance, admin):
    r = await client.get("/vm/files")
    assert r.status_code == 422
    assert admin.calls == []


@pytest.mark.parametrize(
    "error,status,code",
    [
        (AdminApiError("Request timeout", 504, "TIMEOUT"), 504, "external_api_timeout"),
        (AdminApiError("Failed to reach Admin Agent", 502, "CONNECTION_ERROR"), 502, "agent_unreachable"),
        (AdminApiError("Admin Agent error: 404 not found", 404, "ADMIN_API_ERROR"), 404, "external_api_error"),
    ],
)
async def test_admin_errors_are_mapped(client, active_instance, admin, error, status, code):
    admin.error = error
    r = await client.get("/vm/ideas")

    assert r.status_code == status
    assert r.json()["error_code"] == code
