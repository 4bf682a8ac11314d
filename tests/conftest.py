"""
Shared fixtures for the Astrid API tests.

Tests run against a throwaway SQLite database (aiosqlite). Cloud providers, the
SSH control plane, the admin API and the per-user lock are replaced with
in-memory fakes through ``app.dependency_overrides``.
"""
import os
import tempfile
from contextlib import nullcontext
from typing import AsyncGenerator

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{tempfile.gettempdir()}/astrid-test-{os.getpid()}.db"
os.environ["RECONCILE_LOOP_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import select

from astrid.core.config import settings
from astrid.core.exceptions import AgentUnreachableError, ProviderError
from astrid.db.init_db import drop_db, init_db
from astrid.db.session import AsyncSessionLocal
from astrid.models.instance import Instance
from astrid.services.agent_config import AgentConfig, apply_assistant_settings, build_agent_config
from astrid.services.cloudflare import TunnelInfo, TunnelStatus
from astrid.services.digitalocean import Droplet, Region

USER_ID = "user-0123456789"


def make_token(sub: str = USER_ID, email: str = "ada@example.com") -> str:
    claims = {"sub": sub, "email": email, "aud": settings.AUTH_JWT_AUDIENCE}
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALG)


# =============================================================================
# Fakes
# =============================================================================


class FakeTunnels:
    def __init__(self):
        self.created: list[str] = []
        self.deleted: list[tuple[str, str | None]] = []
        self.status = TunnelStatus(status="inactive", connections=0)
        self.fail_create = False
        self.fail_delete = False

    async def create_tunnel(self, owner_key: str) -> TunnelInfo:
        if self.fail_create:
            raise ProviderError("Failed to create tunnel: 403", 403)
        tunnel_id = f"tun-{len(self.created) + 1}"
        self.created.append(tunnel_id)
        return TunnelInfo(
            tunnel_id=tunnel_id,
            tunnel_name=f"astrid-{owner_key[:8]}-abc",
            hostname=f"https://{owner_key[:8]}-abc.tunnel.getastrid.ai",
            credentials_json=f'{{"AccountTag": "acct", "TunnelID": "{tunnel_id}", "TunnelName": "n", "TunnelSecret": "s"}}',
        )

    async def delete_tunnel(self, tunnel_id: str, hostname: str | None = None) -> None:
        self.deleted.append((tunnel_id, hostname))
        if self.fail_delete:
            raise ProviderError("Failed to delete tunnel: 500", 500)

    async def get_tunnel_status(self, tunnel_id: str) -> TunnelStatus:
        return self.status


class FakeCompute:
    def __init__(self):
        self.specs = []
        self.deleted: list[str] = []
        self.droplet_status = "new"
        self.droplet_ip: str | None = None
        self.fail_create = False
        self.create_error: Exception | None = None
        self.fail_delete = False

    async def create_droplet(self, spec) -> Droplet:
        if self.create_error is not None:
            raise self.create_error
        if self.fail_create:
            raise ProviderError("DigitalOcean API error: 422 - size unavailable", 422)
        self.specs.append(spec)
        return Droplet(id="1001", name=spec.name, status="new", ip=None)

    async def get_droplet(self, droplet_id: str) -> Droplet:
        return Droplet(id=droplet_id, name="astrid", status=self.droplet_status, ip=self.droplet_ip)

    async def delete_droplet(self, droplet_id: str) -> None:
        self.deleted.append(droplet_id)
        if self.fail_delete:
            raise ProviderError("DigitalOcean API unreachable", None)

    async def list_regions(self) -> list[Region]:
        return [Region(slug="sfo3", name="San Francisco 3", available=True), Region(slug="ams2", name="Amsterdam 2", available=False)]


class FakeGateway:
    def __init__(self):
        self.hosts: list[str] = []
        self.config: AgentConfig = build_agent_config(
            gateway_token="gw", assistant_name="Astrid", assistant_emoji="✨", model="anthropic/claude-sonnet-4-5"
        )
        self.files: dict[str, str] = {}
        self.unreachable = False
        self.restarts = 0

    def __call__(self, host: str) -> "FakeGateway":
        self.hosts.append(host)
        return self

    async def get_config(self) -> AgentConfig:
        if self.unreachable:
            raise AgentUnreachableError("10.0.0.5: connection refused")
        return self.config

    async def update_config(self, *, name=None, emoji=None, model=None) -> AgentConfig:
        if self.unreachable:
            raise AgentUnreachableError("10.0.0.5: connection refused")
        self.config = apply_assistant_settings(self.config, name=name, emoji=emoji, model=model)
        self.restarts += 1
        return self.config

    async def read_file(self, relative_path: str) -> str | None:
        if self.unreachable:
            return None
        return self.files.get(relative_path)


class FakeAdmin:
    def __init__(self):
        self.targets: list[tuple[str, str]] = []
        self.calls: list[tuple[str, str, object]] = []
        self.hooks: list[tuple[str, str | None]] = []
        self.healthy = True
        self.response: object = {"ok": True}
        self.error: Exception | None = None

    def __call__(self, base_url: str, token: str) -> "FakeAdmin":
        self.targets.append((base_url, token))
        return self

    async def health(self, timeout=None) -> bool:
        return self.healthy

    async def request(self, method: str, path: str, *, json=None, timeout=None):
        self.calls.append((method, path, json))
        if self.error is not None:
            raise self.error
        return self.response

    async def send_agent_hook(self, message: str, *, to: str | None = None, name: str = "Welcome") -> None:
        self.hooks.append((message, to))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def db_tables() -> AsyncGenerator[None, None]:
    await init_db()
    yield
    await drop_db()


@pytest.fixture
def tunnels() -> FakeTunnels:
    return FakeTunnels()


@pytest.fixture
def compute() -> FakeCompute:
    return FakeCompute()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture
def app():
    from astrid.main import app as fastapi_app
    return fastapi_app


@pytest.fixture
async def client(app, db_tables, tunnels, compute, gateway, admin) -> AsyncGenerator[AsyncClient, None]:
    """Async client authenticated as USER_ID, with every outbound dependency faked."""
    from astrid.api import deps

    app.dependency_overrides[deps.get_tunnels] = lambda: tunnels
    app.dependency_overrides[deps.get_compute] = lambda: compute
    app.dependency_overrides[deps.get_gateway_factory] = lambda: gateway
    app.dependency_overrides[deps.get_admin_factory] = lambda: admin
    app.dependency_overrides[deps.get_lock_factory] = lambda: (lambda user_id: nullcontext())

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {make_token()}"},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


CREATE_BODY = {
    "region": "sfo3",
    "assistantName": "Nova",
    "assistantEmoji": "🌟",
    "anthropicKey": "sk-ant-test",
    "telegramToken": "123:bot",
    "telegramUserId": "424242",
    "userName": "Ada",
    "personalityTraits": ["direct", "playful"],
}


@pytest.fixture
async def created_instance(client, compute) -> dict:
    r = await client.post("/instances", json=CREATE_BODY)
    assert r.status_code == 200, r.text
    return r.json()["instance"]


@pytest.fixture
async def active_instance(client, created_instance, compute, tunnels) -> dict:
    """Drive a fresh instance through the poll loop until it is active."""
    compute.droplet_status = "active"
    compute.droplet_ip = "203.0.113.7"
    await client.get("/instances")
    tunnels.status = TunnelStatus(status="healthy", connections=2)
    r = await client.get("/instances")
    assert r.json()["instance"]["status"] == "active"
    return r.json()["instance"]


async def load_instance(user_id: str = USER_ID) -> Instance | None:
    async with AsyncSessionLocal() as db:
        res = await db.execute(select(Instance).where(Instance.user_id == user_id))
        return res.scalar_one_or_none()
