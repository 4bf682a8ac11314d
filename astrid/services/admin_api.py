import logging
from typing import Any

import httpx

from astrid.core.config import settings
from astrid.core.exceptions import AdminApiError
from astrid.models.enums import InstanceStatus
from astrid.models.instance import Instance

logger = logging.getLogger(__name__)

USER_AGENT = "Astrid-Dashboard/1.0"


def tunnel_url(hostname: str) -> str:
    if hostname.startswith(("http://", "https://")):
        return hostname.rstrip("/")
    return f"https://{hostname}".rstrip("/")


class AdminApiClient:
    """Calls the admin agent on a VM through its tunnel (``/api/admin/*``)."""

    def __init__(self, base_url: str, token: str, http: httpx.AsyncClient, timeout: float | None = None):
        self.base_url = tunnel_url(base_url)
        self.token = token
        self.http = http
        self.timeout = timeout or settings.ADMIN_API_TIMEOUT_SECONDS

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}", "User-Agent": USER_AGENT}

    async def _send(self, method: str, url: str, *, json: Any = None, timeout: float | None = None) -> httpx.Response:
        try:
            r = await self.http.request(
                method, url, json=json, headers=self._headers(), timeout=timeout or self.timeout
            )
        except httpx.TimeoutException as e:
            raise AdminApiError("Request timeout", 504, "TIMEOUT") from e
        except httpx.HTTPError as e:
            raise AdminApiError(f"Failed to reach Admin Agent at {url}: {e}", 502, "CONNECTION_ERROR") from e
        if r.is_error:
            raise AdminApiError(f"Admin Agent error: {r.status_code} {r.text[:500]}", r.status_code, "ADMIN_API_ERROR")
        return r

    async def request(self, method: str, path: str, *, json: Any = None, timeout: float | None = None) -> Any:
        url = f"{self.base_url}/api/admin{path}"
        r = await self._send(method, url, json=json, timeout=timeout)
        if not r.content:
            return None
        return r.json()

    async def health(self, timeout: float | None = None) -> bool:
        try:
            data = await self.request("GET", "/health", timeout=timeout or settings.HEALTH_PROBE_TIMEOUT_SECONDS)
        except AdminApiError as e:
            logger.info("admin api %s: health probe failed: %s", self.base_url, e)
            return False
        except ValueError:
            return False
        return isinstance(data, dict) and data.get("status") == "ok"

    async def send_agent_hook(self, message: str, *, to: str | None = None, name: str = "Welcome") -> None:
        payload = {"message": message, "name": name, "deliver": True, "channel": "telegram"}
        if to:
            payload["to"] = to
        await self._send("POST", f"{self.base_url}/hooks/agent", json=payload)


def require_admin_target(inst: Instance | None) -> tuple[str, str]:
    """Tunnel URL and bearer token of an instance that can serve admin calls."""
    if inst is None:
        raise AdminApiError("No VM found for user", 404, "NO_INSTANCE")
    if inst.status != InstanceStatus.active:
        raise AdminApiError(f"VM not active (status: {inst.status.value})", 503, "INSTANCE_NOT_ACTIVE")
    if not inst.tunnel_hostname or not inst.gateway_token:
        raise AdminApiError("VM not fully configured", 503, "INSTANCE_NOT_CONFIGURED")
    return tunnel_url(inst.tunnel_hostname), inst.gateway_token


def default_admin_factory(http: httpx.AsyncClient):
    def factory(base_url: str, token: str) -> AdminApiClient:
        return AdminApiClient(base_url, token, http)
    return factory
