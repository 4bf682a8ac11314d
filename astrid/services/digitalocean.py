import logging
import re
from dataclasses import dataclass

import httpx

from astrid.core.config import settings
from astrid.core.exceptions import ProviderError
from astrid.services.cloud_init import ProvisioningConfig, render_user_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DropletSpec:
    name: str
    region: str
    size: str
    provisioning: ProvisioningConfig


@dataclass(frozen=True)
class Droplet:
    id: str
    name: str
    status: str                 # new | active | off | archive
    ip: str | None


@dataclass(frozen=True)
class Region:
    slug: str
    name: str
    available: bool


def sanitize_tag(value: str) -> str:
    return re.sub(r"[^a-z0-9-]", "-", value.lower())[:50]


def droplet_tags(assistant_name: str, user_email: str) -> list[str]:
    return [
        "astrid",
        "openclaw",
        f"ai-{sanitize_tag(assistant_name)}",
        f"user-{sanitize_tag(user_email.split('@')[0])}",
    ]


def digitalocean_http_client() -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if settings.DO_API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.DO_API_TOKEN}"
    return httpx.AsyncClient(
        base_url=settings.DO_API_BASE_URL.rstrip("/"),
        headers=headers,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


def _parse_droplet(data: dict) -> Droplet:
    networks = (data.get("networks") or {}).get("v4") or []
    ip = next((n.get("ip_address") for n in networks if n.get("type") == "public"), None)
    return Droplet(id=str(data["id"]), name=data.get("name", ""), status=data.get("status", "unknown"), ip=ip)


class DigitalOceanCompute:
    def __init__(self, http: httpx.AsyncClient, *, image: str, ssh_key_id: int | None = None):
        self.http = http
        self.image = image
        self.ssh_key_id = ssh_key_id

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient) -> "DigitalOceanCompute":
        return cls(http, image=settings.DO_IMAGE, ssh_key_id=settings.DO_SSH_KEY_ID)

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"DigitalOcean API unreachable: {e}") from e

    @staticmethod
    def _error(r: httpx.Response) -> ProviderError:
        return ProviderError(f"DigitalOcean API error: {r.status_code} - {r.text}", r.status_code)

    @staticmethod
    def _droplet(r: httpx.Response) -> Droplet:
        try:
            return _parse_droplet(r.json()["droplet"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProviderError(f"Unexpected DigitalOcean response: {r.text[:200]}", r.status_code) from e

    async def create_droplet(self, spec: DropletSpec) -> Droplet:
        payload = {
            "name": spec.name,
            "region": spec.region,
            "size": spec.size,
            "image": self.image,
            "user_data": render_user_data(spec.provisioning),
            "tags": droplet_tags(spec.provisioning.assistant_name, spec.provisioning.user_email),
            "ssh_keys": [self.ssh_key_id] if self.ssh_key_id else [],
        }
        r = await self._send("POST", "/droplets", json=payload)
        if r.is_error:
            raise self._error(r)
        droplet = self._droplet(r)
        logger.info("digitalocean: created droplet %s name=%s region=%s size=%s", droplet.id, spec.name, spec.region, spec.size)
        return droplet

    async def get_droplet(self, droplet_id: str) -> Droplet:
        r = await self._send("GET", f"/droplets/{droplet_id}")
        if r.is_error:
            raise self._error(r)
        return self._droplet(r)

    async def delete_droplet(self, droplet_id: str) -> None:
        r = await self._send("DELETE", f"/droplets/{droplet_id}")
        if r.is_error and r.status_code != 404:
            raise self._error(r)
        logger.info("digitalocean: deleted droplet %s", droplet_id)

    async def list_regions(self) -> list[Region]:
        r = await self._send("GET", "/regions")
        if r.is_error:
            raise self._error(r)
        return [
            Region(slug=x["slug"], name=x["name"], available=bool(x.get("available")))
            for x in r.json().get("regions", [])
        ]
