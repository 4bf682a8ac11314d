import json
import logging
import time
from dataclasses import dataclass, field

import httpx

from astrid.core.config import settings
from astrid.core.exceptions import ProviderError
from astrid.core.security import gen_tunnel_secret

logger = logging.getLogger(__name__)

_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def bare_hostname(hostname: str) -> str:
    return hostname.removeprefix("https://").removeprefix("http://").rstrip("/")


@dataclass(frozen=True)
class TunnelInfo:
    tunnel_id: str
    tunnel_name: str
    hostname: str                                            # https://<sub>.<tunnel domain>
    credentials_json: str = field(repr=False)                 # contains the tunnel secret


@dataclass(frozen=True)
class TunnelStatus:
    status: str
    connections: int


UNKNOWN_TUNNEL = TunnelStatus(status="unknown", connections=0)


def cloudflare_http_client() -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if settings.CF_API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.CF_API_TOKEN}"
    return httpx.AsyncClient(
        base_url=settings.CF_API_BASE_URL.rstrip("/"),
        headers=headers,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


class CloudflareTunnels:
    """Named tunnels plus their public CNAME in the Astrid zone."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        account_id: str | None,
        zone_name: str,
        tunnel_domain: str,
        clock=time.time,
    ):
        self.http = http
        self.account_id = account_id
        self.zone_name = zone_name
        self.tunnel_domain = tunnel_domain
        self._clock = clock

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient) -> "CloudflareTunnels":
        return cls(
            http,
            account_id=settings.CF_ACCOUNT_ID,
            zone_name=settings.CF_ZONE_NAME,
            tunnel_domain=settings.CF_TUNNEL_DOMAIN,
        )

    def _tunnels_path(self) -> str:
        if not self.account_id:
            raise ProviderError("Cloudflare credentials not configured")
        return f"/accounts/{self.account_id}/cfd_tunnel"

    async def _zone_id(self) -> str | None:
        r = await self.http.get("/zones", params={"name": self.zone_name})
        r.raise_for_status()
        result = r.json().get("result") or []
        return result[0]["id"] if result else None

    async def create_tunnel(self, owner_key: str) -> TunnelInfo:
        path = self._tunnels_path()
        stamp = base36(int(self._clock() * 1000))
        tunnel_name = f"astrid-{owner_key[:8]}-{stamp}"
        secret = gen_tunnel_secret()

        try:
            r = await self.http.post(path, json={"name": tunnel_name, "tunnel_secret": secret})
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to create tunnel: {e}") from e
        if r.is_error:
            raise ProviderError(f"Failed to create tunnel: {r.text}", r.status_code)
        try:
            tunnel_id = r.json()["result"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected tunnel response: {r.text[:200]}", r.status_code) from e
        logger.info("cloudflare: created tunnel %s (%s)", tunnel_id, tunnel_name)

        hostname = f"{owner_key[:8]}-{stamp}.{self.tunnel_domain}"
        try:
            zone_id = await self._zone_id()
            if zone_id is None:
                raise ProviderError(f"Could not find zone for {self.zone_name}")
            dns = await self.http.post(
                f"/zones/{zone_id}/dns_records",
                json={
                    "type": "CNAME",
                    "name": hostname,
                    "content": f"{tunnel_id}.cfargotunnel.com",
                    "proxied": True,
                },
            )
            dns.raise_for_status()
        except (httpx.HTTPError, ProviderError) as e:
            # tunnel still answers on <id>.cfargotunnel.com
            logger.warning("cloudflare: DNS record for %s not created: %s", hostname, e)

        credentials = json.dumps(
            {
                "AccountTag": self.account_id,
                "TunnelID": tunnel_id,
                "TunnelName": tunnel_name,
                "TunnelSecret": secret,
            }
        )
        return TunnelInfo(
            tunnel_id=tunnel_id,
            tunnel_name=tunnel_name,
            hostname=f"https://{hostname}",
            credentials_json=credentials,
        )

    async def _delete_dns(self, hostname: str) -> None:
        name = bare_hostname(hostname)
        try:
            zone_id = await self._zone_id()
            if zone_id is None:
                return
            r = await self.http.get(f"/zones/{zone_id}/dns_records", params={"name": name, "type": "CNAME"})
            r.raise_for_status()
            records = r.json().get("result") or []
            if records and records[0].get("id"):
                await self.http.delete(f"/zones/{zone_id}/dns_records/{records[0]['id']}")
                logger.info("cloudflare: deleted DNS record %s", name)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("cloudflare: DNS cleanup for %s failed: %s", name, e)

    async def delete_tunnel(self, tunnel_id: str, hostname: str | None = None) -> None:
        path = self._tunnels_path()
        if hostname:
            await self._delete_dns(hostname)

        try:
            # force-disconnect connectors, otherwise the delete is refused
            await self.http.delete(f"{path}/{tunnel_id}/connections")
            r = await self.http.delete(f"{path}/{tunnel_id}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to delete tunnel: {e}") from e
        if r.is_error and r.status_code != 404:
            raise ProviderError(f"Failed to delete tunnel: {r.text}", r.status_code)
        logger.info("cloudflare: deleted tunnel %s", tunnel_id)

    async def get_tunnel_status(self, tunnel_id: str) -> TunnelStatus:
        try:
            r = await self.http.get(f"{self._tunnels_path()}/{tunnel_id}")
            if r.is_error:
                return UNKNOWN_TUNNEL
            result = r.json().get("result") or {}
        except (httpx.HTTPError, ProviderError, ValueError) as e:
            logger.warning("cloudflare: status for tunnel %s unavailable: %s", tunnel_id, e)
            return UNKNOWN_TUNNEL
        return TunnelStatus(
            status=result.get("status") or "unknown",
            connections=len(result.get("connections") or []),
        )
