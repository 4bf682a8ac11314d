"""
Instance lifecycle reconciliation.

``reconcile`` is a pure function: given the stored state of an instance and what
the compute and tunnel providers currently report, it returns the next state.
``observe`` gathers those provider reports; it never raises, so a flaky provider
only delays progress.
"""

import logging
from dataclasses import dataclass, fields, replace
from datetime import datetime

import httpx

from astrid.core.exceptions import ProviderError
from astrid.models.enums import HealthStatus, InstanceStatus, IN_PROGRESS_STATUSES
from astrid.models.instance import Instance

logger = logging.getLogger(__name__)

PENDING_MESSAGE = "Spinning up your private server..."
PROVISIONING_MESSAGE = "Applying security patches and installing software..."
CONFIGURING_MESSAGE = "Configuring your assistant..."
READY_MESSAGE = "Your assistant is ready!"
DESTROYING_MESSAGE = "Destroying droplet..."


@dataclass(frozen=True)
class InstanceSnapshot:
    status: InstanceStatus
    status_message: str | None = None
    droplet_ip: str | None = None
    health_status: HealthStatus = HealthStatus.unknown
    last_health_check: datetime | None = None
    provisioned_at: datetime | None = None

    @classmethod
    def of(cls, inst: Instance) -> "InstanceSnapshot":
        return cls(**{f.name: getattr(inst, f.name) for f in fields(cls)})

    def apply_to(self, inst: Instance) -> list[str]:
        """Copy differing fields onto the ORM row; returns the names changed."""
        changed = []
        for f in fields(self):
            value = getattr(self, f.name)
            if getattr(inst, f.name) != value:
                setattr(inst, f.name, value)
                changed.append(f.name)
        return changed


@dataclass(frozen=True)
class DropletObservation:
    status: str
    ip: str | None


@dataclass(frozen=True)
class TunnelObservation:
    status: str
    connections: int

    @property
    def connected(self) -> bool:
        return self.status == "healthy" or self.connections > 0


@dataclass(frozen=True)
class Observations:
    droplet: DropletObservation | None = None
    tunnel: TunnelObservation | None = None


def reconcile(state: InstanceSnapshot, obs: Observations, now: datetime) -> InstanceSnapshot:
    nxt = state
    droplet_ip = obs.droplet.ip if obs.droplet else None

    # provisioning -> configuring once the droplet is up with a public address
    if nxt.status == InstanceStatus.provisioning and obs.droplet and obs.droplet.status == "active" and droplet_ip:
        nxt = replace(
            nxt,
            status=InstanceStatus.configuring,
            status_message=CONFIGURING_MESSAGE,
            droplet_ip=nxt.droplet_ip or droplet_ip,
            provisioned_at=nxt.provisioned_at or now,
        )

    # the agent dials out through the tunnel; a live connector means it booted
    if nxt.status in IN_PROGRESS_STATUSES and obs.tunnel and obs.tunnel.connected:
        nxt = replace(
            nxt,
            status=InstanceStatus.active,
            status_message=READY_MESSAGE,
            health_status=HealthStatus.healthy,
            last_health_check=now,
            droplet_ip=nxt.droplet_ip or droplet_ip,
            provisioned_at=nxt.provisioned_at or now,
        )

    if nxt.status == InstanceStatus.active and not nxt.droplet_ip and droplet_ip:
        nxt = replace(nxt, droplet_ip=droplet_ip)

    return nxt


def needs_droplet(inst: Instance) -> bool:
    if not inst.droplet_id:
        return False
    if inst.status == InstanceStatus.provisioning:
        return True
    return inst.status in (InstanceStatus.configuring, InstanceStatus.active) and not inst.droplet_ip


def needs_tunnel(inst: Instance) -> bool:
    return bool(inst.tunnel_id) and inst.status in IN_PROGRESS_STATUSES


async def observe(inst: Instance, compute, tunnels) -> Observations:
    droplet = tunnel = None
    if needs_droplet(inst):
        try:
            d = await compute.get_droplet(inst.droplet_id)
            droplet = DropletObservation(status=d.status, ip=d.ip)
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning("reconcile %s: droplet %s status unavailable: %s", inst.id, inst.droplet_id, e)
    if needs_tunnel(inst):
        t = await tunnels.get_tunnel_status(inst.tunnel_id)
        tunnel = TunnelObservation(status=t.status, connections=t.connections)
    return Observations(droplet=droplet, tunnel=tunnel)
