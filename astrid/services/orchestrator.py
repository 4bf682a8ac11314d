"""
Instance lifecycle orchestration: creation across the tunnel and compute
providers, poll-driven reconciliation, teardown, health probes and the
assistant settings that are mirrored to the VM.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from astrid.core.config import settings
from astrid.core.error_codes import ErrorCode
from astrid.core.exceptions import AdminApiError, AgentUnreachableError, ProviderError, raise_error
from astrid.core.security import gen_gateway_token
from astrid.models.enums import HealthStatus, InstanceStatus, IN_PROGRESS_STATUSES
from astrid.models.instance import Instance
from astrid.models.instance_status_event import InstanceStatusEvent
from astrid.schemas.instance import ConfigOut, ConfigUpdate, ConfigUpdateOut, AssistantSettings, InstanceCreate
from astrid.services.agent_config import extract_assistant_info
from astrid.services.cloud_init import ProvisioningConfig
from astrid.services.cloudflare import TunnelInfo, base36
from astrid.services.digitalocean import DropletSpec
from astrid.services.reconciler import (
    PENDING_MESSAGE, PROVISIONING_MESSAGE, READY_MESSAGE, DESTROYING_MESSAGE,
    InstanceSnapshot, observe, reconcile,
)

logger = logging.getLogger(__name__)

CONFIG_FETCH_WARNING = "Could not fetch live config from VM"
CONFIG_PUSH_WARNING = "Could not push to VM immediately. Changes will apply on next restart."


@dataclass
class CurrentUser:
    id: str
    email: str | None = None


@dataclass
class PollResult:
    instance: Instance | None
    activated: bool = False          # first transition to active; welcome message due


@dataclass
class HealthResult:
    instance: Instance
    healthy: bool
    reason: str | None = None
    activated: bool = False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def droplet_name_for(user_id: str) -> str:
    return f"astrid-{user_id[:8]}-{base36(int(time.time() * 1000))}"


def record_transition(db: AsyncSession, inst: Instance, new_status: InstanceStatus, message: str | None) -> None:
    if inst.status != new_status:
        db.add(
            InstanceStatusEvent(
                instance_id=inst.id,
                from_status=inst.status.value if inst.status else None,
                to_status=new_status.value,
                message=(message or "")[:500] or None,
            )
        )
        inst.status = new_status
    inst.status_message = message


class InstanceOrchestrator:
    def __init__(
        self,
        db: AsyncSession,
        *,
        tunnels,
        compute,
        lock_factory,
        gateway_factory,
        admin_factory,
        clock=utcnow,
    ):
        self.db = db
        self.tunnels = tunnels
        self.compute = compute
        self.lock_factory = lock_factory
        self.gateway_factory = gateway_factory
        self.admin_factory = admin_factory
        self.clock = clock

    async def get_instance(self, user_id: str) -> Instance | None:
        res = await self.db.execute(select(Instance).where(Instance.user_id == user_id))
        return res.scalar_one_or_none()

    async def require_instance(self, user_id: str) -> Instance:
        inst = await self.get_instance(user_id)
        if inst is None:
            raise_error(ErrorCode.INSTANCE_NOT_FOUND, status.HTTP_404_NOT_FOUND, "No instance found")
        return inst

    # ---------- creation ----------

    async def _discard_tunnel(self, tunnel: TunnelInfo) -> None:
        try:
            await self.tunnels.delete_tunnel(tunnel.tunnel_id, tunnel.hostname)
        except Exception:
            logger.exception("create: rollback of tunnel %s failed", tunnel.tunnel_id)

    async def create(self, user: CurrentUser, data: InstanceCreate) -> Instance:
        # validated before any provider is touched
        if not data.has_model_credentials():
            raise_error(
                ErrorCode.INSTANCE_CREDENTIALS_REQUIRED,
                status.HTTP_400_BAD_REQUEST,
                "Either anthropicKey or setupToken is required",
            )

        async with self.lock_factory(user.id):
            existing = await self.get_instance(user.id)
            if existing is not None:
                raise_error(
                    ErrorCode.INSTANCE_ALREADY_EXISTS,
                    status.HTTP_409_CONFLICT,
                    "Instance already exists",
                    details={"instance": {"id": existing.id, "status": existing.status.value}},
                )

            gateway_token = gen_gateway_token()
            droplet_name = droplet_name_for(user.id)

            try:
                tunnel = await self.tunnels.create_tunnel(user.id)
            except Exception as e:
                logger.error("create %s: tunnel creation failed: %r", user.id, e)
                raise_error(ErrorCode.TUNNEL_CREATION_FAILED, status.HTTP_502_BAD_GATEWAY, "Failed to create secure tunnel")

            inst = Instance(
                user_id=user.id,
                status=InstanceStatus.pending,
                status_message=PENDING_MESSAGE,
                droplet_name=droplet_name,
                region=data.region,
                size=data.size,
                tunnel_id=tunnel.tunnel_id,
                tunnel_hostname=tunnel.hostname,
                gateway_token=gateway_token,
                gateway_port=settings.GATEWAY_PORT,
                assistant_name=data.assistant_name,
                assistant_emoji=data.assistant_emoji,
                model=data.model,
                telegram_user_id=data.telegram_user_id,
                health_status=HealthStatus.unknown,
            )
            try:
                self.db.add(inst)
                await self.db.flush()
                self.db.add(InstanceStatusEvent(instance_id=inst.id, from_status=None, to_status=InstanceStatus.pending.value, message=PENDING_MESSAGE))
                await self.db.commit()
            except IntegrityError:
                # unique(user_id): a concurrent request won the race
                await self.db.rollback()
                await self._discard_tunnel(tunnel)
                raise_error(ErrorCode.INSTANCE_ALREADY_EXISTS, status.HTTP_409_CONFLICT, "Instance already exists")

            spec = DropletSpec(
                name=droplet_name,
                region=data.region,
                size=data.size,
                provisioning=ProvisioningConfig(
                    gateway_token=gateway_token,
                    assistant_name=data.assistant_name,
                    assistant_emoji=data.assistant_emoji,
                    user_email=user.email or "",
                    anthropic_key=data.anthropic_key,
                    setup_token=data.setup_token,
                    model=data.model,
                    gateway_port=settings.GATEWAY_PORT,
                    admin_port=settings.ADMIN_AGENT_PORT,
                    telegram_token=data.telegram_token,
                    telegram_user_id=data.telegram_user_id,
                    user_name=data.user_name,
                    user_timezone=data.user_timezone,
                    user_about=data.user_about,
                    personality_traits=tuple(data.personality_traits),
                    personality_context=data.personality_context,
                    tunnel_credentials_json=tunnel.credentials_json,
                    tunnel_hostname=tunnel.hostname,
                    github_packages_token=settings.GITHUB_PACKAGES_TOKEN,
                ),
            )
            try:
                droplet = await self.compute.create_droplet(spec)
            except Exception as e:
                logger.error("create %s: droplet creation failed: %r", inst.id, e)
                await self._discard_tunnel(tunnel)
                inst.tunnel_id = None
                inst.tunnel_hostname = None
                record_transition(self.db, inst, InstanceStatus.error, f"Failed to create droplet: {e}")
                await self.db.commit()
                raise_error(
                    ErrorCode.INSTANCE_CREATION_FAILED,
                    status.HTTP_502_BAD_GATEWAY,
                    f"Failed to create droplet: {e}",
                    details={"instance_id": inst.id},
                )

            inst.droplet_id = droplet.id
            record_transition(self.db, inst, InstanceStatus.provisioning, PROVISIONING_MESSAGE)
            await self.db.commit()
            logger.info("create %s: droplet %s requested for user %s", inst.id, droplet.id, user.id)
            return inst

    # ---------- reconciliation ----------

    async def reconcile_instance(self, inst: Instance) -> bool:
        """Advance ``inst`` from provider observations; True on first activation."""
        before = InstanceSnapshot.of(inst)
        obs = await observe(inst, self.compute, self.tunnels)
        after = reconcile(before, obs, self.clock())
        if after == before:
            return False

        activated = before.status != InstanceStatus.active and after.status == InstanceStatus.active
        if after.status != before.status:
            record_transition(self.db, inst, after.status, after.status_message)
        after.apply_to(inst)
        welcome_due = activated and not inst.welcome_sent
        if welcome_due:
            inst.welcome_sent = True
        await self.db.commit()
        if after.status != before.status:
            logger.info("reconcile %s: %s -> %s", inst.id, before.status.value, after.status.value)
        return welcome_due

    async def poll(self, user_id: str) -> PollResult:
        inst = await self.get_instance(user_id)
        if inst is None:
            return PollResult(instance=None)
        try:
            activated = await self.reconcile_instance(inst)
        except StaleDataError:
            # another writer got there first; its state wins
            await self.db.rollback()
            return PollResult(instance=await self.get_instance(user_id))
        return PollResult(instance=inst, activated=activated)

    # ---------- teardown ----------

    async def destroy(self, user_id: str) -> None:
        async with self.lock_factory(user_id):
            inst = await self.require_instance(user_id)
            record_transition(self.db, inst, InstanceStatus.destroying, DESTROYING_MESSAGE)
            await self.db.commit()

            if inst.droplet_id:
                try:
                    await self.compute.delete_droplet(inst.droplet_id)
                except Exception:
                    logger.exception("destroy %s: droplet %s delete failed", inst.id, inst.droplet_id)
            if inst.tunnel_id:
                try:
                    await self.tunnels.delete_tunnel(inst.tunnel_id, inst.tunnel_hostname)
                except Exception:
                    logger.exception("destroy %s: tunnel %s delete failed", inst.id, inst.tunnel_id)

            await self.db.delete(inst)
            await self.db.commit()
            logger.info("destroy %s: record removed", inst.id)

    # ---------- health ----------

    async def probe_health(self, user_id: str) -> HealthResult:
        async with self.lock_factory(user_id):
            inst = await self.require_instance(user_id)
            if not inst.tunnel_hostname:
                return HealthResult(instance=inst, healthy=False, reason="No tunnel yet")

            admin = self.admin_factory(inst.tunnel_hostname, inst.gateway_token)
            healthy = await admin.health()

            now = self.clock()
            inst.health_status = HealthStatus.healthy if healthy else HealthStatus.unhealthy
            inst.last_health_check = now
            activated = False
            if healthy and inst.status in IN_PROGRESS_STATUSES:
                record_transition(self.db, inst, InstanceStatus.active, READY_MESSAGE)
                inst.provisioned_at = inst.provisioned_at or now
                activated = not inst.welcome_sent
                inst.welcome_sent = True
            elif inst.status == InstanceStatus.active:
                inst.status_message = READY_MESSAGE if healthy else "Waiting for your assistant to respond..."
            await self.db.commit()
            return HealthResult(
                instance=inst,
                healthy=healthy,
                reason=None if healthy else "Admin agent did not answer",
                activated=activated,
            )

    # ---------- assistant settings ----------

    def _cached_config(self, inst: Instance, warning: str | None = None) -> ConfigOut:
        return ConfigOut(
            assistant_name=inst.assistant_name,
            assistant_emoji=inst.assistant_emoji,
            model=inst.model or settings.DEFAULT_MODEL,
            region=inst.region,
            status=inst.status,
            tunnel_hostname=inst.tunnel_hostname,
            source="cache",
            warning=warning,
        )

    async def get_config(self, user_id: str) -> ConfigOut:
        inst = await self.require_instance(user_id)
        if inst.status != InstanceStatus.active or not inst.droplet_ip:
            return self._cached_config(inst)

        try:
            config = await self.gateway_factory(inst.droplet_ip).get_config()
        except (AgentUnreachableError, ValueError) as e:
            logger.warning("config %s: live read failed: %s", inst.id, e)
            return self._cached_config(inst, CONFIG_FETCH_WARNING)

        info = extract_assistant_info(config)
        out = ConfigOut(
            assistant_name=info.name,
            assistant_emoji=info.emoji,
            model=info.model,
            region=inst.region,
            status=inst.status,
            tunnel_hostname=inst.tunnel_hostname,
            source="live",
        )
        inst.assistant_name, inst.assistant_emoji, inst.model = info.name, info.emoji, info.model
        try:
            await self.db.commit()
        except StaleDataError:
            # cache refresh only; a concurrent writer is fine to win
            await self.db.rollback()
        return out

    async def update_config(self, user_id: str, data: ConfigUpdate) -> ConfigUpdateOut:
        async with self.lock_factory(user_id):
            inst = await self.require_instance(user_id)
            if inst.status != InstanceStatus.active:
                raise_error(
                    ErrorCode.INSTANCE_NOT_ACTIVE,
                    status.HTTP_503_SERVICE_UNAVAILABLE,
                    f"Instance is not active (status: {inst.status.value})",
                )
            if not inst.droplet_ip:
                raise_error(ErrorCode.INSTANCE_NOT_CONFIGURED, status.HTTP_503_SERVICE_UNAVAILABLE, "No droplet IP found")

            try:
                merged = await self.gateway_factory(inst.droplet_ip).update_config(
                    name=data.assistant_name, emoji=data.assistant_emoji, model=data.model
                )
            except (AgentUnreachableError, ValueError) as e:
                logger.warning("config %s: push to VM failed: %s", inst.id, e)
                if data.assistant_name:
                    inst.assistant_name = data.assistant_name
                if data.assistant_emoji:
                    inst.assistant_emoji = data.assistant_emoji
                if data.model:
                    inst.model = data.model
                await self.db.commit()
                return ConfigUpdateOut(message="Configuration saved (VM sync pending)", warning=CONFIG_PUSH_WARNING)

            info = extract_assistant_info(merged)
            inst.assistant_name, inst.assistant_emoji, inst.model = info.name, info.emoji, info.model
            await self.db.commit()
            return ConfigUpdateOut(
                message="Configuration updated and synced to VM",
                config=AssistantSettings(assistant_name=info.name, assistant_emoji=info.emoji, model=info.model),
            )

    # ---------- misc ----------

    async def list_events(self, user_id: str) -> list[InstanceStatusEvent]:
        inst = await self.require_instance(user_id)
        res = await self.db.execute(
            select(InstanceStatusEvent)
            .where(InstanceStatusEvent.instance_id == inst.id)
            .order_by(InstanceStatusEvent.changed_at, InstanceStatusEvent.id)
        )
        return list(res.scalars())

    async def list_regions(self):
        try:
            return await self.compute.list_regions()
        except ProviderError as e:
            logger.error("regions: %s", e)
            raise_error(ErrorCode.EXTERNAL_API_ERROR, status.HTTP_502_BAD_GATEWAY, "Failed to list regions")


WELCOME_PROMPT = """This is your FIRST message to your new user! They just finished setting you up and are excited to meet you.

You are {name}, their personal AI executive assistant.

Write a warm welcome that greets them with genuine excitement, introduces yourself as {name},
explains that you take the mental load off their shoulders and can actually do things for them,
lets them know they can message you anytime, and asks what they would like to tackle together.

Tone: warm, confident, slightly playful. Three or four short paragraphs, no bullet points.
Do not mention markdown, files, workspaces or other technical details."""


async def send_welcome(admin_factory, tunnel_hostname: str, gateway_token: str, assistant_name: str, telegram_user_id: str | None) -> bool:
    """Ask the agent to greet its user; failures are logged, never raised."""
    try:
        await admin_factory(tunnel_hostname, gateway_token).send_agent_hook(
            WELCOME_PROMPT.format(name=assistant_name or settings.DEFAULT_ASSISTANT_NAME),
            to=telegram_user_id,
        )
    except AdminApiError as e:
        logger.warning("welcome via %s failed: %s", tunnel_hostname, e)
        return False
    return True
