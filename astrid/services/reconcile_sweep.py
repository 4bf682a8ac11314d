import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from astrid.core.config import settings
from astrid.core.locks import instance_lock
from astrid.db.session import async_session
from astrid.models.enums import InstanceStatus, IN_PROGRESS_STATUSES
from astrid.models.instance import Instance
from astrid.services.gateway_client import default_gateway_factory
from astrid.services.orchestrator import InstanceOrchestrator, send_welcome

logger = logging.getLogger(__name__)


async def _pending_user_ids() -> list[str]:
    async with async_session() as db:
        res = await db.execute(
            select(Instance.user_id).where(
                (Instance.status.in_(IN_PROGRESS_STATUSES))
                | ((Instance.status == InstanceStatus.active) & Instance.droplet_ip.is_(None))
            )
        )
        return list(res.scalars())


async def sweep_once(tunnels, compute, admin_factory, concurrency: int | None = None) -> int:
    """Reconcile every instance that still has provisioning work; returns how many advanced."""
    sem = asyncio.Semaphore(concurrency or settings.RECONCILE_CONCURRENCY)
    user_ids = await _pending_user_ids()

    async def one(user_id: str) -> bool:
        async with sem, async_session() as db:
            orch = InstanceOrchestrator(
                db,
                tunnels=tunnels,
                compute=compute,
                lock_factory=instance_lock,
                gateway_factory=default_gateway_factory,
                admin_factory=admin_factory,
            )
            inst = await orch.get_instance(user_id)
            if inst is None:
                return False
            before = inst.status
            try:
                welcome_due = await orch.reconcile_instance(inst)
            except StaleDataError:
                await db.rollback()
                return False
            if welcome_due:
                await send_welcome(admin_factory, inst.tunnel_hostname, inst.gateway_token, inst.assistant_name, inst.telegram_user_id)
            return inst.status != before

    results = await asyncio.gather(*(one(u) for u in user_ids), return_exceptions=True)
    for user_id, r in zip(user_ids, results):
        if isinstance(r, Exception):
            logger.error("sweep: reconcile for user %s failed: %r", user_id, r)
    return sum(1 for r in results if r is True)
