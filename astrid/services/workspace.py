import asyncio
import logging
from datetime import datetime, timezone

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from astrid.core.error_codes import ErrorCode
from astrid.core.exceptions import raise_error
from astrid.models.enums import InstanceStatus
from astrid.models.instance import Instance
from astrid.models.workspace_snapshot import WorkspaceSnapshot
from astrid.schemas.workspace import WorkspaceData, WorkspaceSyncIn
from astrid.services.workspace_parsers import parse_ideas, parse_inbox, parse_projects, parse_tasks, workspace_stats

logger = logging.getLogger(__name__)

WORKSPACE_FILES = ("PROJECTS.md", "TASKS.md", "IDEAS.md", "INBOX.md")


def _dump(items) -> list[dict]:
    return [i.model_dump(by_alias=True, exclude_none=True) for i in items]


async def get_snapshot(db: AsyncSession, instance_id: str) -> WorkspaceSnapshot | None:
    res = await db.execute(select(WorkspaceSnapshot).where(WorkspaceSnapshot.instance_id == instance_id))
    return res.scalar_one_or_none()


async def load_workspace(db: AsyncSession, inst: Instance | None, gateway_factory) -> WorkspaceData:
    """Read and parse the workspace files over the control plane.

    Falls back to the last snapshot pushed by the agent when none of the files
    could be read.
    """
    if inst is None:
        raise_error(ErrorCode.INSTANCE_NOT_FOUND, status.HTTP_404_NOT_FOUND, "No instance found")
    if inst.status != InstanceStatus.active:
        raise_error(ErrorCode.INSTANCE_NOT_ACTIVE, status.HTTP_503_SERVICE_UNAVAILABLE, "Instance not active")
    if not inst.droplet_ip:
        raise_error(ErrorCode.INSTANCE_NOT_CONFIGURED, status.HTTP_503_SERVICE_UNAVAILABLE, "No droplet IP found")

    client = gateway_factory(inst.droplet_ip)
    projects_md, tasks_md, ideas_md, inbox_md = await asyncio.gather(
        *(client.read_file(name) for name in WORKSPACE_FILES)
    )

    if all(c is None for c in (projects_md, tasks_md, ideas_md, inbox_md)):
        snapshot = await get_snapshot(db, inst.id)
        if snapshot is None:
            logger.info("workspace %s: nothing readable and no snapshot", inst.id)
            return WorkspaceData(source="empty")
        return WorkspaceData(
            projects=snapshot.projects or [],
            tasks=snapshot.tasks or [],
            ideas=snapshot.ideas or [],
            inbox=snapshot.inbox or [],
            stats=snapshot.stats or {},
            source="cache",
            synced_at=snapshot.synced_at,
        )

    projects = parse_projects(projects_md) if projects_md else []
    tasks = parse_tasks(tasks_md) if tasks_md else []
    ideas = parse_ideas(ideas_md) if ideas_md else []
    inbox = parse_inbox(inbox_md) if inbox_md else []
    stats = workspace_stats(projects, tasks, ideas, inbox)
    return WorkspaceData(
        projects=_dump(projects),
        tasks=_dump(tasks),
        ideas=_dump(ideas),
        inbox=_dump(inbox),
        stats=stats.model_dump(by_alias=True, exclude_none=True),
        source="live",
    )


async def instance_for_token(db: AsyncSession, token: str | None) -> Instance:
    if not token:
        raise_error(ErrorCode.TOKEN_MISSING, status.HTTP_401_UNAUTHORIZED, "Missing authorization")
    res = await db.execute(select(Instance).where(Instance.gateway_token == token))
    inst = res.scalar_one_or_none()
    if inst is None:
        raise_error(ErrorCode.INSTANCE_TOKEN_INVALID, status.HTTP_401_UNAUTHORIZED, "Invalid instance token")
    return inst


async def store_snapshot(db: AsyncSession, payload: WorkspaceSyncIn) -> WorkspaceSnapshot:
    inst = await instance_for_token(db, payload.instance_token)
    now = datetime.now(timezone.utc)
    snapshot = await get_snapshot(db, inst.id)
    if snapshot is None:
        snapshot = WorkspaceSnapshot(instance_id=inst.id, user_id=inst.user_id)
        db.add(snapshot)
    snapshot.projects = payload.projects
    snapshot.tasks = payload.tasks
    snapshot.ideas = payload.ideas
    snapshot.inbox = payload.inbox
    snapshot.stats = payload.stats
    snapshot.synced_at = now
    await db.commit()
    logger.info("workspace %s: snapshot stored", inst.id)
    return snapshot
