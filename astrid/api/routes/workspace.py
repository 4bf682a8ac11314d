from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from astrid.api.deps import get_bearer_token, get_current_user, get_orchestrator
from astrid.db.session import get_db
from astrid.schemas.openapi import ERROR_RESPONSES
from astrid.schemas.workspace import WorkspaceData, WorkspaceSyncIn, WorkspaceSyncOut, WorkspaceSyncStatus
from astrid.services.orchestrator import CurrentUser, InstanceOrchestrator
from astrid.services.workspace import get_snapshot, instance_for_token, load_workspace, store_snapshot

router = APIRouter(prefix="/workspace", tags=["workspace"])

@router.get("", response_model=WorkspaceData, response_model_by_alias=True, responses=ERROR_RESPONSES)
async def read_workspace(
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    inst = await orch.get_instance(user.id)
    return await load_workspace(orch.db, inst, orch.gateway_factory)

# agent -> dashboard; authenticated by the instance's gateway token, not a user session

@router.post("/sync", response_model=WorkspaceSyncOut, responses=ERROR_RESPONSES)
async def push_workspace(payload: WorkspaceSyncIn, db: AsyncSession = Depends(get_db)):
    snapshot = await store_snapshot(db, payload)
    return WorkspaceSyncOut(synced_at=snapshot.synced_at)

@router.get("/sync", response_model=WorkspaceSyncStatus, responses=ERROR_RESPONSES)
async def workspace_sync_status(token: str | None = Depends(get_bearer_token), db: AsyncSession = Depends(get_db)):
    inst = await instance_for_token(db, token)
    snapshot = await get_snapshot(db, inst.id)
    if snapshot is None:
        return WorkspaceSyncStatus(instance_id=inst.id)
    return WorkspaceSyncStatus(instance_id=inst.id, synced_at=snapshot.synced_at, stats=snapshot.stats)
