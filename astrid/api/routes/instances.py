from fastapi import APIRouter, BackgroundTasks, Depends

from astrid.api.deps import get_current_user, get_orchestrator
from astrid.schemas.common import Message
from astrid.schemas.instance import (
    ConfigOut, ConfigUpdate, ConfigUpdateOut, CreateInstanceOut, CreatedInstance, HealthOut,
    InstanceCreate, InstanceEnvelope, InstanceOut, RegionOut, StatusEventOut,
)
from astrid.schemas.openapi import ERROR_RESPONSES
from astrid.services.orchestrator import CurrentUser, InstanceOrchestrator, send_welcome

router = APIRouter(prefix="/instances", tags=["instances"])

def _schedule_welcome(background: BackgroundTasks, orch: InstanceOrchestrator, inst) -> None:
    if inst.tunnel_hostname and inst.gateway_token:
        background.add_task(
            send_welcome,
            orch.admin_factory,
            inst.tunnel_hostname,
            inst.gateway_token,
            inst.assistant_name,
            inst.telegram_user_id,
        )

@router.post("", response_model=CreateInstanceOut, responses=ERROR_RESPONSES)
async def create_instance(
    data: InstanceCreate,
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    inst = await orch.create(user, data)
    return CreateInstanceOut(
        instance=CreatedInstance(id=inst.id, droplet_id=inst.droplet_id, name=inst.droplet_name, status=inst.status)
    )

@router.get("", response_model=InstanceEnvelope, responses=ERROR_RESPONSES)
async def get_instance(
    background: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    # every read doubles as a reconciliation step
    result = await orch.poll(user.id)
    if result.activated:
        _schedule_welcome(background, orch, result.instance)
    return InstanceEnvelope(instance=InstanceOut.model_validate(result.instance) if result.instance else None)

@router.delete("", response_model=Message, responses=ERROR_RESPONSES)
async def delete_instance(
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    await orch.destroy(user.id)
    return Message(message="Instance destroyed")

@router.post("/health", response_model=HealthOut, responses=ERROR_RESPONSES)
async def check_health(
    background: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    result = await orch.probe_health(user.id)
    if result.activated:
        _schedule_welcome(background, orch, result.instance)
    return HealthOut(healthy=result.healthy, reason=result.reason, instance=InstanceOut.model_validate(result.instance))

@router.get("/config", response_model=ConfigOut, responses=ERROR_RESPONSES)
async def get_config(
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    return await orch.get_config(user.id)

@router.patch("/config", response_model=ConfigUpdateOut, responses=ERROR_RESPONSES)
async def update_config(
    data: ConfigUpdate,
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    return await orch.update_config(user.id, data)

@router.get("/events", response_model=list[StatusEventOut], responses=ERROR_RESPONSES)
async def list_status_events(
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    return await orch.list_events(user.id)

@router.get("/regions", response_model=list[RegionOut], responses=ERROR_RESPONSES)
async def list_regions(
    user: CurrentUser = Depends(get_current_user),
    orch: InstanceOrchestrator = Depends(get_orchestrator),
):
    regions = await orch.list_regions()
    return [RegionOut(slug=r.slug, name=r.name, available=r.available) for r in regions]
