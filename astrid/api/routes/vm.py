from enum import Enum
from typing import Any

from fastapi import APIRouter, Body, Depends

from astrid.api.deps import get_admin_factory, get_current_user, get_orchestrator
from astrid.schemas.openapi import ERROR_RESPONSES
from astrid.services.admin_api import require_admin_target
from astrid.services.orchestrator import CurrentUser, InstanceOrchestrator

router = APIRouter(prefix="/vm", tags=["vm"])

class Collection(str, Enum):
    projects = "projects"
    tasks = "tasks"
    ideas = "ideas"
    inbox = "inbox"

class Action(str, Enum):
    promote = "promote"
    process = "process"

async def _call(orch: InstanceOrchestrator, admin_factory, user: CurrentUser, method: str, path: str, body: Any = None):
    url, token = require_admin_target(await orch.get_instance(user.id))
    data = await admin_factory(url, token).request(method, path, json=body)
    return data if data is not None else {}

# project task routes first: /vm/projects/{id}/tasks must not fall into /{collection}/{id}/{action}

@router.get("/projects/{project_id}/tasks", responses=ERROR_RESPONSES)
async def list_project_tasks(project_id: str, user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "GET", f"/projects/{project_id}/tasks")

@router.post("/projects/{project_id}/tasks", responses=ERROR_RESPONSES)
async def add_project_task(project_id: str, body: dict = Body(default_factory=dict), user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "POST", f"/projects/{project_id}/tasks", body)

@router.patch("/projects/{project_id}/tasks/{task_id}", responses=ERROR_RESPONSES)
async def update_project_task(project_id: str, task_id: str, body: dict = Body(default_factory=dict), user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "PATCH", f"/projects/{project_id}/tasks/{task_id}", body)

@router.delete("/projects/{project_id}/tasks/{task_id}", responses=ERROR_RESPONSES)
async def delete_project_task(project_id: str, task_id: str, user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "DELETE", f"/projects/{project_id}/tasks/{task_id}")

@router.get("/{collection}", responses=ERROR_RESPONSES)
async def list_items(collection: Collection, user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "GET", f"/{collection.value}")

@router.post("/{collection}", responses=ERROR_RESPONSES)
async def create_item(collection: Collection, body: dict = Body(default_factory=dict), user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "POST", f"/{collection.value}", body)

@router.get("/{collection}/{item_id}", responses=ERROR_RESPONSES)
async def get_item(collection: Collection, item_id: str, user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "GET", f"/{collection.value}/{item_id}")

@router.patch("/{collection}/{item_id}", responses=ERROR_RESPONSES)
async def update_item(collection: Collection, item_id: str, body: dict = Body(default_factory=dict), user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "PATCH", f"/{collection.value}/{item_id}", body)

@router.delete("/{collection}/{item_id}", responses=ERROR_RESPONSES)
async def delete_item(collection: Collection, item_id: str, user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "DELETE", f"/{collection.value}/{item_id}")

@router.post("/{collection}/{item_id}/{action}", responses=ERROR_RESPONSES)
async def item_action(collection: Collection, item_id: str, action: Action, body: dict = Body(default_factory=dict), user=Depends(get_current_user), orch=Depends(get_orchestrator), admin=Depends(get_admin_factory)):
    return await _call(orch, admin, user, "POST", f"/{collection.value}/{item_id}/{action.value}", body)
