from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TaskStatus = Literal["todo", "in-progress", "done", "blocked"]
Priority = Literal["low", "medium", "high", "urgent"]
ProjectStatus = Literal["active", "on-hold", "completed", "archived"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class Task(_CamelModel):
    id: str
    title: str
    status: TaskStatus = "todo"
    priority: Priority | None = None
    due: str | None = None
    done_date: str | None = None
    notes: str | None = None


class Project(_CamelModel):
    id: str
    name: str
    status: ProjectStatus = "active"
    description: str | None = None
    tasks: list[Task] = Field(default_factory=list)
    due: str | None = None
    completed_date: str | None = None


class Idea(_CamelModel):
    id: str
    title: str
    category: str | None = None
    notes: str | None = None
    created_date: str | None = None


class InboxItem(_CamelModel):
    id: str
    content: str
    created_date: str | None = None
    source: str | None = None


class WorkspaceStats(_CamelModel):
    inbox_count: int = 0
    active_projects_count: int = 0
    tasks_done_this_week: int = 0
    ideas_count: int = 0
    active_projects: list[Project] = Field(default_factory=list)
    recent_tasks: list[Task] = Field(default_factory=list)
    recent_inbox: list[InboxItem] = Field(default_factory=list)
    recent_ideas: list[Idea] = Field(default_factory=list)


class WorkspaceData(_CamelModel):
    # plain dicts: cached snapshots carry whatever shape the agent pushed
    projects: list[dict] = Field(default_factory=list)
    tasks: list[dict] = Field(default_factory=list)
    ideas: list[dict] = Field(default_factory=list)
    inbox: list[dict] = Field(default_factory=list)
    stats: dict = Field(default_factory=dict)
    source: Literal["live", "cache", "empty"] = "live"
    synced_at: datetime | None = None


class WorkspaceSyncIn(BaseModel):
    """Payload pushed by the agent; item shapes are owned by the agent."""

    instance_token: str = Field(min_length=1)
    projects: list[dict] = Field(default_factory=list)
    tasks: list[dict] = Field(default_factory=list)
    ideas: list[dict] = Field(default_factory=list)
    inbox: list[dict] = Field(default_factory=list)
    stats: dict = Field(default_factory=dict)


class WorkspaceSyncOut(BaseModel):
    ok: bool = True
    message: str = "Workspace synced successfully"
    synced_at: datetime


class WorkspaceSyncStatus(BaseModel):
    instance_id: str
    synced_at: datetime | None = None
    stats: dict | None = None
