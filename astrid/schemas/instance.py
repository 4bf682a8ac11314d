from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from astrid.core.config import settings
from astrid.models.enums import HealthStatus, InstanceStatus


class InstanceCreate(BaseModel):
    # the onboarding wizard posts camelCase; snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    region: str = Field(default_factory=lambda: settings.DEFAULT_REGION, max_length=32)
    size: str = Field(default_factory=lambda: settings.DEFAULT_SIZE, max_length=64)
    assistant_name: str = Field(default_factory=lambda: settings.DEFAULT_ASSISTANT_NAME, min_length=1, max_length=100)
    assistant_emoji: str = Field(default_factory=lambda: settings.DEFAULT_ASSISTANT_EMOJI, min_length=1, max_length=16)
    model: str | None = Field(default=None, max_length=100)
    anthropic_key: str | None = None
    setup_token: str | None = None
    telegram_token: str | None = None
    telegram_user_id: str | None = Field(default=None, max_length=64)
    user_name: str | None = None
    user_timezone: str | None = None
    user_about: str | None = None
    personality_traits: list[str] = Field(default_factory=list)
    personality_context: str | None = None

    def has_model_credentials(self) -> bool:
        return bool((self.anthropic_key or "").strip() or (self.setup_token or "").strip())

    def __repr__(self) -> str:
        return f"InstanceCreate(region={self.region!r}, size={self.size!r}, assistant_name={self.assistant_name!r})"

    __str__ = __repr__


class InstanceOut(BaseModel):
    """Instance as returned to the dashboard; the gateway token is never included."""

    id: str
    user_id: str
    status: InstanceStatus
    status_message: str | None = None
    droplet_id: str | None = None
    droplet_name: str | None = None
    droplet_ip: str | None = None
    region: str
    size: str
    tunnel_id: str | None = None
    tunnel_hostname: str | None = None
    gateway_port: int
    assistant_name: str
    assistant_emoji: str
    model: str | None = None
    health_status: HealthStatus
    last_health_check: datetime | None = None
    provisioned_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class InstanceEnvelope(BaseModel):
    instance: InstanceOut | None = None


class CreatedInstance(BaseModel):
    id: str
    droplet_id: str | None = None
    name: str | None = None
    status: InstanceStatus


class CreateInstanceOut(BaseModel):
    success: bool = True
    instance: CreatedInstance


class HealthOut(BaseModel):
    healthy: bool
    reason: str | None = None
    instance: InstanceOut


class ConfigOut(BaseModel):
    assistant_name: str
    assistant_emoji: str
    model: str
    region: str
    status: InstanceStatus
    tunnel_hostname: str | None = None
    source: Literal["live", "cache"]
    warning: str | None = None


class ConfigUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    assistant_name: str | None = Field(default=None, min_length=1, max_length=100)
    assistant_emoji: str | None = Field(default=None, min_length=1, max_length=16)
    model: str | None = Field(default=None, min_length=1, max_length=100)


class AssistantSettings(BaseModel):
    assistant_name: str
    assistant_emoji: str
    model: str


class ConfigUpdateOut(BaseModel):
    success: bool = True
    message: str
    config: AssistantSettings | None = None
    warning: str | None = None


class StatusEventOut(BaseModel):
    from_status: str | None
    to_status: str
    message: str | None = None
    changed_at: datetime

    class Config:
        from_attributes = True


class RegionOut(BaseModel):
    slug: str
    name: str
    available: bool
