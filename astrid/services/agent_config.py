"""Typed view of the agent's ``openclaw.json`` and pure helpers over it.

Unknown keys are kept (``extra="allow"``) so a round trip through these models
never drops settings written by a newer agent release.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from astrid.core.config import settings

MAIN_AGENT_ID = "main"
WORKSPACE_DIR = "/home/openclaw/workspace"
CONFIG_SCHEMA_VERSION = 1


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)


class GatewayAuth(_ConfigModel):
    token: str | None = None


class GatewayConfig(_ConfigModel):
    mode: str = "local"
    port: int = 18789
    auth: GatewayAuth | None = None


class AgentIdentity(_ConfigModel):
    name: str | None = None
    emoji: str | None = None


class AgentEntry(_ConfigModel):
    id: str
    identity: AgentIdentity | None = None


class ModelSelection(_ConfigModel):
    primary: str | None = None


class AgentDefaults(_ConfigModel):
    workspace: str | None = None
    model: ModelSelection | None = None


class AgentsConfig(_ConfigModel):
    defaults: AgentDefaults | None = None
    entries: list[AgentEntry] = Field(default_factory=list, alias="list")


class TelegramChannel(_ConfigModel):
    enabled: bool = True
    bot_token: str | None = None
    dm_policy: str = "open"
    allow_from: list[str] = Field(default_factory=list)


class ChannelsConfig(_ConfigModel):
    telegram: TelegramChannel | None = None


class HookToggle(_ConfigModel):
    enabled: bool = True


class InternalHooks(_ConfigModel):
    enabled: bool = True
    entries: dict[str, HookToggle] = Field(default_factory=dict)


class HooksConfig(_ConfigModel):
    enabled: bool = True
    token: str | None = None
    internal: InternalHooks | None = None


class ConfigMeta(_ConfigModel):
    schema_version: int = CONFIG_SCHEMA_VERSION
    last_touched_at: str | None = None


class AgentConfig(_ConfigModel):
    meta: ConfigMeta | None = None
    gateway: GatewayConfig | None = None
    agents: AgentsConfig | None = None
    channels: ChannelsConfig | None = None
    hooks: HooksConfig | None = None

    @classmethod
    def from_json(cls, raw: str) -> "AgentConfig":
        return cls.model_validate(json.loads(raw))

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class AssistantInfo:
    name: str
    emoji: str
    model: str


def build_agent_config(
    *,
    gateway_token: str,
    assistant_name: str,
    assistant_emoji: str,
    model: str | None = None,
    gateway_port: int = 18789,
    telegram_token: str | None = None,
    telegram_user_id: str | None = None,
) -> AgentConfig:
    """Initial configuration baked into the boot script."""
    channels = None
    if telegram_token:
        # the user owns the bot; without a known user id DMs stay open
        channels = ChannelsConfig(
            telegram=TelegramChannel(
                bot_token=telegram_token,
                dm_policy="allowlist" if telegram_user_id else "open",
                allow_from=[telegram_user_id] if telegram_user_id else ["*"],
            )
        )
    return AgentConfig(
        meta=ConfigMeta(),
        gateway=GatewayConfig(port=gateway_port, auth=GatewayAuth(token=gateway_token)),
        agents=AgentsConfig(
            defaults=AgentDefaults(
                workspace=WORKSPACE_DIR,
                model=ModelSelection(primary=model) if model else None,
            ),
            entries=[AgentEntry(id=MAIN_AGENT_ID, identity=AgentIdentity(name=assistant_name, emoji=assistant_emoji))],
        ),
        channels=channels,
        hooks=HooksConfig(
            token=gateway_token,
            internal=InternalHooks(entries={"first-contact": HookToggle()}),
        ),
    )


def apply_assistant_settings(
    config: AgentConfig,
    *,
    name: str | None = None,
    emoji: str | None = None,
    model: str | None = None,
    now: datetime | None = None,
) -> AgentConfig:
    """Return a copy of ``config`` with the dashboard-editable fields replaced.

    Name and emoji live on the ``main`` agent's identity, the model under
    ``agents.defaults.model.primary``. Fields passed as None are left alone.
    """
    merged = config.model_copy(deep=True)
    if name is None and emoji is None and model is None:
        return merged

    if merged.agents is None:
        merged.agents = AgentsConfig()

    if name is not None or emoji is not None:
        entry = next((a for a in merged.agents.entries if a.id == MAIN_AGENT_ID), None)
        if entry is None:
            entry = AgentEntry(id=MAIN_AGENT_ID)
            merged.agents.entries.append(entry)
        if entry.identity is None:
            entry.identity = AgentIdentity()
        if name is not None:
            entry.identity.name = name
        if emoji is not None:
            entry.identity.emoji = emoji

    if model is not None:
        if merged.agents.defaults is None:
            merged.agents.defaults = AgentDefaults()
        if merged.agents.defaults.model is None:
            merged.agents.defaults.model = ModelSelection()
        merged.agents.defaults.model.primary = model

    if merged.meta is None:
        merged.meta = ConfigMeta()
    merged.meta.last_touched_at = (now or datetime.now(timezone.utc)).isoformat()
    return merged


def extract_assistant_info(config: AgentConfig) -> AssistantInfo:
    name, emoji, model = None, None, None
    if config.agents is not None:
        entry = next((a for a in config.agents.entries if a.id == MAIN_AGENT_ID), None)
        if entry is not None and entry.identity is not None:
            name, emoji = entry.identity.name, entry.identity.emoji
        if config.agents.defaults is not None and config.agents.defaults.model is not None:
            model = config.agents.defaults.model.primary
    return AssistantInfo(
        name=name or settings.DEFAULT_ASSISTANT_NAME,
        emoji=emoji or settings.DEFAULT_ASSISTANT_EMOJI,
        model=model or settings.DEFAULT_MODEL,
    )
