"""Tests for the agent configuration schema and merge."""

import json
from datetime import datetime, timezone

from astrid.core.config import settings
from astrid.services.agent_config import (
    AgentConfig,
    apply_assistant_settings,
    build_agent_config,
    extract_assistant_info,
)

LIVE_CONFIG = {
    "meta": {"schemaVersion": 1},
    "gateway": {"mode": "local", "port": 18789, "auth": {"token": "gw"}, "bind": "loopback"},
    "agents": {
        "defaults": {"workspace": "/home/openclaw/workspace", "model": {"primary": "anthropic/claude-sonnet-4-5"}},
        "list": [
            {"id": "helper", "identity": {"name": "Helper"}},
            {"id": "main", "identity": {"name": "Astrid", "emoji": "✨", "theme": "dark"}},
        ],
    },
    "plugins": {"entries": {"memory": {"enabled": True}}},
}

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def test_round_trip_keeps_unknown_keys():
    cfg = AgentConfig.from_json(json.dumps(LIVE_CONFIG))
    out = cfg.to_dict()

    assert out["plugins"] == {"entries": {"memory": {"enabled": True}}}
    assert out["gateway"]["bind"] == "loopback"
    assert out["agents"]["list"][1]["identity"]["theme"] == "dark"


def test_merge_updates_main_identity_and_model():
    cfg = AgentConfig.from_json(json.dumps(LIVE_CONFIG))

    merged = apply_assistant_settings(cfg, name="Vega", emoji="🔭", model="anthropic/claude-opus-4", now=NOW)
    out = merged.to_dict()

    assert out["agents"]["list"][1]["identity"] == {"name": "Vega", "emoji": "🔭", "theme": "dark"}
    assert out["agents"]["list"][0]["identity"] == {"name": "Helper"}
    assert out["agents"]["defaults"]["model"]["primary"] == "anthropic/claude-opus-4"
    assert out["meta"]["lastTouchedAt"] == NOW.isoformat()


def test_merge_is_pure():
    cfg = AgentConfig.from_json(json.dumps(LIVE_CONFIG))
    apply_assistant_settings(cfg, name="Vega", now=NOW)
    assert extract_assistant_info(cfg).name == "Astrid"


def test_merge_leaves_unset_fields_alone():
    cfg = AgentConfig.from_json(json.dumps(LIVE_CONFIG))
    info = extract_assistant_info(apply_assistant_settings(cfg, emoji="🔭", now=NOW))
    assert (info.name, info.emoji, info.model) == ("Astrid", "🔭", "anthropic/claude-sonnet-4-5")


def test_merge_creates_missing_sections():
    merged = apply_assistant_settings(AgentConfig(), name="Vega", model="m1", now=NOW)
    out = merged.to_dict()
    assert out["agents"]["list"] == [{"id": "main", "identity": {"name": "Vega"}}]
    assert out["agents"]["defaults"]["model"]["primary"] == "m1"


def test_extract_falls_back_to_defaults():
    info = extract_assistant_info(AgentConfig())
    assert info.name == settings.DEFAULT_ASSISTANT_NAME
    assert info.emoji == settings.DEFAULT_ASSISTANT_EMOJI
    assert info.model == settings.DEFAULT_MODEL


def test_initial_config_open_dm_without_user_id():
    cfg = build_agent_config(gateway_token="gw", assistant_name="Nova", assistant_emoji="🌟", telegram_token="1:x")
    telegram = cfg.to_dict()["channels"]["telegram"]
    assert telegram["dmPolicy"] == "open"
    assert telegram["allowFrom"] == ["*"]
    assert telegram["botToken"] == "1:x"


def test_initial_config_enables_first_contact_hook():
    out = build_agent_config(gateway_token="gw", assistant_name="Nova", assistant_emoji="🌟").to_dict()
    assert out["hooks"]["internal"]["entries"] == {"first-contact": {"enabled": True}}
    assert out["agents"]["defaults"] == {"workspace": "/home/openclaw/workspace"}
