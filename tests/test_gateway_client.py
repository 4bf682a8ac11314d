"""Tests for the SSH control-plane client, with asyncssh.connect patched out."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import patch

import asyncssh
import pytest

from astrid.core.exceptions import AgentUnreachableError
from astrid.services.agent_config import build_agent_config
from astrid.services.gateway_client import AgentGatewayClient, workspace_path


class FakeSSH:
    """Stands in for an asyncssh connection; ``handler(command, input)`` returns (exit, stdout, stderr)."""

    def __init__(self, handler):
        self.handler = handler
        self.commands: list[tuple[str, str | None]] = []
        self.connect_kwargs: dict = {}

    def connect(self, **kwargs):
        self.connect_kwargs = kwargs
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def run(self, command, input=None, check=False):
        self.commands.append((command, input))
        exit_status, stdout, stderr = self.handler(command, input)
        return SimpleNamespace(exit_status=exit_status, stdout=stdout, stderr=stderr)


def gateway() -> AgentGatewayClient:
    return AgentGatewayClient("203.0.113.7", username="root", key_path="/keys/deploy", command_timeout=1, restart_timeout=2)


CONFIG_JSON = build_agent_config(gateway_token="gw", assistant_name="Astrid", assistant_emoji="✨").to_json()


class TestWorkspacePath:
    def test_relative(self):
        assert workspace_path("PROJECTS.md") == "/home/openclaw/workspace/PROJECTS.md"
        assert workspace_path("projects/web/CONTEXT.md") == "/home/openclaw/workspace/projects/web/CONTEXT.md"

    @pytest.mark.parametrize("bad", ["/etc/passwd", "../secrets", "memory/../../etc", ""])
    def test_escapes_are_refused(self, bad):
        with pytest.raises(ValueError):
            workspace_path(bad)


async def test_connect_options():
    ssh = FakeSSH(lambda cmd, inp: (0, CONFIG_JSON, ""))
    with patch.object(asyncssh, "connect", ssh.connect):
        await gateway().get_config()

    assert ssh.connect_kwargs["host"] == "203.0.113.7"
    assert ssh.connect_kwargs["username"] == "root"
    assert ssh.connect_kwargs["client_keys"] == ["/keys/deploy"]
    assert ssh.connect_kwargs["known_hosts"] is None


async def test_update_config_writes_then_restarts():
    def handler(cmd, inp):
        if cmd.startswith("cat /home/openclaw/.openclaw/openclaw.json"):
            return 0, CONFIG_JSON, ""
        return 0, "", ""

    ssh = FakeSSH(handler)
    with patch.object(asyncssh, "connect", ssh.connect):
        merged = await gateway().update_config(name="Vega", model="anthropic/claude-opus-4")

    commands = [c for c, _ in ssh.commands]
    assert commands[0] == "cat /home/openclaw/.openclaw/openclaw.json"
    assert commands[1].startswith("cat > /home/openclaw/.openclaw/openclaw.json")
    assert commands[2] == "systemctl restart openclaw"

    written = json.loads(ssh.commands[1][1])
    assert written["agents"]["list"][0]["identity"]["name"] == "Vega"
    assert written["agents"]["defaults"]["model"]["primary"] == "anthropic/claude-opus-4"
    assert merged.to_dict() == written


async def test_failed_write_does_not_restart():
    def handler(cmd, inp):
        if cmd.startswith("cat > "):
            return 1, "", "No space left on device"
        return 0, CONFIG_JSON, ""

    ssh = FakeSSH(handler)
    with patch.object(asyncssh, "connect", ssh.connect):
        with pytest.raises(AgentUnreachableError, match="No space left"):
            await gateway().update_config(name="Vega")

    assert not any(c.startswith("systemctl") for c, _ in ssh.commands)


async def test_read_file_missing_is_none():
    ssh = FakeSSH(lambda cmd, inp: (1, "", "cat: No such file or directory"))
    with patch.object(asyncssh, "connect", ssh.connect):
        assert await gateway().read_file("TASKS.md") is None
    assert ssh.commands[0][0] == "cat /home/openclaw/workspace/TASKS.md"


async def test_read_file_unreachable_is_none():
    def refuse(**kwargs):
        raise OSError("Connection refused")

    with patch.object(asyncssh, "connect", refuse):
        assert await gateway().read_file("TASKS.md") is None


async def test_read_file_content():
    ssh = FakeSSH(lambda cmd, inp: (0, "# Tasks\n- [ ] One\n", ""))
    with patch.object(asyncssh, "connect", ssh.connect):
        assert await gateway().read_file("TASKS.md") == "# Tasks\n- [ ] One\n"


async def test_get_config_unreachable_raises():
    def refuse(**kwargs):
        raise asyncssh.DisconnectError(11, "bye")

    with patch.object(asyncssh, "connect", refuse):
        with pytest.raises(AgentUnreachableError):
            await gateway().get_config()


async def test_command_timeout():
    class Slow(FakeSSH):
        async def run(self, command, input=None, check=False):
            await asyncio.sleep(5)

    ssh = Slow(None)
    with patch.object(asyncssh, "connect", ssh.connect):
        with pytest.raises(AgentUnreachableError, match="timed out"):
            await AgentGatewayClient("203.0.113.7", command_timeout=0.05).get_config()

