"""
Control-plane access to an assistant VM over SSH.

Reads and writes the agent's ``openclaw.json``, restarts the gateway service and
reads workspace files. Every command runs under an explicit timeout; transport
problems surface as ``AgentUnreachableError``.
"""

import asyncio
import logging
import posixpath
import shlex

import asyncssh

from astrid.core.config import settings
from astrid.core.exceptions import AgentUnreachableError
from astrid.services.agent_config import WORKSPACE_DIR, AgentConfig, apply_assistant_settings

logger = logging.getLogger(__name__)

CONFIG_PATH = "/home/openclaw/.openclaw/openclaw.json"
SERVICE_NAME = "openclaw"
SERVICE_OWNER = "openclaw:openclaw"


def workspace_path(relative_path: str) -> str:
    """Absolute path of a workspace file; refuses anything escaping the workspace."""
    if not relative_path or relative_path.startswith("/"):
        raise ValueError(f"invalid workspace path: {relative_path!r}")
    normalized = posixpath.normpath(relative_path)
    if normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"invalid workspace path: {relative_path!r}")
    if normalized == ".":
        return WORKSPACE_DIR
    return f"{WORKSPACE_DIR}/{normalized}"


class AgentGatewayClient:
    def __init__(
        self,
        host: str,
        *,
        username: str | None = None,
        key_path: str | None = None,
        connect_timeout: float | None = None,
        command_timeout: float | None = None,
        restart_timeout: float | None = None,
    ):
        self.host = host
        self.username = username or settings.SSH_USER
        self.key_path = key_path or settings.SSH_KEY_PATH
        self.connect_timeout = connect_timeout or settings.SSH_CONNECT_TIMEOUT_SECONDS
        self.command_timeout = command_timeout or settings.SSH_COMMAND_TIMEOUT_SECONDS
        self.restart_timeout = restart_timeout or settings.SSH_RESTART_TIMEOUT_SECONDS

    def _conn_kwargs(self) -> dict:
        return {
            "host": self.host,
            "username": self.username,
            "client_keys": [posixpath.expanduser(self.key_path)],
            "known_hosts": None,  # droplets are fresh on every provisioning
            "connect_timeout": self.connect_timeout,
        }

    async def _run(self, command: str, *, input: str | None = None, timeout: float | None = None):
        timeout = timeout or self.command_timeout
        try:
            async with asyncssh.connect(**self._conn_kwargs()) as conn:
                return await asyncio.wait_for(conn.run(command, input=input, check=False), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AgentUnreachableError(f"{self.host}: command timed out after {timeout}s") from e
        except (asyncssh.Error, OSError) as e:
            raise AgentUnreachableError(f"{self.host}: {e}") from e

    async def _run_checked(self, command: str, **kwargs) -> str:
        result = await self._run(command, **kwargs)
        if result.exit_status != 0:
            stderr = (result.stderr or "").strip()
            raise AgentUnreachableError(f"{self.host}: exit {result.exit_status}: {stderr[:200]}")
        return result.stdout or ""

    async def get_config(self) -> AgentConfig:
        raw = await self._run_checked(f"cat {CONFIG_PATH}")
        return AgentConfig.from_json(raw)

    async def set_config(self, config: AgentConfig) -> None:
        path = shlex.quote(CONFIG_PATH)
        await self._run_checked(f"cat > {path} && chown {SERVICE_OWNER} {path}", input=config.to_json())

    async def restart(self) -> None:
        await self._run_checked(f"systemctl restart {SERVICE_NAME}", timeout=self.restart_timeout)
        logger.info("gateway %s: service restarted", self.host)

    async def update_config(
        self, *, name: str | None = None, emoji: str | None = None, model: str | None = None
    ) -> AgentConfig:
        # write then restart, serially; the caller waits for both
        current = await self.get_config()
        merged = apply_assistant_settings(current, name=name, emoji=emoji, model=model)
        await self.set_config(merged)
        await self.restart()
        return merged

    async def read_file(self, relative_path: str) -> str | None:
        path = shlex.quote(workspace_path(relative_path))
        try:
            result = await self._run(f"cat {path}")
        except AgentUnreachableError as e:
            logger.warning("gateway %s: read %s failed: %s", self.host, relative_path, e)
            return None
        if result.exit_status != 0:
            return None
        return result.stdout or ""


def default_gateway_factory(host: str) -> AgentGatewayClient:
    return AgentGatewayClient(host)
