"""Renders the first-boot user-data script for an assistant droplet.

Every secret that reaches the VM (gateway token, model key, bot token, tunnel
credentials, package registry token) is interpolated here and nowhere else.
The result must never be logged.
"""
import json
from dataclasses import dataclass, field

from astrid.services import workspace_templates as tpl
from astrid.services.agent_config import WORKSPACE_DIR, build_agent_config

HOME = "/home/openclaw"
OPENCLAW_DIR = f"{HOME}/.openclaw"
CLOUDFLARED_DIR = f"{HOME}/.cloudflared"
INIT_LOG = "/var/log/openclaw-init.log"

PRIVATE_RANGES = ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")


@dataclass(frozen=True)
class ProvisioningConfig:
    gateway_token: str
    assistant_name: str
    assistant_emoji: str
    user_email: str
    anthropic_key: str | None = None
    setup_token: str | None = None
    model: str | None = None
    gateway_port: int = 18789
    admin_port: int = 18790
    telegram_token: str | None = None
    telegram_user_id: str | None = None
    user_name: str | None = None
    user_timezone: str | None = None
    user_about: str | None = None
    personality_traits: tuple[str, ...] = field(default_factory=tuple)
    personality_context: str | None = None
    tunnel_credentials_json: str | None = None
    tunnel_hostname: str | None = None
    github_packages_token: str = ""

    @property
    def model_api_key(self) -> str:
        return (self.anthropic_key or self.setup_token or "").strip()

    def __repr__(self) -> str:
        return (
            f"ProvisioningConfig(assistant_name={self.assistant_name!r}, "
            f"tunnel_hostname={self.tunnel_hostname!r})"
        )


def _heredoc(path: str, content: str, delimiter: str) -> str:
    # quoted delimiter: no shell expansion inside the body
    if any(line.strip() == delimiter for line in content.splitlines()):
        raise ValueError(f"content for {path} contains heredoc delimiter {delimiter}")
    body = content if content.endswith("\n") else content + "\n"
    return f"cat > {path} << '{delimiter}'\n{body}{delimiter}\n"


def _log(message: str) -> str:
    return f'echo "{message}" >> {INIT_LOG}'


def _quiet(command: str) -> str:
    return f"{command} >> {INIT_LOG} 2>&1"


def _bare_host(hostname: str) -> str:
    return hostname.removeprefix("https://").removeprefix("http://").rstrip("/")


def _install_section() -> list[str]:
    return [
        _quiet("apt-get update"),
        _log("Installing Node.js..."),
        _quiet("curl -fsSL https://deb.nodesource.com/setup_22.x | bash -"),
        _quiet("apt-get install -y nodejs"),
        _log("Installing cloudflared..."),
        "curl -fsSL https://pkg.cloudflare.com/cloudflare-main.gpg"
        " | gpg --dearmor --yes -o /usr/share/keyrings/cloudflare-archive-keyring.gpg",
        'echo "deb [signed-by=/usr/share/keyrings/cloudflare-archive-keyring.gpg]'
        ' https://pkg.cloudflare.com/cloudflared $(lsb_release -cs) main"'
        " > /etc/apt/sources.list.d/cloudflared.list",
        _quiet("apt-get update"),
        _quiet("apt-get install -y cloudflared"),
    ]


def _firewall_section() -> list[str]:
    lines = [
        _log("Configuring firewall..."),
        _quiet("apt-get install -y ufw"),
        _quiet("ufw default deny incoming"),
        _quiet("ufw default allow outgoing"),
        _quiet("ufw allow ssh"),
    ]
    for cidr in PRIVATE_RANGES:
        lines.append(_quiet(f"ufw deny from {cidr}"))
        lines.append(_quiet(f"ufw deny out to {cidr}"))
    lines.append(_quiet("ufw --force enable"))
    return lines


def _tunnel_section(cfg: ProvisioningConfig) -> list[str]:
    if not cfg.tunnel_credentials_json or not cfg.tunnel_hostname:
        return []
    tunnel_id = json.loads(cfg.tunnel_credentials_json)["TunnelID"]
    host = _bare_host(cfg.tunnel_hostname)
    ingress = (
        f"tunnel: {tunnel_id}\n"
        f"credentials-file: {CLOUDFLARED_DIR}/credentials.json\n"
        "ingress:\n"
        f"  - hostname: {host}\n"
        "    path: /api/admin/*\n"
        f"    service: http://localhost:{cfg.admin_port}\n"
        f"  - hostname: {host}\n"
        f"    service: http://localhost:{cfg.gateway_port}\n"
        "  - service: http_status:404\n"
    )
    return [
        f"mkdir -p {CLOUDFLARED_DIR}",
        _heredoc(f"{CLOUDFLARED_DIR}/credentials.json", cfg.tunnel_credentials_json, "TUNNELEOF"),
        _heredoc(f"{CLOUDFLARED_DIR}/config.yml", ingress, "CONFIGYMLEOF"),
    ]


def _workspace_section(cfg: ProvisioningConfig) -> list[str]:
    traits = cfg.personality_traits
    docs = {
        "BOOTSTRAP.md": tpl.bootstrap_md(
            cfg.assistant_name, cfg.assistant_emoji, traits,
            cfg.user_name, cfg.user_email, cfg.user_timezone, cfg.user_about,
        ),
        "AGENTS.md": tpl.AGENTS_MD,
        "SOUL.md": tpl.soul_md(cfg.assistant_name, cfg.assistant_emoji, traits, cfg.personality_context),
        "USER.md": tpl.user_md(cfg.user_name, cfg.user_email, cfg.user_timezone, cfg.user_about),
        "MEMORY.md": tpl.MEMORY_MD,
        "HEARTBEAT.md": tpl.HEARTBEAT_MD,
        "TOOLS.md": tpl.TOOLS_MD,
        "PROJECTS.md": tpl.PROJECTS_MD,
        "TASKS.md": tpl.TASKS_MD,
        "IDEAS.md": tpl.IDEAS_MD,
        "INBOX.md": tpl.INBOX_MD,
    }
    lines = [
        f"mkdir -p {WORKSPACE_DIR}/{sub}"
        for sub in ("memory", "downloads", "uploads", "projects/archive", "hooks/first-contact")
    ]
    for name, content in docs.items():
        lines.append(_heredoc(f"{WORKSPACE_DIR}/{name}", content, "DOCEOF"))
    lines.append(_heredoc(f"{WORKSPACE_DIR}/hooks/first-contact/HOOK.md", tpl.FIRST_CONTACT_HOOK_MD, "HOOKMDEOF"))
    lines.append(_heredoc(f"{WORKSPACE_DIR}/hooks/first-contact/handler.js", tpl.FIRST_CONTACT_HANDLER, "HANDLEREOF"))
    return lines


def _services_section(cfg: ProvisioningConfig) -> list[str]:
    npmrc = (
        "@getastridai:registry=https://npm.pkg.github.com\n"
        f"//npm.pkg.github.com/:_authToken={cfg.github_packages_token}\n"
    )
    admin_unit = f"""[Unit]
Description=Astrid Admin Agent
After=network.target openclaw.service

[Service]
Type=simple
User=openclaw
ExecStart=/usr/bin/astrid-admin
Restart=always
RestartSec=5
Environment=PORT={cfg.admin_port}
Environment=WORKSPACE_PATH={WORKSPACE_DIR}
Environment=OPENCLAW_CONFIG={OPENCLAW_DIR}/openclaw.json

[Install]
WantedBy=multi-user.target
"""
    gateway_unit = f"""[Unit]
Description=OpenClaw AI Assistant Gateway
After=network.target

[Service]
Type=simple
User=openclaw
WorkingDirectory={WORKSPACE_DIR}
ExecStart=/usr/bin/openclaw gateway --port {cfg.gateway_port}
Restart=always
RestartSec=10
Environment=HOME={HOME}
Environment=NODE_ENV=production
EnvironmentFile={OPENCLAW_DIR}/.env

[Install]
WantedBy=multi-user.target
"""
    tunnel_unit = f"""[Unit]
Description=Cloudflare Tunnel for OpenClaw Gateway
After=network.target openclaw.service
Wants=openclaw.service

[Service]
Type=simple
User=openclaw
ExecStart=/usr/bin/cloudflared tunnel --config {CLOUDFLARED_DIR}/config.yml run
Restart=always
RestartSec=10
Environment=HOME={HOME}

[Install]
WantedBy=multi-user.target
"""
    return [
        _log("Installing OpenClaw..."),
        _quiet("npm install -g openclaw"),
        _heredoc(f"{HOME}/.npmrc", npmrc, "NPMRCEOF"),
        f"chown openclaw:openclaw {HOME}/.npmrc",
        f"chmod 600 {HOME}/.npmrc",
        f"cp {HOME}/.npmrc /root/.npmrc",
        _quiet("npm install -g @getastridai/admin-agent"),
        _quiet(f"WORKSPACE_PATH={WORKSPACE_DIR} npm install -g @getastridai/skills"),
        _heredoc("/etc/systemd/system/astrid-admin.service", admin_unit, "ADMINSERVICEEOF"),
        _heredoc("/etc/systemd/system/openclaw.service", gateway_unit, "SERVICEEOF"),
        _heredoc("/etc/systemd/system/cloudflared.service", tunnel_unit, "TUNNELSERVICEEOF"),
        _log("Starting services..."),
        _quiet("systemctl daemon-reload"),
        _quiet("systemctl enable openclaw astrid-admin cloudflared"),
        _quiet("systemctl start openclaw astrid-admin"),
        "sleep 10",
        _quiet("systemctl start cloudflared"),
    ]


def render_user_data(cfg: ProvisioningConfig) -> str:
    agent_config = build_agent_config(
        gateway_token=cfg.gateway_token,
        assistant_name=cfg.assistant_name,
        assistant_emoji=cfg.assistant_emoji,
        model=cfg.model,
        gateway_port=cfg.gateway_port,
        telegram_token=cfg.telegram_token,
        telegram_user_id=cfg.telegram_user_id,
    )
    auth_profiles = json.dumps(
        {"anthropic:default": {"type": "api_key", "key": cfg.model_api_key}}, indent=2
    )

    lines = [
        "#!/bin/bash",
        "# Astrid assistant first-boot provisioning",
        f"touch {INIT_LOG}",
        f'echo "Starting provisioning at $(date)" >> {INIT_LOG}',
        *_install_section(),
        *_firewall_section(),
        "id -u openclaw >/dev/null 2>&1 || useradd -m -s /bin/bash openclaw",
        f"mkdir -p {OPENCLAW_DIR}/agents/main/agent",
        f"mkdir -p {WORKSPACE_DIR}",
        _heredoc(f"{OPENCLAW_DIR}/openclaw.json", agent_config.to_json(), "CONFIGEOF"),
        _heredoc(f"{OPENCLAW_DIR}/.env", f"ANTHROPIC_API_KEY={cfg.model_api_key}\n", "ENVEOF"),
        f"chmod 600 {OPENCLAW_DIR}/.env",
        _heredoc(f"{OPENCLAW_DIR}/agents/main/agent/auth-profiles.json", auth_profiles, "AUTHEOF"),
        *_tunnel_section(cfg),
        *_workspace_section(cfg),
        f"chown -R openclaw:openclaw {HOME}",
        *_services_section(cfg),
        f'echo "Provisioning complete at $(date)" >> {INIT_LOG}',
        "touch /var/log/openclaw-init-complete",
    ]
    return "\n".join(lines) + "\n"
