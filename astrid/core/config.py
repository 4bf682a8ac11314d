from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "https://getastrid.ai"]

    PG_HOST: str = "localhost"
    PG_PORT: int = 5432
    PG_DB: str = "astrid"
    PG_USER: str = "postgres"
    PG_PASSWORD: str = "postgres"
    DATABASE_URL: str | None = None                   # overrides PG_* when set (tests use sqlite)

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    INSTANCE_LOCK_TTL_SECONDS: int = 120              # longer than the slowest create/delete flow
    INSTANCE_LOCK_WAIT_SECONDS: float = 10.0

    # Dashboard users authenticate with the identity provider's HS256 access token
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALG: str = "HS256"
    AUTH_JWT_AUDIENCE: str | None = "authenticated"

    CF_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    CF_API_TOKEN: str | None = None
    CF_ACCOUNT_ID: str | None = None
    CF_ZONE_NAME: str = "getastrid.ai"
    CF_TUNNEL_DOMAIN: str = "tunnel.getastrid.ai"

    DO_API_BASE_URL: str = "https://api.digitalocean.com/v2"
    DO_API_TOKEN: str | None = None
    DO_SSH_KEY_ID: int | None = None
    DO_IMAGE: str = "ubuntu-24-04-x64"

    PROVIDER_TIMEOUT_SECONDS: float = 20.0

    SSH_KEY_PATH: str = "~/.ssh/astrid_deploy"
    SSH_USER: str = "root"
    SSH_CONNECT_TIMEOUT_SECONDS: float = 10.0
    SSH_COMMAND_TIMEOUT_SECONDS: float = 15.0
    SSH_RESTART_TIMEOUT_SECONDS: float = 30.0

    GATEWAY_PORT: int = 18789
    ADMIN_AGENT_PORT: int = 18790
    ADMIN_API_TIMEOUT_SECONDS: float = 30.0
    HEALTH_PROBE_TIMEOUT_SECONDS: float = 5.0

    DEFAULT_REGION: str = "sfo3"
    DEFAULT_SIZE: str = "s-1vcpu-2gb"
    DEFAULT_MODEL: str = "anthropic/claude-sonnet-4-5"
    DEFAULT_ASSISTANT_NAME: str = "Astrid"
    DEFAULT_ASSISTANT_EMOJI: str = "✨"

    GITHUB_PACKAGES_TOKEN: str = ""                   # npm registry token for @getastridai/* on the VM

    RECONCILE_LOOP_ENABLED: bool = False              # polling by the dashboard is enough by default
    RECONCILE_INTERVAL_SECONDS: int = 30
    RECONCILE_CONCURRENCY: int = 5

    SENTRY_DSN: str | None = None
    GIT_SHA: str | None = None

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.PG_USER}:{self.PG_PASSWORD}"
            f"@{self.PG_HOST}:{self.PG_PORT}/{self.PG_DB}"
        )

settings = Settings()
