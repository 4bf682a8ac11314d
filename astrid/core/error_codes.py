from enum import Enum

class ErrorCode(str, Enum):
    # --- Generic / HTTP-ish ---
    INTERNAL_ERROR = "internal_error"
    BAD_REQUEST = "bad_request"
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"

    # --- Auth ---
    TOKEN_MISSING = "token_missing"
    TOKEN_INVALID = "token_invalid"
    INSTANCE_TOKEN_INVALID = "instance_token_invalid"   # agent -> dashboard calls

    # --- Instances ---
    INSTANCE_NOT_FOUND = "instance_not_found"
    INSTANCE_ALREADY_EXISTS = "instance_already_exists"
    INSTANCE_CREATION_FAILED = "instance_creation_failed"
    INSTANCE_CREDENTIALS_REQUIRED = "instance_credentials_required"
    INSTANCE_NOT_ACTIVE = "instance_not_active"
    INSTANCE_NOT_CONFIGURED = "instance_not_configured"
    INSTANCE_BUSY = "instance_busy"                     # per-user lock held by another request
    TUNNEL_CREATION_FAILED = "tunnel_creation_failed"

    # --- Infra / Storage / External ---
    DATABASE_ERROR = "database_error"
    UNIQUE_CONSTRAINT_VIOLATION = "unique_constraint_violation"
    CONCURRENT_UPDATE = "concurrent_update"
    REDIS_ERROR = "redis_error"
    EXTERNAL_API_ERROR = "external_api_error"
    EXTERNAL_API_TIMEOUT = "external_api_timeout"
    AGENT_UNREACHABLE = "agent_unreachable"
