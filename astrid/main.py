import logging

import httpx
import sentry_sdk
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from astrid.api.routes import instances, vm, workspace
from astrid.core.config import settings
from astrid.core.error_codes import ErrorCode
from astrid.core.exceptions import AdminApiError, AgentUnreachableError, AppException
from astrid.core.redis import close_redis
from astrid.schemas.common import ErrorResponse
from astrid.services.admin_api import default_admin_factory
from astrid.services.cloudflare import CloudflareTunnels, cloudflare_http_client
from astrid.services.digitalocean import DigitalOceanCompute, digitalocean_http_client

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("astrid")

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=0.2,
        environment=settings.ENV,
        release=settings.GIT_SHA,
        send_default_pii=False,
    )

app = FastAPI(title="Astrid API", version="0.1.0")

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    payload = exc.detail if isinstance(exc.detail, dict) else {}
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error_code=payload.get("error_code", ErrorCode.INTERNAL_ERROR),
            user_message=payload.get("user_message"),
            details=payload.get("details"),
        ).model_dump(),
    )

def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may carry exception instances that JSONResponse can't encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]

@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error_code=ErrorCode.VALIDATION_ERROR,
            user_message="Invalid request data",
            details={"errors": jsonable_errors(exc)},
        ).model_dump(),
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Map plain HTTPExceptions (if any) into our envelope
    code_map = {
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.BAD_REQUEST,
        409: ErrorCode.CONFLICT,
        429: ErrorCode.RATE_LIMITED,
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error_code=code_map.get(exc.status_code, ErrorCode.BAD_REQUEST),
            user_message=str(exc.detail) if exc.detail else None,
        ).model_dump(),
    )

ADMIN_CODE_MAP = {
    "NO_INSTANCE": ErrorCode.INSTANCE_NOT_FOUND,
    "INSTANCE_NOT_ACTIVE": ErrorCode.INSTANCE_NOT_ACTIVE,
    "INSTANCE_NOT_CONFIGURED": ErrorCode.INSTANCE_NOT_CONFIGURED,
    "TIMEOUT": ErrorCode.EXTERNAL_API_TIMEOUT,
    "CONNECTION_ERROR": ErrorCode.AGENT_UNREACHABLE,
}

@app.exception_handler(AdminApiError)
async def admin_api_error_handler(request: Request, exc: AdminApiError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error_code=ADMIN_CODE_MAP.get(exc.code, ErrorCode.EXTERNAL_API_ERROR),
            user_message=str(exc),
            details={"code": exc.code},
        ).model_dump(),
    )

@app.exception_handler(AgentUnreachableError)
async def agent_unreachable_handler(request: Request, exc: AgentUnreachableError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=ErrorResponse(
            error_code=ErrorCode.AGENT_UNREACHABLE,
            user_message="Could not reach your assistant's server",
        ).model_dump(),
    )

@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    # another writer bumped the version column first
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=ErrorResponse(
            error_code=ErrorCode.CONCURRENT_UPDATE,
            user_message="The instance was modified concurrently, please retry",
        ).model_dump(),
    )

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Try to distinguish unique constraint violations
    msg = str(exc.orig).lower() if exc.orig else ""
    if "unique" in msg or "duplicate" in msg:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=ErrorResponse(
                error_code=ErrorCode.UNIQUE_CONSTRAINT_VIOLATION,
                user_message="Unique constraint violated",
            ).model_dump(),
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error_code=ErrorCode.DATABASE_ERROR,
            user_message="Database error",
        ).model_dump(),
    )

@app.exception_handler(SQLAlchemyError)
async def sa_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error_code=ErrorCode.DATABASE_ERROR,
            user_message="Database error",
        ).model_dump(),
    )

@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error_code=ErrorCode.INTERNAL_ERROR,
            user_message="Internal server error",
        ).model_dump(),
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(instances.router)
app.include_router(vm.router)
app.include_router(workspace.router)

@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}

scheduler: AsyncIOScheduler | None = None

@app.on_event("startup")
async def on_startup():
    # provider clients live for the whole process and are injected via app.state
    app.state.cf_http = cloudflare_http_client()
    app.state.do_http = digitalocean_http_client()
    app.state.admin_http = httpx.AsyncClient(timeout=settings.ADMIN_API_TIMEOUT_SECONDS)
    app.state.tunnels = CloudflareTunnels.from_settings(app.state.cf_http)
    app.state.compute = DigitalOceanCompute.from_settings(app.state.do_http)

    global scheduler
    if settings.RECONCILE_LOOP_ENABLED:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            _reconcile_job,
            IntervalTrigger(seconds=settings.RECONCILE_INTERVAL_SECONDS),
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info("reconcile sweep every %ss", settings.RECONCILE_INTERVAL_SECONDS)

@app.on_event("shutdown")
async def on_shutdown():
    global scheduler
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
    for name in ("cf_http", "do_http", "admin_http"):
        client = getattr(app.state, name, None)
        if client is not None:
            await client.aclose()
    await close_redis()

async def _reconcile_job():
    from astrid.services.reconcile_sweep import sweep_once
    advanced = await sweep_once(
        app.state.tunnels,
        app.state.compute,
        default_admin_factory(app.state.admin_http),
    )
    if advanced:
        logger.info("reconcile sweep advanced %d instance(s)", advanced)
