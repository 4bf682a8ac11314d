from fastapi import Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from astrid.core.error_codes import ErrorCode
from astrid.core.exceptions import raise_error
from astrid.core.locks import instance_lock
from astrid.core.security import decode_access_token
from astrid.db.session import get_db
from astrid.services.admin_api import default_admin_factory
from astrid.services.gateway_client import default_gateway_factory
from astrid.services.orchestrator import CurrentUser, InstanceOrchestrator

def _bearer(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization[7:].strip() or None

async def get_current_user(authorization: str | None = Header(default=None)) -> CurrentUser:
    # Identity comes from the auth provider's access token; only `sub` and `email` are used.
    token = _bearer(authorization)
    if not token:
        raise_error(ErrorCode.TOKEN_MISSING, status.HTTP_401_UNAUTHORIZED, "Missing access token")
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        raise_error(ErrorCode.TOKEN_INVALID, status.HTTP_401_UNAUTHORIZED, "Invalid access token")
    return CurrentUser(id=str(claims["sub"]), email=claims.get("email"))

def get_bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    return _bearer(authorization)

def get_tunnels(request: Request):
    return request.app.state.tunnels

def get_compute(request: Request):
    return request.app.state.compute

def get_gateway_factory():
    return default_gateway_factory

def get_admin_factory(request: Request):
    return default_admin_factory(request.app.state.admin_http)

def get_lock_factory():
    return instance_lock

def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    tunnels=Depends(get_tunnels),
    compute=Depends(get_compute),
    lock_factory=Depends(get_lock_factory),
    gateway_factory=Depends(get_gateway_factory),
    admin_factory=Depends(get_admin_factory),
) -> InstanceOrchestrator:
    return InstanceOrchestrator(
        db,
        tunnels=tunnels,
        compute=compute,
        lock_factory=lock_factory,
        gateway_factory=gateway_factory,
        admin_factory=admin_factory,
    )
