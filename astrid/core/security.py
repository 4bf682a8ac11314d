import base64
import secrets
from typing import Optional

from jose import jwt, JWTError

from astrid.core.config import settings

def decode_access_token(token: str) -> Optional[dict]:
    options = {"verify_aud": settings.AUTH_JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALG],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        return None

def gen_gateway_token() -> str:
    # 32 random bytes, hex encoded; shared secret between dashboard and agent
    return secrets.token_hex(32)

def gen_tunnel_secret() -> str:
    # cloudflared expects 32 bytes, base64 encoded
    return base64.b64encode(secrets.token_bytes(32)).decode()
