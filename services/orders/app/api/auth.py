from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, Request
import jwt

from app.core_settings import Settings, get_settings

BEARER_PREFIX = "Bearer "
ADMIN_ROLES = frozenset({"admin", "super_admin"})


def create_access_token(
    subject: str,
    role: str = "admin",
    expires_minutes: int = 60,
    settings: Optional[Settings] = None,
) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "role": role, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.ADMIN_JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.ADMIN_JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> dict:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token_data = decode_access_token(auth_header[len(BEARER_PREFIX):], settings)
    if not token_data:
        raise HTTPException(status_code=401, detail="Invalid token")
    if token_data.get("role") not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin role required")
    return token_data
