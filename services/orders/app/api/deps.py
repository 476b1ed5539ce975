"""Providers for the external clients, overridable in tests via ``app.dependency_overrides``."""
from typing import Optional
from fastapi import Depends, Request
import redis

from app.core_settings import Settings, get_settings
from app.infrastructure.rate_limit import RateLimiter
from app.infrastructure.razorpay import RazorpayClient
from app.infrastructure.shiprocket import ShiprocketClient

_carrier: Optional[ShiprocketClient] = None
_rate_limiter: Optional[RateLimiter] = None


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> RazorpayClient:
    return RazorpayClient.from_settings(settings)


def get_carrier(settings: Settings = Depends(get_settings)) -> Optional[ShiprocketClient]:
    """Shared client so the login token is reused; None when Shiprocket is not configured."""
    global _carrier
    if not settings.shiprocket_enabled:
        return None
    if _carrier is None:
        _carrier = ShiprocketClient.from_settings(settings)
    return _carrier


def get_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=1))
    return _rate_limiter


def client_identifier(request: Request) -> str:
    """Caller IP, honouring the first hop of ``X-Forwarded-For`` behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"
