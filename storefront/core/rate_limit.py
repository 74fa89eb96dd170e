"""IP based rate limiting (SlowAPI) with X-Forwarded-For support."""
from fastapi import Request

from slowapi import Limiter

from .config import settings

RATE_LIMIT_STR = f"{settings.rate_limit_per_minute}/minute"


def _get_client_ip(request: Request) -> str:
    """Real client IP behind a proxy (Render, Nginx)."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=_get_client_ip)
