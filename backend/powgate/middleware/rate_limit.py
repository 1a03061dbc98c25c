from slowapi import Limiter
from starlette.requests import Request

from powgate.config import settings


def get_real_client_ip(request: Request) -> str:
    """Rate-limit key: the caller's IP address.

    Behind a reverse proxy or API gateway (TRUST_FORWARDED_FOR=true) the first
    X-Forwarded-For entry is the original client. Deployed without a proxy the
    header is client-controlled, so only the socket peer is used.
    """
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Per-process counters; not shared between workers
limiter = Limiter(key_func=get_real_client_ip)
