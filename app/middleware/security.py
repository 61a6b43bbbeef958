"""
HTTP middleware
HTTP中间件 - 按客户端IP限流、安全响应头、请求日志
"""

import time
import logging
from typing import Callable, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.utils.security import rate_limiter

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# Probes and docs are never throttled
UNLIMITED_PATHS = frozenset({
    "/", "/health", "/api/v1/health", "/api/v1/health/detailed",
    "/docs", "/redoc", "/openapi.json",
})


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class SecurityMiddleware(BaseHTTPMiddleware):
    """Rate limiting plus response hardening"""

    def __init__(self, app, enable_rate_limiting: bool = True):
        super().__init__(app)
        self.enable_rate_limiting = enable_rate_limiting

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()

        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        if self.enable_rate_limiting and settings.RATE_LIMIT_ENABLED:
            rejected = await self._check_rate_limit(request)
            if rejected is not None:
                return rejected

        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}"
        if "server" in response.headers:
            del response.headers["server"]
        return response

    async def _check_rate_limit(self, request: Request) -> Optional[JSONResponse]:
        client_ip = get_client_ip(request)
        if not await rate_limiter.is_rate_limited(client_ip):
            return None

        quota = rate_limiter.status(client_ip)
        logger.warning(f"[RATE_LIMIT] Rejected {request.method} {request.url.path} from {client_ip}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": "Rate limit exceeded. Please try again later."},
            headers={
                "X-RateLimit-Limit": str(quota["limit"]),
                "X-RateLimit-Remaining": str(quota["remaining"]),
                "Retry-After": str(quota["window"]),
            },
        )


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request and one per response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        client_ip = get_client_ip(request)
        route = f"{request.method} {request.url.path}"

        logger.info(f"[HTTP] -> {route} from {client_ip}")
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"[HTTP] !! {route} from {client_ip} after {time.perf_counter() - started:.3f}s: {e}")
            raise

        elapsed = time.perf_counter() - started
        line = f"[HTTP] <- {response.status_code} {route} in {elapsed:.3f}s"
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)
        return response
