"""HTTP middleware: security headers, per-IP rate limiting, SPA fallback."""
from __future__ import annotations

import logging
import time
from pathlib import Path

from fastapi.responses import FileResponse, JSONResponse
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from starlette.middleware.base import BaseHTTPMiddleware

import config

logger = logging.getLogger("tracker.api")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

CSP_DIRECTIVES = {
    "default-src": "'self'",
    "script-src": "'self'",
    "style-src": "'self' 'unsafe-inline'",
    "img-src": "'self' data: https: blob:",
    "font-src": "'self' data:",
    "connect-src": "'self'",
    "frame-ancestors": "'none'",
    "object-src": "'none'",
    "base-uri": "'self'",
    "form-action": "'self'",
}


def security_headers(request) -> dict:
    """Header set for a response to this request; HSTS only over https."""
    headers = dict(SECURITY_HEADERS)
    headers["Content-Security-Policy"] = "; ".join(f"{k} {v}" for k, v in CSP_DIRECTIVES.items())
    if request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https":
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response unless a route already set them."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in security_headers(request).items():
            if name not in response.headers:
                response.headers[name] = value
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Moving-window request limit per client IP on /api routes."""

    def __init__(self, app, limit: str = config.RATE_LIMIT, prefix: str = "/api"):
        super().__init__(app)
        self.item = parse(limit)
        self.limiter = MovingWindowRateLimiter(MemoryStorage())
        self.prefix = prefix

    async def dispatch(self, request, call_next):
        if request.method == "OPTIONS" or not request.url.path.startswith(self.prefix):
            return await call_next(request)
        key = request.client.host if request.client else "unknown"
        if not self.limiter.hit(self.item, key):
            stats = self.limiter.get_window_stats(self.item, key)
            retry_after = max(1, int(stats.reset_time - time.time()))
            logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Too many requests from this IP, please try again later.",
                },
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


class SPAFallbackMiddleware(BaseHTTPMiddleware):
    """Serve index.html for 404s on non-API paths so client-side routes work."""

    def __init__(self, app, dist: Path):
        super().__init__(app)
        self.index_path = dist / "index.html"

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if response.status_code == 404 and not request.url.path.startswith("/api"):
            if self.index_path.exists():
                return FileResponse(str(self.index_path), media_type="text/html")
        return response
