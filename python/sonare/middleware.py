"""
Request interceptors wrapped around the Sonare router.

Composition, outer to inner:
    SecurityHeadersMiddleware -> AnalyticsMiddleware -> router

CacheControlStaticFiles is not part of that chain; it only wraps the static
file mount.
"""

import mimetypes
import os

from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.staticfiles import StaticFiles

from .analytics import AnalyticsRecorder

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline'",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https:",
    "font-src 'self' data:",
    "media-src 'self'",
    "connect-src 'self'",
    "object-src 'none'",
    "base-uri 'self'",
    "frame-ancestors 'none'",
    "form-action 'self'",
])

PERMISSIONS_POLICY = (
    "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
    "magnetometer=(), microphone=(), payment=(), usb=()"
)

SECURITY_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": PERMISSIONS_POLICY,
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}

HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"

NO_CACHE = "no-cache"
CACHE_ONE_WEEK = "public, max-age=604800"
CACHE_ONE_DAY = "public, max-age=86400"

CACHEABLE_EXTENSIONS = frozenset({
    ".css", ".js", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp",
    ".ico", ".woff", ".woff2", ".ttf", ".eot", ".m4a",
})

# Browsers need a playable type for preview audio
mimetypes.add_type("audio/mp4", ".m4a")


def cache_control_for(path: str) -> str:
    """Cache-Control directive for a static request path."""
    if path in ("/", "/index.html"):
        return NO_CACHE
    if path.startswith("/music/"):
        return CACHE_ONE_WEEK
    if path.startswith("/assets/"):
        return CACHE_ONE_DAY
    if os.path.splitext(path)[1].lower() in CACHEABLE_EXTENSIONS:
        return CACHE_ONE_DAY
    return NO_CACHE


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the same security headers to every response."""

    def __init__(self, app, hsts: bool = True):
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS)
        if hsts:
            self.headers["Strict-Transport-Security"] = HSTS_VALUE

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response


class AnalyticsMiddleware(BaseHTTPMiddleware):
    """Records the request, then passes it through untouched."""

    def __init__(self, app, recorder: AnalyticsRecorder):
        super().__init__(app)
        self.recorder = recorder

    async def dispatch(self, request: Request, call_next):
        self.recorder.track(request)
        return await call_next(request)


class CacheControlStaticFiles(StaticFiles):
    """StaticFiles that stamps a Cache-Control header on each response."""

    async def get_response(self, path: str, scope):
        try:
            response = await super().get_response(path, scope)
        except HTTPException as exc:
            response = JSONResponse(
                {"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers
            )
        response.headers["Cache-Control"] = cache_control_for(scope["path"])
        return response
