"""HTTP middleware: security headers, body size limit and access logging."""
import time
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.utils import get_access_logger


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds hardening headers to every response and rejects oversized bodies.

    HSTS is only sent in production so local development over plain HTTP works.
    """

    def __init__(self, app, max_body_bytes: int, production: bool = False):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes
        self.production = production

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_bytes:
            response = JSONResponse({"error": "Request body too large"}, status_code=413)
        else:
            response = await call_next(request)

        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if self.production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Logs one line per request.

    Development: "METHOD path status 12.3ms". Production: Apache combined format.
    """

    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self.production = production
        self.log = get_access_logger()

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        if self.production:
            self.log.info(self._combined(request, response.status_code, response.headers.get("content-length", "-")))
        else:
            self.log.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @staticmethod
    def _combined(request: Request, status_code: int, size: str) -> str:
        host = request.client.host if request.client else "-"
        timestamp = datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S +0000")
        target = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        referer = request.headers.get("referer", "-")
        agent = request.headers.get("user-agent", "-")
        return (
            f'{host} - - [{timestamp}] "{request.method} {target} HTTP/{request.scope.get("http_version", "1.1")}" '
            f'{status_code} {size} "{referer}" "{agent}"'
        )
