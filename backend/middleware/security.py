"""
HTTP middleware: security response headers and request logging.
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging

from services.config import app_config
from services.security import security_config, SecurityUtils

logger = logging.getLogger(__name__)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.
    Implements OWASP security header recommendations.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            # Photos may come from the object store's own domain
            "Content-Security-Policy": (
                "default-src 'self'; "
                "img-src 'self' data: https:; "
                "connect-src 'self' wss:; "
                "frame-ancestors 'none';"
            ),
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Stored image keys are unique per upload, so their content never changes
        if request.url.path.startswith(f"{app_config.media_base_url}/") and response.status_code == 200:
            response.headers["Cache-Control"] = "public, max-age=31536000, immutable"

        if security_config.enable_security_headers:
            for header, value in self.security_headers.items():
                response.headers[header] = value
            if "Server" in response.headers:
                del response.headers["Server"]

        return response

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and processing time of every request.
    Error responses are also recorded as security events.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = round(time.perf_counter() - start_time, 3)

        # Probes hit these every few seconds
        level = logging.DEBUG if request.url.path.startswith("/health") else logging.INFO
        logger.log(level, f"{request.method} {request.url.path} -> {response.status_code} ({process_time}s)")
        if response.status_code >= 400:
            SecurityUtils.log_security_event(
                "http_error_response",
                {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time": process_time,
                    "user_agent": request.headers.get("user-agent", "")
                },
                client_ip=SecurityUtils.get_client_ip(request)
            )

        response.headers["X-Process-Time"] = str(process_time)
        return response
