"""
Request middleware: request ids and the audit log.

Every request gets an `X-Request-Id` (taken from the client if present).
Write operations, failed requests and reads of sensitive resources produce
one audit log line. Bodies are never logged, so credentials and tokens
cannot leak into the log.
"""

import logging
import time
import uuid
from typing import Sequence

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.rate_limiter import get_client_ip

audit_logger = logging.getLogger("austa.audit")

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
SENSITIVE_PATH_PREFIXES = (
    "/api/v1/auth/me",
    "/api/v1/users",
    "/api/v1/health-data",
    "/api/v1/documents",
    "/api/v1/admin",
)


def should_audit(method: str, path: str, status_code: int) -> bool:
    """Writes, failures and sensitive reads are audited."""
    if method in WRITE_METHODS:
        return True
    if status_code >= 400:
        return True
    return path.startswith(SENSITIVE_PATH_PREFIXES)


class AuditLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI, trusted_proxies: Sequence[str] = ()) -> None:
        super().__init__(app)
        self.log = audit_logger
        self.trusted_proxies = tuple(trusted_proxies)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)

        response.headers["X-Request-Id"] = request_id
        if should_audit(request.method, request.url.path, response.status_code):
            self.log.info(
                "method=%s path=%s status=%s duration_ms=%s ip=%s user_agent=%s request_id=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                get_client_ip(request, self.trusted_proxies),
                request.headers.get("User-Agent", "-"),
                request_id,
            )
        return response
