"""Request context middleware: one correlation id per request.

An invitation accept touches the invitation, the member table and the
seat ledger, each of which logs.  The request id ties those lines
together, and for routes under /v1/organizations/{org_id} the org id
rides along too, so one school's activity can be pulled out of the
stream.  Both live in ContextVars (see app.core.logging) and are reset
when the request ends.

Clients may send their own X-Request-ID; it is echoed back either way.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import organization_id_var, request_id_var

logger = logging.getLogger(__name__)

_ORG_PATH = re.compile(r"^/v1/organizations/([0-9a-fA-F-]{36})(?:/|$)")


def organization_id_from_path(path: str) -> str | None:
    """Org id addressed by the URL, or None for routes outside an org."""
    match = _ORG_PATH.match(path)
    if match is None:
        return None
    try:
        return str(uuid.UUID(match.group(1)))
    except ValueError:
        return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and org context, time the request, log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        org_id = organization_id_from_path(request.url.path)
        req_token = request_id_var.set(req_id)
        org_token = organization_id_var.set(org_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            organization_id_var.reset(org_token)
            request_id_var.reset(req_token)

        response.headers["X-Request-ID"] = req_id
        return response
