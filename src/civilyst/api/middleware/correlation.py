"""Request correlation middleware.

Every request gets a request id (taken from ``X-Request-Id`` or generated)
and a correlation id (``X-Correlation-Id``, defaulting to the request id).
Both, along with the acting user from ``X-User-Id``, are bound to the log
context while the request is handled and echoed on the response.
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from civilyst.observability.logging import log_context

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"
USER_ID_HEADER = "x-user-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind correlation ids to the log context of each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or request_id
        request.state.request_id = request_id

        with log_context(
            request_id=request_id,
            correlation_id=correlation_id,
            user_id=request.headers.get(USER_ID_HEADER, ""),
        ):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
