"""Access log plus X-Request-ID correlation.

The id is taken from the caller's X-Request-ID header when present, otherwise
minted, then stored on request.state for ApiResponse and echoed back as a
response header. Health checks are logged at DEBUG so they do not drown out
order traffic; gateway webhook deliveries are tagged so they are easy to grep
next to the payment log lines.

    INFO [POST] /api/v1/orders/checkout -> 201 (41ms) req_1a2b3c4d5e6f
    INFO [POST] /api/v1/webhooks/gateway -> 200 (12ms) req_9f8e7d6c5b4a webhook
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.mp_common.response import new_request_id

logger = logging.getLogger("mp.request")

_QUIET_PATHS = frozenset({"/health"})


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or new_request_id()
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id

        path = request.url.path
        if path in _QUIET_PATHS:
            level = logging.DEBUG
        elif response.status_code >= 500:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "[%s] %s -> %d (%.0fms) %s%s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id,
            " webhook" if "/webhooks/" in path else "",
        )
        return response
