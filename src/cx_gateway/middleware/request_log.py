"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency, caller ref
and a short request ID for correlation. The request_id is also injected into
request.state so router handlers can echo it in ApiResponse.

Log format:
    INFO [POST] /api/v1/offers/ab12/accept → 200 (18ms) actor=alice req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("cx.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "[%s] %s → %d (%.0fms) actor=%s %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.headers.get("x-actor-ref", "-"),
            request.state.request_id,
        )
        return response
