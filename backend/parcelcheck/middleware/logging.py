"""Access log middleware: one JSON line per request, tagged with a request id."""

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("parcelcheck.access")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # Reuse the caller's id so photo uploads can be traced from the client
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.perf_counter()

        response = await call_next(request)

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 1),
            "client": request.client.host if request.client else None,
        }
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, json.dumps(log_data))

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
