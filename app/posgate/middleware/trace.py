import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.posgate.core.logging import log_json

logger = logging.getLogger("posgate.request")


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Trace-ID and writes one JSON line per request."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        request.state.trace_id = trace_id
        start_time = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers["X-Trace-ID"] = trace_id
            return response
        finally:
            log_json(
                logger,
                {
                    "event": "http_request",
                    "trace_id": trace_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": getattr(response, "status_code", 500),
                    "latency_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "user_id": getattr(request.state, "user_id", None),
                    "error_code": getattr(request.state, "error_code", None),
                },
            )
