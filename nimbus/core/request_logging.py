"""
Request logging middleware.
Logs structured request/response info with timing.
NEVER logs: request bodies (they carry user source code).
"""
import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from nimbus.core.request_context import REQUEST_ID_HEADER, set_request_id
from nimbus.core.metrics import metrics

logger = logging.getLogger("nimbus.request")

# Polled by the orchestrator and the scraper; counted but not logged
QUIET_PATHS = frozenset({"/health", "/metrics"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    - Propagates the caller's X-Request-Id, or generates one
    - Logs request/response with timing and the component being built
    - Updates metrics
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))

        client_ip = request.client.host if request.client else "unknown"
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        start_time = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = int((time.perf_counter() - start_time) * 1000)

        response.headers[REQUEST_ID_HEADER] = request_id

        metrics.inc("requests_total")
        status_class = response.status_code // 100
        if status_class == 2:
            metrics.inc("requests_2xx")
        elif status_class == 4:
            metrics.inc("requests_4xx")
        elif status_class == 5:
            metrics.inc("requests_5xx")

        if request.url.path not in QUIET_PATHS:
            extra = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": client_ip,
            }
            # Set by the build route once the body has been validated
            component_id = getattr(request.state, "component_id", None)
            if component_id:
                extra["component_id"] = component_id
            logger.info("request", extra=extra)

        return response
