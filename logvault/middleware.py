import logging
import random
import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from . import config
from .logging_config import trace_id_var
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("logvault.http")


class TracingMiddleware(BaseHTTPMiddleware):
    """Binds a trace id to the request, echoes it as ``X-Request-ID`` and logs one access line.

    Successful requests are sampled at ``sample_rate``; 4xx and 5xx are always logged.
    """

    def __init__(self, app: ASGIApp, exclude_paths: Optional[Iterable[str]] = None,
                 sample_rate: Optional[float] = None):
        super().__init__(app)
        self.exclude_paths = set(config.HTTP_LOG_EXCLUDE_PATHS if exclude_paths is None else exclude_paths)
        self.sample_rate = config.HTTP_LOG_SAMPLE_RATE if sample_rate is None else sample_rate

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = trace_id_var.set(trace_id)
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-ID"] = trace_id
            return response
        finally:
            prometheus_metrics.increment_requests(status)
            self._access_log(request, status, (time.perf_counter() - started) * 1000.0, trace_id)
            trace_id_var.reset(token)

    def _access_log(self, request: Request, status: int, elapsed_ms: float, trace_id: str):
        path = request.url.path
        if path in self.exclude_paths and status < 500:
            return
        if status < 400 and random.random() >= self.sample_rate:
            return

        level = logging.INFO
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        logger.log(level, "%s %s %d", request.method, path, status, extra={
            "component": "http",
            "method": request.method,
            "path": path,
            "status": status,
            "latency_ms": round(elapsed_ms, 2),
            "client_ip": request.client.host if request.client else None,
            "tenant_id": getattr(request.state, "tenant_id", None),
            "trace_id": trace_id
        })
