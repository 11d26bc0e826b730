from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from .api.admin import router as admin_router
from .api.health import router as health_router
from .api.ingest import router as ingest_router
from .api.logs import router as logs_router
from .api.prometheus import router as prometheus_router
from .api.response_builders import build_error_response, status_for
from .config import API_PREFIX, API_VERSION
from .engine import build_engine
from .errors import LogVaultError
from .logging_config import get_trace_id, setup_logging
from .middleware import TracingMiddleware

# Configure logging at import time
setup_logging()

logger = logging.getLogger("logvault")


@asynccontextmanager
async def lifespan(application: FastAPI):
    # An engine placed on app.state before startup (tests) is used as is
    owned = getattr(application.state, "engine", None) is None
    if owned:
        application.state.engine = build_engine()

    logger.info("LogVault API ready", extra={
        "component": "api",
        "version": API_VERSION,
        "storage": type(application.state.engine.storage).__name__
    })
    try:
        yield
    finally:
        if owned:
            application.state.engine.close()
            application.state.engine = None
        logger.info("LogVault API shutting down", extra={"component": "api"})


def create_app() -> FastAPI:
    application = FastAPI(title="LogVault", version=API_VERSION, lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(TracingMiddleware)

    class ApiVersionHeaderMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            response = await call_next(request)
            response.headers["X-API-Version"] = API_VERSION
            return response

    application.add_middleware(ApiVersionHeaderMiddleware)

    @application.exception_handler(LogVaultError)
    async def logvault_error_handler(request: Request, exc: LogVaultError):
        status = status_for(exc)
        logger.log(logging.ERROR if status >= 500 else logging.WARNING, "Request failed", extra={
            "component": "api",
            "path": request.url.path,
            "reason": exc.code,
            "detail": exc.detail,
            "trace_id": get_trace_id()
        })
        return build_error_response(exc)

    application.include_router(health_router, prefix=API_PREFIX)
    application.include_router(prometheus_router, prefix=API_PREFIX)
    application.include_router(ingest_router, prefix=API_PREFIX)
    application.include_router(logs_router, prefix=API_PREFIX)
    application.include_router(admin_router, prefix=API_PREFIX)
    return application


app = create_app()
