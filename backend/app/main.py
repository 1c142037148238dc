import os
import time
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse

from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import TraceIDMiddleware
from .core.metrics import record_http_request
from .routes import health, governance, metrics
from .services.providers.orchestrator import get_provider_orchestrator

# Use JSON output in production (containerized), console output in development
log_level = os.getenv("LOG_LEVEL", "INFO")
json_output = os.getenv("LOG_JSON", "true").lower() == "true"
configure_logging(log_level=log_level, json_output=json_output)

logger = get_logger(__name__)

app = FastAPI(
    title="AI Governance API",
    description="Admission control and provider orchestration for AI generation",
    version="1.0.0"
)

app.add_middleware(TraceIDMiddleware)


@app.on_event("startup")
async def startup_event():
    """Load provider configuration so that a bad crossover table fails at boot."""
    logger.info("app_startup_started")

    orchestrator = get_provider_orchestrator()
    logger.info(
        "app_startup_providers_ready",
        providers=orchestrator.providers,
        crossover_version=orchestrator.resolver.version,
    )

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    # Provider scores are disposable and are not persisted
    logger.info("app_shutdown_completed")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    start_time = getattr(request.state, "start_time", time.time())
    duration = time.time() - start_time

    trace_id = get_trace_id()

    record_http_request(
        method=request.method,
        endpoint=request.url.path,
        status_code=exc.status_code,
        duration_seconds=duration,
    )

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "status_code": exc.status_code,
            "trace_id": trace_id,
        }
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    trace_id = get_trace_id()

    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    response = JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "status_code": 500,
            "trace_id": trace_id,
        }
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(governance.router, prefix="/governance", tags=["Governance"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
