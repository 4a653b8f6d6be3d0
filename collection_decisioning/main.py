"""Main FastAPI application for the Collection Decisioning Service."""

import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from collection_decisioning.api.approval import router as approval_router
from collection_decisioning.api.collections import router as collections_router
from collection_decisioning.api.health import router as health_router
from collection_decisioning.config import get_settings
from collection_decisioning.core.exceptions import BaseAPIException
from collection_decisioning.core.logging import get_correlation_id, get_logger, setup_logging
from collection_decisioning.core.middleware import CorrelationIDMiddleware

settings = get_settings()

setup_logging(settings.log_level, json_logs=not settings.debug)
logger = get_logger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Scores overdue invoices, routes them to a drafting tier and manages approvals",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(CorrelationIDMiddleware)

app.include_router(health_router, prefix=settings.api_prefix, tags=["health"])
app.include_router(collections_router, prefix=settings.api_prefix)
app.include_router(approval_router, prefix=settings.api_prefix)


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Render service exceptions with their error code and correlation id."""
    exc.correlation_id = get_correlation_id() or exc.correlation_id
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request failed with service error",
        path=request.url.path,
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    app.state.start_time = time.time()
    logger.info("Starting Collection Decisioning Service", version=settings.version)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down Collection Decisioning Service")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "collection_decisioning.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
