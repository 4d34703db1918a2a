"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from runbookengine.api.routes import executions, runbooks
from runbookengine.core.config import get_settings
from runbookengine.core.errors import (
    RunbookNotFoundError,
    SelectionError,
    StorageUnavailableError,
)
from runbookengine.core.logging import get_logger, setup_logging
from runbookengine.notification.transport import close_transport
from runbookengine.schemas.common import error_body
from runbookengine.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()

    # Startup
    setup_logging()
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

    await init_redis_pool()
    logger.info("Redis connection pool initialized")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await close_transport()
    await close_redis_pool()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Automated incident remediation runbooks",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(runbooks.router, prefix="/api/v1")
    app.include_router(executions.router, prefix="/api/v1")

    # Error response handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                exc.status_code,
                detail if isinstance(detail, str) else "HTTP error",
                None if isinstance(detail, str) else detail,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=error_body(422, "Validation error", jsonable_errors(exc)),
        )

    @app.exception_handler(RunbookNotFoundError)
    async def runbook_not_found_handler(
        request: Request,
        exc: RunbookNotFoundError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=error_body(404, str(exc), {"runbook_id": exc.runbook_id}),
        )

    @app.exception_handler(SelectionError)
    async def selection_error_handler(request: Request, exc: SelectionError) -> JSONResponse:
        return JSONResponse(status_code=422, content=error_body(422, str(exc)))

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(
        request: Request,
        exc: StorageUnavailableError,
    ) -> JSONResponse:
        logger.warning("Runbook storage unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content=error_body(503, "Runbook storage unavailable"))

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content=error_body(500, "Internal server error", str(exc) if settings.debug else None),
        )

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok", "version": settings.app_version}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus exposition endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw exception objects pydantic attaches."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        ctx = error.get("ctx")
        if ctx:
            error["ctx"] = {k: str(v) for k, v in ctx.items()}
        errors.append(error)
    return errors


# Application instance for uvicorn
app = create_app()
