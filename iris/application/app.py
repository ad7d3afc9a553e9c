#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the IRIS orchestrator HTTP service: lifespan (orchestrator start
and stop), middleware, routes and exception handlers.

    uvicorn iris.application.app:app --port 3001
    python -m iris

Author: Platform Engineering
Date: 2026-02-17
"""

import math
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from iris.application.api.middleware.error_handler import add_error_handling_middleware
from iris.application.api.routes.chat import router as chat_router
from iris.application.api.routes.health import router as health_router
from iris.application.api.routes.stats import router as stats_router
from iris.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REQUEST_ID,
    HEADER_RETRY_AFTER,
)
from iris.core.config.settings import Settings, get_settings
from iris.core.exceptions import IrisError
from iris.core.logging import clear_request_id, get_logger, set_request_id, setup_logging
from iris.orchestration.orchestrator import Orchestrator

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (unless injected) and start the orchestrator; stop it on shutdown."""
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
    logger.info(
        "Starting IRIS Orchestrator",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = Orchestrator.from_settings(settings)
        app.state.orchestrator = orchestrator
    await orchestrator.start()
    logger.info("Application startup complete", upstreams=orchestrator.registry.ids())

    try:
        yield
    finally:
        logger.info("Shutting down application")
        await orchestrator.stop()
        logger.info("Application shutdown complete")


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None, orchestrator: Orchestrator | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        orchestrator: Pre-built orchestrator; built from settings at startup when omitted
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Health-aware orchestration across LLM inference backends",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    # Middleware runs in reverse order of registration: the request-id
    # middleware below wraps CORS, which wraps error handling.
    add_error_handling_middleware(app, include_traceback=settings.is_development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            HEADER_REQUEST_ID,
            HEADER_RATE_LIMIT,
            HEADER_RATE_REMAINING,
            HEADER_RATE_RESET,
            HEADER_RETRY_AFTER,
        ],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Inject a request id into the logging context and the response."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers.setdefault(HEADER_REQUEST_ID, request_id)
            return response
        finally:
            clear_request_id()

    @app.exception_handler(IrisError)
    async def iris_exception_handler(request: Request, exc: IrisError):
        status_code = exc.status_code
        log = logger.error if status_code >= 500 else logger.warning
        log(f"Request failed: {exc.message}", error_type=type(exc).__name__, status_code=status_code)

        headers = {}
        if exc.request_id:
            headers[HEADER_REQUEST_ID] = exc.request_id
        if exc.retry_after is not None:
            headers[HEADER_RETRY_AFTER] = str(max(1, math.ceil(exc.retry_after)))
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    base_path = settings.app.API_BASE_PATH
    app.include_router(chat_router, prefix=base_path)
    app.include_router(health_router, prefix=base_path)
    app.include_router(stats_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{base_path}/health",
        }

    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "iris.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.is_development,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
