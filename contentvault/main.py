"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from contentvault import __version__
from contentvault.container import ServiceContainer
from contentvault.core.config import settings
from contentvault.core.exceptions import (
    ContentVaultError,
    IndexFailure,
    InvalidInput,
    NotFound,
    OracleFailure,
    StoreFailure,
)
from contentvault.core.logging import get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger(__name__)


# Domain error -> (status code, error code)
ERROR_STATUS = {
    InvalidInput: (400, "invalid_input"),
    NotFound: (404, "not_found"),
    OracleFailure: (502, "oracle_failure"),
    IndexFailure: (503, "vector_index_unavailable"),
    StoreFailure: (503, "store_unavailable"),
}


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built container (tests); when omitted the lifespan
            creates, starts and shuts down its own
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "starting_application",
            app_name=settings.APP_NAME,
            environment=settings.APP_ENV,
            version=__version__,
        )

        owned = container is None
        app.state.container = container or ServiceContainer()
        if owned:
            await app.state.container.startup()

        yield

        logger.info("shutting_down_application")
        if owned:
            await app.state.container.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Content ingestion, semantic search and RAG answers",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    # Available before lifespan runs (e.g. ASGITransport without lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint for monitoring."""
        active = request.app.state.container
        checks = await active.health() if active is not None else {}
        healthy = bool(checks) and all(checks.values())

        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "app_name": settings.APP_NAME,
                "environment": settings.APP_ENV,
                "version": __version__,
                "checks": checks,
            },
        )

    from contentvault.api import api_router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(ContentVaultError)
    async def domain_exception_handler(request: Request, exc: ContentVaultError) -> JSONResponse:
        status_code, code = 500, "internal_server_error"
        for error_type, mapped in ERROR_STATUS.items():
            if isinstance(exc, error_type):
                status_code, code = mapped
                break

        log = logger.warning if status_code < 500 else logger.error
        log(
            "request_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": str(exc)}},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_server_error",
                    "message": "An unexpected error occurred. Please try again later.",
                }
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "contentvault.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
