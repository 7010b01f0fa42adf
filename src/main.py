"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.core.config import Settings, get_settings
from src.core.errors import AccessError
from src.core.logging import configure_logging
from src.api.routes import router as api_router
from src.api.middleware.logging import LoggingMiddleware
from src.api.middleware.request_id import RequestIdMiddleware
from src.schemas.access import MessageResponse
from src.services.access import AccessService

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    service: AccessService | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    ``service`` replaces the access service normally built from
    ``settings.database`` during startup (tests inject one bound to SQLite).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan events."""
        if app.state.access_service is None:
            app.state.access_service = AccessService.from_settings(settings.database)
            logger.info(
                "access_service_started",
                host=settings.database.host,
                database=settings.database.database,
            )

        yield

        await app.state.access_service.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.access_service = service

    # Middleware (order matters - last added is outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(api_router)

    # Exception handlers
    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        """Map the service error taxonomy onto HTTP status codes."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("unhandled_exception", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    @app.get("/", response_model=MessageResponse)
    async def hello_world():
        return MessageResponse(message="Hello World")

    @app.get("/health", response_model=MessageResponse)
    async def health_check(request: Request):
        """Storage liveness probe (for orchestrators and load balancers)."""
        return await request.app.state.access_service.health()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
    )
