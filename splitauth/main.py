"""splitauth - FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from splitauth.api import auth_router, health_router
from splitauth.core import (
    build_engine,
    build_session_factory,
    init_db,
    settings,
    setup_logging,
)
from splitauth.core.config import Settings
from splitauth.core.logging import get_logger
from splitauth.services.expiry_reaper import ExpiryReaper
from splitauth.services.token_codec import TokenCodec

logger = get_logger("main")


async def _handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Log storage failures and answer with a generic 500."""
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app(config: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or settings
    token_codec = TokenCodec.from_settings(config)
    engine = build_engine(config)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        setup_logging(
            level=config.log_level,
            format_type=config.log_format,  # type: ignore[arg-type]
            service=config.app_name,
        )
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        if config.auto_create_tables:
            await init_db(engine)
            logger.info("Database tables ensured")

        reaper = ExpiryReaper(
            session_factory=session_factory,
            interval_seconds=config.cleanup_interval_seconds,
        )
        app.state.expiry_reaper = reaper
        await reaper.start()

        yield

        logger.info("Shutting down...")
        await reaper.stop()
        await engine.dispose()

    app = FastAPI(
        title=config.app_name,
        description="Session and token lifecycle service",
        version=config.app_version,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )

    # Shared, immutable collaborators for request handlers
    app.state.settings = config
    app.state.token_codec = token_codec
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.add_exception_handler(SQLAlchemyError, _handle_storage_error)  # type: ignore[arg-type]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if config.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)
    app.include_router(auth_router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("splitauth.main:app", host="0.0.0.0", port=8080)


# Application instance
app = create_app()
