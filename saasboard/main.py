"""
SaaSBoard backend entry point.

``create_app`` wires middleware, error handlers and routers; ``lifespan``
owns the long-lived pieces (rate limiters, upstream client, chat service).
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from saasboard import __version__
from saasboard.api import api_router, health_router
from saasboard.config import Settings, get_settings
from saasboard.core import (
    RateLimiterRegistry,
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    get_logger,
    setup_exception_handlers,
    setup_logging,
)
from saasboard.db import (
    dispose_engine,
    get_session_factory,
    run_migrations,
    verify_database_connection,
)
from saasboard.providers import AnthropicProvider
from saasboard.services import ChatService

logger = get_logger(__name__)


def _prepare_database(settings: Settings) -> None:
    if settings.auto_migrate:
        run_migrations()
    elif verify_database_connection():
        logger.info("Database reachable, migrations left to the operator")
    else:
        logger.warning("Database unreachable; run 'alembic upgrade head' once it is up")


def _build_provider(settings: Settings) -> AnthropicProvider:
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY is empty; chat replies will fail upstream")
    return AnthropicProvider(
        base_url=settings.anthropic_base_url,
        api_key=settings.anthropic_api_key,
        version=settings.anthropic_version,
        timeout_seconds=settings.upstream_timeout_seconds,
        max_retries=settings.upstream_max_retries,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Start and stop process-wide resources.

    ``app.state.rate_limiters`` and ``app.state.chat_provider`` are only
    created when absent, so tests can install their own before startup.
    """
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "SaaSBoard starting",
        data={
            "environment": settings.environment,
            "host": settings.host,
            "port": settings.port,
            "cors_origins": settings.cors_origins_list,
        },
    )
    if not settings.is_production and "jwt_secret" not in settings.model_fields_set:
        logger.warning("JWT_SECRET not set; tokens are signed with a per-process random secret")

    _prepare_database(settings)
    app.state.start_time = datetime.now(UTC)

    if not hasattr(app.state, "rate_limiters"):
        app.state.rate_limiters = RateLimiterRegistry.from_settings(settings)
    app.state.rate_limiters.start(settings.rate_limit_sweep_interval_seconds)

    owns_provider = not hasattr(app.state, "chat_provider")
    if owns_provider:
        app.state.chat_provider = _build_provider(settings)
    app.state.chat_service = ChatService(app.state.chat_provider, get_session_factory(), settings)

    try:
        yield
    finally:
        logger.info("SaaSBoard shutting down")
        await app.state.rate_limiters.stop()
        if owns_provider:
            await app.state.chat_provider.aclose()
        dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="SaaSBoard",
        description="SaaS dashboard backend with authentication, mock metrics, and AI chat",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    setup_exception_handlers(app)

    # Middleware runs outermost-last: CORS, then request context, then size limit
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["X-Request-ID"],
        max_age=300,
    )

    app.include_router(health_router)
    app.include_router(api_router)
    return app


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "saasboard.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


app = create_app()
