"""FastAPI application entry point.

Commerce Mirror API - keeps a local database in sync with a Shopify or
Lightspeed store through webhooks and bulk syncs.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routes import api_router
from app.schemas import ErrorCode, ErrorDetail, ErrorResponse
from app.services.platforms import build_platform_client
from app.services.signature import WebhookVerifier
from app.services.sync import SyncOrchestrator
from app.services.upsert_store import SqlUpsertStore
from app.settings import get_settings
from app.stores import postgres
from app.stores.redis import init_redis, close_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events and wires services onto app.state.
    """
    # Startup
    settings = get_settings()

    # Initialize database (skip in tests if no DB available)
    app.state.session_factory = None
    try:
        await postgres.init_db()
        await postgres.ping_db()
        app.state.session_factory = postgres.get_session_factory()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    # Initialize Redis (skip in tests if no Redis available)
    try:
        await init_redis()
    except Exception:
        logger.exception("Redis init failed")

    client, profile = build_platform_client(settings)
    app.state.platform_client = client
    app.state.profile = profile
    app.state.verifier = WebhookVerifier(settings.webhook_secrets)
    app.state.orchestrator = None
    if app.state.session_factory is not None:
        app.state.orchestrator = SyncOrchestrator(client, profile, SqlUpsertStore(app.state.session_factory))
    if not settings.webhook_secrets:
        logger.warning("No webhook secret configured; all webhook deliveries will be rejected")
    logger.info(f"Mirroring platform: {profile.name}")

    yield

    # Shutdown
    await client.close()
    await close_redis()
    await postgres.close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Local mirror of a commerce platform's products, customers and orders",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = ErrorDetail(
            code=ErrorCode.INTERNAL_ERROR,
            message=str(exc) if settings.debug else "Internal server error",
            path=request.url.path,
        )
        return JSONResponse(status_code=500, content=ErrorResponse(error=error).model_dump(mode="json"))

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> dict[str, object]:
        """Health check endpoint."""
        profile = getattr(request.app.state, "profile", None)
        return {
            "ok": True,
            "platform": profile.name if profile else settings.platform,
            "database": getattr(request.app.state, "session_factory", None) is not None,
        }

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
