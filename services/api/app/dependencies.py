"""FastAPI dependency providers.

Services are built once in the app lifespan and kept on `app.state`; routes
pull them through these providers so tests can swap any of them with
`app.dependency_overrides`.
"""

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.platform_client import PlatformClient
from app.services.platforms import PlatformProfile
from app.services.signature import WebhookVerifier
from app.services.sync import SyncOrchestrator
from app.settings import Settings, get_settings


def _state(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {name} not initialized")
    return value


def get_app_settings() -> Settings:
    return get_settings()


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return _state(request, "session_factory")  # type: ignore[return-value]


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return _state(request, "orchestrator")  # type: ignore[return-value]


def get_platform_client(request: Request) -> PlatformClient:
    return _state(request, "platform_client")  # type: ignore[return-value]


def get_profile(request: Request) -> PlatformProfile:
    return _state(request, "profile")  # type: ignore[return-value]


def get_verifier(request: Request) -> WebhookVerifier:
    return _state(request, "verifier")  # type: ignore[return-value]
