"""API routes."""

from fastapi import APIRouter

from app.routes import catalog, oauth, sync, webhooks

api_router = APIRouter()

# Webhook ingestion and registration
api_router.include_router(webhooks.router, tags=["webhooks"])

# Bulk sync and write-through
api_router.include_router(sync.router, tags=["sync"])

# Read API over the mirror
api_router.include_router(catalog.router, tags=["catalog"])

# OAuth (Lightspeed)
api_router.include_router(oauth.router, prefix="/oauth", tags=["oauth"])
