"""Webhook ingestion and registration endpoints.

POST /webhook                 - Receive a platform delivery (signed)
POST /webhooks/register       - Subscribe our public /webhook URL to all topics
GET  /webhooks                - List subscriptions on the platform
DELETE /webhooks/{webhook_id} - Remove one subscription
DELETE /webhooks              - Remove every subscription

A verified delivery is acknowledged immediately and applied in a background
task; the platform retries anything not acknowledged within a few seconds.
"""

import asyncio
import ipaddress
import json
import logging
from typing import Any
from urllib.parse import urlparse

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.dependencies import get_app_settings, get_orchestrator, get_platform_client, get_profile, get_verifier
from app.services.errors import AuthenticationError, PlatformRequestError, TranslationError
from app.services.platform_client import PlatformClient
from app.services.platforms import PlatformProfile
from app.services.signature import WebhookVerifier
from app.services.sync import SyncOrchestrator
from app.settings import Settings
from app.stores.redis import mark_webhook_delivery

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


# =============================================================================
# Ingestion
# =============================================================================


async def _is_new_delivery(delivery_id: str, ttl: int, timeout: float) -> bool:
    """True unless Redis has already seen this delivery id.

    A slow or unreachable Redis must not hold up the acknowledgement, so the
    check gets `timeout` seconds and the delivery is processed when it runs out.
    """
    try:
        return await asyncio.wait_for(mark_webhook_delivery(delivery_id, ttl), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Webhook dedup timed out after {timeout}s, processing delivery {delivery_id}")
        return True
    except Exception as e:
        logger.warning(f"Webhook dedup unavailable, processing delivery {delivery_id}: {e}")
        return True


async def process_webhook(orchestrator: SyncOrchestrator, topic: str | None, payload: Any) -> None:
    """Background task: apply one delivery, never letting an error escape."""
    try:
        outcome = await orchestrator.handle_event(topic, payload)
        logger.info(f"Webhook {topic} processed: {outcome.value}")
    except Exception as e:
        logger.exception(f"Webhook {topic} processing crashed: {e}")


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    verifier: WebhookVerifier = Depends(get_verifier),
    profile: PlatformProfile = Depends(get_profile),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Verify, acknowledge and schedule a webhook delivery."""
    # Signature is computed over the exact bytes received
    raw_body = await request.body()
    signature = request.headers.get(profile.signature_header)

    try:
        verifier.require(raw_body, signature)
    except AuthenticationError:
        logger.warning(f"Rejected {profile.name} webhook with invalid signature")
        return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    try:
        body = json.loads(raw_body)
        topic, payload = profile.unwrap(request.headers, body)
    except (ValueError, TranslationError) as e:
        logger.warning(f"Rejected {profile.name} webhook with malformed body: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    if profile.account_header:
        logger.info(f"Webhook {topic} from {request.headers.get(profile.account_header)}")

    delivery_id = request.headers.get(profile.delivery_id_header) if profile.delivery_id_header else None
    if delivery_id and not await _is_new_delivery(
        delivery_id, settings.webhook_dedup_ttl, settings.webhook_dedup_timeout_seconds
    ):
        logger.info(f"Skipping duplicate webhook delivery {delivery_id} ({topic})")
        return JSONResponse(status_code=200, content={"success": True, "duplicate": True})

    background_tasks.add_task(process_webhook, orchestrator, topic, payload)
    return JSONResponse(status_code=200, content={"success": True})


# =============================================================================
# Registration
# =============================================================================


class RegisterWebhooksRequest(BaseModel):
    """Optional overrides for webhook registration."""

    address: str | None = None
    topics: list[str] | None = None


def _is_loopback(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    if not host or host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def webhook_address(settings: Settings, override: str | None = None) -> str:
    """Resolve the callback URL, rejecting ones the platform cannot reach."""
    if override:
        address = override
    elif settings.public_base_url:
        address = f"{settings.public_base_url.rstrip('/')}/webhook"
    else:
        raise HTTPException(status_code=400, detail="PUBLIC_BASE_URL is not configured")
    if _is_loopback(address):
        raise HTTPException(
            status_code=400,
            detail="Webhook URL must be publicly reachable (use a tunnel or a deployed URL, not localhost)",
        )
    return address


@router.post("/webhooks/register")
async def register_webhooks(
    body: RegisterWebhooksRequest | None = None,
    client: PlatformClient = Depends(get_platform_client),
    profile: PlatformProfile = Depends(get_profile),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Subscribe the public /webhook URL to the platform's topics."""
    body = body or RegisterWebhooksRequest()
    address = webhook_address(settings, body.address)
    topics = body.topics or profile.webhook_topics
    try:
        webhooks = await client.register_webhooks(address, topics)
    except PlatformRequestError as e:
        raise HTTPException(status_code=500, detail=f"Webhook registration failed: {e}")
    return {
        "success": True,
        "message": f"Registered {len(topics)} topics",
        "address": address,
        "webhooks": webhooks,
    }


@router.get("/webhooks")
async def list_webhooks(client: PlatformClient = Depends(get_platform_client)) -> dict[str, Any]:
    try:
        webhooks = await client.list_webhooks()
    except PlatformRequestError as e:
        raise HTTPException(status_code=500, detail=f"Listing webhooks failed: {e}")
    return {"success": True, "count": len(webhooks), "webhooks": webhooks}


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(webhook_id: str, client: PlatformClient = Depends(get_platform_client)) -> dict[str, Any]:
    try:
        await client.delete_webhook(webhook_id)
    except PlatformRequestError as e:
        raise HTTPException(status_code=500, detail=f"Deleting webhook failed: {e}")
    return {"success": True, "message": "Webhook deleted successfully"}


@router.delete("/webhooks")
async def delete_all_webhooks(client: PlatformClient = Depends(get_platform_client)) -> dict[str, Any]:
    try:
        webhooks = await client.list_webhooks()
        for webhook in webhooks:
            webhook_id = webhook.get("id") or webhook.get("webhookID")
            if webhook_id is not None:
                await client.delete_webhook(str(webhook_id))
    except PlatformRequestError as e:
        raise HTTPException(status_code=500, detail=f"Deleting webhooks failed: {e}")
    return {"success": True, "message": f"Deleted {len(webhooks)} webhooks", "deleted": len(webhooks)}
