"""OAuth endpoints for platforms that authorize through OAuth (Lightspeed).

GET /oauth/authorize - Authorization URL to send the merchant to
GET /oauth/callback  - Exchange the returned code and store the tokens
"""

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_platform_client
from app.services.errors import PlatformRequestError
from app.services.lightspeed_client import LightspeedClient
from app.services.platform_client import PlatformClient

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def _oauth_client(client: PlatformClient) -> LightspeedClient:
    if not isinstance(client, LightspeedClient):
        raise HTTPException(status_code=400, detail=f"Platform {client.name} does not use OAuth")
    return client


@router.get("/authorize")
async def authorize(client: PlatformClient = Depends(get_platform_client)) -> dict[str, str]:
    oauth_client = _oauth_client(client)
    return {"url": oauth_client.authorization_url(state=secrets.token_urlsafe(16))}


@router.get("/callback")
async def callback(
    code: str = Query(..., min_length=1),
    client: PlatformClient = Depends(get_platform_client),
) -> dict[str, Any]:
    oauth_client = _oauth_client(client)
    try:
        tokens = await oauth_client.exchange_code(code)
    except PlatformRequestError as e:
        logger.error(f"OAuth code exchange failed: {e}")
        raise HTTPException(status_code=400, detail=f"OAuth code exchange failed: {e}")
    return {"success": True, "accountId": tokens.account_id}
