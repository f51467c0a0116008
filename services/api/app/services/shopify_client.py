"""Shopify Admin REST API client.

Pagination is cursor based: the `Link` response header carries the next
page's URL with a `page_info` token. Once `page_info` is sent, Shopify only
accepts `limit` alongside it, so filters apply to the first page only.

Rate limit: `X-Shopify-Shop-Api-Call-Limit: 32/40` (leaky bucket).
"""

import logging
from typing import Any
from urllib.parse import parse_qs, urlparse

from app.services.errors import PlatformRequestError
from app.services.platform_client import Page, PlatformClient
from app.services.records import EntityKind

logger = logging.getLogger("uvicorn.error")

# kind -> (collection key, singular key)
_RESOURCES: dict[EntityKind, tuple[str, str]] = {
    EntityKind.PRODUCT: ("products", "product"),
    EntityKind.CUSTOMER: ("customers", "customer"),
    EntityKind.ORDER: ("orders", "order"),
}


def next_page_info(link_header: str | None) -> str | None:
    """Extract the `page_info` of the rel="next" link, if any."""
    if not link_header:
        return None
    for part in link_header.split(","):
        segments = [s.strip() for s in part.split(";")]
        if len(segments) < 2 or not any(s.replace(" ", "") == 'rel="next"' for s in segments[1:]):
            continue
        url = segments[0].strip("<>")
        values = parse_qs(urlparse(url).query).get("page_info")
        if values:
            return values[0]
    return None


class ShopifyClient(PlatformClient):
    """Client for one Shopify store."""

    name = "shopify"
    rate_limit_header = "X-Shopify-Shop-Api-Call-Limit"

    def __init__(self, shop_name: str, access_token: str, api_version: str = "2024-01", **kwargs: Any):
        self.shop_name = shop_name
        self.access_token = access_token
        self.api_version = api_version
        super().__init__(
            base_url=f"https://{shop_name}.myshopify.com/admin/api/{api_version}",
            **kwargs,
        )

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        headers["X-Shopify-Access-Token"] = self.access_token
        return headers

    def _require_credentials(self) -> None:
        if not self.shop_name or not self.access_token:
            raise PlatformRequestError("Shopify credentials not configured")

    # =========================================================================
    # Entities
    # =========================================================================

    async def fetch_page(self, kind: EntityKind, token: str | None = None) -> Page:
        self._require_credentials()
        collection, _ = _RESOURCES[kind]
        params: dict[str, Any] = {"limit": self.page_size}
        if token:
            params["page_info"] = token
        elif kind == EntityKind.ORDER:
            # Default is open orders only
            params["status"] = "any"

        response = await self._send("GET", f"/{collection}.json", params=params)
        data = self._json(response)
        items = [item for item in data.get(collection) or [] if isinstance(item, dict)]
        return Page(items=items, next_token=next_page_info(response.headers.get("Link")))

    async def get_by_id(self, kind: EntityKind, external_id: str) -> dict[str, Any] | None:
        self._require_credentials()
        collection, singular = _RESOURCES[kind]
        try:
            response = await self._send("GET", f"/{collection}/{external_id}.json")
        except PlatformRequestError as e:
            if e.status_code == 404:
                return None
            raise
        return self._json(response).get(singular)

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> dict[str, Any]:
        self._require_credentials()
        collection, singular = _RESOURCES[kind]
        response = await self._send("POST", f"/{collection}.json", json={singular: fields})
        entity = self._json(response).get(singular)
        if not isinstance(entity, dict):
            raise PlatformRequestError(f"Shopify returned no {singular} after create")
        return entity

    async def update(self, kind: EntityKind, external_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._require_credentials()
        collection, singular = _RESOURCES[kind]
        body = {singular: {**fields, "id": external_id}}
        response = await self._send("PUT", f"/{collection}/{external_id}.json", json=body)
        entity = self._json(response).get(singular)
        if not isinstance(entity, dict):
            raise PlatformRequestError(f"Shopify returned no {singular} after update")
        return entity

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def list_webhooks(self) -> list[dict[str, Any]]:
        self._require_credentials()
        response = await self._send("GET", "/webhooks.json")
        return list(self._json(response).get("webhooks") or [])

    async def register_webhooks(self, address: str, topics: list[str]) -> list[dict[str, Any]]:
        """Create one subscription per topic; Shopify has no multi-topic webhook."""
        self._require_credentials()
        created: list[dict[str, Any]] = []
        for topic in topics:
            body = {"webhook": {"topic": topic, "address": address, "format": "json"}}
            response = await self._send("POST", "/webhooks.json", json=body)
            webhook = self._json(response).get("webhook")
            if webhook:
                created.append(webhook)
                logger.info(f"Registered Shopify webhook {topic} -> {address}")
        return created

    async def delete_webhook(self, webhook_id: str) -> None:
        self._require_credentials()
        await self._send("DELETE", f"/webhooks/{webhook_id}.json")

    async def test_connection(self) -> dict[str, Any]:
        try:
            self._require_credentials()
            response = await self._send("GET", "/shop.json")
        except PlatformRequestError as e:
            return {"success": False, "error": str(e)}
        shop = self._json(response).get("shop") or {}
        return {"success": True, "shop": shop.get("name"), "domain": shop.get("domain")}
