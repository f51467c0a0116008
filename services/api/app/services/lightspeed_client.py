"""Lightspeed Retail (R-Series) API client.

- OAuth2 bearer tokens, refreshed through `call_with_token_refresh`
- Every resource lives under /Account/{accountID}/...
- Offset pagination driven by the `@attributes` block ({count, offset, limit})
- Leaky-bucket rate limit reported in `X-LS-API-Bucket-Level: 12.5/60`
- Webhook deliveries only carry ids; entities are refetched with their relations
"""

import json
import logging
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from app.services.errors import PlatformRequestError
from app.services.platform_client import Page, PlatformClient
from app.services.records import EntityKind
from app.services.token_store import OAuthTokens, TokenStore, call_with_token_refresh
from app.services.translation import as_list, parse_int

logger = logging.getLogger("uvicorn.error")

# Lightspeed caps `limit` at 100
MAX_PAGE_SIZE = 100

# kind -> (resource name, relations to load)
_RESOURCES: dict[EntityKind, tuple[str, list[str]]] = {
    EntityKind.PRODUCT: ("Item", ["Category", "ItemShops", "Images", "Manufacturer", "Tags"]),
    EntityKind.CUSTOMER: ("Customer", ["Contact", "Tags"]),
    EntityKind.ORDER: ("Sale", ["Customer", "Customer.Contact", "SaleLines", "SaleLines.Item"]),
}


class LightspeedClient(PlatformClient):
    """Client for one Lightspeed Retail account."""

    name = "lightspeed"
    rate_limit_header = "X-LS-API-Bucket-Level"
    supports_oauth = True

    def __init__(
        self,
        api_url: str,
        auth_url: str,
        client_id: str,
        client_secret: str,
        token_store: TokenStore,
        redirect_uri: str = "",
        account_id: str = "",
        clock: Callable[[], float] = time.time,
        **kwargs: Any,
    ):
        super().__init__(base_url=api_url, **kwargs)
        self.auth_url = auth_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.account_id = account_id
        self.token_store = token_store
        self.clock = clock
        self.page_size = min(self.page_size, MAX_PAGE_SIZE)

    # =========================================================================
    # OAuth
    # =========================================================================

    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": "employee:all",
            "state": state,
        }
        return f"{self.auth_url}/authorize.php?{urlencode(params)}"

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        form = {"client_id": self.client_id, "client_secret": self.client_secret, **form}
        try:
            response = await self._send("POST", f"{self.auth_url}/access_token.php", data=form)
        except PlatformRequestError as e:
            # A 401 here is not retryable by refreshing again
            raise PlatformRequestError(f"Lightspeed token request failed: {e}", status_code=e.status_code) from e
        data = self._json(response)
        if not data.get("access_token"):
            raise PlatformRequestError("Lightspeed token response missing access_token")
        return data

    def _tokens_from(self, data: dict[str, Any], previous: OAuthTokens | None = None) -> OAuthTokens:
        return OAuthTokens(
            access_token=str(data["access_token"]),
            refresh_token=str(data.get("refresh_token") or (previous.refresh_token if previous else "")),
            expires_at=self.clock() + float(data.get("expires_in") or 0),
            account_id=str(data.get("account_id") or (previous.account_id if previous else "") or self.account_id)
            or None,
        )

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code and persist the tokens."""
        data = await self._token_request({"code": code, "grant_type": "authorization_code"})
        tokens = self._tokens_from(data)
        await self.token_store.save(tokens)
        logger.info(f"Lightspeed OAuth completed for account {tokens.account_id}")
        return tokens

    async def refresh_tokens(self, tokens: OAuthTokens) -> OAuthTokens:
        if not tokens.refresh_token:
            raise PlatformRequestError("No refresh token available; re-run the OAuth flow", status_code=401)
        data = await self._token_request({"refresh_token": tokens.refresh_token, "grant_type": "refresh_token"})
        return self._tokens_from(data, previous=tokens)

    # =========================================================================
    # Authenticated requests
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> dict[str, Any]:
        async def call(tokens: OAuthTokens) -> dict[str, Any]:
            account_id = tokens.account_id or self.account_id
            if not account_id:
                raise PlatformRequestError("Lightspeed account id unknown")
            response = await self._send(
                method,
                f"/{account_id}{path}",
                params=params,
                json=json_body,
                headers={"Authorization": f"Bearer {tokens.access_token}"},
            )
            return self._json(response)

        return await call_with_token_refresh(call, self.token_store, self.refresh_tokens, self.clock)

    # =========================================================================
    # Entities
    # =========================================================================

    async def fetch_page(self, kind: EntityKind, token: str | None = None) -> Page:
        resource, relations = _RESOURCES[kind]
        offset = parse_int(token)
        params = {
            "limit": self.page_size,
            "offset": offset,
            "load_relations": json.dumps(relations),
        }
        data = await self._request("GET", f"/{resource}.json", params=params)
        items = [item for item in as_list(data.get(resource)) if isinstance(item, dict)]

        attributes = data.get("@attributes") or {}
        count = parse_int(attributes.get("count"))
        next_offset = offset + len(items)
        next_token = str(next_offset) if items and next_offset < count else None
        return Page(items=items, next_token=next_token)

    async def get_by_id(self, kind: EntityKind, external_id: str) -> dict[str, Any] | None:
        resource, relations = _RESOURCES[kind]
        try:
            data = await self._request(
                "GET",
                f"/{resource}/{external_id}.json",
                params={"load_relations": json.dumps(relations)},
            )
        except PlatformRequestError as e:
            if e.status_code == 404:
                return None
            raise
        entity = data.get(resource)
        return entity if isinstance(entity, dict) else None

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> dict[str, Any]:
        resource, _ = _RESOURCES[kind]
        data = await self._request("POST", f"/{resource}.json", json_body=fields)
        entity = data.get(resource)
        if not isinstance(entity, dict):
            raise PlatformRequestError(f"Lightspeed returned no {resource} after create")
        return entity

    async def update(self, kind: EntityKind, external_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        resource, _ = _RESOURCES[kind]
        data = await self._request("PUT", f"/{resource}/{external_id}.json", json_body=fields)
        entity = data.get(resource)
        if not isinstance(entity, dict):
            raise PlatformRequestError(f"Lightspeed returned no {resource} after update")
        return entity

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def list_webhooks(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/Webhook.json")
        return [w for w in as_list(data.get("Webhook")) if isinstance(w, dict)]

    async def register_webhooks(self, address: str, topics: list[str]) -> list[dict[str, Any]]:
        """Register a single subscription covering all `topics`."""
        body = {"Webhook": {"url": address, "topic": ",".join(topics), "format": "json"}}
        data = await self._request("POST", "/Webhook.json", json_body=body)
        logger.info(f"Registered Lightspeed webhook {','.join(topics)} -> {address}")
        return [w for w in as_list(data.get("Webhook")) if isinstance(w, dict)]

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request("DELETE", f"/Webhook/{webhook_id}.json")

    async def test_connection(self) -> dict[str, Any]:
        try:
            data = await self._request("GET", "/Shop.json")
        except PlatformRequestError as e:
            return {"success": False, "error": str(e)}
        shops = [s for s in as_list(data.get("Shop")) if isinstance(s, dict)]
        tokens = await self.token_store.load()
        return {
            "success": True,
            "shop": shops[0].get("name") if shops else None,
            "accountId": (tokens.account_id if tokens else None) or self.account_id,
        }
