"""Tests for the Lightspeed client: OAuth refresh and offset pagination."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.services.errors import PlatformRequestError
from app.services.lightspeed_client import LightspeedClient
from app.services.records import EntityKind
from app.services.token_store import MemoryTokenStore, OAuthTokens

NOW = 1_700_000_000.0
API_URL = "https://api.lightspeed.test/API/V3/Account"
AUTH_URL = "https://cloud.lightspeed.test/oauth"


def _tokens(access: str = "access-1", expires_in: float = 3600) -> OAuthTokens:
    return OAuthTokens(access_token=access, refresh_token="refresh-1", expires_at=NOW + expires_in, account_id="123")


def _client(handler, store: MemoryTokenStore, page_size: int = 2) -> LightspeedClient:
    async def no_sleep(delay: float) -> None:
        return None

    return LightspeedClient(
        api_url=API_URL,
        auth_url=AUTH_URL,
        client_id="client",
        client_secret="secret",
        token_store=store,
        clock=lambda: NOW,
        page_size=page_size,
        transport=httpx.MockTransport(handler),
        sleep=no_sleep,
    )


def _token_response(access: str) -> httpx.Response:
    return httpx.Response(200, json={"access_token": access, "expires_in": 3600, "token_type": "bearer"})


def test_authorization_url():
    client = _client(lambda request: httpx.Response(200), MemoryTokenStore())
    url = urlparse(client.authorization_url(state="xyz"))
    params = parse_qs(url.query)

    assert url.path.endswith("/authorize.php")
    assert params["client_id"] == ["client"]
    assert params["response_type"] == ["code"]
    assert params["state"] == ["xyz"]


@pytest.mark.asyncio
async def test_offset_pagination():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        offset = int(request.url.params["offset"])
        if offset == 0:
            items = [{"itemID": "1"}, {"itemID": "2"}]
        else:
            # A single element arrives as an object, not a list
            items = {"itemID": "3"}
        return httpx.Response(200, json={"@attributes": {"count": "3", "offset": str(offset), "limit": "2"}, "Item": items})

    client = _client(handler, MemoryTokenStore(_tokens()))
    items = [item async for item in client.iter_all(EntityKind.PRODUCT)]
    await client.close()

    assert [item["itemID"] for item in items] == ["1", "2", "3"]
    assert len(seen) == 2
    assert seen[0].url.path == "/API/V3/Account/123/Item.json"
    assert seen[0].headers["Authorization"] == "Bearer access-1"
    assert "ItemShops" in seen[0].url.params["load_relations"]
    assert seen[1].url.params["offset"] == "2"


@pytest.mark.asyncio
async def test_rejected_token_is_refreshed_once():
    store = MemoryTokenStore(_tokens())
    token_requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/access_token.php"):
            token_requests.append(parse_qs(request.content.decode()))
            return _token_response("access-2")
        if request.headers["Authorization"] == "Bearer access-1":
            return httpx.Response(401)
        return httpx.Response(200, json={"Item": {"itemID": "42"}})

    client = _client(handler, store)
    item = await client.get_by_id(EntityKind.PRODUCT, "42")
    await client.close()

    assert item == {"itemID": "42"}
    assert len(token_requests) == 1
    assert token_requests[0]["grant_type"] == ["refresh_token"]
    assert store.tokens.access_token == "access-2"
    # Refresh responses without a new refresh token keep the old one
    assert store.tokens.refresh_token == "refresh-1"
    assert store.tokens.account_id == "123"


@pytest.mark.asyncio
async def test_second_rejection_is_not_retried_again():
    store = MemoryTokenStore(_tokens())
    refreshes = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/access_token.php"):
            refreshes["n"] += 1
            return _token_response(f"access-{refreshes['n'] + 1}")
        return httpx.Response(401)

    client = _client(handler, store)
    with pytest.raises(PlatformRequestError) as exc_info:
        await client.get_by_id(EntityKind.PRODUCT, "42")
    await client.close()

    assert exc_info.value.status_code == 401
    assert refreshes["n"] == 1


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_before_the_call():
    store = MemoryTokenStore(_tokens(expires_in=60))
    auth_headers: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/access_token.php"):
            return _token_response("access-2")
        auth_headers.append(request.headers["Authorization"])
        return httpx.Response(200, json={"Item": {"itemID": "42"}})

    client = _client(handler, store)
    await client.get_by_id(EntityKind.PRODUCT, "42")
    await client.close()

    assert auth_headers == ["Bearer access-2"]
    assert store.tokens.expires_at == NOW + 3600


@pytest.mark.asyncio
async def test_not_authenticated():
    client = _client(lambda request: httpx.Response(200, json={}), MemoryTokenStore())
    with pytest.raises(PlatformRequestError) as exc_info:
        await client.fetch_page(EntityKind.PRODUCT)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_missing_entity_returns_none():
    client = _client(lambda request: httpx.Response(404), MemoryTokenStore(_tokens()))
    assert await client.get_by_id(EntityKind.ORDER, "999") is None
    await client.close()


@pytest.mark.asyncio
async def test_exchange_code_saves_tokens():
    store = MemoryTokenStore()

    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["abc"]
        return httpx.Response(
            200,
            json={"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600, "account_id": 123},
        )

    client = _client(handler, store)
    tokens = await client.exchange_code("abc")
    await client.close()

    assert tokens.account_id == "123"
    assert store.tokens == tokens
