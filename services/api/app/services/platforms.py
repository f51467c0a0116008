"""Platform profiles.

A profile describes how one commerce platform talks to us: which headers
carry the signature/topic/delivery id, how topics map to sync events, how an
entity id is read from a payload, and which translator handles each kind.
Everything platform-specific the orchestrator and webhook route need is here,
so they never branch on the platform name.
"""

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.services import lightspeed_translator, shopify_translator
from app.services.errors import TranslationError
from app.services.lightspeed_client import LightspeedClient
from app.services.platform_client import PlatformClient
from app.services.records import CanonicalRecord, EntityKind
from app.services.shopify_client import ShopifyClient
from app.services.token_store import RedisTokenStore, TokenStore
from app.settings import Settings


class EventAction(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"
    CANCEL = "cancel"


@dataclass(frozen=True)
class SyncEvent:
    """What a webhook topic asks the mirror to do."""

    kind: EntityKind
    action: EventAction


Translator = Callable[[dict[str, Any]], CanonicalRecord]


@dataclass(frozen=True)
class PlatformProfile:
    name: str
    signature_header: str
    topic_header: str
    topics: dict[str, SyncEvent]
    translators: dict[EntityKind, Translator]
    id_fields: dict[EntityKind, str]
    # False when deliveries carry only ids and the entity must be refetched
    payload_is_entity: bool
    webhook_topics: list[str] = field(default_factory=list)
    account_header: str | None = None
    delivery_id_header: str | None = None
    # Lightspeed wraps deliveries as {"topic": ..., "data": {...}}
    body_topic_key: str | None = None
    body_payload_key: str | None = None

    def resolve(self, topic: str | None) -> SyncEvent | None:
        if not topic:
            return None
        return self.topics.get(topic.strip().lower())

    def translate(self, kind: EntityKind, payload: dict[str, Any]) -> CanonicalRecord:
        return self.translators[kind](payload)

    def entity_id(self, kind: EntityKind, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise TranslationError("Webhook payload is not an object")
        value = payload.get(self.id_fields[kind])
        if value is None or value == "":
            raise TranslationError(f"Webhook payload missing {self.id_fields[kind]}")
        return str(value)

    def unwrap(self, headers: Mapping[str, str], body: Any) -> tuple[str | None, Any]:
        """Pull (topic, entity payload) out of a delivery."""
        topic = headers.get(self.topic_header)
        payload = body
        if isinstance(body, dict):
            if not topic and self.body_topic_key:
                topic = body.get(self.body_topic_key)
            if self.body_payload_key and self.body_payload_key in body:
                payload = body[self.body_payload_key]
                # Some deliveries send the inner object as a JSON string
                if isinstance(payload, str):
                    try:
                        payload = json.loads(payload)
                    except ValueError as e:
                        raise TranslationError(f"Invalid {self.body_payload_key} field: {e}") from e
        return (str(topic) if topic else None), payload


def _events(kind: EntityKind, upsert: list[str], delete: list[str], cancel: list[str] | None = None) -> dict[str, SyncEvent]:
    table = {t: SyncEvent(kind, EventAction.UPSERT) for t in upsert}
    table.update({t: SyncEvent(kind, EventAction.DELETE) for t in delete})
    table.update({t: SyncEvent(kind, EventAction.CANCEL) for t in cancel or []})
    return table


SHOPIFY = PlatformProfile(
    name="shopify",
    signature_header="X-Shopify-Hmac-Sha256",
    topic_header="X-Shopify-Topic",
    account_header="X-Shopify-Shop-Domain",
    delivery_id_header="X-Shopify-Webhook-Id",
    topics={
        **_events(EntityKind.PRODUCT, ["products/create", "products/update"], ["products/delete"]),
        **_events(EntityKind.CUSTOMER, ["customers/create", "customers/update"], ["customers/delete"]),
        **_events(
            EntityKind.ORDER,
            ["orders/create", "orders/updated", "orders/paid", "orders/fulfilled", "orders/partially_fulfilled"],
            ["orders/delete"],
            ["orders/cancelled"],
        ),
    },
    translators={
        EntityKind.PRODUCT: shopify_translator.translate_product,
        EntityKind.CUSTOMER: shopify_translator.translate_customer,
        EntityKind.ORDER: shopify_translator.translate_order,
    },
    id_fields={kind: "id" for kind in EntityKind},
    payload_is_entity=True,
    webhook_topics=[
        "products/create",
        "products/update",
        "products/delete",
        "customers/create",
        "customers/update",
        "customers/delete",
        "orders/create",
        "orders/updated",
        "orders/cancelled",
    ],
)

LIGHTSPEED = PlatformProfile(
    name="lightspeed",
    signature_header="X-Lightspeed-Signature",
    topic_header="X-Lightspeed-Topic",
    topics={
        **_events(EntityKind.PRODUCT, ["item.create", "item.update"], ["item.delete"]),
        **_events(EntityKind.CUSTOMER, ["customer.create", "customer.update"], ["customer.delete"]),
        # A voided sale arrives as sale.update and is mapped by the translator
        **_events(EntityKind.ORDER, ["sale.create", "sale.update"], ["sale.delete"]),
    },
    translators={
        EntityKind.PRODUCT: lightspeed_translator.translate_product,
        EntityKind.CUSTOMER: lightspeed_translator.translate_customer,
        EntityKind.ORDER: lightspeed_translator.translate_order,
    },
    id_fields={
        EntityKind.PRODUCT: "itemID",
        EntityKind.CUSTOMER: "customerID",
        EntityKind.ORDER: "saleID",
    },
    payload_is_entity=False,
    webhook_topics=[
        "item.create",
        "item.update",
        "item.delete",
        "customer.create",
        "customer.update",
        "customer.delete",
        "sale.create",
        "sale.update",
        "sale.delete",
    ],
    body_topic_key="topic",
    body_payload_key="data",
)

PROFILES = {profile.name: profile for profile in (SHOPIFY, LIGHTSPEED)}


def get_profile(name: str) -> PlatformProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown platform: {name}") from None


def build_platform_client(
    settings: Settings,
    token_store: TokenStore | None = None,
) -> tuple[PlatformClient, PlatformProfile]:
    """Construct the client and profile for the configured platform."""
    profile = get_profile(settings.platform)
    common: dict[str, Any] = {
        "timeout": settings.platform_timeout_seconds,
        "max_retries": settings.platform_max_retries,
        "page_size": settings.sync_page_size,
        "max_pages": settings.sync_max_pages,
    }
    client: PlatformClient
    if profile is LIGHTSPEED:
        client = LightspeedClient(
            api_url=settings.lightspeed_api_url,
            auth_url=settings.lightspeed_auth_url,
            client_id=settings.lightspeed_client_id,
            client_secret=settings.lightspeed_client_secret,
            redirect_uri=settings.lightspeed_redirect_uri,
            account_id=settings.lightspeed_account_id,
            token_store=token_store or RedisTokenStore("lightspeed"),
            **common,
        )
    else:
        client = ShopifyClient(
            shop_name=settings.shopify_shop_name,
            access_token=settings.shopify_access_token,
            api_version=settings.shopify_api_version,
            **common,
        )
    return client, profile
