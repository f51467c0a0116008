"""Sync orchestrator.

Two entry points feed the mirror:
1. Bulk: `sync_all(kind)` walks every page of a kind and upserts item by item.
   One bad item is counted and skipped; a page that cannot be fetched aborts
   that kind's run with whatever was already written kept.
2. Events: `handle_event(topic, payload)` applies one webhook delivery.

Both paths end in the same translate -> upsert step, so a record written by a
webhook and the same record written by a bulk run produce identical rows.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from app.services.errors import PlatformRequestError, SyncError, TranslationError, UpsertError
from app.services.platform_client import PlatformClient
from app.services.platforms import EventAction, PlatformProfile
from app.services.records import CanonicalRecord, EntityKind, OrderRecord
from app.services.upsert_store import SqlUpsertStore

logger = logging.getLogger("uvicorn.error")

# Bulk order: products before the customers/orders that reference them
SYNC_ORDER = [EntityKind.PRODUCT, EntityKind.CUSTOMER, EntityKind.ORDER]


class EventOutcome(str, Enum):
    UPSERTED = "upserted"
    DELETED = "deleted"
    CANCELLED = "cancelled"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Counters for one bulk run of one kind."""

    kind: EntityKind
    synced: int = 0
    errors: int = 0
    total: int = 0
    aborted: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        # Partial item failures still count as a successful run
        return not (self.aborted and self.total == 0)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["success"] = self.success
        return data


class SyncOrchestrator:
    """Drives bulk syncs and webhook events for one platform."""

    def __init__(self, client: PlatformClient, profile: PlatformProfile, store: SqlUpsertStore):
        self.client = client
        self.profile = profile
        self.store = store

    # =========================================================================
    # Bulk
    # =========================================================================

    async def sync_all(self, kind: EntityKind) -> SyncResult:
        """Mirror every entity of `kind` from the platform."""
        result = SyncResult(kind=kind)
        logger.info(f"Sync {self.profile.name}/{kind.value}: fetching")

        try:
            async for raw in self.client.iter_all(kind):
                result.total += 1
                try:
                    record = self.profile.translate(kind, raw)
                    await self.store.upsert(kind, record.external_id, record)
                    result.synced += 1
                except SyncError as e:
                    result.errors += 1
                    logger.warning(f"Sync {kind.value} item {_raw_id(raw)} failed: {e}")
                except Exception as e:
                    result.errors += 1
                    logger.exception(f"Sync {kind.value} item {_raw_id(raw)} crashed: {e}")
        except PlatformRequestError as e:
            result.aborted = True
            result.error = str(e)
            logger.error(f"Sync {self.profile.name}/{kind.value} aborted after {result.total} items: {e}")

        logger.info(
            f"Sync {self.profile.name}/{kind.value}: idle "
            f"(synced={result.synced}, errors={result.errors}, total={result.total}, aborted={result.aborted})"
        )
        return result

    async def sync_everything(self) -> dict[EntityKind, SyncResult]:
        """Run `sync_all` for every kind; an aborted kind does not stop the next."""
        results: dict[EntityKind, SyncResult] = {}
        for kind in SYNC_ORDER:
            results[kind] = await self.sync_all(kind)
        return results

    # =========================================================================
    # Events
    # =========================================================================

    async def handle_event(self, topic: str | None, payload: Any) -> EventOutcome:
        """Apply one webhook delivery to the mirror.

        Never raises for expected failures; the outcome says what happened.
        """
        event = self.profile.resolve(topic)
        if event is None:
            logger.info(f"Ignoring unhandled {self.profile.name} webhook topic: {topic}")
            return EventOutcome.IGNORED

        kind = event.kind
        try:
            external_id = self.profile.entity_id(kind, payload)
        except TranslationError as e:
            logger.warning(f"Webhook {topic} dropped: {e}")
            return EventOutcome.FAILED

        logger.info(f"Webhook {topic}: {event.action.value} {kind.value}/{external_id}")

        try:
            if event.action == EventAction.DELETE:
                deleted = await self.store.delete(kind, external_id)
                if not deleted:
                    logger.info(f"{kind.value}/{external_id} was not mirrored, nothing to delete")
                return EventOutcome.DELETED

            entity = await self._resolve_entity(kind, external_id, payload)
            if entity is None:
                logger.warning(f"Webhook {topic}: {kind.value}/{external_id} no longer exists on the platform")
                return EventOutcome.FAILED

            record = self.profile.translate(kind, entity)

            if event.action == EventAction.CANCEL and isinstance(record, OrderRecord):
                if await self.store.mark_cancelled(record.external_id, record.cancelled_at, record.cancel_reason):
                    return EventOutcome.CANCELLED
                # Cancellation for an order we never saw: mirror it whole
                await self.store.upsert(kind, record.external_id, record)
                return EventOutcome.CANCELLED

            await self.store.upsert(kind, record.external_id, record)
            return EventOutcome.UPSERTED
        except PlatformRequestError as e:
            logger.error(f"Webhook {topic}: refetch of {kind.value}/{external_id} failed: {e}")
            return EventOutcome.FAILED
        except (TranslationError, UpsertError) as e:
            logger.warning(f"Webhook {topic}: {kind.value}/{external_id} not applied: {e}")
            return EventOutcome.FAILED

    async def _resolve_entity(self, kind: EntityKind, external_id: str, payload: Any) -> dict[str, Any] | None:
        if self.profile.payload_is_entity:
            return payload
        return await self.client.get_by_id(kind, external_id)

    # =========================================================================
    # Write-through
    # =========================================================================

    async def push(
        self,
        kind: EntityKind,
        fields: dict[str, Any],
        external_id: str | None = None,
    ) -> CanonicalRecord:
        """Create (or update) an entity on the platform, then mirror the result.

        Raises:
            PlatformRequestError: the platform call failed; nothing written locally.
            TranslationError / UpsertError: platform accepted it but mirroring failed.
        """
        if external_id:
            raw = await self.client.update(kind, external_id, fields)
        else:
            raw = await self.client.create(kind, fields)
        record = self.profile.translate(kind, raw)
        await self.store.upsert(kind, record.external_id, record)
        logger.info(f"Pushed {kind.value}/{record.external_id} to {self.profile.name} and mirrored it")
        return record


def _raw_id(raw: Any) -> str:
    if isinstance(raw, dict):
        for key in ("id", "itemID", "customerID", "saleID"):
            if raw.get(key) is not None:
                return str(raw[key])
    return "?"
