#!/usr/bin/env python3
"""Bulk sync job for cron.

Mirrors every product, customer and order from the configured platform into
the local database. Webhooks keep the mirror current between runs; this job
repairs anything a missed delivery left stale.

Run (local / cron):
  cd services/api
  python -m scripts.sync_all

Optional env vars:
  SYNC_KINDS="products,customers,orders"
"""

import asyncio
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.platforms import build_platform_client  # noqa: E402
from app.services.records import EntityKind  # noqa: E402
from app.services.sync import SYNC_ORDER, SyncOrchestrator  # noqa: E402
from app.services.upsert_store import SqlUpsertStore  # noqa: E402
from app.settings import get_settings  # noqa: E402
from app.stores.postgres import close_db, get_session_factory, init_db, ping_db  # noqa: E402
from app.stores.redis import close_redis, init_redis  # noqa: E402


def _parse_kinds(raw: str) -> list[EntityKind]:
    if not raw.strip():
        return list(SYNC_ORDER)
    return [EntityKind(p.strip()) for p in raw.split(",") if p.strip()]


async def main() -> int:
    # Initialize shared connections (same as API lifespan, but for a one-off cron run)
    await init_db()
    await ping_db()
    try:
        await init_redis()
    except Exception as e:
        # OAuth tokens live in Redis; Shopify runs fine without it.
        print(f"Redis unavailable, continuing without it: {e}", file=sys.stderr)

    client, profile = build_platform_client(get_settings())
    orchestrator = SyncOrchestrator(client, profile, SqlUpsertStore(get_session_factory()))

    try:
        kinds = _parse_kinds(os.getenv("SYNC_KINDS", ""))
        results = [await orchestrator.sync_all(kind) for kind in kinds]

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": all(r.success for r in results),
                "platform": profile.name,
                "results": [r.to_dict() for r in results],
            }
        )
        return 0 if all(r.success for r in results) else 1
    finally:
        await client.close()
        await close_redis()
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
