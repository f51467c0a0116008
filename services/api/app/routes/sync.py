"""Bulk sync and write-through endpoints.

POST /sync/all                     - Sync products, customers, orders
POST /sync/{kind}                  - Sync one kind (products|customers|orders)
POST /push/{kind}                  - Create on the platform, then mirror
PUT  /push/{kind}/{external_id}    - Update on the platform, then mirror
GET  /platform/test                - Check platform credentials

These run synchronously in the request; a full catalog can take minutes.
For scheduled runs use scripts/sync_all.py.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from app.dependencies import get_orchestrator, get_platform_client
from app.services.errors import PlatformRequestError, TranslationError, UpsertError
from app.services.platform_client import PlatformClient
from app.services.records import EntityKind
from app.services.sync import SyncOrchestrator

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


class SyncResponse(BaseModel):
    """Outcome of a bulk sync of one kind."""

    success: bool
    synced: int
    errors: int
    total: int
    message: str | None = None
    error: str | None = None


class SyncAllResponse(SyncResponse):
    results: dict[str, SyncResponse]


@router.post("/sync/all", response_model=SyncAllResponse)
async def sync_all_kinds(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> SyncAllResponse:
    """Sync every kind in order; one failing kind does not stop the others."""
    results = await orchestrator.sync_everything()
    breakdown = {
        kind.value: SyncResponse(
            success=r.success,
            synced=r.synced,
            errors=r.errors,
            total=r.total,
            error=r.error,
        )
        for kind, r in results.items()
    }
    synced = sum(r.synced for r in results.values())
    errors = sum(r.errors for r in results.values())
    total = sum(r.total for r in results.values())
    return SyncAllResponse(
        success=all(r.success for r in results.values()),
        synced=synced,
        errors=errors,
        total=total,
        message=f"Synced {synced} of {total} records",
        results=breakdown,
    )


@router.post("/sync/{kind}", response_model=SyncResponse)
async def sync_kind(
    kind: EntityKind,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncResponse:
    """Sync all entities of one kind from the platform."""
    result = await orchestrator.sync_all(kind)
    if not result.success:
        # Nothing could be fetched at all
        raise HTTPException(status_code=500, detail=f"Sync {kind.value} failed: {result.error}")
    return SyncResponse(
        success=True,
        synced=result.synced,
        errors=result.errors,
        total=result.total,
        message=f"Synced {result.synced} {kind.value}",
        error=result.error,
    )


def _push_error(kind: EntityKind, e: Exception) -> HTTPException:
    if isinstance(e, PlatformRequestError) and e.status_code in (400, 404, 422):
        return HTTPException(status_code=e.status_code, detail=f"Platform rejected {kind.value}: {e}")
    return HTTPException(status_code=500, detail=f"Push {kind.value} failed: {e}")


@router.post("/push/{kind}")
async def push_create(
    kind: EntityKind,
    fields: dict[str, Any] = Body(...),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Create an entity on the platform and mirror the platform's copy."""
    try:
        record = await orchestrator.push(kind, fields)
    except (PlatformRequestError, TranslationError, UpsertError) as e:
        raise _push_error(kind, e)
    return {"success": True, "data": jsonable_encoder(asdict(record))}


@router.put("/push/{kind}/{external_id}")
async def push_update(
    kind: EntityKind,
    external_id: str,
    fields: dict[str, Any] = Body(...),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Update an entity on the platform and mirror the platform's copy."""
    try:
        record = await orchestrator.push(kind, fields, external_id=external_id)
    except (PlatformRequestError, TranslationError, UpsertError) as e:
        raise _push_error(kind, e)
    return {"success": True, "data": jsonable_encoder(asdict(record))}


@router.get("/platform/test")
async def test_platform(client: PlatformClient = Depends(get_platform_client)) -> dict[str, Any]:
    return await client.test_connection()
