"""Karbon sync routes - trigger runs, inspect history and freshness."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import ClientFactory, KarbonConfigError, get_client_factory
from ..config import settings
from ..database import get_db
from ..services import audit_svc
from ..services.followup_svc import run_pending_followups
from ..sync.registry import UnknownEntityKind, resolve_scope
from ..sync.sync_engine import reap_stale_runs, run_sync

router = APIRouter(prefix="/karbon", tags=["sync"])


def _parse_entities(entities: str | None) -> list[str] | None:
    if not entities:
        return None
    names = [name.strip() for name in entities.split(",") if name.strip()]
    return names or None


@router.api_route("/sync", methods=["GET", "POST"])
async def trigger_sync(
    incremental: bool = True,
    entities: str | None = None,
    manual: bool = False,
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    names = _parse_entities(entities)
    try:
        resolve_scope(names)
    except UnknownEntityKind as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not settings.credentials_configured:
        raise HTTPException(status_code=503, detail="Karbon API credentials not configured")

    try:
        client = client_factory()
    except KarbonConfigError as e:
        raise HTTPException(status_code=503, detail=e.message)

    async with client:
        summary = await run_sync(
            db, client, entities=names, incremental=incremental, manual=manual
        )
    return summary.to_response()


@router.get("/sync/runs")
async def sync_runs(
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    runs = await audit_svc.list_sync_runs(db, limit=limit)
    return {"runs": [audit_svc.sync_run_to_dict(run) for run in runs]}


@router.get("/sync-health")
async def sync_health(db: AsyncSession = Depends(get_db)):
    return await audit_svc.sync_health(db)


@router.post("/sync/reap")
async def reap_runs(db: AsyncSession = Depends(get_db)):
    reaped = await reap_stale_runs(db)
    return {"success": True, "reaped": reaped}


@router.post("/sync/followups/run")
async def run_followups(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    try:
        client = client_factory()
    except KarbonConfigError as e:
        raise HTTPException(status_code=503, detail=e.message)

    async with client:
        stats = await run_pending_followups(db, client, limit=limit)
    return {
        "success": True,
        "processed": stats.processed,
        "succeeded": stats.succeeded,
        "failed": stats.failed,
        "retrying": stats.retrying,
    }
