"""Sync orchestrator - pulls every entity kind from Karbon in dependency order."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import KarbonClient, KarbonError
from ..api.pager import fetch_all
from ..config import settings
from ..models.sync_run import (
    SYNC_STATUS_COMPLETED,
    SYNC_STATUS_COMPLETED_WITH_ERRORS,
    SYNC_STATUS_FAILED,
    SYNC_STATUS_RUNNING,
    SyncRun,
)
from ..schemas.sync import EntityResult, SyncRunSummary
from .field_mapper import utcnow
from .links import resolve_parent_links
from .registry import EntityKind, resolve_scope
from .upsert import upsert_records
from .watermark import resolve_watermark, watermark_filter

logger = logging.getLogger(__name__)


async def sync_entity_kind(
    db: AsyncSession,
    client: KarbonClient,
    kind: EntityKind,
    *,
    incremental: bool = True,
) -> EntityResult:
    """Fetch, map, upsert and link one entity kind."""
    result = EntityResult(entity=kind.name)
    if not kind.has_list_endpoint:
        result.skipped = f"{kind.name} has no list endpoint; kept current by webhooks"
        return result

    query = kind.list_query
    if incremental and kind.incremental:
        result.watermark = await resolve_watermark(db, kind)
        if result.watermark is not None:
            result.incremental = True
            query = query.with_filter(watermark_filter(result.watermark))

    fetched = await fetch_all(client, kind.list_endpoint, query, max_pages=settings.sync_max_pages)
    result.fetched = len(fetched.items)
    result.pages = fetched.pages
    result.warning = fetched.warning

    records, map_errors = kind.map_records(fetched.items)
    written = await upsert_records(db, kind, records)
    result.synced = written.synced
    result.created = written.created
    result.errors = written.errors + len(map_errors)
    result.error_details = map_errors + written.error_details

    if written.synced:
        result.linked = await resolve_parent_links(db, kind)

    logger.info(
        "Synced %s: fetched=%d synced=%d created=%d errors=%d%s",
        kind.name, result.fetched, result.synced, result.created, result.errors,
        " (incremental)" if result.incremental else "",
    )
    return result


async def reap_stale_runs(db: AsyncSession, now: datetime | None = None) -> int:
    """Fail runs still marked running whose lease has expired."""
    now = now or utcnow()
    stale = (
        await db.execute(
            select(SyncRun.id, SyncRun.error_details)
            .where(SyncRun.status == SYNC_STATUS_RUNNING)
            .where(SyncRun.lease_expires_at.is_not(None))
            .where(SyncRun.lease_expires_at < now)
        )
    ).all()

    for run_id, details in stale:
        await db.execute(
            update(SyncRun)
            .where(SyncRun.id == run_id)
            .where(SyncRun.status == SYNC_STATUS_RUNNING)
            .values(
                status=SYNC_STATUS_FAILED,
                completed_at=now,
                error_details=list(details or []) + [
                    {"entity": None, "error": "Run lease expired before completion"}
                ],
            )
        )
    if stale:
        await db.commit()
        logger.warning("Reaped %d abandoned sync run(s)", len(stale))
    return len(stale)


async def _start_run(
    db: AsyncSession, *, sync_type: str, manual: bool, names: list[str]
) -> tuple[uuid.UUID, datetime]:
    started = utcnow()
    run_id = uuid.uuid4()
    run = SyncRun(
        id=run_id,
        sync_type=sync_type,
        sync_direction="inbound",
        status=SYNC_STATUS_RUNNING,
        is_manual=manual,
        entities=names,
        started_at=started,
        lease_expires_at=started + timedelta(seconds=settings.sync_run_lease_seconds),
    )
    db.add(run)
    await db.commit()
    return run_id, started


async def _renew_lease(db: AsyncSession, run_id: uuid.UUID) -> bool:
    """Push the lease forward; False once the run is no longer ours to finish."""
    result = await db.execute(
        update(SyncRun)
        .where(SyncRun.id == run_id)
        .where(SyncRun.status == SYNC_STATUS_RUNNING)
        .values(lease_expires_at=utcnow() + timedelta(seconds=settings.sync_run_lease_seconds))
    )
    await db.commit()
    return bool(result.rowcount)


async def run_sync(
    db: AsyncSession,
    client: KarbonClient,
    *,
    entities: list[str] | None = None,
    incremental: bool = True,
    manual: bool = False,
) -> SyncRunSummary:
    """Run one inbound sync over the requested entity kinds.

    A failure inside one kind is recorded against that kind and the run moves
    on; the run row always ends up completed or completed_with_errors.
    """
    kinds = resolve_scope(entities)  # raises UnknownEntityKind before any row exists
    sync_type = "incremental" if incremental else "full"

    await reap_stale_runs(db)
    names = [kind.name for kind in kinds]
    run_id, started_at = await _start_run(db, sync_type=sync_type, manual=manual, names=names)
    logger.info("Sync run %s started (%s): %s", run_id, sync_type, ", ".join(names))

    results: dict[str, EntityResult] = {}
    for kind in kinds:
        try:
            result = await sync_entity_kind(db, client, kind, incremental=incremental)
        except KarbonError as e:
            await db.rollback()
            logger.error("Sync of %s failed: %s", kind.name, e.message)
            result = EntityResult(entity=kind.name, error=e.message)
        except Exception as e:
            await db.rollback()
            logger.exception("Sync of %s failed unexpectedly", kind.name)
            result = EntityResult(entity=kind.name, error=f"{e.__class__.__name__}: {e}")
        results[kind.name] = result
        if not await _renew_lease(db, run_id):
            logger.warning("Sync run %s was reaped after %s; stopping", run_id, kind.name)
            break

    errors = [f"{name}: {r.summary_message()}" for name, r in results.items() if r.failed]
    status = SYNC_STATUS_COMPLETED_WITH_ERRORS if errors else SYNC_STATUS_COMPLETED
    completed_at = utcnow()
    summary = SyncRunSummary(
        run_id=run_id,
        sync_type=sync_type,
        status=status,
        is_manual=manual,
        started_at=started_at,
        completed_at=completed_at,
        results=results,
        errors=errors,
    )

    # The run object may be expired after a batch rollback; finalize by id.
    # A reaped run already holds its terminal state and is left alone.
    finalized = await db.execute(
        update(SyncRun)
        .where(SyncRun.id == run_id)
        .where(SyncRun.status == SYNC_STATUS_RUNNING)
        .values(
            status=status,
            completed_at=completed_at,
            lease_expires_at=None,
            records_fetched=sum(r.fetched for r in results.values()),
            records_created=summary.total_created,
            records_failed=summary.total_errors,
            results={
                name: r.model_dump(mode="json", exclude_none=True) for name, r in results.items()
            },
            error_details=[
                {"entity": name, "error": r.summary_message()}
                for name, r in results.items() if r.failed
            ] or None,
        )
    )
    reaped = not finalized.rowcount
    await db.commit()
    if reaped:
        logger.warning("Sync run %s was reaped before it finished; keeping the failed state", run_id)
        summary.status = SYNC_STATUS_FAILED
        summary.errors.append("Run lease expired before completion")
    logger.info(
        "Sync run %s %s in %.2fs: synced=%d created=%d errors=%d",
        run_id, summary.status, summary.duration_seconds,
        summary.total_synced, summary.total_created, summary.total_errors,
    )
    return summary
