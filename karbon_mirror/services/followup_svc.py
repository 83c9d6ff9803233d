"""Follow-up job queue - downstream refreshes requested by webhook handlers."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import KarbonClient, KarbonError, ODataQuery
from ..api.pager import fetch_all
from ..config import settings
from ..models.followup import FollowupJob
from ..sync.field_mapper import utcnow
from ..sync.links import resolve_parent_links
from ..sync.registry import get_kind
from ..sync.upsert import upsert_records

logger = logging.getLogger(__name__)

REFRESH_CLIENT_WORK = "refresh_client_work"


@dataclass(frozen=True)
class FollowupRunStats:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retrying: int = 0


async def enqueue_followup(
    db: AsyncSession,
    *,
    job_type: str,
    resource_key: str,
    payload: dict[str, Any] | None = None,
) -> FollowupJob:
    """Queue a job unless an identical one is already pending."""
    stmt = select(FollowupJob).where(
        FollowupJob.job_type == job_type,
        FollowupJob.resource_key == resource_key,
        FollowupJob.status == "pending",
    )
    existing = (await db.execute(stmt)).scalars().first()
    if existing:
        return existing

    job = FollowupJob(
        job_type=job_type,
        resource_key=resource_key,
        status="pending",
        attempts=0,
        max_attempts=settings.followup_max_attempts,
        payload_json=payload,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    logger.info("Queued %s follow-up for %s", job_type, resource_key)
    return job


async def list_followups(
    db: AsyncSession,
    *,
    status: str | None = None,
    limit: int = 50,
) -> list[FollowupJob]:
    stmt = select(FollowupJob)
    if status:
        stmt = stmt.where(FollowupJob.status == status)
    stmt = stmt.order_by(FollowupJob.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


def _odata_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


async def _refresh_client_work(db: AsyncSession, client: KarbonClient, client_key: str) -> dict:
    """Re-pull every work item belonging to one client."""
    kind = get_kind("work-items")
    query = kind.list_query.with_filter(f"ClientKey eq {_odata_literal(client_key)}")
    fetched = await fetch_all(client, kind.list_endpoint, query, max_pages=settings.sync_max_pages)
    records, map_errors = kind.map_records(fetched.items)
    written = await upsert_records(db, kind, records)
    problems = map_errors + written.error_details
    if problems:
        raise ValueError(problems[0])
    if written.synced:
        await resolve_parent_links(db, kind, [r[kind.key_column] for r in records])
    return {"fetched": len(fetched.items), "synced": written.synced, "created": written.created}


_HANDLERS = {
    REFRESH_CLIENT_WORK: _refresh_client_work,
}


async def _finish(db: AsyncSession, job_id: uuid.UUID, **values) -> None:
    # Upserts roll back on failure, expiring ORM state; write job rows by id.
    await db.execute(update(FollowupJob).where(FollowupJob.id == job_id).values(**values))
    await db.commit()


async def run_pending_followups(
    db: AsyncSession,
    client: KarbonClient,
    *,
    limit: int = 50,
) -> FollowupRunStats:
    """Process pending jobs oldest first (sequential, best-effort)."""
    pending = (
        await db.execute(
            select(
                FollowupJob.id,
                FollowupJob.job_type,
                FollowupJob.resource_key,
                FollowupJob.attempts,
                FollowupJob.max_attempts,
            )
            .where(FollowupJob.status == "pending")
            .order_by(FollowupJob.created_at.asc())
            .limit(max(0, int(limit)))
        )
    ).all()

    processed = succeeded = failed = retrying = 0
    for job_id, job_type, resource_key, attempts, max_attempts in pending:
        processed += 1
        attempts = int(attempts or 0) + 1
        handler = _HANDLERS.get(job_type)
        if handler is None:
            await _finish(
                db, job_id, status="failed", attempts=attempts,
                last_error=f"Unknown job type: {job_type}", completed_at=utcnow(),
            )
            failed += 1
            continue

        try:
            result = await handler(db, client, resource_key)
        except (KarbonError, ValueError) as e:
            await db.rollback()
            message = getattr(e, "message", None) or str(e)
            exhausted = attempts >= int(max_attempts or settings.followup_max_attempts)
            logger.warning(
                "Follow-up %s for %s failed (attempt %d): %s",
                job_type, resource_key, attempts, message,
            )
            await _finish(
                db,
                job_id,
                status="failed" if exhausted else "pending",
                attempts=attempts,
                last_error=message[:2000],
                completed_at=utcnow() if exhausted else None,
            )
            if exhausted:
                failed += 1
            else:
                retrying += 1
            continue

        await _finish(
            db, job_id, status="succeeded", attempts=attempts,
            last_error=None, result_json=result, completed_at=utcnow(),
        )
        succeeded += 1

    return FollowupRunStats(
        processed=processed,
        succeeded=succeeded,
        failed=failed,
        retrying=retrying,
    )
