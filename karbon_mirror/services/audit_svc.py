"""Audit service - webhook event log, sync run history and sync health."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.sync_run import SyncRun
from ..models.webhook_event import WebhookEvent
from ..sync.field_mapper import utcnow
from ..sync.registry import ENTITY_KINDS, SYNC_ORDER
from ..sync.watermark import as_utc


async def record_webhook_event(
    db: AsyncSession,
    *,
    resource_type: str,
    outcome: str,
    received_at: datetime,
    event_type: str | None = None,
    resource_key: str | None = None,
    subscription_key: str | None = None,
    raw_payload: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    status_code: int = 200,
    signature_valid: bool | None = None,
    duration_ms: int | None = None,
) -> WebhookEvent:
    event = WebhookEvent(
        resource_type=resource_type,
        event_type=event_type,
        resource_key=resource_key,
        subscription_key=subscription_key,
        raw_payload=raw_payload,
        received_at=received_at,
        outcome=outcome,
        action=action,
        reason=reason,
        status_code=status_code,
        signature_valid=signature_valid,
        duration_ms=duration_ms,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


async def list_webhook_events(
    db: AsyncSession,
    *,
    resource_type: str | None = None,
    outcome: str | None = None,
    limit: int = 50,
) -> list[WebhookEvent]:
    stmt = select(WebhookEvent)
    if resource_type:
        stmt = stmt.where(WebhookEvent.resource_type == resource_type)
    if outcome:
        stmt = stmt.where(WebhookEvent.outcome == outcome)
    stmt = stmt.order_by(WebhookEvent.received_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_sync_runs(db: AsyncSession, *, limit: int = 20) -> list[SyncRun]:
    stmt = select(SyncRun).order_by(SyncRun.started_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def sync_run_to_dict(run: SyncRun) -> dict:
    return {
        "id": str(run.id),
        "syncType": run.sync_type,
        "status": run.status,
        "isManual": run.is_manual,
        "entities": run.entities,
        "recordsFetched": run.records_fetched,
        "recordsCreated": run.records_created,
        "recordsFailed": run.records_failed,
        "startedAt": _iso(run.started_at),
        "completedAt": _iso(run.completed_at),
        "errorDetails": run.error_details,
    }


def webhook_event_to_dict(event: WebhookEvent) -> dict:
    return {
        "id": str(event.id),
        "resourceType": event.resource_type,
        "eventType": event.event_type,
        "resourceKey": event.resource_key,
        "outcome": event.outcome,
        "action": event.action,
        "reason": event.reason,
        "statusCode": event.status_code,
        "receivedAt": _iso(event.received_at),
        "durationMs": event.duration_ms,
    }


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def health_status(stale_count: int) -> str:
    if stale_count == 0:
        return "healthy"
    if stale_count <= 2:
        return "warning"
    return "critical"


async def sync_health(db: AsyncSession, *, now: datetime | None = None) -> dict:
    """Freshness of every mirrored kind plus the most recent runs.

    A kind is stale when it was never synced or its newest ``last_synced_at``
    is older than ``sync_stale_after_hours``.
    """
    now = now or utcnow()
    threshold = now - timedelta(hours=settings.sync_stale_after_hours)

    entities: dict[str, dict] = {}
    stale: list[str] = []
    for name in SYNC_ORDER:
        table = ENTITY_KINDS[name].table
        count, last_sync, last_modified = (
            await db.execute(
                select(
                    func.count(),
                    func.max(table.c.last_synced_at),
                    func.max(table.c.karbon_modified_at),
                ).select_from(table)
            )
        ).one()
        last_sync = as_utc(last_sync)
        is_stale = last_sync is None or last_sync < threshold
        if is_stale:
            stale.append(name)
        entities[name] = {
            "record_count": count,
            "last_sync": _iso(last_sync),
            "last_modified": _iso(last_modified),
            "stale": is_stale,
        }

    recent = await list_sync_runs(db, limit=5)
    return {
        "status": health_status(len(stale)),
        "entities": entities,
        "staleEntities": stale,
        "staleAfterHours": settings.sync_stale_after_hours,
        "recentSyncs": [sync_run_to_dict(run) for run in recent],
        "checkedAt": now.isoformat(),
    }
