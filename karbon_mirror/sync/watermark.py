"""Incremental-sync watermarks derived from what is already stored."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .registry import EntityKind


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; they were written as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def resolve_watermark(db: AsyncSession, kind: EntityKind) -> datetime | None:
    """Latest stored ``karbon_modified_at`` for ``kind``, or None when nothing is stored."""
    column = kind.table.c.karbon_modified_at
    value = (await db.execute(select(func.max(column)).where(column.is_not(None)))).scalar()
    return as_utc(value)


def watermark_filter(watermark: datetime) -> str:
    """OData filter for records modified after ``watermark`` (second precision)."""
    stamp = as_utc(watermark).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"LastModifiedDateTime gt {stamp}"
