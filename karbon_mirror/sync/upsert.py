"""Batched insert-or-update by natural key, shared by bulk sync and webhooks."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..schemas.sync import UpsertResult
from .field_mapper import utcnow
from .registry import EntityKind

logger = logging.getLogger(__name__)

_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}

# Owned by soft_delete; an upsert never revives a deleted row.
_SOFT_DELETE_COLUMNS = frozenset({"is_active", "deleted_at"})


def _error_text(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    message = str(orig or exc).strip().splitlines()
    return (message[0] if message else exc.__class__.__name__)[:500]


def _dedupe(kind: EntityKind, records: list[dict]) -> tuple[list[dict], int]:
    """Drop keyless records and collapse duplicate keys (last one wins)."""
    by_key: dict[str, dict] = {}
    missing = 0
    for record in records:
        key = record.get(kind.key_column)
        if not key:
            missing += 1
            continue
        by_key.pop(key, None)
        by_key[key] = record
    return list(by_key.values()), missing


def build_upsert(kind: EntityKind, dialect_name: str, columns: list[str], *, stale_guard: bool):
    try:
        insert_fn = _INSERTS[dialect_name]
    except KeyError:
        raise ValueError(f"Upsert not supported for dialect {dialect_name!r}") from None

    table = kind.table
    stmt = insert_fn(table)
    excluded = stmt.excluded
    set_ = {
        name: excluded[name]
        for name in columns
        if name != kind.key_column and name not in _SOFT_DELETE_COLUMNS
    }
    set_["updated_at"] = func.now()

    where = None
    if stale_guard:
        # Never let an older upstream version overwrite a newer stored one.
        stored = table.c.karbon_modified_at
        incoming = excluded.karbon_modified_at
        where = or_(stored.is_(None), incoming.is_(None), incoming >= stored)

    return stmt.on_conflict_do_update(
        index_elements=[table.c[kind.key_column]],
        set_=set_,
        where=where,
    )


async def upsert_records(
    db: AsyncSession,
    kind: EntityKind,
    records: list[dict],
    *,
    batch_size: int | None = None,
    stale_guard: bool | None = None,
) -> UpsertResult:
    """Write ``records`` in independent batches.

    A failing batch is rolled back and counted as failed; later batches are
    still attempted. There is no atomicity across batches.
    """
    batch_size = batch_size or settings.sync_batch_size
    stale_guard = settings.sync_stale_guard if stale_guard is None else stale_guard
    result = UpsertResult()

    rows, missing = _dedupe(kind, records)
    if missing:
        result.errors += missing
        result.error_details.append(f"{missing} record(s) without {kind.key_column}")
    if not rows:
        return result

    dialect_name = db.get_bind().dialect.name
    columns = sorted({name for row in rows for name in row})
    stmt = build_upsert(kind, dialect_name, columns, stale_guard=stale_guard)
    # executemany needs the same keys in every parameter set
    params = [{name: row.get(name) for name in columns} for row in rows]

    for start in range(0, len(params), batch_size):
        batch = params[start:start + batch_size]
        batch_no = start // batch_size + 1
        result.batches += 1
        keys = [row[kind.key_column] for row in batch]
        try:
            existing = set(
                (await db.execute(select(kind.key_col).where(kind.key_col.in_(keys)))).scalars()
            )
            await db.execute(stmt, batch)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            message = f"{kind.name} batch {batch_no}: {_error_text(e)}"
            logger.error("Upsert failed for %s", message)
            result.errors += len(batch)
            result.error_details.append(message)
            continue

        result.synced += len(batch)
        result.created += len(set(keys) - existing)

    logger.info(
        "Upserted %s: synced=%d created=%d errors=%d batches=%d",
        kind.name, result.synced, result.created, result.errors, result.batches,
    )
    return result


async def soft_delete(
    db: AsyncSession,
    kind: EntityKind,
    key: str,
    *,
    extra: dict | None = None,
    now: datetime | None = None,
) -> bool:
    """Mark a row inactive with a deletion time; the row itself is kept.

    Returns False when no row with ``key`` exists yet.
    """
    values = {"is_active": False, "deleted_at": now or utcnow()}
    values.update(dict(kind.delete_extra))
    values.update(extra or {})
    stmt = update(kind.table).where(kind.key_col == key).values(**values)
    result = await db.execute(stmt)
    await db.commit()
    return bool(result.rowcount)
