"""Resolve natural-key references into local foreign keys after an upsert."""

from __future__ import annotations

import logging

from sqlalchemy import exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .registry import EntityKind

logger = logging.getLogger(__name__)


async def resolve_parent_links(
    db: AsyncSession,
    kind: EntityKind,
    keys: list[str] | None = None,
) -> int:
    """Point child rows at their parents' local ids.

    Only rows whose parent already exists locally are touched; the rest keep
    a null FK until a later run brings the parent in. ``keys`` limits the
    update to specific child rows (webhook path). Returns rows updated.
    """
    child = kind.table
    linked = 0
    for link in kind.parent_links:
        parent = link.parent.__table__
        source = child.c[link.source_key_column]
        fk = child.c[link.fk_column]
        match = parent.c[link.parent_key_column] == source
        parent_id = select(parent.c.id).where(match).limit(1).scalar_subquery()

        stmt = (
            update(child)
            .where(source.is_not(None))
            .where(exists().where(match))
            .where(or_(fk.is_(None), fk != parent_id))
            .values({link.fk_column: parent_id})
        )
        if keys is not None:
            stmt = stmt.where(kind.key_col.in_(keys))

        result = await db.execute(stmt)
        linked += result.rowcount or 0

    if kind.parent_links:
        await db.commit()
        logger.debug("Linked %d %s row(s) to parents", linked, kind.name)
    return linked
