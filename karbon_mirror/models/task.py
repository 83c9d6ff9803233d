"""Task model - Karbon integration tasks attached to work items."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class KarbonTask(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "karbon_task"

    karbon_task_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    task_definition_key: Mapped[str | None] = mapped_column(String(100), default=None)
    title: Mapped[str | None] = mapped_column(String(500), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str | None] = mapped_column(String(50), default=None)
    priority: Mapped[str | None] = mapped_column(String(50), default=None)
    due_date: Mapped[date | None] = mapped_column(Date, default=None)
    completed_date: Mapped[date | None] = mapped_column(Date, default=None)
    assignee_key: Mapped[str | None] = mapped_column(String(100), default=None)
    assignee_name: Mapped[str | None] = mapped_column(String(200), default=None)
    assignee_email: Mapped[str | None] = mapped_column(String(255), default=None)
    is_blocking: Mapped[bool] = mapped_column(Boolean, default=False)
    estimated_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    actual_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    task_data: Mapped[dict | None] = mapped_column(JSON, default=None)

    # Parent references; the local ids are filled in once the parents are mirrored.
    karbon_work_item_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    karbon_contact_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    work_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("work_item.id", ondelete="SET NULL"), default=None, index=True
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contact.id", ondelete="SET NULL"), default=None, index=True
    )

    def __repr__(self) -> str:
        return f"<KarbonTask {self.title or self.karbon_task_key}>"
