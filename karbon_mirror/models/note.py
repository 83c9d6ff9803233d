"""Note model - Karbon notes, only discoverable through webhook events."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import JSON, Boolean, Date, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class KarbonNote(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "karbon_note"

    karbon_note_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    subject: Mapped[str | None] = mapped_column(String(500), default=None)
    body: Mapped[str | None] = mapped_column(Text, default=None)
    note_type: Mapped[str | None] = mapped_column(String(50), default=None)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    author_key: Mapped[str | None] = mapped_column(String(100), default=None)
    author_name: Mapped[str | None] = mapped_column(String(200), default=None)
    assignee_email: Mapped[str | None] = mapped_column(String(255), default=None)
    due_date: Mapped[date | None] = mapped_column(Date, default=None)
    todo_date: Mapped[date | None] = mapped_column(Date, default=None)
    timelines: Mapped[list | None] = mapped_column(JSON, default=None)
    comments: Mapped[list | None] = mapped_column(JSON, default=None)

    karbon_work_item_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    work_item_title: Mapped[str | None] = mapped_column(String(500), default=None)
    karbon_contact_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    contact_name: Mapped[str | None] = mapped_column(String(300), default=None)
    work_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("work_item.id", ondelete="SET NULL"), default=None, index=True
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contact.id", ondelete="SET NULL"), default=None, index=True
    )

    def __repr__(self) -> str:
        return f"<KarbonNote {self.subject or self.karbon_note_key}>"
